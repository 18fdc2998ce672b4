import copy
import json
import os
import threading
from pathlib import Path
from typing import Any, Optional

from camping_gate.utils.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "CAMPING_GATE_CONFIG"
DEFAULT_CONFIG_PATH = Path("config") / "config.json"

DEFAULT_CONFIG = {
    "API": {
        "BASE_URL": "http://localhost:3000/api",
        "TOKEN": "",
        "TIMEOUT": None,
    },
    # "api": 远程后端; "local": 本地 SQLite 存储
    "BACKEND": "api",
    "DATABASE": {
        "URL": "sqlite:///camping_gate.db",
    },
    "ENTRY_CONTROL": {
        "VENUE_ID": None,
        "OPERATOR_ID": None,
        "ALLOW_OFF_SHIFT": False,
    },
    "SCANNER": {
        "CAMERA_INDEX": 0,
        "FRAME_INTERVAL": 1 / 15,
    },
    "LOGGING": {
        "LEVEL": "INFO",
        "FILE": None,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    配置管理器（单例）.
    读取 JSON 配置文件并与默认配置合并，支持 "A.B.C" 形式的路径访问。
    """

    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls(config_path)
            return cls._instance

    @classmethod
    def reset_instance(cls):
        """丢弃单例（主要供测试使用）"""
        with cls._lock:
            cls._instance = None

    def __init__(self, config_path: Optional[str] = None):
        path = config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
        self.config_path = Path(path)
        self._config = self._load_config()

    def _load_config(self) -> dict:
        if not self.config_path.exists():
            logger.info(f"配置文件不存在，使用默认配置: {self.config_path}")
            return copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"读取配置文件失败，使用默认配置: {e}")
            return copy.deepcopy(DEFAULT_CONFIG)
        return _deep_merge(DEFAULT_CONFIG, user_config)

    def get_config(self, path: str, default: Any = None) -> Any:
        node: Any = self._config
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def update_config(self, path: str, value: Any, save: bool = True) -> bool:
        """更新配置项，save 为 True 时写回文件"""
        parts = path.split(".")
        node = self._config
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        if not save:
            return True
        return self._save_config()

    def _save_config(self) -> bool:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, ensure_ascii=False, indent=2)
            return True
        except OSError as e:
            logger.error(f"保存配置文件失败: {e}")
            return False
