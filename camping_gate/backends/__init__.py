from camping_gate.services.api_client import ApiClient
from camping_gate.services.session import SessionProvider, StaticTokenSession
from camping_gate.utils.config_manager import ConfigManager
from camping_gate.utils.logging_config import get_logger

from .api_backend import ApiBackend

logger = get_logger(__name__)


def build_backend(config: ConfigManager, session: SessionProvider = None):
    """按配置 BACKEND 创建后端：api（默认）或 local"""
    kind = str(config.get_config("BACKEND", "api")).lower()
    if kind == "local":
        from .local import DatabaseManager, LocalBackend

        db = DatabaseManager.get_instance(config.get_config("DATABASE.URL"))
        db.create_all()
        logger.info("使用本地存储后端")
        return LocalBackend(db, operator_id=config.get_config("ENTRY_CONTROL.OPERATOR_ID"))

    if kind != "api":
        raise ValueError(f"未知的后端类型: {kind}")

    if session is None:
        session = StaticTokenSession(config.get_config("API.TOKEN"))
    client = ApiClient(
        config.get_config("API.BASE_URL", "http://localhost:3000/api"),
        session,
        timeout=config.get_config("API.TIMEOUT"),
    )
    logger.info(f"使用远程后端: {client.base_url}")
    return ApiBackend(client)


__all__ = ["ApiBackend", "build_backend"]
