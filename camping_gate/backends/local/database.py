from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from camping_gate.utils.config_manager import ConfigManager
from camping_gate.utils.logging_config import get_logger

from .models import Base

logger = get_logger(__name__)


class DatabaseManager:
    _instance = None

    @classmethod
    def get_instance(cls, database_url: Optional[str] = None):
        if cls._instance is None:
            cls._instance = DatabaseManager(database_url)
        return cls._instance

    @classmethod
    def reset_instance(cls):
        if cls._instance is not None:
            cls._instance.dispose()
        cls._instance = None

    def __init__(self, database_url: Optional[str] = None):
        if database_url is None:
            config = ConfigManager.get_instance()
            database_url = config.get_config("DATABASE.URL", "sqlite:///camping_gate.db")
        self.database_url = database_url
        self._engine = None
        self._session_factory = None
        self._init_db()

    def _init_db(self):
        try:
            options = {"pool_pre_ping": True, "echo": False}
            if self.database_url.startswith("sqlite"):
                # 会话在 asyncio.to_thread 的工作线程中使用
                options["connect_args"] = {"check_same_thread": False}
                if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                    options["poolclass"] = StaticPool
            else:
                options["pool_recycle"] = 3600

            self._engine = create_engine(self.database_url, **options)
            self._session_factory = scoped_session(sessionmaker(bind=self._engine))
            logger.info(f"[LocalDB] 数据库连接已初始化: {self._engine.url.render_as_string(hide_password=True)}")
        except Exception as e:
            logger.error(f"[LocalDB] 数据库初始化失败: {e}")
            raise

    def create_all(self):
        Base.metadata.create_all(self._engine)
        logger.info("[LocalDB] 数据表已就绪")

    def get_session(self):
        return self._session_factory()

    def dispose(self):
        if self._session_factory is not None:
            self._session_factory.remove()
        if self._engine is not None:
            self._engine.dispose()
