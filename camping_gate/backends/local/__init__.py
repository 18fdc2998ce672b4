"""本地 SQLite/SQLAlchemy 存储后端."""

from .backend import LocalBackend
from .database import DatabaseManager

__all__ = ["DatabaseManager", "LocalBackend"]
