"""
Backend connection managers.

Each manager is constructed explicitly and injected into the services that
use it; the application lifespan owns connect() and disconnect().
"""

from .base import ConnectionManager, ConnectionState
from .mongo_manager import MongoConnectionManager
from .redis_manager import RedisConnectionManager
from .sql_manager import SqlConnectionManager

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "MongoConnectionManager",
    "RedisConnectionManager",
    "SqlConnectionManager",
]
