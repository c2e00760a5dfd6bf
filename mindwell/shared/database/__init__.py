"""PostgreSQL access for Mindwell (crisis history)."""

from .connection import DatabaseConfig, ConnectionManager
from .repository import BaseRepository, RepositoryError

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "BaseRepository",
    "RepositoryError",
]
