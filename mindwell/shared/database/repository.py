"""Base repository pattern for database operations."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, TypeVar

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository.

    Subclasses map entities to insert parameters; the base class owns
    connection handling and the insert path.
    """

    def __init__(self, connection_manager: ConnectionManager, table_name: str):
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info("REPOSITORY_INITIALIZED", extra={"table_name": table_name})

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        pass

    def insert(self, entity: T) -> None:
        """Insert one entity.

        Raises:
            RepositoryError: If the insert fails
        """
        params = self._entity_to_params(entity)
        columns = ", ".join(params.keys())
        placeholders = ", ".join(["%s"] * len(params))

        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders})",
                        list(params.values()),
                    )
                conn.commit()
        except Exception as e:
            logger.error(
                "REPOSITORY_INSERT_FAILED",
                extra={"table_name": self.table_name, "error": str(e)}
            )
            raise RepositoryError(f"Insert into {self.table_name} failed: {e}") from e

    def count(self) -> int:
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM {self.table_name}")
                row = cur.fetchone()
                return row[0] if row else 0
