"""Context Service: bounded conversation windows per (user, session).

Components:
- config.py: ContextStoreConfig
- backends.py: Redis (durable) and in-memory (fallback) persistence
- store.py: ContextStore with per-key locking and outage handling
"""

from .config import ContextStoreConfig
from .backends import ContextBackend, RedisContextBackend, InMemoryContextBackend
from .store import ContextStore

__all__ = [
    "ContextStoreConfig",
    "ContextBackend",
    "RedisContextBackend",
    "InMemoryContextBackend",
    "ContextStore",
]
