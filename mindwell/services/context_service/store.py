"""Conversation context store - bounded per-(user, session) history.

Reads and writes go to the durable backend when it is reachable and to
the in-memory fallback otherwise. Callers see the same contract in both
modes. The outage warning is logged once per outage, and recovery once.

Appends for one key are serialized by a per-key asyncio.Lock so that
read-modify-append is atomic with respect to concurrent turns.
"""
import asyncio
import logging
import time
import weakref
from typing import Any, Callable, Dict, List, Optional

from mindwell.shared.errors import ContextStoreUnavailable
from mindwell.shared.models import ConversationTurn, DEFAULT_SESSION
from mindwell.shared.utils import hash_pii
from .backends import ContextBackend, InMemoryContextBackend, RedisContextBackend
from .config import ContextStoreConfig

logger = logging.getLogger(__name__)


class ContextStore:
    """Keyed, size-bounded conversation windows."""

    def __init__(
        self,
        config: Optional[ContextStoreConfig] = None,
        durable: Optional[ContextBackend] = None,
        fallback: Optional[InMemoryContextBackend] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ContextStoreConfig()
        self.durable = durable
        self.fallback = fallback or InMemoryContextBackend(max_keys=self.config.memory_max_keys)
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._degraded = False
        self._retry_at = 0.0

        logger.info(
            "CONTEXT_STORE_INITIALIZED",
            extra={
                "durable_backend": durable.name if durable else None,
                "window_size": self.config.window_size,
                "ttl_seconds": self.config.ttl_seconds,
            }
        )

    @classmethod
    def from_config(cls, config: ContextStoreConfig) -> "ContextStore":
        durable = None
        if config.redis_url:
            durable = RedisContextBackend.from_url(
                config.redis_url, timeout_seconds=config.operation_timeout_seconds
            )
        return cls(config=config, durable=durable)

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def mode(self) -> str:
        if self.durable is None:
            return "memory"
        return "memory_fallback" if self._degraded else self.durable.name

    def key_for(self, user_id: str, session_id: Optional[str] = None) -> str:
        return f"{self.config.key_prefix}:{hash_pii(user_id)}:{session_id or DEFAULT_SESSION}"

    async def get(self, user_id: str, session_id: Optional[str] = None) -> List[ConversationTurn]:
        """Return up to window_size turns for the key, oldest first."""
        key = self.key_for(user_id, session_id)

        if self._durable_enabled():
            try:
                turns = await self.durable.load(key)
            except ContextStoreUnavailable as e:
                self._mark_unavailable(e)
            else:
                self._mark_available()
                return turns[-self.config.window_size:]

        turns = await self.fallback.load(key)
        return turns[-self.config.window_size:]

    async def append(
        self,
        user_id: str,
        session_id: Optional[str],
        *turns: ConversationTurn,
    ) -> List[ConversationTurn]:
        """Append turns in order and trim the window oldest-first.

        Returns the resulting window.
        """
        if not turns:
            return await self.get(user_id, session_id)

        key = self.key_for(user_id, session_id)
        window = self.config.window_size
        ttl = self.config.ttl_seconds

        async with self._lock_for(key):
            if self._durable_enabled():
                try:
                    result = await self.durable.append(key, turns, window, ttl)
                except ContextStoreUnavailable as e:
                    self._mark_unavailable(e)
                else:
                    self._mark_available()
                    return result

            return await self.fallback.append(key, turns, window, ttl)

    async def health_check(self) -> Dict[str, Any]:
        """Report backend mode for health endpoints."""
        status: Dict[str, Any] = {
            "mode": self.mode,
            "window_size": self.config.window_size,
            "memory_keys": len(self.fallback),
        }
        if self.durable is not None:
            reachable = await self.durable.ping()
            status["durable_reachable"] = reachable
            if reachable:
                self._mark_available()
                status["mode"] = self.mode
        return status

    async def close(self) -> None:
        if self.durable is not None:
            await self.durable.close()

    def _lock_for(self, key: str) -> asyncio.Lock:
        # No await between lookup and insert, so two tasks cannot race here
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _durable_enabled(self) -> bool:
        if self.durable is None:
            return False
        return not self._degraded or self._clock() >= self._retry_at

    def _mark_unavailable(self, error: ContextStoreUnavailable) -> None:
        self._retry_at = self._clock() + self.config.retry_interval_seconds
        if self._degraded:
            return
        self._degraded = True
        logger.warning(
            "CONTEXT_STORE_UNAVAILABLE",
            extra={
                "backend": self.durable.name,
                "fallback": self.fallback.name,
                "error": str(error),
                "retry_interval_seconds": self.config.retry_interval_seconds,
            }
        )

    def _mark_available(self) -> None:
        if not self._degraded:
            return
        self._degraded = False
        logger.info("CONTEXT_STORE_RECOVERED", extra={"backend": self.durable.name})
