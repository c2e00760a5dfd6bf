"""Persistence backends for conversation context.

- RedisContextBackend: durable, one Redis list per key, JSON per turn
- InMemoryContextBackend: bounded process-local map, the degraded fallback

Backends raise ContextStoreUnavailable when they cannot be reached; the
ContextStore decides what to do about it.
"""
import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, List, Sequence, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from mindwell.shared.errors import ContextStoreUnavailable
from mindwell.shared.models import ConversationTurn

logger = logging.getLogger(__name__)


class ContextBackend(ABC):
    """Context persistence interface.

    TTL and eviction are owned by the backend, not by the core.
    """

    name: str = "base"

    @abstractmethod
    async def load(self, key: str) -> List[ConversationTurn]:
        """Return stored turns for key, oldest first."""
        pass

    @abstractmethod
    async def save(self, key: str, turns: Sequence[ConversationTurn], ttl_seconds: int) -> None:
        """Replace stored turns for key."""
        pass

    async def append(
        self,
        key: str,
        turns: Sequence[ConversationTurn],
        window_size: int,
        ttl_seconds: int,
    ) -> List[ConversationTurn]:
        """Append turns, keep the newest window_size, return the new window.

        Default is read-modify-write; callers serialize per key.
        """
        existing = await self.load(key)
        window = (existing + list(turns))[-window_size:]
        await self.save(key, window, ttl_seconds)
        return window

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class RedisContextBackend(ContextBackend):
    """Redis list per conversation key.

    Appends run as one MULTI/EXEC (RPUSH + LTRIM + EXPIRE), so concurrent
    writers on other hosts append rather than overwrite.
    """

    name = "redis"

    def __init__(self, client: "redis.Redis", timeout_seconds: float = 2.0):
        self._client = client
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float = 2.0) -> "RedisContextBackend":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        logger.info("REDIS_CONTEXT_BACKEND_CREATED", extra={"timeout_seconds": timeout_seconds})
        return cls(client, timeout_seconds)

    async def _run(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise ContextStoreUnavailable(
                f"Redis {operation} failed: {type(e).__name__}: {e}"
            ) from e

    async def load(self, key: str) -> List[ConversationTurn]:
        raw = await self._run("load", self._client.lrange(key, 0, -1))
        return self._decode(key, raw or [])

    async def save(self, key: str, turns: Sequence[ConversationTurn], ttl_seconds: int) -> None:
        async def replace():
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if turns:
                    pipe.rpush(key, *[json.dumps(t.to_dict()) for t in turns])
                    pipe.expire(key, ttl_seconds)
                await pipe.execute()

        await self._run("save", replace())

    async def append(
        self,
        key: str,
        turns: Sequence[ConversationTurn],
        window_size: int,
        ttl_seconds: int,
    ) -> List[ConversationTurn]:
        async def push():
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.rpush(key, *[json.dumps(t.to_dict()) for t in turns])
                pipe.ltrim(key, -window_size, -1)
                pipe.expire(key, ttl_seconds)
                pipe.lrange(key, 0, -1)
                return await pipe.execute()

        results = await self._run("append", push())
        return self._decode(key, results[-1] or [])

    async def ping(self) -> bool:
        try:
            return bool(await self._run("ping", self._client.ping()))
        except ContextStoreUnavailable:
            return False

    async def close(self) -> None:
        await self._client.aclose()

    def _decode(self, key: str, raw: Sequence[str]) -> List[ConversationTurn]:
        turns: List[ConversationTurn] = []
        for item in raw:
            try:
                turns.append(ConversationTurn.from_dict(json.loads(item)))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(
                    "CONTEXT_TURN_DECODE_FAILED",
                    extra={"key": key, "error": str(e)}
                )
        return turns


class InMemoryContextBackend(ContextBackend):
    """Bounded LRU map of key -> (expires_at, turns).

    Weaker durability than Redis: contents are lost on restart and the
    least recently used keys are dropped beyond max_keys.
    """

    name = "memory"

    def __init__(self, max_keys: int = 10_000, clock: Callable[[], float] = time.monotonic):
        self.max_keys = max_keys
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, List[ConversationTurn]]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def load(self, key: str) -> List[ConversationTurn]:
        entry = self._entries.get(key)
        if entry is None:
            return []
        expires_at, turns = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return []
        self._entries.move_to_end(key)
        return list(turns)

    async def save(self, key: str, turns: Sequence[ConversationTurn], ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, list(turns))
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_keys:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("CONTEXT_MEMORY_EVICTED", extra={"key": evicted})
