"""Tests for the Redis and in-memory context backends.

Redis is mocked; no server is needed.
"""
import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from mindwell.shared.errors import ContextStoreUnavailable
from mindwell.shared.models import ConversationTurn, Role
from mindwell.services.context_service.backends import (
    InMemoryContextBackend,
    RedisContextBackend,
)
from mindwell.services.context_service.config import ContextStoreConfig


AT = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def turn(text, role=Role.USER):
    return ConversationTurn(role=role, text=text, at=AT)


def encoded(text, role=Role.USER):
    return json.dumps(turn(text, role).to_dict())


@pytest.fixture
def pipeline():
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    return pipe


@pytest.fixture
def redis_client(pipeline):
    client = MagicMock()
    client.lrange = AsyncMock(return_value=[])
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=pipeline)
    context.__aexit__ = AsyncMock(return_value=False)
    client.pipeline.return_value = context
    return client


class TestContextStoreConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        config = ContextStoreConfig()

        assert config.window_size == 10
        assert config.redis_url is None

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            ContextStoreConfig(window_size=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
        monkeypatch.setenv("CONTEXT_WINDOW_SIZE", "6")

        config = ContextStoreConfig.from_env()

        assert config.redis_url == "redis://cache:6379/1"
        assert config.window_size == 6


class TestRedisContextBackend:
    """Tests for the Redis backend with a mocked client."""

    @pytest.mark.asyncio
    async def test_load_decodes_turns(self, redis_client):
        redis_client.lrange.return_value = [encoded("hi"), encoded("hello", Role.ASSISTANT)]
        backend = RedisContextBackend(redis_client)

        turns = await backend.load("k")

        assert [t.text for t in turns] == ["hi", "hello"]
        assert turns[1].role == Role.ASSISTANT
        assert turns[0].at == AT

    @pytest.mark.asyncio
    async def test_load_skips_corrupt_entries(self, redis_client):
        redis_client.lrange.return_value = ["not json", encoded("ok")]
        backend = RedisContextBackend(redis_client)

        turns = await backend.load("k")

        assert [t.text for t in turns] == ["ok"]

    @pytest.mark.asyncio
    async def test_connection_error_raises_unavailable(self, redis_client):
        redis_client.lrange.side_effect = RedisConnectionError("refused")
        backend = RedisContextBackend(redis_client)

        with pytest.raises(ContextStoreUnavailable):
            await backend.load("k")

    @pytest.mark.asyncio
    async def test_timeout_raises_unavailable(self, redis_client):
        async def hang(*args):
            await asyncio.sleep(10)

        redis_client.lrange.side_effect = hang
        backend = RedisContextBackend(redis_client, timeout_seconds=0.01)

        with pytest.raises(ContextStoreUnavailable):
            await backend.load("k")

    @pytest.mark.asyncio
    async def test_append_is_one_transaction(self, redis_client, pipeline):
        pipeline.execute.return_value = [3, True, True, [encoded("a"), encoded("b")]]
        backend = RedisContextBackend(redis_client)

        window = await backend.append("k", [turn("b")], window_size=10, ttl_seconds=60)

        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipeline.rpush.assert_called_once()
        pipeline.ltrim.assert_called_once_with("k", -10, -1)
        pipeline.expire.assert_called_once_with("k", 60)
        assert [t.text for t in window] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_save_replaces_list(self, redis_client, pipeline):
        backend = RedisContextBackend(redis_client)

        await backend.save("k", [turn("a")], ttl_seconds=60)

        pipeline.delete.assert_called_once_with("k")
        args = pipeline.rpush.call_args[0]
        assert args[0] == "k"
        assert json.loads(args[1])["text"] == "a"

    @pytest.mark.asyncio
    async def test_ping_failure_returns_false(self, redis_client):
        redis_client.ping.side_effect = RedisConnectionError("down")

        assert await RedisContextBackend(redis_client).ping() is False

    @pytest.mark.asyncio
    async def test_close(self, redis_client):
        await RedisContextBackend(redis_client).close()

        redis_client.aclose.assert_awaited_once()


class TestInMemoryContextBackend:
    """Tests for the bounded in-memory fallback."""

    @pytest.mark.asyncio
    async def test_append_trims_oldest(self):
        backend = InMemoryContextBackend()

        for i in range(5):
            await backend.append("k", [turn(str(i))], window_size=3, ttl_seconds=60)

        assert [t.text for t in await backend.load("k")] == ["2", "3", "4"]

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        now = [0.0]
        backend = InMemoryContextBackend(clock=lambda: now[0])

        await backend.save("k", [turn("a")], ttl_seconds=60)
        now[0] = 61.0

        assert await backend.load("k") == []
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        backend = InMemoryContextBackend(max_keys=2)

        await backend.save("a", [turn("a")], ttl_seconds=60)
        await backend.save("b", [turn("b")], ttl_seconds=60)
        await backend.load("a")
        await backend.save("c", [turn("c")], ttl_seconds=60)

        assert await backend.load("b") == []
        assert [t.text for t in await backend.load("a")] == ["a"]

    @pytest.mark.asyncio
    async def test_load_returns_copy(self):
        backend = InMemoryContextBackend()
        await backend.save("k", [turn("a")], ttl_seconds=60)

        (await backend.load("k")).append(turn("mutated"))

        assert len(await backend.load("k")) == 1
