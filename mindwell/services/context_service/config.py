"""Configuration for the conversation context store."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ContextStoreConfig:
    """Context store configuration.

    redis_url of None runs the store on the in-memory backend only.
    """
    redis_url: Optional[str] = None
    window_size: int = 10
    ttl_seconds: int = 24 * 60 * 60
    key_prefix: str = "mindwell:context"
    operation_timeout_seconds: float = 2.0
    # While degraded, how long to wait before trying the durable store again
    retry_interval_seconds: float = 30.0
    memory_max_keys: int = 10_000

    def __post_init__(self):
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if self.ttl_seconds < 1:
            raise ValueError(f"ttl_seconds must be >= 1, got {self.ttl_seconds}")
        if self.operation_timeout_seconds <= 0:
            raise ValueError("operation_timeout_seconds must be positive")

    @classmethod
    def from_env(cls) -> "ContextStoreConfig":
        """Create config from environment variables.

        Environment variables:
            REDIS_URL, CONTEXT_WINDOW_SIZE, CONTEXT_TTL_SECONDS,
            CONTEXT_KEY_PREFIX, CONTEXT_OP_TIMEOUT_SECONDS,
            CONTEXT_RETRY_INTERVAL_SECONDS, CONTEXT_MEMORY_MAX_KEYS
        """
        return cls(
            redis_url=os.getenv("REDIS_URL") or None,
            window_size=int(os.getenv("CONTEXT_WINDOW_SIZE", "10")),
            ttl_seconds=int(os.getenv("CONTEXT_TTL_SECONDS", str(24 * 60 * 60))),
            key_prefix=os.getenv("CONTEXT_KEY_PREFIX", "mindwell:context"),
            operation_timeout_seconds=float(os.getenv("CONTEXT_OP_TIMEOUT_SECONDS", "2.0")),
            retry_interval_seconds=float(os.getenv("CONTEXT_RETRY_INTERVAL_SECONDS", "30")),
            memory_max_keys=int(os.getenv("CONTEXT_MEMORY_MAX_KEYS", "10000")),
        )
