"""
Key-value stores behind the resilient match cache.

Two implementations share one narrow async interface:
- MemoryCacheStore: process-scoped dict with optional per-key TTL (default).
- RedisCacheStore: redis.asyncio pool, used when several API workers should
  share the same fallback snapshots.

Values are opaque strings (JSON produced by the caller). Writes replace the
whole value for a key, so concurrent writers resolve as last-writer-wins.
"""
from __future__ import annotations

import abc
import time
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import CacheBackend, Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
SNAPSHOT_KEY = "snapshot:{sport}"
RECENT_KEY = "recent:{sport}"
DETAIL_KEY = "detail:{match_id}"


class CacheStore(abc.ABC):
    """Async string store with optional expiry."""

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl_s: int | None = None) -> None:
        ...


class MemoryCacheStore(CacheStore):
    """In-process store. Expired entries are dropped lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_s: int | None = None) -> None:
        expires_at = self._clock() + ttl_s if ttl_s else None
        self._data[key] = (value, expires_at)

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheStore(CacheStore):
    """Redis-backed store; keys are namespaced with a configurable prefix."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._prefix = self._settings.redis_key_prefix
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisCacheStore not connected. Call connect() first.")
        return self._pool

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(self._prefix + key)

    async def set(self, key: str, value: str, ttl_s: int | None = None) -> None:
        await self.client.set(self._prefix + key, value, ex=ttl_s or None)


def build_cache_store(settings: Settings | None = None) -> CacheStore:
    """Select the store implementation configured by ``cache_backend``."""
    settings = settings or get_settings()
    if settings.cache_backend == CacheBackend.REDIS:
        return RedisCacheStore(settings)
    return MemoryCacheStore()
