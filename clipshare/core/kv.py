"""Key-value store backends for clip records."""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis

from clipshare.config import Settings

logger = logging.getLogger(__name__)


class KVStore:
    """Key-value capability used by the clip store.

    Values are strings. ``put`` takes an optional time-to-live in seconds;
    expired keys behave as absent.
    """

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl: Optional[int] = None):
        raise NotImplementedError

    async def delete(self, key: str):
        raise NotImplementedError

    async def list(self) -> List[str]:
        raise NotImplementedError

    async def close(self):
        """Release backend resources."""


def create_kv(settings: Settings) -> KVStore:
    """Build the backend selected by settings."""
    if settings.backend == "redis":
        logger.info("Using Redis backend at %s", settings.redis_url)
        return RedisKV.from_url(settings.redis_url, prefix=settings.key_prefix)

    logger.info("Using in-memory backend")
    return MemoryKV()


class RedisKV(KVStore):
    """Redis-based store; TTL maps to native key expiry."""

    def __init__(self, client, prefix: str = "clipshare:"):
        self.redis = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "clipshare:") -> "RedisKV":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def put(self, key: str, value: str, ttl: Optional[int] = None):
        if ttl:
            await self.redis.set(self._key(key), value, ex=ttl)
        else:
            await self.redis.set(self._key(key), value)

    async def delete(self, key: str):
        await self.redis.delete(self._key(key))

    async def list(self) -> List[str]:
        keys = []
        async for key in self.redis.scan_iter(match=f"{self.prefix}*"):
            keys.append(key[len(self.prefix):])
        return keys

    async def close(self):
        await self.redis.aclose()


class MemoryKV(KVStore):
    """In-memory store with lazy TTL expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.data: Dict[str, Dict[str, Any]] = {}
        self.clock = clock
        self._lock = asyncio.Lock()

    def _expired(self, entry: Dict[str, Any]) -> bool:
        expires_at = entry["expires_at"]
        return expires_at is not None and self.clock() >= expires_at

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self.data.get(key)
            if entry is None:
                return None

            if self._expired(entry):
                del self.data[key]
                return None

            return entry["value"]

    async def put(self, key: str, value: str, ttl: Optional[int] = None):
        async with self._lock:
            expires_at = self.clock() + ttl if ttl else None
            self.data[key] = {"value": value, "expires_at": expires_at}

    async def delete(self, key: str):
        async with self._lock:
            self.data.pop(key, None)

    async def list(self) -> List[str]:
        async with self._lock:
            self._cleanup_expired()
            return list(self.data)

    def _cleanup_expired(self):
        """Remove expired entries."""
        expired_keys = [key for key, entry in self.data.items() if self._expired(entry)]
        for key in expired_keys:
            del self.data[key]
