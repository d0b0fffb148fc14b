"""
Backing tiers for the signed-URL cache.

- MemoryTier: in-process, always available, bounded by entry count.
- RedisTier: optional remote tier shared between processes.

Tiers raise CacheError on failure; the UrlCache decides what to do with it.
"""
import logging
import re
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import redis.asyncio as aioredis
from cachetools import TLRUCache
from redis.exceptions import RedisError

from signurl.errors import CacheError

logger = logging.getLogger(__name__)


def _entry_expiry(key: str, entry: Tuple[str, int], now: float) -> float:
    """TLRU time-to-use: each entry carries its own TTL."""
    return now + entry[1]


class MemoryTier:
    """
    In-process TTL cache.

    Entries expire passively after their own TTL; capacity beyond
    ``maxsize`` is handled by the underlying LRU eviction.
    """

    name = "memory"

    def __init__(self, maxsize: int, timer: Callable[[], float] = time.monotonic):
        self._cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)
        self.maxsize = maxsize
        self.hits = 0
        self.misses = 0

    @property
    def available(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry[0]

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._cache[key] = (value, ttl)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        found = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                found[key] = value
        return found

    async def set_many(self, entries: Dict[str, str], ttl: int) -> None:
        for key, value in entries.items():
            self._cache[key] = (value, ttl)

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        self._cache.expire()
        return [key for key in list(self._cache.keys()) if pattern is None or pattern in key]

    async def clear(self) -> int:
        self._cache.expire()
        count = len(self._cache)
        self._cache.clear()
        return count

    def expire(self) -> int:
        """Drop expired entries, returning how many were removed."""
        return len(self._cache.expire())

    def stats(self) -> dict:
        self._cache.expire()
        lookups = self.hits + self.misses
        return {
            "keys": len(self._cache),
            "maxKeys": self.maxsize,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": self.hits / lookups if lookups else 0,
        }


class RedisTier:
    """
    Remote tier backed by redis.

    ``available`` reflects the outcome of the last ping or operation; the
    URL cache skips reads and writes while it is unavailable (removals are
    still attempted) and re-pings it during periodic sweeps.
    """

    name = "redis"

    def __init__(self, client: aioredis.Redis, namespace: str = "r2"):
        self._client = client
        self.namespace = namespace
        self._available = False

    @classmethod
    def from_url(cls, url: str, namespace: str = "r2") -> "RedisTier":
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        return cls(client, namespace=namespace)

    @property
    def available(self) -> bool:
        return self._available

    async def connect(self) -> bool:
        """Ping the server and record whether the tier can be used."""
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            if self._available:
                logger.warning(f"Redis unreachable, using in-memory cache only: {e}")
            self._available = False
            return False
        if not self._available:
            logger.info("Redis connected successfully")
        self._available = True
        return True

    async def close(self) -> None:
        await self._client.aclose()

    def _failed(self, action: str, error: Exception) -> CacheError:
        self._available = False
        return CacheError(f"redis {action} failed", detail=str(error))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise self._failed("get", e) from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._client.setex(key, ttl, value)
        except (RedisError, OSError) as e:
            raise self._failed("set", e) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise self._failed("delete", e) from e

    async def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            values = await self._client.mget(keys)
        except (RedisError, OSError) as e:
            raise self._failed("get_many", e) from e
        return {key: value for key, value in zip(keys, values) if value is not None}

    async def set_many(self, entries: Dict[str, str], ttl: int) -> None:
        if not entries:
            return
        try:
            async with self._client.pipeline(transaction=False) as pipe:
                for key, value in entries.items():
                    pipe.setex(key, ttl, value)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise self._failed("set_many", e) from e

    async def keys(self, pattern: Optional[str] = None) -> List[str]:
        match = f"{self.namespace}:*"
        if pattern:
            match = f"*{_escape_glob(pattern)}*"
        try:
            found = [key async for key in self._client.scan_iter(match=match, count=500)]
        except (RedisError, OSError) as e:
            raise self._failed("keys", e) from e
        # Never touch keys outside our namespace on a shared server
        return [key for key in found if key.startswith(f"{self.namespace}:")]

    async def clear(self) -> int:
        keys = await self.keys()
        if not keys:
            return 0
        try:
            await self._client.delete(*keys)
        except (RedisError, OSError) as e:
            raise self._failed("clear", e) from e
        return len(keys)

    def stats(self) -> str:
        return "connected" if self._available else "disconnected"


def _escape_glob(pattern: str) -> str:
    return re.sub(r"([*?\[\]\\])", r"\\\1", pattern)
