"""
Two-tier signed-URL cache.

Tiers are consulted in priority order: the remote redis tier first (when
configured and reachable), then the required in-process tier. A failing
tier is logged and skipped; a lower-priority tier never affects the result
of a higher-priority one. The local tier is always written, so it keeps
serving when redis is down.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional

from signurl.cache.tiers import MemoryTier, RedisTier
from signurl.config import settings
from signurl.errors import CacheError
from signurl.utils.logging import log_cache_failure
from signurl.utils.metrics import cache_tier_failures_total

logger = logging.getLogger(__name__)

KEY_NAMESPACE = "r2"


class CacheKey(NamedTuple):
    """
    Identity of one signed-URL entry.

    Rendered by plain concatenation, so distinct triples never collide.
    """

    operation: str
    bucket: str
    file_path: str

    def __str__(self) -> str:
        return f"{KEY_NAMESPACE}:{self.operation}:{self.bucket}:{self.file_path}"


def build_cache_key(bucket: str, file_path: str, operation: str = "get") -> CacheKey:
    return CacheKey(operation=operation, bucket=bucket, file_path=file_path)


class UrlCache:
    """Signed-URL cache over an ordered list of tiers."""

    def __init__(self, local: MemoryTier, remote: Optional[RedisTier] = None):
        self.local = local
        self.remote = remote
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def tiers(self) -> list:
        tiers = [self.local]
        if self.remote is not None:
            tiers.insert(0, self.remote)
        return tiers

    def _active_tiers(self) -> list:
        return [tier for tier in self.tiers if tier.available]

    def _removal_tiers(self) -> list:
        # Removals always reach a configured remote tier, even one marked
        # unavailable, so an invalidated URL cannot resurface after reconnect.
        return self.tiers

    def _swallow(self, tier, action: str, error: CacheError, cache_key: Optional[str] = None) -> None:
        cache_tier_failures_total.labels(tier=tier.name, action=action).inc()
        log_cache_failure(logger, tier.name, action, error.detail or error.message, cache_key=cache_key)

    async def get(self, key) -> Optional[str]:
        """Return the first hit across tiers, or None."""
        key = str(key)
        for tier in self._active_tiers():
            try:
                value = await tier.get(key)
            except CacheError as e:
                self._swallow(tier, "get", e, key)
                continue
            if value is not None:
                logger.debug(f"Cache HIT ({tier.name}): {key}")
                return value
        logger.debug(f"Cache MISS: {key}")
        return None

    async def set(self, key, value: str, ttl: int) -> None:
        key = str(key)
        for tier in self._active_tiers():
            try:
                await tier.set(key, value, ttl)
            except CacheError as e:
                self._swallow(tier, "set", e, key)

    async def delete(self, key) -> None:
        key = str(key)
        for tier in self._removal_tiers():
            try:
                await tier.delete(key)
            except CacheError as e:
                self._swallow(tier, "delete", e, key)

    async def set_batch(self, entries: Dict[str, str], ttl: int) -> None:
        """Store many entries; a tier whose bulk write fails is retried per entry."""
        entries = {str(key): value for key, value in entries.items()}
        if not entries:
            return
        for tier in self._active_tiers():
            try:
                await tier.set_many(entries, ttl)
            except CacheError as e:
                self._swallow(tier, "set_many", e)
                for key, value in entries.items():
                    try:
                        await tier.set(key, value, ttl)
                    except CacheError as inner:
                        self._swallow(tier, "set", inner, key)
                        break

    async def get_batch(self, keys: Iterable) -> Dict[str, str]:
        """Look up many keys; each key resolves from the first tier holding it."""
        missing = [str(key) for key in keys]
        found: Dict[str, str] = {}
        for tier in self._active_tiers():
            if not missing:
                break
            try:
                hits = await tier.get_many(missing)
            except CacheError as e:
                self._swallow(tier, "get_many", e)
                hits = {}
                for key in missing:
                    try:
                        value = await tier.get(key)
                    except CacheError as inner:
                        self._swallow(tier, "get", inner, key)
                        break
                    if value is not None:
                        hits[key] = value
            found.update(hits)
            missing = [key for key in missing if key not in found]
        return found

    async def clear(self, pattern: Optional[str] = None) -> List[str]:
        """
        Remove entries whose key contains ``pattern``, or everything.

        Returns the keys removed from the local tier when a pattern is given.
        """
        if pattern is None:
            for tier in self._removal_tiers():
                try:
                    await tier.clear()
                except CacheError as e:
                    self._swallow(tier, "clear", e)
            return []

        cleared: List[str] = []
        for tier in self._removal_tiers():
            try:
                keys = await tier.keys(pattern)
                for key in keys:
                    await tier.delete(key)
            except CacheError as e:
                self._swallow(tier, "clear", e)
                continue
            if tier is self.local:
                cleared = keys
        return cleared

    def stats(self) -> dict:
        return {
            "memory": self.local.stats(),
            "redis": self.remote.stats() if self.remote is not None else "disconnected",
        }

    async def connect(self) -> None:
        if self.remote is not None:
            await self.remote.connect()

    async def close(self) -> None:
        await self.stop_sweeper()
        if self.remote is not None:
            await self.remote.close()

    async def sweep(self) -> int:
        """Purge expired local entries and re-ping an unavailable remote tier."""
        removed = self.local.expire()
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")
        if self.remote is not None and not self.remote.available:
            await self.remote.connect()
        return removed

    def start_sweeper(self, interval_seconds: float) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval_seconds))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")


# Singleton instance
_url_cache: Optional[UrlCache] = None


def get_url_cache() -> UrlCache:
    """
    Get the singleton URL cache.

    The redis tier is attached only when REDIS_URL is configured.
    """
    global _url_cache
    if _url_cache is None:
        remote = RedisTier.from_url(settings.redis_url, namespace=KEY_NAMESPACE) if settings.redis_url else None
        _url_cache = UrlCache(MemoryTier(maxsize=settings.max_cache_keys), remote=remote)
    return _url_cache
