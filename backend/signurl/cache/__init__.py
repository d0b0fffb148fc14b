"""
Signed-URL cache: optional redis tier in front of a required in-process tier.
"""
from signurl.cache.tiers import MemoryTier, RedisTier
from signurl.cache.url_cache import CacheKey, UrlCache, build_cache_key, get_url_cache

__all__ = ["MemoryTier", "RedisTier", "CacheKey", "UrlCache", "build_cache_key", "get_url_cache"]
