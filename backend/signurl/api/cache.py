"""
Cache management endpoints.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from signurl.cache import UrlCache, get_url_cache
from signurl.config import settings
from signurl.schemas.cache import CacheStatsResponse, ClearCacheRequest, ClearCacheResponse
from signurl.schemas.files import FileRequest, InvalidateResponse
from signurl.storage.content_types import sanitize_file_path
from signurl.storage.issuer import SignedUrlIssuer, get_issuer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/invalidate-cache", response_model=InvalidateResponse)
async def invalidate_cache(
    payload: FileRequest,
    issuer: SignedUrlIssuer = Depends(get_issuer),
):
    """Drop cached URLs for a file, e.g. after it was re-uploaded."""
    file_path = sanitize_file_path(payload.file)
    cache_key = await issuer.invalidate(issuer.signer.bucket, file_path)
    return InvalidateResponse(
        file=file_path,
        cache_key=cache_key,
        invalidated_at=datetime.now(timezone.utc),
    )


@router.get("/cache-stats", response_model=CacheStatsResponse)
async def cache_stats(cache: UrlCache = Depends(get_url_cache)):
    """Report per-tier cache statistics and the cache configuration."""
    return CacheStatsResponse(
        cache=cache.stats(),
        config={
            "cacheTTL": settings.cache_ttl_seconds,
            "maxCacheKeys": settings.max_cache_keys,
            "checkPeriod": settings.cache_check_period_seconds,
            "signedUrlExpiry": settings.signed_url_expiry_seconds,
            "redisConfigured": cache.remote is not None,
        },
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/clear-cache", response_model=ClearCacheResponse, response_model_exclude_none=True)
async def clear_cache(
    payload: Optional[ClearCacheRequest] = None,
    cache: UrlCache = Depends(get_url_cache),
):
    """
    Clear cached URLs.

    With a pattern, only keys containing it are removed; otherwise every
    cached URL is dropped.
    """
    pattern = payload.pattern if payload is not None else None
    if pattern:
        cleared = await cache.clear(pattern)
        logger.info(f"Cleared {len(cleared)} cache entries matching pattern: {pattern}")
        return ClearCacheResponse(
            message=f"Cleared {len(cleared)} cache entries matching pattern: {pattern}",
            cleared_keys=cleared,
        )

    await cache.clear()
    logger.info("All cache cleared")
    return ClearCacheResponse(message="All cache cleared")
