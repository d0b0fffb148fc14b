"""
Pydantic schemas for cache management endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from signurl.schemas.base import CamelModel


class ClearCacheRequest(CamelModel):
    """Schema for clearing cached URLs."""
    pattern: Optional[str] = Field(None, description="Substring of the cache keys to clear; omit to clear everything")


class CacheStatsResponse(CamelModel):
    success: bool = True
    cache: Dict[str, Any]
    config: Dict[str, Any]
    timestamp: datetime


class ClearCacheResponse(CamelModel):
    success: bool = True
    message: str
    cleared_keys: Optional[List[str]] = None
