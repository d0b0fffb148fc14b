"""
Health check endpoint.
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from signurl.config import settings

router = APIRouter()


@router.get("")
async def health_check():
    """
    Health check endpoint.
    Returns service identity; cache tier status is reported by /cache-stats.
    """
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name,
        "version": settings.service_version,
    }
