"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter

from signurl.api import auth, cache, files, health

api_router = APIRouter()

# Include route modules
api_router.include_router(files.router, tags=["files"])
api_router.include_router(cache.router, tags=["cache"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /metrics",
    "GET /getSignedUrl?file=path/to/file",
    "GET /getIOSAudioUrl?file=path/to/audio.mp3",
    "POST /getBatchSignedUrls",
    "POST /getUploadUrl",
    "DELETE /deleteFile",
    "GET /cache-stats",
    "POST /clear-cache",
    "POST /invalidate-cache",
    "POST /auth/send-otp",
    "POST /auth/verify-otp",
    "GET /auth/status",
]
