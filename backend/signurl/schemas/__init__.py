"""
Pydantic schemas for API request/response validation.
"""
from signurl.schemas.auth import (
    OTPResponse,
    SendOTPRequest,
    VerifyOTPRequest,
)
from signurl.schemas.cache import (
    CacheStatsResponse,
    ClearCacheRequest,
    ClearCacheResponse,
)
from signurl.schemas.files import (
    AudioUrlResponse,
    BatchErrorItem,
    BatchRequest,
    BatchResponse,
    DeleteResponse,
    FileRequest,
    InvalidateResponse,
    SignedUrlResponse,
    UploadRequest,
    UploadUrlResponse,
)

__all__ = [
    "OTPResponse",
    "SendOTPRequest",
    "VerifyOTPRequest",
    "CacheStatsResponse",
    "ClearCacheRequest",
    "ClearCacheResponse",
    "AudioUrlResponse",
    "BatchErrorItem",
    "BatchRequest",
    "BatchResponse",
    "DeleteResponse",
    "FileRequest",
    "InvalidateResponse",
    "SignedUrlResponse",
    "UploadRequest",
    "UploadUrlResponse",
]
