"""
Pydantic schemas for signed URL endpoints.

Request fields are loosely typed on purpose: missing or malformed values
are rejected by the issuer with a 400 and a specific message.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from signurl.schemas.base import CamelModel
from signurl.storage.batch import BatchError
from signurl.storage.records import SignedUrlRecord, UploadUrlRecord


class FileRequest(CamelModel):
    """Schema for requests naming a single file."""
    file: Any = Field(None, description="Object path in the bucket (e.g., 'books/cover.jpg')")


class UploadRequest(FileRequest):
    """Schema for requesting a signed upload URL."""
    content_type: Optional[str] = Field(None, description="MIME type the client will upload with")


class BatchRequest(CamelModel):
    """Schema for batch signed URL requests."""
    files: Any = Field(None, description="Object paths, at most 500")
    batch_size: Optional[int] = Field(None, description="Files issued concurrently per chunk")


class SignedUrlResponse(CamelModel):
    """Schema for a signed download URL."""
    success: bool = True
    signed_url: str
    file: str
    content_type: str
    expires_in: int
    expires_at: datetime
    from_cache: Optional[bool] = None
    cache_key: Optional[str] = None

    @classmethod
    def from_record(cls, record: SignedUrlRecord, **extra) -> "SignedUrlResponse":
        return cls(
            signed_url=record.url,
            file=record.file_path,
            content_type=record.content_type,
            expires_in=record.expires_in,
            expires_at=record.expires_at,
            from_cache=record.issued_from_cache,
            **extra,
        )


class AudioUrlResponse(SignedUrlResponse):
    """Schema for an iOS-optimized audio URL."""
    platform: str = "ios-optimized"
    headers: Dict[str, str]


class UploadUrlResponse(CamelModel):
    """Schema for a signed upload URL."""
    success: bool = True
    signed_url: str
    file: str
    content_type: str
    metadata: Optional[Dict[str, str]] = None
    expires_in: int
    expires_at: datetime

    @classmethod
    def from_record(cls, record: UploadUrlRecord) -> "UploadUrlResponse":
        return cls(
            signed_url=record.url,
            file=record.file_path,
            content_type=record.content_type,
            metadata=record.metadata or None,
            expires_in=record.expires_in,
            expires_at=record.expires_at,
        )


class BatchErrorItem(CamelModel):
    success: bool = False
    file: Any
    error: str

    @classmethod
    def from_error(cls, error: BatchError) -> "BatchErrorItem":
        return cls(file=error.file, error=error.error)


class BatchResponse(CamelModel):
    """Schema for batch signed URL response."""
    success: bool = True
    results: List[SignedUrlResponse]
    errors: List[BatchErrorItem]
    stats: Dict[str, Any]
    processed_at: datetime


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "File deleted successfully"
    file: str
    deleted_at: datetime
    cache_invalidated: bool = True


class InvalidateResponse(CamelModel):
    success: bool = True
    message: str = "Cache invalidated successfully"
    file: str
    cache_key: str
    invalidated_at: datetime
