"""
Signed URL endpoints.

Clients never send or receive file bytes through this service:
- GET /getSignedUrl - Signed download URL (cached)
- GET /getIOSAudioUrl - Download URL tuned for iOS AVPlayer playback
- POST /getBatchSignedUrls - Up to 500 download URLs in one request
- POST /getUploadUrl - Signed PUT URL for direct upload
- DELETE /deleteFile - Delete an object and its cached URLs
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from signurl.errors import NotFoundError
from signurl.schemas.files import (
    AudioUrlResponse,
    BatchErrorItem,
    BatchRequest,
    BatchResponse,
    DeleteResponse,
    FileRequest,
    SignedUrlResponse,
    UploadRequest,
    UploadUrlResponse,
)
from signurl.storage.batch import BatchIssuer, get_batch_issuer
from signurl.storage.content_types import OPERATION_AUDIO, OPERATION_GET, response_headers_for
from signurl.storage.issuer import SignedUrlIssuer, get_issuer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/getSignedUrl", response_model=SignedUrlResponse, response_model_exclude_none=True)
async def get_signed_url(
    file: Optional[str] = Query(None, description="Object path, e.g. books/cover.jpg"),
    issuer: SignedUrlIssuer = Depends(get_issuer),
):
    """
    Get a signed download URL for a file.

    Cached URLs are reused while they stay valid beyond the expiry buffer;
    cache hits also report the cache key.
    """
    record = await issuer.issue(issuer.signer.bucket, file)
    if record.issued_from_cache:
        cache_key = issuer.cache_key(issuer.signer.bucket, record.file_path, OPERATION_GET)
        return SignedUrlResponse.from_record(record, cache_key=cache_key)
    return SignedUrlResponse.from_record(record)


@router.get("/getIOSAudioUrl", response_model=AudioUrlResponse, response_model_exclude_none=True)
async def get_ios_audio_url(
    file: Optional[str] = Query(None, description="Audio object path (.mp3, .m4a, .aac, .wav)"),
    issuer: SignedUrlIssuer = Depends(get_issuer),
):
    """
    Get a signed audio URL optimized for iOS playback.

    The URL makes storage serve the file inline with a long cache lifetime;
    the headers the client should expect are echoed in the response.
    """
    try:
        record = await issuer.issue_audio(issuer.signer.bucket, file)
    except NotFoundError as e:
        raise NotFoundError("Audio file not found", **e.extra) from e

    return AudioUrlResponse.from_record(
        record,
        headers=response_headers_for(OPERATION_AUDIO, record.content_type),
    )


@router.post("/getBatchSignedUrls", response_model=BatchResponse, response_model_exclude_none=True)
async def get_batch_signed_urls(
    payload: BatchRequest,
    batch_issuer: BatchIssuer = Depends(get_batch_issuer),
):
    """
    Get signed download URLs for many files.

    One file's failure never aborts the batch; failed files are listed
    under ``errors``.
    """
    result = await batch_issuer.issue_batch(
        batch_issuer.issuer.signer.bucket,
        payload.files,
        chunk_size=payload.batch_size,
    )
    return BatchResponse(
        results=[SignedUrlResponse.from_record(record) for record in result.results],
        errors=[BatchErrorItem.from_error(error) for error in result.errors],
        stats=result.stats,
        processed_at=datetime.now(timezone.utc),
    )


@router.post("/getUploadUrl", response_model=UploadUrlResponse, response_model_exclude_none=True)
async def get_upload_url(
    payload: UploadRequest,
    issuer: SignedUrlIssuer = Depends(get_issuer),
):
    """
    Get a signed PUT URL for uploading a file directly to storage.

    The client must upload with the returned Content-Type (and metadata
    headers, when present).
    """
    record = await issuer.issue_upload(issuer.signer.bucket, payload.file, payload.content_type)
    return UploadUrlResponse.from_record(record)


@router.delete("/deleteFile", response_model=DeleteResponse)
async def delete_file(
    payload: FileRequest,
    issuer: SignedUrlIssuer = Depends(get_issuer),
):
    """Delete a file from storage and invalidate its cached URLs."""
    file_path = await issuer.delete(issuer.signer.bucket, payload.file)
    return DeleteResponse(file=file_path, deleted_at=datetime.now(timezone.utc))
