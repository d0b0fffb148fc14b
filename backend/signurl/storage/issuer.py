"""
Signed-URL issuance with caching.

Flow for a download URL:
1. Sanitize the file path (strip ``..``, reject blank)
2. Derive the cache key from (operation, bucket, path)
3. Serve a cached record if it stays valid past the expiry buffer,
   otherwise delete the stale entry
4. Mint a fresh URL through the signing client
5. Cache the new record and return it
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import pydantic

from signurl.cache import UrlCache, build_cache_key, get_url_cache
from signurl.config import settings
from signurl.errors import ProviderError, SignUrlError, ValidationError
from signurl.storage import get_signing_client
from signurl.storage.base import SigningClient
from signurl.storage.content_types import (
    AUDIO_EXTENSIONS,
    DEFAULT_CONTENT_TYPE,
    OPERATION_AUDIO,
    OPERATION_GET,
    content_type_for,
    is_audio_file,
    response_headers_for,
    sanitize_file_path,
    upload_metadata_for,
)
from signurl.storage.records import SignedUrlRecord, UploadUrlRecord
from signurl.utils.logging import log_url_issued
from signurl.utils.metrics import signed_urls_issued_total

logger = logging.getLogger(__name__)

# Operations whose cached entries belong to one file
CACHED_OPERATIONS = (OPERATION_GET, OPERATION_AUDIO)


class SignedUrlIssuer:
    """
    Issues signed URLs for objects in private buckets.

    The cache owns every entry's lifetime; the issuer only reads, replaces
    and deletes entries within a single call.
    """

    def __init__(
        self,
        signer: SigningClient,
        cache: UrlCache,
        expires_in: int,
        cache_ttl: int,
        expiry_buffer: int,
        clock: Callable[[], float] = time.time,
    ):
        self.signer = signer
        self.cache = cache
        self.expires_in = expires_in
        self.cache_ttl = cache_ttl
        self.expiry_buffer = expiry_buffer
        self._clock = clock

    def cache_key(self, bucket: str, file_path: str, operation: str = OPERATION_GET) -> str:
        return str(build_cache_key(bucket, file_path, operation))

    def _expires_at(self) -> datetime:
        return datetime.fromtimestamp(self._clock() + self.expires_in, tz=timezone.utc)

    async def _cached_record(self, key: str) -> Optional[SignedUrlRecord]:
        """
        Return the cached record for ``key`` if it is still comfortably valid.

        Records inside the expiry buffer and unreadable payloads are deleted.
        """
        payload = await self.cache.get(key)
        if payload is None:
            return None

        try:
            record = SignedUrlRecord.deserialize(payload)
        except pydantic.ValidationError:
            logger.warning(f"Discarding unreadable cache entry: {key}")
            await self.cache.delete(key)
            return None

        remaining = record.expires_at.timestamp() - self._clock()
        if remaining > self.expiry_buffer:
            return record.from_cache()

        logger.info(f"Cached URL near expiry ({remaining:.0f}s left): {record.file_path}")
        await self.cache.delete(key)
        return None

    async def issue(self, bucket: str, file_path: str, operation: str = OPERATION_GET) -> SignedUrlRecord:
        """
        Issue a signed download URL, serving from cache when possible.

        Args:
            bucket: Bucket holding the object
            file_path: Client-supplied object path
            operation: Cache operation, "get" or "ios-audio"

        Returns:
            SignedUrlRecord with issued_from_cache set on a hit

        Raises:
            ValidationError: If the path is missing or blank
            NotFoundError: If the provider reports the object missing
            ProviderError: On any other signing failure (nothing is cached)
        """
        start = time.perf_counter()
        sanitized = sanitize_file_path(file_path)
        key = self.cache_key(bucket, sanitized, operation)

        cached = await self._cached_record(key)
        if cached is not None:
            signed_urls_issued_total.labels(operation=operation, source="cache").inc()
            log_url_issued(
                logger, sanitized, operation, from_cache=True, cache_key=key,
                duration_ms=(time.perf_counter() - start) * 1000
            )
            return cached

        content_type = content_type_for(sanitized)
        try:
            url = await self.signer.presign_get(
                bucket,
                sanitized,
                self.expires_in,
                response_headers=response_headers_for(operation, content_type),
            )
        except SignUrlError:
            raise
        except Exception as e:
            raise ProviderError("Failed to generate signed URL", detail=str(e), file=sanitized) from e

        record = SignedUrlRecord(
            url=url,
            file_path=sanitized,
            content_type=content_type,
            expires_in=self.expires_in,
            expires_at=self._expires_at(),
        )
        await self.cache.set(key, record.serialize(), self.cache_ttl)

        signed_urls_issued_total.labels(operation=operation, source="provider").inc()
        log_url_issued(
            logger, sanitized, operation, from_cache=False, cache_key=key,
            duration_ms=(time.perf_counter() - start) * 1000
        )
        return record

    async def issue_audio(self, bucket: str, file_path: str) -> SignedUrlRecord:
        """
        Issue a download URL tuned for iOS AVPlayer playback.

        Raises:
            ValidationError: If the file is not an audio file
        """
        sanitized = sanitize_file_path(file_path)
        if not is_audio_file(sanitized):
            extensions = ", ".join(f".{ext}" for ext in AUDIO_EXTENSIONS)
            raise ValidationError(f"File must be an audio file ({extensions})", file=sanitized)
        return await self.issue(bucket, sanitized, operation=OPERATION_AUDIO)

    async def issue_upload(
        self,
        bucket: str,
        file_path: str,
        content_type: Optional[str] = None,
    ) -> UploadUrlRecord:
        """
        Issue a signed PUT URL for a direct client upload.

        Upload URLs are never cached. Audio uploads carry inline playback
        metadata that must be sent with the PUT.
        """
        sanitized = sanitize_file_path(file_path)
        content_type = content_type or DEFAULT_CONTENT_TYPE
        metadata = upload_metadata_for(content_type)

        try:
            url = await self.signer.presign_put(
                bucket,
                sanitized,
                content_type,
                self.expires_in,
                metadata=metadata or None,
            )
        except SignUrlError:
            raise
        except Exception as e:
            raise ProviderError("Failed to generate upload URL", detail=str(e), file=sanitized) from e

        signed_urls_issued_total.labels(operation="put", source="provider").inc()
        logger.info(f"Upload URL issued: {sanitized} ({content_type})")
        return UploadUrlRecord(
            url=url,
            file_path=sanitized,
            content_type=content_type,
            expires_in=self.expires_in,
            expires_at=self._expires_at(),
            metadata=metadata,
        )

    async def invalidate(self, bucket: str, file_path: str) -> str:
        """
        Drop every cached URL for a file.

        Returns:
            The cache key of the plain download entry
        """
        sanitized = sanitize_file_path(file_path)
        for operation in CACHED_OPERATIONS:
            await self.cache.delete(self.cache_key(bucket, sanitized, operation))
        logger.info(f"Cache invalidated for: {sanitized}")
        return self.cache_key(bucket, sanitized, OPERATION_GET)

    async def delete(self, bucket: str, file_path: str) -> str:
        """
        Delete an object, then invalidate its cached URLs.

        Returns:
            The sanitized file path

        Raises:
            NotFoundError: If the object does not exist
        """
        sanitized = sanitize_file_path(file_path)
        try:
            await self.signer.delete_object(bucket, sanitized)
        except SignUrlError:
            raise
        except Exception as e:
            raise ProviderError("Failed to delete file", detail=str(e), file=sanitized) from e

        await self.invalidate(bucket, sanitized)
        return sanitized


# Singleton instance
_issuer: Optional[SignedUrlIssuer] = None


def get_issuer() -> SignedUrlIssuer:
    """Get the singleton issuer wired to the configured provider and cache."""
    global _issuer
    if _issuer is None:
        _issuer = SignedUrlIssuer(
            signer=get_signing_client(),
            cache=get_url_cache(),
            expires_in=settings.signed_url_expiry_seconds,
            cache_ttl=settings.cache_ttl_seconds,
            expiry_buffer=settings.expiry_buffer_seconds,
        )
    return _issuer
