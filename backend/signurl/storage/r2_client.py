"""
Cloudflare R2 / S3-compatible storage client.

Uses boto3 with S3-compatible API to interact with Cloudflare R2.
This is storage-provider agnostic - works with any S3-compatible storage.

The bucket stays private; clients only ever receive presigned URLs.
Blocking boto3 calls run in a worker thread so they never stall the
event loop.
"""
import asyncio
import logging
import time
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from signurl.config import Settings, settings
from signurl.errors import NotFoundError, ProviderError
from signurl.storage.base import SigningClient
from signurl.utils.logging import log_provider_failure, log_provider_request
from signurl.utils.metrics import (
    provider_failures_total,
    provider_latency_seconds,
    provider_requests_total,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# Response header overrides understood by GetObject
RESPONSE_HEADER_PARAMS = {
    "Content-Type": "ResponseContentType",
    "Content-Disposition": "ResponseContentDisposition",
    "Cache-Control": "ResponseCacheControl",
}


class R2Client(SigningClient):
    """
    S3-compatible client for Cloudflare R2.

    Provides presigned GET/PUT URL generation and object deletion.
    """

    provider_name = "r2"

    def __init__(
        self,
        bucket: str,
        access_key: Optional[str],
        secret_key: Optional[str],
        endpoint_url: Optional[str] = None,
        region: str = "auto",
        verify_objects: bool = False,
    ):
        """
        Initialize R2 client with boto3.

        Fails gracefully if not configured: every call then raises
        ProviderError instead of the constructor.
        """
        self._client = None
        self._bucket = bucket
        self.verify_objects = verify_objects

        if not all([bucket, access_key, secret_key]):
            logger.warning(
                "R2 storage not configured. "
                "Set R2_BUCKET, R2_ACCESS_KEY and R2_SECRET_KEY."
            )
            return

        # signature_version='s3v4' for R2 compatibility, path-style addressing
        self._client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            )
        )
        logger.info(f"R2 client initialized for bucket: {bucket}")

    @classmethod
    def from_settings(cls, config: Settings) -> "R2Client":
        return cls(
            bucket=config.r2_bucket,
            access_key=config.r2_access_key,
            secret_key=config.r2_secret_key,
            endpoint_url=config.r2_endpoint_url,
            region=config.r2_region,
            verify_objects=config.r2_verify_objects,
        )

    @property
    def is_configured(self) -> bool:
        """Check if R2 client is properly configured."""
        return self._client is not None

    @property
    def bucket(self) -> str:
        """Get configured bucket name."""
        return self._bucket

    async def _call(self, operation: str, file_path: str, method: str, **kwargs):
        """
        Run a boto3 call in a thread, mapping failures to the error taxonomy.

        Raises:
            NotFoundError: If S3 reports the key missing
            ProviderError: On any other failure
        """
        if not self.is_configured:
            raise ProviderError("Storage service not configured", file=file_path)

        provider_requests_total.labels(provider=self.provider_name, operation=operation).inc()
        start = time.perf_counter()
        try:
            return await asyncio.to_thread(getattr(self._client, method), **kwargs)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in NOT_FOUND_CODES:
                raise NotFoundError("File not found", file=file_path) from e
            provider_failures_total.labels(provider=self.provider_name, operation=operation).inc()
            log_provider_failure(logger, self.provider_name, operation, str(e), file=file_path)
            raise ProviderError(f"Storage provider failed to {operation}", detail=str(e), file=file_path) from e
        except BotoCoreError as e:
            provider_failures_total.labels(provider=self.provider_name, operation=operation).inc()
            log_provider_failure(logger, self.provider_name, operation, str(e), file=file_path)
            raise ProviderError(f"Storage provider failed to {operation}", detail=str(e), file=file_path) from e
        finally:
            duration = time.perf_counter() - start
            provider_latency_seconds.labels(provider=self.provider_name, operation=operation).observe(duration)
            log_provider_request(logger, self.provider_name, operation, duration_ms=duration * 1000, file=file_path)

    async def presign_get(
        self,
        bucket: str,
        file_path: str,
        expires_in: int,
        response_headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Generate a presigned GET URL for reading an object.

        Header hints without a GetObject override (e.g. Accept-Ranges) are
        ignored here; the API layer reports them to the client instead.
        """
        if self.verify_objects and not await self.object_exists(bucket, file_path):
            raise NotFoundError("File not found", file=file_path)

        params = {'Bucket': bucket, 'Key': file_path}
        for header, value in (response_headers or {}).items():
            param = RESPONSE_HEADER_PARAMS.get(header)
            if param:
                params[param] = value

        url = await self._call(
            "presign_get",
            file_path,
            "generate_presigned_url",
            ClientMethod='get_object',
            Params=params,
            ExpiresIn=expires_in,
        )
        logger.debug(f"Generated presigned read URL for {file_path} (expires in {expires_in}s)")
        return url

    async def presign_put(
        self,
        bucket: str,
        file_path: str,
        content_type: str,
        expires_in: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Generate a presigned PUT URL for direct upload.

        Content-Type (and metadata, when given) must match what was signed.
        """
        params = {
            'Bucket': bucket,
            'Key': file_path,
            'ContentType': content_type,
        }
        if metadata:
            params['Metadata'] = metadata

        url = await self._call(
            "presign_put",
            file_path,
            "generate_presigned_url",
            ClientMethod='put_object',
            Params=params,
            ExpiresIn=expires_in,
        )
        logger.debug(f"Generated presigned upload URL for {file_path}")
        return url

    async def object_exists(self, bucket: str, file_path: str) -> bool:
        try:
            await self._call(
                "head",
                file_path,
                "head_object",
                Bucket=bucket,
                Key=file_path,
            )
        except NotFoundError:
            return False
        return True

    async def delete_object(self, bucket: str, file_path: str) -> None:
        """
        Delete an object from the bucket.

        S3 deletes are idempotent, so existence is checked first to report
        a missing object as NotFoundError.
        """
        if not await self.object_exists(bucket, file_path):
            raise NotFoundError(
                "File not found",
                detail="The specified file does not exist in the bucket",
                file=file_path,
            )

        await self._call(
            "delete",
            file_path,
            "delete_object",
            Bucket=bucket,
            Key=file_path,
        )
        logger.info(f"Deleted object {file_path} from bucket {bucket}")


# Singleton instance
_r2_client: Optional[R2Client] = None


def get_r2_client() -> R2Client:
    """
    Get the singleton R2 client instance.

    Returns:
        R2Client instance (may or may not be configured)
    """
    global _r2_client
    if _r2_client is None:
        _r2_client = R2Client.from_settings(settings)
    return _r2_client
