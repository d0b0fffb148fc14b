"""
Appwrite Storage client.

Appwrite has no S3-style presigning. A time-limited URL is minted by
creating a file token that expires at the requested time and embedding its
secret in the file's view URL. The "file path" handed to this client is the
Appwrite file ID.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from urllib.parse import quote, urlencode

import httpx

from signurl.config import Settings
from signurl.errors import NotFoundError, ProviderError
from signurl.storage.base import SigningClient
from signurl.utils.logging import log_provider_failure, log_provider_request
from signurl.utils.metrics import (
    provider_failures_total,
    provider_latency_seconds,
    provider_requests_total,
)

logger = logging.getLogger(__name__)


class AppwriteStorageClient(SigningClient):
    """Appwrite Storage over its REST API."""

    provider_name = "appwrite"

    def __init__(
        self,
        endpoint: str,
        project_id: Optional[str],
        api_key: Optional[str],
        bucket_id: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self._api_key = api_key
        self._bucket = bucket_id
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

        if not self.is_configured:
            logger.warning(
                "Appwrite storage not configured. "
                "Set APPWRITE_PROJECT_ID, APPWRITE_API_KEY and APPWRITE_BUCKET_ID."
            )

    @classmethod
    def from_settings(cls, config: Settings) -> "AppwriteStorageClient":
        return cls(
            endpoint=config.appwrite_endpoint,
            project_id=config.appwrite_project_id,
            api_key=config.appwrite_api_key,
            bucket_id=config.appwrite_bucket_id,
            timeout=config.http_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self._api_key and self._bucket)

    @property
    def bucket(self) -> str:
        return self._bucket

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Appwrite-Project": self.project_id or "",
            "X-Appwrite-Key": self._api_key or "",
            "Content-Type": "application/json",
        }

    def _file_url(self, bucket: str, file_id: str, suffix: str = "") -> str:
        return f"{self.endpoint}/storage/buckets/{quote(bucket, safe='')}/files/{quote(file_id, safe='')}{suffix}"

    async def _request(self, operation: str, file_id: str, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send one request to Appwrite, mapping failures to the error taxonomy.

        Raises:
            NotFoundError: On HTTP 404
            ProviderError: On transport errors and other non-2xx responses
        """
        if not self.is_configured:
            raise ProviderError("Storage service not configured", file=file_id)

        provider_requests_total.labels(provider=self.provider_name, operation=operation).inc()
        start = time.perf_counter()
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            provider_failures_total.labels(provider=self.provider_name, operation=operation).inc()
            log_provider_failure(logger, self.provider_name, operation, str(e), file=file_id)
            raise ProviderError(f"Storage provider failed to {operation}", detail=str(e), file=file_id) from e
        finally:
            duration = time.perf_counter() - start
            provider_latency_seconds.labels(provider=self.provider_name, operation=operation).observe(duration)
            log_provider_request(logger, self.provider_name, operation, duration_ms=duration * 1000, file=file_id)

        if response.status_code == 404:
            raise NotFoundError("File not found", file=file_id)
        if response.status_code >= 400:
            provider_failures_total.labels(provider=self.provider_name, operation=operation).inc()
            log_provider_failure(
                logger, self.provider_name, operation,
                f"HTTP {response.status_code}: {response.text[:200]}", file=file_id
            )
            raise ProviderError(
                f"Storage provider failed to {operation}",
                detail=f"HTTP {response.status_code}: {response.text[:200]}",
                file=file_id,
            )
        return response

    async def presign_get(
        self,
        bucket: str,
        file_path: str,
        expires_in: int,
        response_headers: Optional[Dict[str, str]] = None,
    ) -> str:
        expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        response = await self._request(
            "presign_get",
            file_path,
            "POST",
            f"{self.endpoint}/tokens/buckets/{quote(bucket, safe='')}/files/{quote(file_path, safe='')}",
            json={"expire": expire.isoformat()},
        )
        secret = response.json().get("secret")
        if not secret:
            raise ProviderError("Storage provider returned no file token", file=file_path)

        query = urlencode({"project": self.project_id, "token": secret})
        return f"{self._file_url(bucket, file_path, '/view')}?{query}"

    async def presign_put(
        self,
        bucket: str,
        file_path: str,
        content_type: str,
        expires_in: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        raise ProviderError(
            "Upload URLs are not supported by the Appwrite storage provider",
            file=file_path,
        )

    async def object_exists(self, bucket: str, file_path: str) -> bool:
        try:
            await self._request("head", file_path, "GET", self._file_url(bucket, file_path))
        except NotFoundError:
            return False
        return True

    async def delete_object(self, bucket: str, file_path: str) -> None:
        await self._request("delete", file_path, "DELETE", self._file_url(bucket, file_path))
        logger.info(f"Deleted file {file_path} from Appwrite bucket {bucket}")

    async def close(self) -> None:
        await self._http.aclose()
