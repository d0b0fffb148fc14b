"""
Storage module for object storage providers (Cloudflare R2, Appwrite).

The backend NEVER receives file bytes - clients download and upload
directly against the provider using signed URLs.
"""
from typing import Optional

from signurl.config import settings
from signurl.storage.appwrite_client import AppwriteStorageClient
from signurl.storage.base import SigningClient
from signurl.storage.r2_client import R2Client, get_r2_client

_appwrite_client: Optional[AppwriteStorageClient] = None


def get_signing_client() -> SigningClient:
    """Return the singleton client for the configured STORAGE_PROVIDER."""
    global _appwrite_client
    if settings.storage_provider.strip().lower() == "appwrite":
        if _appwrite_client is None:
            _appwrite_client = AppwriteStorageClient.from_settings(settings)
        return _appwrite_client
    return get_r2_client()


__all__ = ["SigningClient", "R2Client", "AppwriteStorageClient", "get_r2_client", "get_signing_client"]
