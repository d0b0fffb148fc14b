"""
Interface every storage provider implements.

The issuer only talks to this interface; R2 and Appwrite are
interchangeable behind it.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional


class SigningClient(ABC):
    """Remote object storage able to hand out time-limited URLs."""

    provider_name: str = "storage"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials and bucket are present."""

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Default bucket for this provider."""

    @abstractmethod
    async def presign_get(
        self,
        bucket: str,
        file_path: str,
        expires_in: int,
        response_headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Mint a signed download URL.

        Raises:
            NotFoundError: If the provider reports the object missing
            ProviderError: On any other provider failure
        """

    @abstractmethod
    async def presign_put(
        self,
        bucket: str,
        file_path: str,
        content_type: str,
        expires_in: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Mint a signed upload URL."""

    @abstractmethod
    async def delete_object(self, bucket: str, file_path: str) -> None:
        """
        Delete an object.

        Raises:
            NotFoundError: If the object does not exist
        """

    @abstractmethod
    async def object_exists(self, bucket: str, file_path: str) -> bool:
        """Check if an object exists in the bucket."""

    async def close(self) -> None:
        """Release network resources held by the client."""
