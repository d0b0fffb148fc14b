"""
Signed URL records as produced by the issuer and stored in the URL cache.
"""
from datetime import datetime
from typing import Dict

from pydantic import BaseModel, ConfigDict


class SignedUrlRecord(BaseModel):
    """
    One issued signed URL.

    Immutable: a stale record is deleted from the cache and replaced,
    never updated in place.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    file_path: str
    content_type: str
    expires_in: int
    expires_at: datetime
    issued_from_cache: bool = False

    def serialize(self) -> str:
        return self.model_dump_json()

    @classmethod
    def deserialize(cls, payload: str) -> "SignedUrlRecord":
        return cls.model_validate_json(payload)

    def from_cache(self) -> "SignedUrlRecord":
        return self.model_copy(update={"issued_from_cache": True})


class UploadUrlRecord(SignedUrlRecord):
    """A signed PUT URL. Never cached."""

    metadata: Dict[str, str] = {}
