"""
Error taxonomy shared by the storage, cache and auth layers.

Each error carries the HTTP status it maps to at the boundary, a public
message, an optional internal detail (only rendered outside production) and
extra stable response keys such as ``file``.
"""
from typing import Any, Optional

from fastapi import status


class SignUrlError(Exception):
    """Base class for errors rendered by the API exception handlers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.extra = extra


class ValidationError(SignUrlError):
    """Missing or malformed input. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SignUrlError):
    """Object absent at the storage provider."""

    status_code = status.HTTP_404_NOT_FOUND


class ProviderError(SignUrlError):
    """Signing, storage or SMS backend failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RateLimitError(SignUrlError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class CacheError(SignUrlError):
    """
    Cache tier failure.

    Raised by individual tiers and always swallowed by the URL cache;
    it never reaches a request handler.
    """


class OTPNotFoundError(ValidationError):
    pass


class OTPMismatchError(ValidationError):
    pass


class OTPDeliveryError(ProviderError):
    """The SMS provider rejected or failed to deliver a verification code."""

    status_code = status.HTTP_400_BAD_REQUEST
