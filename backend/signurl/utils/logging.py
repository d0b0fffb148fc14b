"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- file
- cache_key
- duration_ms

Usage:
    from signurl.utils.logging import configure_logging, log_url_issued

    configure_logging('signurl-api', 'INFO')
    log_url_issued(logger, file='books/a.mp3', operation='get', from_cache=False)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Console handler (for container logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())

        # Route uvicorn through the same handler
        for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            uvicorn_logger = logging.getLogger(logger_name)
            uvicorn_logger.handlers = []
            uvicorn_logger.propagate = True

        cls._configured = True


def _build_log_extra(
    event: str,
    file: Optional[str] = None,
    cache_key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        file: Optional sanitized file path
        cache_key: Optional cache key
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if file:
        extra["file"] = file
    if cache_key:
        extra["cache_key"] = cache_key
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Signed URL events

def log_url_issued(
    logger: logging.Logger,
    file: str,
    operation: str,
    from_cache: bool,
    cache_key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log a signed URL handed out to a caller.

    Args:
        logger: Logger instance
        file: Sanitized file path (required)
        operation: Cache operation the URL was issued for (required)
        from_cache: Whether the URL was served from the cache
        cache_key: Optional cache key
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="url_issued",
        file=file,
        cache_key=cache_key,
        duration_ms=duration_ms,
        operation=operation,
        from_cache=from_cache,
        **kwargs
    )
    source = "cache" if from_cache else "provider"
    logger.info(f"Signed URL issued from {source}: {file}", extra=extra)


def log_cache_failure(
    logger: logging.Logger,
    tier: str,
    action: str,
    error: str,
    cache_key: Optional[str] = None,
    **kwargs
):
    """
    Log a swallowed cache tier failure.

    Cache failures never fail a request, so they are logged at WARNING.
    """
    extra = _build_log_extra(
        event="cache_failure",
        cache_key=cache_key,
        tier=tier,
        action=action,
        error=str(error),
        **kwargs
    )
    logger.warning(f"Cache {tier}.{action} failed - {error}", extra=extra)


def log_batch_completed(
    logger: logging.Logger,
    total: int,
    successful: int,
    failed: int,
    duration_ms: float,
    **kwargs
):
    """Log completion of a batch issuance."""
    extra = _build_log_extra(
        event="batch_completed",
        duration_ms=duration_ms,
        total=total,
        successful=successful,
        failed=failed,
        **kwargs
    )
    logger.info(
        f"Batch completed: {successful} successful, {failed} errors in {duration_ms:.0f}ms",
        extra=extra
    )


def log_otp_event(
    logger: logging.Logger,
    event: str,
    phone_number: str,
    **kwargs
):
    """
    Log an OTP lifecycle event.

    The phone number is masked and the verification code is never logged.
    """
    masked = f"{phone_number[:3]}***{phone_number[-2:]}" if len(phone_number) > 5 else "***"
    extra = _build_log_extra(event=event, phone_number=masked, **kwargs)
    logger.info(f"OTP {event.replace('otp_', '')}: {masked}", extra=extra)


# Provider event functions

def log_provider_request(
    logger: logging.Logger,
    provider: str,
    operation: str,
    duration_ms: Optional[float] = None,
    file: Optional[str] = None,
    **kwargs
):
    """
    Log a storage or SMS provider request.

    Args:
        logger: Logger instance
        provider: Provider name (r2, appwrite, otpiq) (required)
        operation: Operation name (presign_get, delete, send_otp, etc.) (required)
        duration_ms: Optional duration in milliseconds
        file: Optional file path
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="provider_request",
        file=file,
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        **kwargs
    )

    logger.debug(f"Provider request: {provider}.{operation}", extra=extra)


def log_provider_failure(
    logger: logging.Logger,
    provider: str,
    operation: str,
    error: str,
    duration_ms: Optional[float] = None,
    file: Optional[str] = None,
    **kwargs
):
    """
    Log a provider failure event.

    Args:
        logger: Logger instance
        provider: Provider name (required)
        operation: Operation name (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        file: Optional file path
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="provider_failure",
        file=file,
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        error=str(error),
        **kwargs
    )

    logger.error(f"Provider failure: {provider}.{operation} - {error}", extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure JSON logging for the process."""
    StructuredLogger.configure(service_name, log_level)
