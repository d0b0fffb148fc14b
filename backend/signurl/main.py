"""
FastAPI application entry point.
Sets up the API with lifespan events for cache and client lifecycle.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from signurl.api.router import AVAILABLE_ENDPOINTS, api_router
from signurl.auth.otp_service import get_otp_service
from signurl.cache import get_url_cache
from signurl.config import settings
from signurl.errors import ProviderError, RateLimitError, SignUrlError
from signurl.middleware.metrics_middleware import MetricsMiddleware
from signurl.storage import get_signing_client
from signurl.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: Configure logging, connect the redis tier, start the cache sweeper
    - Shutdown: Stop the sweeper and close redis/HTTP clients
    """
    # Configure structured JSON logging
    configure_logging('signurl-api', settings.log_level)

    cache = get_url_cache()
    await cache.connect()
    cache.start_sweeper(settings.cache_check_period_seconds)

    signer = get_signing_client()
    if not signer.is_configured:
        # Requests fail with ProviderError until storage is configured
        logger.warning(f"Storage provider '{signer.provider_name}' is not configured")

    logger.info(f"{settings.service_name} started (provider={signer.provider_name}, environment={settings.environment})")

    yield

    await cache.close()
    await signer.close()
    await get_otp_service().provider.close()


# Create FastAPI app
app = FastAPI(
    title=settings.service_name,
    description="Signed URL gateway for private object storage with phone OTP verification",
    version=settings.service_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origin.split(",")],
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

# Include API routes at the root path
app.include_router(api_router)


def error_body(exc: SignUrlError) -> dict:
    """
    Render an error as ``{success, error, message, ...extra}``.

    Provider details are only exposed outside production.
    """
    if isinstance(exc, ProviderError):
        if exc.detail and not settings.is_production:
            message = exc.detail
        elif exc.status_code >= 500:
            message = "Internal server error"
        else:
            message = exc.message
    else:
        message = exc.detail or exc.message

    return {"success": False, "error": exc.message, "message": message, **exc.extra}


@app.exception_handler(SignUrlError)
async def signurl_error_handler(request: Request, exc: SignUrlError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.detail})")

    headers = None
    if isinstance(exc, RateLimitError) and "retryAfter" in exc.extra:
        headers = {"Retry-After": str(exc.extra["retryAfter"])}
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request", "message": message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "success": False,
                "error": "Endpoint not found",
                "message": f"Cannot {request.method} {request.url.path}",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "message": "Internal server error" if settings.is_production else str(exc),
        },
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
