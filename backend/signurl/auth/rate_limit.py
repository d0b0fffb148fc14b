"""
Per-client sliding-window rate limiting for the OTP endpoints.
"""
import logging
import math
import time
from collections import deque
from typing import Callable, Deque, Optional

from cachetools import TTLCache
from fastapi import Request

from signurl.config import settings
from signurl.errors import RateLimitError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Allows at most ``limit`` hits per key within any ``window_seconds`` span.

    Idle keys are dropped once their window has passed.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: TTLCache = TTLCache(maxsize=max_keys, ttl=window_seconds, timer=clock)

    def hit(self, key: str) -> Optional[float]:
        """
        Record a hit for ``key``.

        Returns:
            None if allowed, otherwise seconds until the next hit is allowed
        """
        now = self._clock()
        hits: Deque[float] = self._hits.get(key) or deque()
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

        if len(hits) >= self.limit:
            self._hits[key] = hits
            return self.window_seconds - (now - hits[0])

        hits.append(now)
        self._hits[key] = hits
        return None

    def reset(self) -> None:
        self._hits.clear()


class RateLimit:
    """
    FastAPI dependency enforcing a limiter per client address.

    Usage:
        @router.post("/send-otp", dependencies=[Depends(send_otp_limit)])
    """

    def __init__(self, limiter: SlidingWindowRateLimiter, message: str, enabled: bool = True):
        self.limiter = limiter
        self.message = message
        self.enabled = enabled

    async def __call__(self, request: Request) -> None:
        if not self.enabled:
            return
        client = request.client.host if request.client else "unknown"
        retry_after = self.limiter.hit(client)
        if retry_after is not None:
            logger.warning(f"Rate limit exceeded for {client} on {request.url.path}")
            raise RateLimitError(self.message, retryAfter=math.ceil(retry_after))


send_otp_limit = RateLimit(
    SlidingWindowRateLimiter(settings.otp_send_limit, settings.otp_rate_window_seconds),
    "Too many OTP requests, please try again later",
    enabled=settings.rate_limit_enabled,
)

verify_otp_limit = RateLimit(
    SlidingWindowRateLimiter(settings.otp_verify_limit, settings.otp_rate_window_seconds),
    "Too many verification attempts, please try again later",
    enabled=settings.rate_limit_enabled,
)
