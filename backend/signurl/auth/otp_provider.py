"""
OTPIQ client for delivering verification codes over SMS/WhatsApp.

A code is sent exactly once; failures are reported, never retried.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from signurl.config import Settings
from signurl.errors import OTPDeliveryError
from signurl.utils.logging import log_provider_failure, log_provider_request
from signurl.utils.metrics import (
    provider_failures_total,
    provider_latency_seconds,
    provider_requests_total,
)

logger = logging.getLogger(__name__)


class OTPIQClient:
    """Thin async wrapper over the OTPIQ send-SMS endpoint."""

    provider_name = "otpiq"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.otpiq.com/api/sms",
        channel: str = "whatsapp-sms",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self.api_url = api_url
        self.channel = channel
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

        if not api_key:
            logger.warning("OTPIQ not configured. Set OTPIQ_API_KEY to send verification codes.")

    @classmethod
    def from_settings(cls, config: Settings) -> "OTPIQClient":
        return cls(
            api_key=config.otpiq_api_key,
            api_url=config.otpiq_api_url,
            channel=config.otp_channel,
            timeout=config.http_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _fail(self, message: str, detail: Any) -> OTPDeliveryError:
        provider_failures_total.labels(provider=self.provider_name, operation="send_otp").inc()
        log_provider_failure(logger, self.provider_name, "send_otp", str(detail))
        return OTPDeliveryError(message, detail=str(detail))

    async def send_verification(self, phone_number: str, code: str) -> Dict[str, Any]:
        """
        Ask OTPIQ to deliver ``code`` to ``phone_number``.

        Returns:
            The provider's JSON response body

        Raises:
            OTPDeliveryError: If the key is missing, the request fails or the
                provider rejects it. The message is the provider's own
                ``message`` when it sends one.
        """
        if not self.is_configured:
            raise OTPDeliveryError(
                "OTPIQ API key not configured",
                detail="Missing OTPIQ_API_KEY environment variable",
            )

        payload = {
            "phoneNumber": phone_number,
            "smsType": "verification",
            "provider": self.channel,
            "verificationCode": code,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        provider_requests_total.labels(provider=self.provider_name, operation="send_otp").inc()
        start = time.perf_counter()
        try:
            response = await self._http.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise self._fail("Failed to send OTP", e) from e
        finally:
            duration = time.perf_counter() - start
            provider_latency_seconds.labels(provider=self.provider_name, operation="send_otp").observe(duration)
            log_provider_request(logger, self.provider_name, "send_otp", duration_ms=duration * 1000)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error:
            message = body.get("message") or "Failed to send OTP"
            raise self._fail(message, body or f"HTTP {response.status_code}")

        return body

    async def close(self) -> None:
        await self._http.aclose()
