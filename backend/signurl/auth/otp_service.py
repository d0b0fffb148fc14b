"""
Phone number verification via one-time codes.

Flow:
1. send_otp generates a 6-digit code and hands it to the SMS provider
2. The code is stored for the phone number once the provider accepts it
3. verify_otp compares the submitted code and consumes it on a match
"""
import hmac
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from signurl.auth.otp_provider import OTPIQClient
from signurl.auth.validators import validate_otp_code, validate_phone_number
from signurl.auth.verification_store import VerificationStore
from signurl.config import settings
from signurl.errors import OTPMismatchError, OTPNotFoundError
from signurl.utils.logging import log_otp_event
from signurl.utils.metrics import otp_requests_total

logger = logging.getLogger(__name__)


def generate_code() -> str:
    """Random 6-digit code from a CSPRNG."""
    return str(100000 + secrets.randbelow(900000))


class OTPService:
    """Sends and verifies one-time codes for phone numbers."""

    def __init__(self, provider: OTPIQClient, store: VerificationStore):
        self.provider = provider
        self.store = store

    async def send_otp(self, phone_number: str) -> Dict[str, Any]:
        """
        Send a fresh code to ``phone_number``, replacing any pending one.

        Returns:
            Response data; the code itself is never returned

        Raises:
            ValidationError: If the phone number is malformed
            OTPDeliveryError: If the provider fails to deliver the code
        """
        phone_number = validate_phone_number(phone_number)
        code = generate_code()

        try:
            await self.provider.send_verification(phone_number, code)
        except Exception:
            otp_requests_total.labels(action="send", outcome="provider_error").inc()
            raise

        self.store.put(phone_number, code)
        otp_requests_total.labels(action="send", outcome="sent").inc()
        log_otp_event(logger, "otp_sent", phone_number)
        return {"phoneNumber": phone_number}

    async def verify_otp(self, phone_number: str, code: str) -> Dict[str, Any]:
        """
        Verify and consume the pending code for ``phone_number``.

        A mismatch leaves the pending code in place.

        Raises:
            ValidationError: If the phone number or code is malformed
            OTPNotFoundError: If no code is pending for the number
            OTPMismatchError: If the code does not match
        """
        phone_number = validate_phone_number(phone_number)
        code = validate_otp_code(code)

        stored = self.store.get(phone_number)
        if stored is None:
            otp_requests_total.labels(action="verify", outcome="not_found").inc()
            log_otp_event(logger, "otp_not_found", phone_number)
            raise OTPNotFoundError("No OTP found for this phone number. Please request a new OTP.")

        if not hmac.compare_digest(stored, code):
            otp_requests_total.labels(action="verify", outcome="mismatch").inc()
            log_otp_event(logger, "otp_mismatch", phone_number)
            raise OTPMismatchError("Invalid verification code")

        self.store.delete(phone_number)
        otp_requests_total.labels(action="verify", outcome="verified").inc()
        log_otp_event(logger, "otp_verified", phone_number)
        return {
            "phoneNumber": phone_number,
            "verifiedAt": datetime.now(timezone.utc).isoformat(),
        }


# Singleton instance
_otp_service: Optional[OTPService] = None


def get_otp_service() -> OTPService:
    """Get the singleton OTP service backed by OTPIQ and an in-memory store."""
    global _otp_service
    if _otp_service is None:
        _otp_service = OTPService(
            provider=OTPIQClient.from_settings(settings),
            store=VerificationStore(
                ttl_seconds=settings.otp_ttl_seconds,
                maxsize=settings.otp_max_entries,
            ),
        )
    return _otp_service
