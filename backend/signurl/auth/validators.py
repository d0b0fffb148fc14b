"""
Input validation for the OTP endpoints.

Runs before any side effect: nothing is sent or stored for a request that
fails here.
"""
import re
from typing import Any, Optional

from signurl.config import settings
from signurl.errors import ValidationError

OTP_CODE_PATTERN = re.compile(r"^\d{4,6}$")


def validate_phone_number(phone_number: Any, pattern: Optional[str] = None) -> str:
    """
    Check a country-code-prefixed numeric phone number.

    Raises:
        ValidationError: If the number is missing or malformed
    """
    if not phone_number:
        raise ValidationError("Phone number is required")
    if not isinstance(phone_number, str) or not re.fullmatch(pattern or settings.phone_number_pattern, phone_number):
        raise ValidationError("Invalid phone number format. Please use Iraqi format: 964XXXXXXXXXXX")
    return phone_number


def validate_otp_code(code: Any) -> str:
    """
    Check a 4-6 digit verification code.

    Raises:
        ValidationError: If the code is malformed
    """
    if not isinstance(code, str) or not OTP_CODE_PATTERN.match(code):
        raise ValidationError("Invalid OTP format. Please enter a valid verification code")
    return code
