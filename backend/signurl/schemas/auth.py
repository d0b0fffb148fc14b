"""
Pydantic schemas for OTP endpoints.
"""
from typing import Any, Dict, Optional

from pydantic import Field

from signurl.schemas.base import CamelModel


class SendOTPRequest(CamelModel):
    """Schema for requesting a verification code."""
    phone_number: Any = Field(None, description="Country-code-prefixed number, e.g. 9647701234567")


class VerifyOTPRequest(SendOTPRequest):
    """Schema for submitting a verification code."""
    verification_code: Any = Field(None, description="4-6 digit code received by the user")


class OTPResponse(CamelModel):
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None
