"""
Phone number authentication endpoints.

- POST /auth/send-otp - Send a verification code (5 per 15 min per client)
- POST /auth/verify-otp - Verify a code (10 per 15 min per client)
- GET /auth/status - Liveness of the auth service
"""
from fastapi import APIRouter, Depends

from signurl.auth.otp_service import OTPService, get_otp_service
from signurl.auth.rate_limit import send_otp_limit, verify_otp_limit
from signurl.errors import ValidationError
from signurl.schemas.auth import OTPResponse, SendOTPRequest, VerifyOTPRequest

router = APIRouter()


@router.get("/status", response_model=OTPResponse, response_model_exclude_none=True)
async def auth_status():
    return OTPResponse(message="Authentication service is running")


@router.post(
    "/send-otp",
    response_model=OTPResponse,
    dependencies=[Depends(send_otp_limit)],
)
async def send_otp(
    payload: SendOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
):
    """
    Send a verification code to a phone number.

    The code is never included in the response.
    """
    data = await otp_service.send_otp(payload.phone_number)
    return OTPResponse(message="OTP sent successfully", data=data)


@router.post(
    "/verify-otp",
    response_model=OTPResponse,
    dependencies=[Depends(verify_otp_limit)],
)
async def verify_otp(
    payload: VerifyOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
):
    """Verify a code; a successful verification consumes it."""
    if not payload.phone_number or not payload.verification_code:
        raise ValidationError("Phone number and verification code are required")

    data = await otp_service.verify_otp(payload.phone_number, payload.verification_code)
    return OTPResponse(message="Authentication successful", data=data)
