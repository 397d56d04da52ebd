"""Client-side OTP pre-check."""

from fastapi import APIRouter, Depends, Request

from twistpay.dependencies import Services, get_services
from twistpay.rate_limit import limiter
from twistpay.schemas import OtpVerifyRequest, OtpVerifyResponse
from twistpay.services.formats import to_e164
from twistpay.services.validation_engine import MSG_OTP_INVALID

router = APIRouter()


@router.post("/verify", response_model=OtpVerifyResponse)
@limiter.limit("10/minute")
async def verify_otp(
    request: Request,
    data: OtpVerifyRequest,
    services: Services = Depends(get_services),
):
    """Confirm an OTP before the form is submitted.

    A confirmation is remembered briefly so the submit call does not spend
    the same one-time code a second time.
    """
    phone = to_e164(data.phone)
    if phone and await services.otp.check(phone, data.otp_code):
        return OtpVerifyResponse(ok=True, message="OTP verified")
    return OtpVerifyResponse(ok=False, message=MSG_OTP_INVALID)
