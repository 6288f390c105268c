from fastapi import APIRouter, Depends, Request

from authgate.rate_limit import limiter
from authgate.schemas import CleanupOut, OTPIdOut, OTPRequestIn, OTPVerifyIn, SessionUser, SuccessOut
from authgate.security import require_admin
from authgate.services import otp_service

router = APIRouter(prefix="/otp", tags=["otp"])


@router.post("/send", response_model=OTPIdOut)
@limiter.limit("5/minute")
async def route_send_otp(request: Request, payload: OTPRequestIn):
    """Issue a new code for (mobile_number, reason). Rate limit: 5/minute per IP."""
    otp = await otp_service.send_otp(
        mobile_number=payload.mobile_number, reason=payload.reason
    )
    return OTPIdOut(id=str(otp.id))


@router.post("/verify", response_model=SuccessOut)
@limiter.limit("10/minute")
async def route_verify_otp(request: Request, payload: OTPVerifyIn):
    """Verify and spend a code by id. Rate limit: 10/minute per IP."""
    return await otp_service.verify_otp(otp_id=payload.otp_id, code=payload.otp)


@router.post("/resend", response_model=OTPIdOut)
@limiter.limit("5/minute")
async def route_resend_otp(request: Request, payload: OTPRequestIn):
    otp = await otp_service.resend_otp(
        mobile_number=payload.mobile_number, reason=payload.reason
    )
    return OTPIdOut(id=str(otp.id))


@router.post("/cleanup-expired", response_model=CleanupOut)
async def route_cleanup_expired(admin: SessionUser = Depends(require_admin)):
    """Admin: delete every expired code."""
    return await otp_service.cleanup_expired_otps()
