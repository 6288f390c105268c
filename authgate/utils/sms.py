import httpx

from authgate.config import get_settings
from authgate.errors import SmsDispatchError
from authgate.utils.logger import get_logger

logger = get_logger("sms")


async def send_otp_sms(*, mobile_number: str, code: str) -> None:
    """
    Deliver a verification code.
    - development: log only, no SMS leaves the process.
    - otherwise: POST to the configured gateway; skipped with a warning when
      the gateway is not configured.
    """
    settings = get_settings()
    if settings.is_development:
        logger.info(f"[OTP SMS] {mobile_number} => {code}")
        return

    if not settings.SMS_BASE_URL or not settings.SMS_API_KEY:
        logger.warning(
            f"SMS gateway not configured (SMS_BASE_URL/SMS_API_KEY); OTP for {mobile_number} not sent"
        )
        return

    url = f"{settings.SMS_BASE_URL.rstrip('/')}/sms"
    headers = {
        "Authorization": f"Bearer {settings.SMS_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "phoneNumber": mobile_number,
        "smsType": "verification",
        "verificationCode": code,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.SMS_TIMEOUT_SECONDS) as client:
            resp = await client.post(url, headers=headers, json=payload)
    except httpx.HTTPError as e:
        logger.error(f"SMS gateway unreachable for {mobile_number}: {e}")
        raise SmsDispatchError() from e

    if resp.status_code >= 400:
        logger.error(f"SMS gateway error {resp.status_code}: {resp.text}")
        raise SmsDispatchError()
