import secrets
from datetime import datetime, timedelta

from beanie import PydanticObjectId, UpdateResponse
from beanie.odm.operators.update.general import Inc, Set
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from authgate.config import get_settings
from authgate.constants import OtpReason
from authgate.errors import (
    CodeAlreadyUsedError,
    ConflictError,
    ExpiredCodeError,
    InvalidCodeError,
    NotFoundError,
    RateLimitedError,
    SmsDispatchError,
)
from authgate.models.otp import OneTimeCode
from authgate.utils.clock import as_utc, for_query, utcnow
from authgate.utils.logger import get_logger
from authgate.utils.sms import send_otp_sms

logger = get_logger("otp")


def generate_otp_code() -> str:
    """6-digit numeric code; fixed OTP_DEV_CODE when OTP_ENV=development."""
    settings = get_settings()
    if settings.uses_fixed_otp:
        return settings.OTP_DEV_CODE
    return f"{secrets.randbelow(1_000_000):06d}"


def is_expired(otp: OneTimeCode, now: datetime | None = None) -> bool:
    return as_utc(otp.expires_at) <= (now or utcnow())


async def find_slot(mobile_number: str, reason: OtpReason) -> OneTimeCode | None:
    """Code currently held for (mobile number, reason), used or not."""
    return (
        await OneTimeCode.find(
            OneTimeCode.mobile_number == mobile_number,
            OneTimeCode.reason == reason,
        )
        .sort(-OneTimeCode.created_at)
        .first_or_none()
    )


async def get_by_id(otp_id: str) -> OneTimeCode:
    try:
        oid = PydanticObjectId(otp_id)
    except (InvalidId, TypeError, ValueError):
        raise NotFoundError("OTP not found")
    otp = await OneTimeCode.get(oid)
    if not otp:
        raise NotFoundError("OTP not found")
    return otp


async def delete_codes(
    mobile_number: str, reason: OtpReason, *, used_only: bool = False
) -> int:
    criteria = [
        OneTimeCode.mobile_number == mobile_number,
        OneTimeCode.reason == reason,
    ]
    if used_only:
        criteria.append(OneTimeCode.is_used == True)  # noqa: E712
    result = await OneTimeCode.find(*criteria).delete()
    return result.deleted_count if result else 0


async def send_otp(*, mobile_number: str, reason: OtpReason) -> OneTimeCode:
    """
    Issue a fresh code for the slot:
    - removes whatever code the slot held before
    - stores a new code valid for OTP_TTL_SECONDS
    - dispatches it by SMS; the code is removed again if dispatch fails
    """
    settings = get_settings()
    mobile_number = mobile_number.strip()

    removed = await delete_codes(mobile_number, reason)
    if removed:
        logger.debug(f"Replaced {removed} previous {reason.value} code(s) for {mobile_number}")

    code = generate_otp_code()
    now = utcnow()
    otp = OneTimeCode(
        mobile_number=mobile_number,
        reason=reason,
        code=code,
        expires_at=now + timedelta(seconds=settings.OTP_TTL_SECONDS),
        created_at=now,
    )
    try:
        await otp.insert()
    except DuplicateKeyError:
        # another request filled the slot between delete and insert
        raise ConflictError("An OTP request for this number is already in progress")

    try:
        await send_otp_sms(mobile_number=mobile_number, code=code)
    except SmsDispatchError:
        # undelivered codes must not stay verifiable
        await otp.delete()
        raise

    logger.info(f"OTP issued id={otp.id} mobile={mobile_number} reason={reason.value}")
    return otp


async def resend_otp(*, mobile_number: str, reason: OtpReason) -> OneTimeCode:
    """Send the slot's current code again, at most OTP_MAX_RESEND_ATTEMPTS times.

    An expired code is removed and the caller has to start over with send.
    """
    settings = get_settings()
    mobile_number = mobile_number.strip()

    otp = await find_slot(mobile_number, reason)
    if not otp:
        raise NotFoundError("OTP not sent yet! Use send OTP method.")

    if is_expired(otp):
        await otp.delete()
        raise ExpiredCodeError()

    if otp.is_used:
        raise CodeAlreadyUsedError()

    if otp.resend_attempts >= settings.OTP_MAX_RESEND_ATTEMPTS:
        raise RateLimitedError("Maximum resend attempts reached!")

    result = await OneTimeCode.find_one(
        OneTimeCode.id == otp.id,
        OneTimeCode.resend_attempts < settings.OTP_MAX_RESEND_ATTEMPTS,
    ).update(
        Inc({OneTimeCode.resend_attempts: 1}),
        response_type=UpdateResponse.UPDATE_RESULT,
    )
    if not result or result.modified_count == 0:
        raise RateLimitedError("Maximum resend attempts reached!")

    try:
        await send_otp_sms(mobile_number=mobile_number, code=otp.code)
    except SmsDispatchError:
        # a failed dispatch does not count against the resend cap
        await OneTimeCode.find_one(OneTimeCode.id == otp.id).update(
            Inc({OneTimeCode.resend_attempts: -1})
        )
        raise
    otp.resend_attempts += 1

    logger.info(
        f"OTP resent id={otp.id} mobile={mobile_number} attempt={otp.resend_attempts}"
    )
    return otp


async def consume(otp: OneTimeCode, code: str) -> OneTimeCode:
    """
    Check and spend a code:
    - already used -> CodeAlreadyUsedError
    - expired -> ExpiredCodeError
    - wrong value -> InvalidCodeError
    Marking it used is a conditional update, so two concurrent callers cannot
    both succeed.
    """
    now = utcnow()
    if otp.is_used:
        raise CodeAlreadyUsedError()
    if is_expired(otp, now):
        raise ExpiredCodeError()
    if not secrets.compare_digest(otp.code.encode(), code.strip().encode()):
        raise InvalidCodeError()

    result = await OneTimeCode.find_one(
        OneTimeCode.id == otp.id,
        OneTimeCode.is_used == False,  # noqa: E712
        OneTimeCode.expires_at > for_query(now),
    ).update(
        Set({OneTimeCode.is_used: True, OneTimeCode.used_at: now}),
        response_type=UpdateResponse.UPDATE_RESULT,
    )
    if not result or result.modified_count == 0:
        raise CodeAlreadyUsedError()

    otp.is_used = True
    otp.used_at = now
    logger.info(f"OTP consumed id={otp.id} mobile={otp.mobile_number}")
    return otp


async def verify_otp(*, otp_id: str, code: str) -> dict:
    otp = await get_by_id(otp_id)
    await consume(otp, code)
    return {"success": True}


async def consume_active_otp(
    *, mobile_number: str, reason: OtpReason, code: str
) -> OneTimeCode:
    otp = await find_slot(mobile_number.strip(), reason)
    if not otp:
        raise NotFoundError("No active OTP found. Please request a new OTP.")
    return await consume(otp, code)


async def cleanup_expired_otps() -> dict:
    result = await OneTimeCode.find(OneTimeCode.expires_at < for_query(utcnow())).delete()
    deleted = result.deleted_count if result else 0
    logger.info(f"Expired OTP cleanup removed {deleted} record(s)")
    return {"deleted_count": deleted}
