"""Sign-in providers.

Both providers return a signed session on success and raise a ``SignInError``
carrying one of the structured codes (invalid_credentials, account_not_found,
account_inactive, expired_otp) otherwise.
"""
from pydantic import ValidationError

from authgate.constants import ADMIN_ROLES, OtpReason
from authgate.errors import (
    AccountInactiveError,
    AccountNotFoundError,
    CodeAlreadyUsedError,
    ExpiredCodeError,
    ExpiredOTPError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
)
from authgate.models.user import User
from authgate.schemas import AdminCredentials, SessionOut, SessionUser, UserCredentials
from authgate.security import create_session_token, verify_password_async
from authgate.services import otp_service, user_service
from authgate.utils.clock import utcnow
from authgate.utils.logger import get_logger

logger = get_logger("auth")


def session_user(user: User) -> SessionUser:
    return SessionUser(
        id=str(user.id),
        name=user.name or "",
        email=user.email or "",
        role=user.role,
        mobile_number=user.mobile_number or "",
    )


def issue_session(user: User) -> SessionOut:
    claims = session_user(user)
    token, expires_at = create_session_token(claims)
    return SessionOut(access_token=token, expires_at=expires_at, user=claims)


async def admin_login(credentials: dict) -> SessionOut:
    """Email + password sign-in for ADMIN / SUPER_ADMIN accounts."""
    try:
        creds = AdminCredentials.model_validate(credentials)
    except ValidationError as e:
        logger.warning(f"Admin login validation failed: {e.errors()}")
        raise InvalidCredentialsError()

    user = await user_service.find_by_email(creds.email)
    if not user:
        raise AccountNotFoundError()

    if user.role not in ADMIN_ROLES:
        raise InvalidCredentialsError()

    if not user.is_active:
        raise AccountInactiveError()

    if not user.password_hash:
        logger.error(f"Admin user {user.id} has no password set")
        raise InvalidCredentialsError()

    if not await verify_password_async(creds.password, user.password_hash):
        raise InvalidCredentialsError()

    user.last_login_at = utcnow()
    await user.save()

    logger.info(f"Admin signed in id={user.id}")
    return issue_session(user)


async def user_login(credentials: dict) -> SessionOut:
    """Mobile + OTP sign-in; the account is created on first successful code."""
    try:
        creds = UserCredentials.model_validate(credentials)
    except ValidationError as e:
        logger.warning(f"User login validation failed: {e.errors()}")
        raise InvalidCredentialsError()

    mobile_number = creds.mobile_number
    try:
        await otp_service.consume_active_otp(
            mobile_number=mobile_number, reason=OtpReason.LOGIN, code=creds.otp
        )
    except ExpiredCodeError:
        logger.info(f"OTP expired for mobile {mobile_number}")
        raise ExpiredOTPError()
    except (NotFoundError, CodeAlreadyUsedError, InvalidCodeError) as e:
        logger.info(f"OTP rejected for mobile {mobile_number}: {e.detail}")
        raise InvalidCredentialsError()

    user = await user_service.find_by_mobile(mobile_number)
    is_new_user = user is None
    if is_new_user:
        user = await user_service.create_placeholder_user(mobile_number)
    elif not user.is_active:
        logger.info(f"User account is inactive: {mobile_number}")
        raise AccountInactiveError()

    user = await user_service.mark_login(user)
    await user_service.cleanup_used_login_codes(mobile_number)

    logger.info(
        f"{'New user created and logged in' if is_new_user else 'Existing user logged in'}: {mobile_number}"
    )
    return issue_session(user)
