from typing import Optional

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from authgate.config import get_settings
from authgate.constants import OtpReason, Role
from authgate.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    wrap_unexpected,
)
from authgate.models.user import User
from authgate.schemas import (
    BasicUserOut,
    LoginUserOut,
    RegistrationIn,
    SessionUser,
    UpdatePasswordIn,
    UpdateProfileIn,
    UserOut,
)
from authgate.security import hash_password_async, verify_password_async
from authgate.services import otp_service
from authgate.utils.clock import utcnow
from authgate.utils.logger import get_logger

logger = get_logger("users")


# ------------------------ projections ------------------------


def to_login_user(user: User) -> LoginUserOut:
    return LoginUserOut(
        id=str(user.id),
        name=user.name,
        mobile_number=user.mobile_number,
        is_verified_mobile_number=user.is_verified_mobile_number,
    )


def to_basic_user(user: User) -> BasicUserOut:
    return BasicUserOut(
        id=str(user.id),
        name=user.name,
        email=user.email,
        mobile_number=user.mobile_number,
        role=user.role,
        is_verified_mobile_number=user.is_verified_mobile_number,
    )


def to_user_out(user: User) -> UserOut:
    """Full projection; ObjectId rendered as str."""
    return UserOut(
        id=str(user.id),
        name=user.name,
        email=user.email,
        mobile_number=user.mobile_number,
        gender=user.gender,
        address=user.address,
        image=user.image,
        role=user.role,
        is_verified_mobile_number=user.is_verified_mobile_number,
        is_active=user.is_active,
        email_verified=user.email_verified,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


# ------------------------ lookups ------------------------


async def get_user(user_id: str) -> User:
    try:
        oid = PydanticObjectId(user_id)
    except (InvalidId, TypeError, ValueError):
        raise NotFoundError("User not found")
    user = await User.get(oid)
    if not user:
        raise NotFoundError("User not found")
    return user


async def find_by_mobile(mobile_number: str) -> Optional[User]:
    return await User.find_one(User.mobile_number == mobile_number)


async def find_by_email(email: str) -> Optional[User]:
    return await User.find_one(User.email == email.strip().lower())


@wrap_unexpected("Failed to check user registration status")
async def is_user_registered(mobile_number: str) -> bool:
    return await find_by_mobile(mobile_number.strip()) is not None


async def get_me(session: SessionUser) -> UserOut:
    return to_user_out(await get_user(session.id))


# ------------------------ registration ------------------------


async def _ensure_unique(mobile_number: str, email: str | None) -> None:
    if await find_by_mobile(mobile_number):
        raise ConflictError("User with this mobile number already exists")
    if email and await find_by_email(email):
        raise ConflictError("User with this email already exists")


@wrap_unexpected("Failed to create user")
async def create_user(payload: RegistrationIn) -> BasicUserOut:
    """Explicit registration. The account starts unverified with role USER."""
    settings = get_settings()
    await _ensure_unique(payload.mobile_number, payload.email)

    password_hash = None
    if settings.DEFAULT_PASSWORD:
        password_hash = await hash_password_async(settings.DEFAULT_PASSWORD)

    now = utcnow()
    user = User(
        name=payload.name,
        email=payload.email,
        email_verified=now if payload.email else None,
        mobile_number=payload.mobile_number,
        gender=payload.gender,
        address=payload.address,
        role=Role.USER,
        password_hash=password_hash,
        is_verified_mobile_number=False,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        raise ConflictError("User with this mobile number already exists")

    logger.info(f"User registered id={user.id} mobile={user.mobile_number}")
    return to_basic_user(user)


async def create_placeholder_user(mobile_number: str) -> User:
    """Minimal account for a first login; name from the last 4 digits."""
    user = User(
        mobile_number=mobile_number,
        name=f"User_{mobile_number[-4:]}",
        role=Role.USER,
        is_active=True,
        is_verified_mobile_number=False,
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        # concurrent first login for the same number
        existing = await find_by_mobile(mobile_number)
        if existing is None:
            raise
        return existing
    logger.info(f"Placeholder user created id={user.id} mobile={mobile_number}")
    return user


# ------------------------ OTP login ------------------------


@wrap_unexpected("Failed to initiate login process")
async def initiate_login(mobile_number: str) -> dict:
    """Login doubles as implicit registration: unknown numbers get a placeholder account."""
    mobile_number = mobile_number.strip()
    user = await find_by_mobile(mobile_number)
    if user is None:
        user = await create_placeholder_user(mobile_number)
    elif not user.is_active:
        raise ForbiddenError("Account is inactive")

    await otp_service.delete_codes(mobile_number, OtpReason.LOGIN)
    otp = await otp_service.send_otp(mobile_number=mobile_number, reason=OtpReason.LOGIN)

    return {
        "success": True,
        "otp_id": str(otp.id),
        "user": to_login_user(user),
    }


async def mark_login(user: User) -> User:
    now = utcnow()
    user.is_verified_mobile_number = True
    user.last_login_at = now
    user.updated_at = now
    await user.save()
    return user


async def cleanup_used_login_codes(mobile_number: str) -> None:
    """Best effort; failures are logged only."""
    try:
        await otp_service.delete_codes(mobile_number, OtpReason.LOGIN, used_only=True)
    except Exception:
        logger.exception(f"Failed to cleanup OTPs for {mobile_number}")


@wrap_unexpected("Failed to verify OTP")
async def verify_login_otp(mobile_number: str, otp: str) -> dict:
    mobile_number = mobile_number.strip()
    user = await find_by_mobile(mobile_number)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")

    await otp_service.consume_active_otp(
        mobile_number=mobile_number, reason=OtpReason.LOGIN, code=otp
    )
    user = await mark_login(user)
    await cleanup_used_login_codes(mobile_number)

    refreshed = await get_user(str(user.id))
    return {"success": True, "user": to_basic_user(refreshed)}


# ------------------------ profile ------------------------


@wrap_unexpected("Failed to update profile")
async def update_profile(user_id: str, payload: UpdateProfileIn) -> UserOut:
    user = await get_user(user_id)
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in fields:
        existing = await find_by_email(fields["email"])
        if existing and existing.id != user.id:
            raise ConflictError("Email is already taken by another user")

    now = utcnow()
    for name, value in fields.items():
        setattr(user, name, value)
    if "email" in fields:
        user.email_verified = now
    user.updated_at = now
    await user.save()

    return to_user_out(await get_user(user_id))


@wrap_unexpected("Failed to update password")
async def update_password(user_id: str, payload: UpdatePasswordIn) -> dict:
    user = await get_user(user_id)
    if not user.password_hash:
        raise BadRequestError("User does not have a password set")

    if not await verify_password_async(payload.current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")

    user.password_hash = await hash_password_async(payload.new_password)
    user.updated_at = utcnow()
    await user.save()
    logger.info(f"Password changed for user id={user.id}")
    return {"success": True}


@wrap_unexpected("Failed to deactivate user")
async def deactivate_user(user_id: str) -> dict:
    user = await get_user(user_id)
    user.is_active = False
    user.updated_at = utcnow()
    await user.save()
    logger.info(f"User deactivated id={user.id}")
    return {"success": True}
