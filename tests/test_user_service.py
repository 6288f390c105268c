from datetime import timedelta

import pytest

from authgate.constants import Gender, OtpReason, Role
from authgate.errors import (
    BadRequestError,
    ConflictError,
    ExpiredCodeError,
    ForbiddenError,
    InvalidCodeError,
    NotFoundError,
    UnauthorizedError,
)
from authgate.models import OneTimeCode, User
from authgate.schemas import (
    RegistrationIn,
    SessionUser,
    UpdatePasswordIn,
    UpdateProfileIn,
)
from authgate.security import verify_password
from authgate.services import otp_service, user_service
from authgate.utils.clock import for_query, utcnow

MOBILE = "9876543210"


def registration(**overrides) -> RegistrationIn:
    data = {
        "mobile_number": MOBILE,
        "name": "Asha Rao",
        "email": "Asha@Example.com",
        "gender": "FEMALE",
        "address": "12 MG Road",
    }
    data.update(overrides)
    return RegistrationIn(**data)


async def test_is_user_registered_before_and_after_registration():
    assert await user_service.is_user_registered(MOBILE) is False
    await user_service.create_user(registration())
    assert await user_service.is_user_registered(MOBILE) is True


async def test_create_user_defaults():
    created = await user_service.create_user(registration())

    user = await User.get(created.id)
    assert created.role == Role.USER
    assert created.is_verified_mobile_number is False
    assert user.email == "asha@example.com"
    assert user.gender == Gender.FEMALE
    assert user.email_verified is not None
    assert user.is_active is True
    # no DEFAULT_PASSWORD configured
    assert user.password_hash is None


async def test_create_user_with_default_password(settings, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_PASSWORD", "Fallback#2024")

    created = await user_service.create_user(registration())

    user = await User.get(created.id)
    assert user.password_hash and user.password_hash.startswith("$argon2")
    assert verify_password("Fallback#2024", user.password_hash)


async def test_create_user_duplicate_mobile_conflicts():
    await user_service.create_user(registration())

    with pytest.raises(ConflictError) as exc:
        await user_service.create_user(registration(email="other@example.com"))
    assert "mobile number" in exc.value.detail


async def test_create_user_duplicate_email_conflicts_case_insensitively():
    await user_service.create_user(registration())

    with pytest.raises(ConflictError) as exc:
        await user_service.create_user(
            registration(mobile_number="9123456780", email="ASHA@example.com")
        )
    assert "email" in exc.value.detail


async def test_users_without_email_do_not_conflict():
    await user_service.create_user(registration(email=None))
    await user_service.create_user(registration(mobile_number="9123456780", email=None))

    assert await User.find(User.email == None).count() == 2  # noqa: E711


async def test_initiate_login_creates_placeholder_user():
    result = await user_service.initiate_login(MOBILE)

    assert result["success"] is True
    assert result["user"].name == "User_3210"
    assert result["user"].is_verified_mobile_number is False
    otp = await OneTimeCode.get(result["otp_id"])
    assert otp.reason == OtpReason.LOGIN
    assert otp.code == "123456"
    assert await user_service.is_user_registered(MOBILE) is True


async def test_initiate_login_reuses_existing_user(make_user):
    user = await make_user(MOBILE, name="Existing")

    result = await user_service.initiate_login(MOBILE)

    assert result["user"].id == str(user.id)
    assert result["user"].name == "Existing"
    assert await User.find(User.mobile_number == MOBILE).count() == 1


async def test_initiate_login_clears_previous_login_code():
    first = await user_service.initiate_login(MOBILE)
    second = await user_service.initiate_login(MOBILE)

    assert await OneTimeCode.get(first["otp_id"]) is None
    assert await OneTimeCode.get(second["otp_id"]) is not None


async def test_initiate_login_rejects_inactive_account(make_user):
    await make_user(MOBILE, is_active=False)

    with pytest.raises(ForbiddenError):
        await user_service.initiate_login(MOBILE)


async def test_verify_login_otp_marks_user_verified():
    started = await user_service.initiate_login(MOBILE)

    result = await user_service.verify_login_otp(MOBILE, "123456")

    assert result["success"] is True
    assert result["user"].is_verified_mobile_number is True
    user = await User.get(result["user"].id)
    assert user.last_login_at is not None
    # used code cleaned up
    assert await OneTimeCode.get(started["otp_id"]) is None


async def test_verify_login_otp_cannot_replay():
    await user_service.initiate_login(MOBILE)
    await user_service.verify_login_otp(MOBILE, "123456")

    with pytest.raises(NotFoundError):
        await user_service.verify_login_otp(MOBILE, "123456")


async def test_verify_login_otp_survives_cleanup_failure(monkeypatch):
    await user_service.initiate_login(MOBILE)

    async def broken_delete(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(otp_service, "delete_codes", broken_delete)
    result = await user_service.verify_login_otp(MOBILE, "123456")
    assert result["success"] is True


async def test_verify_login_otp_unknown_user():
    with pytest.raises(NotFoundError):
        await user_service.verify_login_otp(MOBILE, "123456")


async def test_verify_login_otp_without_code(make_user):
    await make_user(MOBILE)
    with pytest.raises(NotFoundError):
        await user_service.verify_login_otp(MOBILE, "123456")


async def test_verify_login_otp_wrong_code():
    await user_service.initiate_login(MOBILE)

    with pytest.raises(InvalidCodeError) as exc:
        await user_service.verify_login_otp(MOBILE, "000000")
    assert isinstance(exc.value, UnauthorizedError)


async def test_verify_login_otp_expired_code():
    started = await user_service.initiate_login(MOBILE)
    otp = await OneTimeCode.get(started["otp_id"])
    otp.expires_at = for_query(utcnow() - timedelta(seconds=1))
    await otp.save()

    with pytest.raises(ExpiredCodeError) as exc:
        await user_service.verify_login_otp(MOBILE, "123456")
    assert isinstance(exc.value, BadRequestError)


async def test_update_profile_sets_fields_and_stamps_email(make_user):
    user = await make_user(MOBILE)

    updated = await user_service.update_profile(
        str(user.id),
        UpdateProfileIn(name="New Name", email="New@Example.com", gender="OTHER"),
    )

    assert updated.name == "New Name"
    assert updated.email == "new@example.com"
    assert updated.gender == Gender.OTHER
    assert updated.email_verified is not None
    assert updated.address is None


async def test_update_profile_email_conflict(make_user):
    await make_user("9123456780", email="taken@example.com")
    user = await make_user(MOBILE)

    with pytest.raises(ConflictError):
        await user_service.update_profile(str(user.id), UpdateProfileIn(email="taken@example.com"))


async def test_update_profile_keeps_own_email(make_user):
    user = await make_user(MOBILE, email="mine@example.com")

    updated = await user_service.update_profile(str(user.id), UpdateProfileIn(email="mine@example.com"))
    assert updated.email == "mine@example.com"


async def test_update_password_wrong_current_keeps_hash(make_user):
    user = await make_user(MOBILE, password="OldPass123")
    original_hash = user.password_hash

    with pytest.raises(UnauthorizedError):
        await user_service.update_password(
            str(user.id),
            UpdatePasswordIn(current_password="WrongPass1", new_password="NewPass123"),
        )
    assert (await User.get(user.id)).password_hash == original_hash


async def test_update_password_without_password_set(make_user):
    user = await make_user(MOBILE)

    with pytest.raises(BadRequestError):
        await user_service.update_password(
            str(user.id),
            UpdatePasswordIn(current_password="anything", new_password="NewPass123"),
        )


async def test_update_password_replaces_hash(make_user):
    user = await make_user(MOBILE, password="OldPass123")

    result = await user_service.update_password(
        str(user.id),
        UpdatePasswordIn(current_password="OldPass123", new_password="NewPass123"),
    )

    assert result == {"success": True}
    stored = await User.get(user.id)
    assert verify_password("NewPass123", stored.password_hash)
    assert not verify_password("OldPass123", stored.password_hash)


async def test_deactivate_user(make_user):
    user = await make_user(MOBILE)

    assert await user_service.deactivate_user(str(user.id)) == {"success": True}
    assert (await User.get(user.id)).is_active is False


async def test_get_me_for_missing_user():
    session = SessionUser(id="64b7f0c2a1b2c3d4e5f60718", role=Role.USER)
    with pytest.raises(NotFoundError):
        await user_service.get_me(session)


async def test_get_me_returns_full_projection(make_user):
    user = await make_user(MOBILE, email="me@example.com")
    session = SessionUser(id=str(user.id), role=Role.USER)

    me = await user_service.get_me(session)
    assert me.id == str(user.id)
    assert me.email == "me@example.com"
    assert me.is_active is True
