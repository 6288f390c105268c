from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from starlette.requests import Request

from authgate.constants import AccessLevel, Role
from authgate.errors import ForbiddenError, UnauthorizedError
from authgate.schemas import SessionUser
from authgate.security import (
    access_level_for,
    admin_guard,
    check_route_access,
    create_session_token,
    decode_session_token,
    hash_password,
    needs_renewal,
    owner_or_admin_guard,
    session_from_claims,
    super_admin_guard,
    verify_password,
)

USER = SessionUser(id="u1", name="User", role=Role.USER, mobile_number="9876543210")
ADMIN = SessionUser(id="a1", name="Admin", email="a@example.com", role=Role.ADMIN)
ROOT = SessionUser(id="s1", name="Root", role=Role.SUPER_ADMIN)


def request_for(**path_params) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "headers": [], "path_params": path_params})


def test_password_hash_roundtrip():
    hashed = hash_password("NewPass123")
    assert hashed.startswith("$argon2")
    assert verify_password("NewPass123", hashed)
    assert not verify_password("newpass123", hashed)


@pytest.mark.parametrize("stored", [None, "", "not-a-hash"])
def test_verify_password_without_usable_hash(stored):
    assert verify_password("anything", stored) is False


def test_session_token_carries_claims():
    token, expires_at = create_session_token(ADMIN)

    claims = decode_session_token(token)
    assert claims["sub"] == "a1"
    assert claims["role"] == "ADMIN"
    assert claims["email"] == "a@example.com"
    assert session_from_claims(claims) == ADMIN
    assert expires_at - datetime.now(timezone.utc) <= timedelta(minutes=60)


def test_expired_token_rejected():
    token, _ = create_session_token(USER, expires_delta=timedelta(seconds=-5))
    with pytest.raises(UnauthorizedError):
        decode_session_token(token)


def test_token_signed_with_other_secret_rejected(settings):
    forged = jwt.encode(
        {"sub": "u1", "role": "ADMIN", "type": "session"},
        "other-secret",
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(UnauthorizedError):
        decode_session_token(forged)


def test_token_of_other_type_rejected(settings):
    token = jwt.encode(
        {"sub": "u1", "role": "USER", "type": "refresh"},
        settings.AUTH_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(UnauthorizedError):
        decode_session_token(token)


def test_needs_renewal_after_half_lifetime():
    now = datetime.now(timezone.utc)
    fresh = {"exp": (now + timedelta(minutes=55)).timestamp()}
    stale = {"exp": (now + timedelta(minutes=20)).timestamp()}
    assert needs_renewal(fresh, now) is False
    assert needs_renewal(stale, now) is True


@pytest.mark.parametrize(
    "path, level",
    [
        ("/healthz", AccessLevel.PUBLIC),
        ("/auth/user-login", AccessLevel.PUBLIC),
        ("/otp/send", AccessLevel.PUBLIC),
        ("/otp/cleanup-expired", AccessLevel.ADMIN),
        ("/user/initiate-login", AccessLevel.PUBLIC),
        ("/user/is-registered", AccessLevel.PUBLIC),
        ("/user/me", AccessLevel.AUTHENTICATED),
        ("/user/64b7f0c2a1b2c3d4e5f60718", AccessLevel.AUTHENTICATED),
        ("/user/64b7f0c2a1b2c3d4e5f60718/deactivate", AccessLevel.AUTHENTICATED),
        ("/dashboard", AccessLevel.AUTHENTICATED),
    ],
)
def test_route_classification(path, level):
    assert access_level_for(path) == level


def test_check_route_access():
    check_route_access("/otp/send", None)
    check_route_access("/user/me", USER)
    check_route_access("/otp/cleanup-expired", ROOT)

    with pytest.raises(UnauthorizedError):
        check_route_access("/user/me", None)
    with pytest.raises(UnauthorizedError):
        check_route_access("/otp/cleanup-expired", None)
    with pytest.raises(ForbiddenError):
        check_route_access("/otp/cleanup-expired", USER)


def test_admin_guard():
    admin_guard(ADMIN, request_for())
    admin_guard(ROOT, request_for())
    with pytest.raises(ForbiddenError):
        admin_guard(USER, request_for())


def test_super_admin_guard():
    super_admin_guard(ROOT, request_for())
    with pytest.raises(ForbiddenError):
        super_admin_guard(ADMIN, request_for())


def test_owner_or_admin_guard():
    owner_or_admin_guard(USER, request_for(user_id="u1"))
    owner_or_admin_guard(ADMIN, request_for(user_id="u1"))
    owner_or_admin_guard(USER, request_for())
    with pytest.raises(ForbiddenError):
        owner_or_admin_guard(USER, request_for(user_id="someone-else"))
