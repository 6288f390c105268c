import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext

from authgate.config import get_settings
from authgate.constants import ADMIN_ROLES, AccessLevel, Role
from authgate.errors import ForbiddenError, UnauthorizedError
from authgate.schemas import SessionUser

settings = get_settings()

# Swagger only; clients may use the cookie set by /auth/* instead.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/admin-login", auto_error=False)

# ------------------------ Password hashing helpers ------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Returns False when there is no hash to check against."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # malformed / unknown hash format
        return False


async def hash_password_async(password: str) -> str:
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str | None) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)


# ------------------------ Session token helpers ------------------------


def session_lifetime() -> timedelta:
    return timedelta(minutes=settings.SESSION_MAX_AGE_MINUTES)


def create_session_token(
    user: SessionUser, expires_delta: Optional[timedelta] = None
) -> tuple[str, datetime]:
    """Mint a signed, stateless session token. Returns (token, expires_at)."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or session_lifetime())
    to_encode = {
        "sub": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "mobile_number": user.mobile_number,
        "iat": now,
        "exp": expire,
        "type": "session",
    }
    token = jwt.encode(to_encode, settings.AUTH_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def decode_session_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token, settings.AUTH_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if payload.get("type") != "session" or not payload.get("sub"):
        raise UnauthorizedError("Invalid token")
    return payload


def session_from_claims(payload: dict) -> SessionUser:
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise UnauthorizedError("Invalid token")
    return SessionUser(
        id=payload["sub"],
        name=payload.get("name") or "",
        email=payload.get("email") or "",
        role=role,
        mobile_number=payload.get("mobile_number") or "",
    )


def read_token(request: Request) -> str | None:
    """Bearer header wins over the session cookie."""
    auth_header = request.headers.get("authorization") or ""
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def session_from_request(request: Request) -> SessionUser | None:
    """Session for the request or None; never raises."""
    token = read_token(request)
    if not token:
        return None
    try:
        return session_from_claims(decode_session_token(token))
    except UnauthorizedError:
        return None


def set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(session_lifetime().total_seconds()),
        expires=expires_at,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


def needs_renewal(payload: dict, now: datetime | None = None) -> bool:
    """True once more than half of the token lifetime has elapsed."""
    now = now or datetime.now(timezone.utc)
    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    return expires_at - now < session_lifetime() / 2


async def get_optional_session(
    request: Request,
    response: Response,
    _bearer: str | None = Depends(oauth2_scheme),
) -> SessionUser | None:
    """Decode the caller's session and renew the cookie when it is half spent."""
    token = read_token(request)
    if not token:
        return None
    payload = decode_session_token(token)
    session = session_from_claims(payload)
    if needs_renewal(payload):
        new_token, expires_at = create_session_token(session)
        set_session_cookie(response, new_token, expires_at)
    return session


async def require_session(
    session: SessionUser | None = Depends(get_optional_session),
) -> SessionUser:
    if session is None:
        raise UnauthorizedError(headers={"WWW-Authenticate": "Bearer"})
    return session


# ------------------------ Authorization guards ------------------------

Guard = Callable[[SessionUser, Request], None]


def is_admin(session: SessionUser) -> bool:
    return session.role in ADMIN_ROLES


def admin_guard(session: SessionUser, request: Request) -> None:
    if not is_admin(session):
        raise ForbiddenError("Admin access required")


def super_admin_guard(session: SessionUser, request: Request) -> None:
    if session.role != Role.SUPER_ADMIN:
        raise ForbiddenError("Super admin access required")


def owner_or_admin_guard(session: SessionUser, request: Request) -> None:
    target_user_id = request.path_params.get("user_id")
    if target_user_id and not is_admin(session) and session.id != target_user_id:
        raise ForbiddenError("Access denied")


def guard_chain(*guards: Guard) -> Callable:
    """FastAPI dependency running the guards in order after the session check.
    Usage: Depends(guard_chain(admin_guard))
    """

    async def checker(
        request: Request, session: SessionUser = Depends(require_session)
    ) -> SessionUser:
        for guard in guards:
            guard(session, request)
        return session

    return checker


require_admin = guard_chain(admin_guard)
require_super_admin = guard_chain(super_admin_guard)
require_owner_or_admin = guard_chain(owner_or_admin_guard)


# ------------------------ Route classification ------------------------

# First match wins; unlisted paths need a session.
ROUTE_ACCESS: list[tuple[re.Pattern, AccessLevel]] = [
    (re.compile(r"^/(healthz|readyz)$"), AccessLevel.PUBLIC),
    (re.compile(r"^/(docs|redoc|openapi\.json)(/.*)?$"), AccessLevel.PUBLIC),
    (re.compile(r"^/auth(/.*)?$"), AccessLevel.PUBLIC),
    (re.compile(r"^/otp/cleanup-expired$"), AccessLevel.ADMIN),
    (re.compile(r"^/otp/(send|verify|resend)$"), AccessLevel.PUBLIC),
    (
        re.compile(r"^/user/(initiate-login|verify-login-otp|register|is-registered)$"),
        AccessLevel.PUBLIC,
    ),
]


def access_level_for(path: str) -> AccessLevel:
    for pattern, level in ROUTE_ACCESS:
        if pattern.match(path):
            return level
    return AccessLevel.AUTHENTICATED


def check_route_access(path: str, session: SessionUser | None) -> None:
    """Raise if the session may not reach ``path``."""
    level = access_level_for(path)
    if level == AccessLevel.PUBLIC:
        return
    if session is None:
        raise UnauthorizedError()
    if level == AccessLevel.ADMIN and not is_admin(session):
        raise ForbiddenError("Admin access required")
