from enum import Enum


class Role(str, Enum):
    """System roles for RBAC."""
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class OtpReason(str, Enum):
    """Purpose a one-time code was issued for."""
    LOGIN = "LOGIN"
    REGISTRATION = "REGISTRATION"
    PASSWORD_RESET = "PASSWORD_RESET"
    VERIFY_MOBILE = "VERIFY_MOBILE"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"
    PREFER_NOT_TO_SAY = "PREFER_NOT_TO_SAY"


class AccessLevel(str, Enum):
    """Route classes used by the route access table."""
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


# Sign-in error codes returned by /auth/admin-login and /auth/user-login
INVALID_CREDENTIALS = "invalid_credentials"
ACCOUNT_NOT_FOUND = "account_not_found"
ACCOUNT_INACTIVE = "account_inactive"
EXPIRED_OTP = "expired_otp"
