"""Typed API errors.

Every business-rule failure is an ``HTTPException`` subclass so it travels
unchanged from the service layer to the client. ``code`` is the
machine-readable name rendered next to ``detail`` by the exception handler.
"""
import functools

from fastapi import HTTPException, status

from authgate.constants import (
    ACCOUNT_INACTIVE,
    ACCOUNT_NOT_FOUND,
    EXPIRED_OTP,
    INVALID_CREDENTIALS,
)
from authgate.utils.logger import get_logger

logger = get_logger("errors")


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"
    default_detail = "Bad request"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_detail = "Not authenticated"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Already exists"


class RateLimitedError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_detail = "Too many attempts"


class InternalError(AppError):
    pass


# ------------------------ OTP ------------------------


class InvalidCodeError(UnauthorizedError):
    code = "invalid_code"
    default_detail = "Invalid OTP"


class ExpiredCodeError(BadRequestError):
    code = "expired_code"
    default_detail = "OTP has expired. Please request a new OTP."


class CodeAlreadyUsedError(BadRequestError):
    code = "code_used"
    default_detail = "OTP has already been used"


class SmsDispatchError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "sms_failed"
    default_detail = "Failed to send OTP"


# ------------------------ Sign-in ------------------------


class SignInError(UnauthorizedError):
    code = INVALID_CREDENTIALS
    default_detail = "Invalid credentials provided"


class InvalidCredentialsError(SignInError):
    pass


class AccountNotFoundError(SignInError):
    code = ACCOUNT_NOT_FOUND
    default_detail = "Account not found"


class AccountInactiveError(SignInError):
    code = ACCOUNT_INACTIVE
    default_detail = "Account is inactive"


class ExpiredOTPError(SignInError):
    code = EXPIRED_OTP
    default_detail = "OTP has expired"


def wrap_unexpected(message: str):
    """Re-raise anything that is not an HTTPException as InternalError(message)."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception:
                logger.exception(f"{func.__name__} failed")
                raise InternalError(message)

        return wrapper

    return decorator
