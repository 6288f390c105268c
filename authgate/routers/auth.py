from typing import Optional

from fastapi import APIRouter, Body, Request, Response

from authgate.rate_limit import limiter
from authgate.schemas import SessionOut, SessionUser, SuccessOut
from authgate.security import clear_session_cookie, session_from_request, set_session_cookie
from authgate.services import auth_service
from authgate.utils.logger import get_logger

logger = get_logger("auth.router")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/admin-login", response_model=SessionOut)
@limiter.limit("10/minute")
async def route_admin_login(
    request: Request, response: Response, credentials: dict = Body(...)
):
    """Admin sign-in (email + password). Sets the session cookie on success."""
    session = await auth_service.admin_login(credentials)
    set_session_cookie(response, session.access_token, session.expires_at)
    return session


@router.post("/user-login", response_model=SessionOut)
@limiter.limit("10/minute")
async def route_user_login(
    request: Request, response: Response, credentials: dict = Body(...)
):
    """User sign-in (mobile number + OTP). Sets the session cookie on success."""
    session = await auth_service.user_login(credentials)
    set_session_cookie(response, session.access_token, session.expires_at)
    return session


@router.post("/logout", response_model=SuccessOut)
async def route_logout(response: Response):
    clear_session_cookie(response)
    return SuccessOut()


@router.get("/session", response_model=Optional[SessionUser])
async def route_session(request: Request):
    """Claims of the current session, or null."""
    return session_from_request(request)
