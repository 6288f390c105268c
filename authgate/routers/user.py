from fastapi import APIRouter, Depends, Query, Request, Response

from authgate.rate_limit import limiter
from authgate.schemas import (
    LOGIN_MOBILE_PATTERN,
    BasicUserOut,
    InitiateLoginOut,
    LoginMobileIn,
    RegistrationIn,
    SessionUser,
    SuccessOut,
    UpdatePasswordIn,
    UpdateProfileIn,
    UserOut,
    VerifyLoginOTPIn,
    VerifyLoginOut,
)
from authgate.security import (
    clear_session_cookie,
    require_owner_or_admin,
    require_session,
    require_super_admin,
)
from authgate.services import user_service

router = APIRouter(prefix="/user", tags=["user"])


@router.post("/initiate-login", response_model=InitiateLoginOut)
@limiter.limit("5/minute")
async def route_initiate_login(request: Request, payload: LoginMobileIn):
    """Send a LOGIN code; unknown numbers get a placeholder account first."""
    return await user_service.initiate_login(payload.mobile_number)


@router.post("/verify-login-otp", response_model=VerifyLoginOut)
@limiter.limit("10/minute")
async def route_verify_login_otp(request: Request, payload: VerifyLoginOTPIn):
    return await user_service.verify_login_otp(payload.mobile_number, payload.otp)


@router.post("/register", response_model=BasicUserOut, status_code=201)
@limiter.limit("5/minute")
async def route_register(request: Request, payload: RegistrationIn):
    return await user_service.create_user(payload)


@router.get("/is-registered", response_model=bool)
async def route_is_registered(
    mobile_number: str = Query(..., pattern=LOGIN_MOBILE_PATTERN),
):
    return await user_service.is_user_registered(mobile_number)


@router.get("/me", response_model=UserOut)
async def route_me(session: SessionUser = Depends(require_session)):
    """Current user as stored (not the session claims)."""
    return await user_service.get_me(session)


@router.put("/me", response_model=UserOut)
async def route_update_me(
    payload: UpdateProfileIn, session: SessionUser = Depends(require_session)
):
    return await user_service.update_profile(session.id, payload)


@router.put("/me/password", response_model=SuccessOut)
async def route_update_password(
    payload: UpdatePasswordIn, session: SessionUser = Depends(require_session)
):
    return await user_service.update_password(session.id, payload)


@router.post("/me/deactivate", response_model=SuccessOut)
async def route_deactivate_me(
    response: Response, session: SessionUser = Depends(require_session)
):
    result = await user_service.deactivate_user(session.id)
    clear_session_cookie(response)
    return result


@router.get("/{user_id}", response_model=UserOut)
async def route_get_user(
    user_id: str, session: SessionUser = Depends(require_owner_or_admin)
):
    """Owner or admin only."""
    return user_service.to_user_out(await user_service.get_user(user_id))


@router.post("/{user_id}/deactivate", response_model=SuccessOut)
async def route_deactivate_user(
    user_id: str, session: SessionUser = Depends(require_super_admin)
):
    return await user_service.deactivate_user(user_id)
