import time

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from authgate.config import get_settings
from authgate.database import close_db, init_db, ping_db
from authgate.errors import AppError
from authgate.rate_limit import limiter
from authgate.security import check_route_access, session_from_request
from authgate.utils.logger import get_logger

logger = get_logger("main")
settings = get_settings()

# Routers
from authgate.routers import auth as auth_router
from authgate.routers import otp as otp_router
from authgate.routers import user as user_router

app = FastAPI(
    title="authgate API",
    debug=settings.APP_DEBUG,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth_router.router)
app.include_router(otp_router.router)
app.include_router(user_router.router)


def error_body(status_code: int, detail, code: str | None = None) -> dict:
    return {"detail": detail, "status_code": status_code, "error": code}


# Error handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.detail, getattr(exc, "code", None)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()} - Path: {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(422, jsonable_encoder(exc.errors()), "validation_error"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc} - Path: {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(500, "Internal server error", "internal"),
    )


# Route access table; runs before routing so unknown sessions never reach handlers
@app.middleware("http")
async def enforce_route_access(request: Request, call_next):
    if request.method != "OPTIONS":
        try:
            check_route_access(request.url.path, session_from_request(request))
        except AppError as exc:
            logger.info(f"Route access denied ({exc.status_code}) - Path: {request.url.path}")
            return JSONResponse(
                status_code=exc.status_code,
                content=error_body(exc.status_code, exc.detail, exc.code),
                headers=exc.headers,
            )
    return await call_next(request)


# Middleware Logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.3f}s"
    )
    return response


# CORS (added last so it wraps everything, including access rejections)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/readyz")
async def readyz():
    if not await ping_db():
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ok", "database": "up"}


@app.on_event("startup")
async def on_startup():
    logger.info(f"Starting {settings.APP_NAME} (env={settings.APP_ENV})...")
    await init_db()
    logger.info("Database initialized")
    if settings.uses_fixed_otp:
        logger.warning("OTP_ENV=development: every OTP is the fixed development code")


@app.on_event("shutdown")
async def on_shutdown():
    close_db()
    logger.info("Shutting down application...")
