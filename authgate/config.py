from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List
import os


class Settings(BaseSettings):
    """Global app settings loaded from environment.
    - Keep defaults light for dev.
    - Override via .env or real env vars.
    """

    APP_NAME: str = "authgate"
    # development | staging | production
    APP_ENV: str = "development"
    APP_DEBUG: bool = False

    MONGODB_URI: str = "mongodb://localhost:27017/authgate"

    # Session (JWT) settings
    AUTH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    SESSION_MAX_AGE_MINUTES: int = 60
    SESSION_COOKIE_NAME: str = "authgate_session"
    SESSION_COOKIE_SECURE: bool = False

    # OTP settings; OTP_ENV=development stores OTP_DEV_CODE instead of a random code
    OTP_ENV: str = "production"
    OTP_DEV_CODE: str = "123456"
    OTP_TTL_SECONDS: int = 300
    OTP_MAX_RESEND_ATTEMPTS: int = 5

    # Fallback credential for OTP-only accounts; disabled when unset
    DEFAULT_PASSWORD: str | None = None

    # SMS gateway
    SMS_BASE_URL: str | None = None
    SMS_API_KEY: str | None = None
    SMS_TIMEOUT_SECONDS: float = 10.0

    # Raw CORS string from env (comma-separated); parsed via cors_origins property
    CORS_ORIGINS: str | None = None

    RATE_LIMIT_ENABLED: bool = True
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def cors_origins(self) -> List[str]:
        """Return CORS origins as a list, parsing comma-separated env string."""
        raw = self.CORS_ORIGINS or os.getenv("CORS_ORIGINS", "") or ""
        return [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() == "development"

    @property
    def uses_fixed_otp(self) -> bool:
        return self.OTP_ENV.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
