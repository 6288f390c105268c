from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime, timezone

from authgate.constants import Gender, Role


class User(Document):
    """Registered account (USER / ADMIN / SUPER_ADMIN).

    - Users sign in with mobile number + OTP.
    - Admins sign in with email + password.
    - Accounts are never deleted; ``is_active=False`` is terminal.
    """

    name: str | None = None
    # Stored case-folded; uniqueness checked in the service since it is optional
    email: str | None = None
    email_verified: datetime | None = None
    mobile_number: Indexed(str, unique=True)
    gender: Gender | None = None
    address: str | None = None
    image: str | None = None
    role: Role = Role.USER

    password_hash: str | None = None

    is_verified_mobile_number: bool = False
    is_active: bool = True

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_login_at: datetime | None = None

    class Settings:
        name = "users"
