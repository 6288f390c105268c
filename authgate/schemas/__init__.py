from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional

from authgate.constants import Gender, OtpReason, Role

# ASCII digits only; \d would also accept other scripts
MOBILE_PATTERN = r"^[0-9]{10}$"
# Login-facing numbers: local format starting 6-9
LOGIN_MOBILE_PATTERN = r"^[6-9][0-9]{9}$"
OTP_PATTERN = r"^[0-9]{6}$"


class InputModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# -------------------- OTP Schemas --------------------


class OTPRequestIn(InputModel):
    """Body of otp.send / otp.resend."""

    mobile_number: str = Field(..., pattern=MOBILE_PATTERN)
    reason: OtpReason


class OTPVerifyIn(InputModel):
    otp_id: str = Field(..., min_length=1)
    otp: str = Field(..., pattern=OTP_PATTERN)


class OTPIdOut(BaseModel):
    id: str


class CleanupOut(BaseModel):
    deleted_count: int


class SuccessOut(BaseModel):
    success: bool = True


# -------------------- User Schemas --------------------


class LoginMobileIn(InputModel):
    mobile_number: str = Field(..., pattern=LOGIN_MOBILE_PATTERN)


class VerifyLoginOTPIn(LoginMobileIn):
    otp: str = Field(..., pattern=OTP_PATTERN)


class RegistrationIn(InputModel):
    mobile_number: str = Field(..., pattern=LOGIN_MOBILE_PATTERN)
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    gender: Gender
    address: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def fold_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class UpdateProfileIn(InputModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, min_length=1)

    @field_validator("email")
    @classmethod
    def fold_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class UpdatePasswordIn(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=64)


class LoginUserOut(BaseModel):
    """User fields returned by initiate-login."""

    id: str
    name: Optional[str] = None
    mobile_number: str
    is_verified_mobile_number: bool = False


class BasicUserOut(LoginUserOut):
    email: Optional[str] = None
    role: Role


class UserOut(BasicUserOut):
    gender: Optional[Gender] = None
    address: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    email_verified: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InitiateLoginOut(BaseModel):
    success: bool = True
    otp_id: str
    user: LoginUserOut


class VerifyLoginOut(BaseModel):
    success: bool = True
    user: BasicUserOut


# -------------------- Sign-in / Session Schemas --------------------


class AdminCredentials(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=64)

    @field_validator("email", mode="before")
    @classmethod
    def fold_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UserCredentials(InputModel):
    mobile_number: str = Field(..., pattern=LOGIN_MOBILE_PATTERN)
    otp: str = Field(..., pattern=OTP_PATTERN)


class SessionUser(BaseModel):
    """Claims carried by the session token."""

    id: str
    name: str = ""
    email: str = ""
    role: Role
    mobile_number: str = ""


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: SessionUser
