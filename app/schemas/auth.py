from datetime import datetime
from typing import Literal
from pydantic import EmailStr, Field, field_validator, model_validator

from app.models.user import UserRole
from app.schemas.common import CamelModel

PHONE_PATTERN = r"^\+?[\d\s\-()]+$"


class RegisterRequest(CamelModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(pattern=PHONE_PATTERN)
    password: str = Field(min_length=6)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class EmailRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class VerifyOtpRequest(EmailRequest):
    otp: str = Field(pattern=r"^\d{6}$")


class LoginRequest(EmailRequest):
    password: str = Field(min_length=1)


class ProfileUpdate(CamelModel):
    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    preferred_language: Literal["en", "es", "ca", "ar"] | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password != self.new_password:
            raise ValueError("Password confirmation does not match")
        return self


class ResetPasswordRequest(EmailRequest):
    reset_token: str = Field(min_length=1)
    new_password: str = Field(min_length=6)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password != self.new_password:
            raise ValueError("Password confirmation does not match")
        return self


class UserOut(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    avatar: str | None = None
    role: UserRole
    email_verified: bool
    phone_verified: bool
    preferred_language: str
    last_login_at: datetime | None = None
    created_at: datetime | None = None
