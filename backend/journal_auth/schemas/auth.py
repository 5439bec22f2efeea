from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def looks_like_email(value: str) -> bool:
    v = value.strip()
    return "@" in v and "." in v.split("@")[-1]


class EmailIn(BaseModel):
    email: str = Field(..., max_length=254, examples=["user@example.com"])

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        if not looks_like_email(value):
            raise ValueError("Invalid email")
        return value.strip().lower()


class RegisterIn(EmailIn):
    username: str | None = Field(default=None, max_length=64)
    password: str | None = Field(default=None, min_length=8, max_length=128)


class VerifyOTPIn(EmailIn):
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class LoginIn(EmailIn):
    password: str = Field(..., min_length=1, max_length=128)


class RefreshIn(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutIn(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordIn(EmailIn):
    pass


class ResetPasswordIn(EmailIn):
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=8, max_length=128)


class RequestOTPIn(EmailIn):
    purpose: Literal["register", "reset_password"]


class ChangePasswordIn(BaseModel):
    old_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class UserOut(BaseModel):
    id: UUID
    email: str
    username: str | None = None
    role: str
    is_active: bool
    is_verified: bool
    created_at: datetime


class SessionOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class AuthEventOut(BaseModel):
    event_type: str
    ip: str | None = None
    user_agent: str | None = None
    created_at: datetime
    meta: dict[str, Any] | None = None


class Envelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: Any = None


class ErrorOut(BaseModel):
    success: bool = False
    error: str
