# app/schemas/auth.py
import re
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.schemas.common import CamelModel


def _check_password_policy(v: str) -> str:
    # 至少 8 碼，含大寫、小寫、數字
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one number")
    return v


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def _password_policy(cls, v: str) -> str:
        return _check_password_policy(v)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class EmailVerificationRequest(CamelModel):
    token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password_policy(cls, v: str) -> str:
        return _check_password_policy(v)


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthUser(CamelModel):
    id: int
    name: str
    email: str


class AuthResponse(CamelModel):
    user: AuthUser
    tokens: TokenPair


class ProfileUser(AuthUser):
    email_verified_at: Optional[datetime] = None
    created_at: datetime


class ProfileResponse(CamelModel):
    user: ProfileUser
