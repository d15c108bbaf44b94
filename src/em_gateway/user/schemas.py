"""Request/response schemas for registration, login and token refresh."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        if not _LETTER.search(v) or not _DIGIT.search(v):
            raise ValueError("Password must contain at least one letter and one digit")
        return v


class LoginRequest(BaseModel):
    username: str = Field(..., max_length=64)
    password: str = Field(..., max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    """Public profile returned at login; sellers see their verification state."""

    user_id: str
    username: str
    email: str
    role: str
    verified: bool


class RegisterResponse(BaseModel):
    user_id: str
    username: str
    email: str
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int


class MeResponse(UserInfo):
    balance: int
    created_at: str
