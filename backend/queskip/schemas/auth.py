"""Authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from queskip.core.rbac import UserRole
from queskip.schemas.base import CamelModel

PHONE_PATTERN = r"^\+?[\d\s\-\(\)]{10,}$"


class RegisterRequest(CamelModel):
    """Registration request body."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50, pattern=PHONE_PATTERN)


class LoginRequest(CamelModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(CamelModel):
    """User response schema."""

    id: str
    email: str
    full_name: str
    phone_number: Optional[str] = None
    role: UserRole
    business_id: Optional[str] = None
    is_active: bool
    created_at: datetime


class AuthResponse(CamelModel):
    """Tokens issued on register/login."""

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"


class LogoutRequest(CamelModel):
    """Optionally revoke the refresh token along with the access token."""

    refresh_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    """Partial profile update; omitted fields are left alone."""

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50, pattern=PHONE_PATTERN)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=6, max_length=128)
