"""
User schemas for API request/response validation.
Separates internal models from API contracts using Pydantic.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from alphasource.models.user import UserRole
from alphasource.schemas.base import CamelModel

PASSWORD_MIN_LENGTH = 6
BCRYPT_MAX_BYTES = 72


class SignupRequest(CamelModel):
    """Schema for password signup."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Bcrypt-compatible hashes cap at 72 bytes."""
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"must be at most {BCRYPT_MAX_BYTES} bytes")
        return v


class SessionUser(CamelModel):
    """The identity summary returned by signup and login."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    email_verified: bool


class UserResponse(CamelModel):
    """
    Full user profile for the user themselves and for owner views.
    Excludes password hash, TOTP secret and backup codes.
    """

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: UserRole
    is_admin: bool
    is_banned: bool
    banned_reason: Optional[str] = None
    email_verified: bool
    email_verified_at: Optional[datetime] = None
    two_factor_enabled: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    profile_image_url: Optional[str] = Field(default=None, max_length=2048)
