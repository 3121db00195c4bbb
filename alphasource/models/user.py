"""
User model with the three-tier role system and account security state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel

from alphasource.core.timeutils import utc_now


class UserRole(str, Enum):
    """User role enumeration for RBAC. Exactly one owner may exist."""

    OWNER = "owner"
    STAFF = "staff"
    USER = "user"


PRIVILEGED_ROLES = frozenset({UserRole.OWNER, UserRole.STAFF})


class User(SQLModel, table=True):
    """
    User model with authentication, role and security state.

    Attributes:
        id: Opaque stable identifier
        email: Unique, normalized (lowercased) email; null only for federated-only accounts
        password_hash: Password hash; null for federated-only accounts
        external_id: Federated identity subject, unique when present
        role: owner, staff or user
        is_banned / banned_reason: Ban state; reason present only while banned
        email_verified_at: Null until the address is verified
        two_factor_enabled / two_factor_secret: TOTP state; the secret is set
            during setup and only becomes active once confirmed
        last_login_at, created_at, updated_at: Timestamps
    """

    __tablename__ = "users"  # type: ignore

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=36)
    email: Optional[str] = Field(default=None, unique=True, index=True, max_length=255)
    password_hash: Optional[str] = None
    external_id: Optional[str] = Field(default=None, unique=True, index=True, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    profile_image_url: Optional[str] = Field(default=None, max_length=2048)

    role: UserRole = Field(default=UserRole.USER, index=True)
    is_banned: bool = Field(default=False)
    banned_reason: Optional[str] = None
    email_verified_at: Optional[datetime] = None

    two_factor_enabled: bool = Field(default=False)
    two_factor_secret: Optional[str] = Field(default=None, max_length=64)

    last_login_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_admin(self) -> bool:
        """Legacy boolean admin flag: staff and owner both count."""
        return self.role in PRIVILEGED_ROLES

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None


class BackupCode(SQLModel, table=True):
    """One single-use two-factor backup code, stored as a keyed hash."""

    __tablename__ = "backup_codes"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    code_hash: str = Field(max_length=64, index=True)
    created_at: datetime = Field(default_factory=utc_now)
