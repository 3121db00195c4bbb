"""
Owner dashboard schemas: role changes, bans, audit log and site settings.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from alphasource.schemas.base import CamelModel
from alphasource.schemas.user import UserResponse


class RoleChangeRequest(CamelModel):
    # Ownership is claimed, never assigned.
    role: Literal["user", "staff"]


class BanRequest(CamelModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class UserListResponse(CamelModel):
    users: List[UserResponse]


class AuditLogEntry(CamelModel):
    id: int
    actor_id: str
    actor_email: Optional[str] = None
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime


class AuditLogPage(CamelModel):
    logs: List[AuditLogEntry]
    total: int
    limit: int
    offset: int


class SiteSettings(CamelModel):
    """Known settings with their defaults."""

    site_name: str = "Alpha Source"
    submissions_open: bool = True
    require_verified_email_for_submissions: bool = True
    maintenance_message: Optional[str] = None


class SiteSettingsUpdate(CamelModel):
    site_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    submissions_open: Optional[bool] = None
    require_verified_email_for_submissions: Optional[bool] = None
    maintenance_message: Optional[str] = Field(default=None, max_length=500)

    # Omit a key to leave it alone. Only the maintenance message can be cleared.
    @field_validator("site_name", "submissions_open", "require_verified_email_for_submissions")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("must not be null")
        return v
