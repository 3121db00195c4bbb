"""
Audit log model. Append-only record of privileged actions.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import event
from sqlmodel import JSON, Column, Field, SQLModel

from alphasource.core.timeutils import utc_now


class AuditAction:
    """Known action names. Collaborators may record others."""

    CLAIM_OWNER = "claim_owner"
    CHANGE_ROLE = "change_role"
    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    UPDATE_SETTINGS = "update_settings"
    APPROVE_CODE = "approve_code"
    REJECT_CODE = "reject_code"
    DELETE_CODE = "delete_code"
    APPROVE_ADVERTISEMENT = "approve_advertisement"
    REJECT_ADVERTISEMENT = "reject_advertisement"
    DELETE_ADVERTISEMENT = "delete_advertisement"


class AuditLog(SQLModel, table=True):
    """Who did what, to which target, from where. Never updated or deleted."""

    __tablename__ = "audit_logs"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: str = Field(index=True, max_length=36)
    actor_email: Optional[str] = Field(default=None, max_length=255)
    action: str = Field(index=True, max_length=64)
    target_type: str = Field(max_length=64)
    target_id: Optional[str] = Field(default=None, max_length=64)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    ip_address: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utc_now, index=True)


@event.listens_for(AuditLog, "before_update")
def _prevent_audit_log_updates(mapper: Any, connection: Any, target: AuditLog) -> None:
    raise ValueError("Audit log entries are immutable and cannot be updated.")


@event.listens_for(AuditLog, "before_delete")
def _prevent_audit_log_deletes(mapper: Any, connection: Any, target: AuditLog) -> None:
    raise ValueError("Audit log entries cannot be deleted.")
