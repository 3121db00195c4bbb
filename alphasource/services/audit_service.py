"""
Audit log service. Append-only writes, paginated newest-first reads.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from alphasource.core.logging import get_logger
from alphasource.models.audit_log import AuditLog
from alphasource.models.user import User

logger = get_logger(__name__)

MAX_PAGE_SIZE = 200


class AuditService:
    """Service class for audit log operations."""

    @staticmethod
    def record(
        session: Session,
        actor: User,
        action: str,
        target_type: str,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit row for a privileged action.

        Fire-and-forget: a failed write is logged and rolled back but never
        undoes or fails the action it describes.

        Args:
            session: Database session
            actor: The user who performed the action
            action: Action name, e.g. ``change_role``
            target_type: Kind of entity acted on, e.g. ``user``
            target_id: ID of the entity acted on
            details: Structured payload
            ip_address: Client address of the request

        Returns:
            The stored entry, or None if the write failed
        """
        entry = AuditLog(
            actor_id=actor.id,
            actor_email=actor.email,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
            ip_address=ip_address,
        )
        try:
            session.add(entry)
            session.commit()
            session.refresh(entry)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to write audit log entry {action} by {actor.id}: {e}")
            return None

        logger.info(f"Audit: {action} on {target_type} {target_id} by {actor.id}")
        return entry

    @staticmethod
    def list(session: Session, limit: int = 50, offset: int = 0) -> Tuple[List[AuditLog], int]:
        """
        Page through the log, newest first.

        Returns:
            (entries, total number of entries)
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        statement = (
            select(AuditLog)
            .order_by(col(AuditLog.created_at).desc(), col(AuditLog.id).desc())
            .offset(offset)
            .limit(limit)
        )
        entries = list(session.exec(statement).all())
        total = session.exec(select(func.count()).select_from(AuditLog)).one()
        return entries, int(total)
