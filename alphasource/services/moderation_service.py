"""
Owner moderation of user accounts: role changes and bans.
Every successful change writes exactly one audit row.
"""

from typing import Optional

from sqlmodel import Session

from alphasource.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from alphasource.core.logging import get_logger
from alphasource.models.audit_log import AuditAction
from alphasource.models.user import User, UserRole
from alphasource.services.audit_service import AuditService
from alphasource.services.user_service import UserService

logger = get_logger(__name__)

ASSIGNABLE_ROLES = frozenset({UserRole.USER, UserRole.STAFF})


def _get_target(session: Session, actor: User, user_id: str) -> User:
    target = UserService.get_by_id(session, user_id)
    if target is None:
        raise NotFoundError("User not found")
    if target.id == actor.id:
        raise ForbiddenError("You cannot change your own account")
    if target.role == UserRole.OWNER:
        raise ForbiddenError("The owner account cannot be modified")
    return target


class ModerationService:
    """Service class for owner actions on other accounts."""

    @staticmethod
    def change_role(
        session: Session,
        actor: User,
        user_id: str,
        role: UserRole,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Set another user's role to ``user`` or ``staff``.

        Raises:
            ForbiddenError: For ``owner`` (only claimable), self-changes and the owner account
            NotFoundError: If the user does not exist
        """
        if role == UserRole.OWNER:
            raise ForbiddenError("Ownership cannot be assigned")
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(f"Unknown role: {role}")

        target = _get_target(session, actor, user_id)
        old_role = target.role
        updated = UserService.update_role(session, target.id, role)
        if updated is None:
            raise NotFoundError("User not found")

        AuditService.record(
            session,
            actor,
            AuditAction.CHANGE_ROLE,
            target_type="user",
            target_id=updated.id,
            details={"oldRole": old_role.value, "newRole": role.value},
            ip_address=ip_address,
        )
        logger.info(f"User {updated.id} role changed {old_role.value} -> {role.value} by {actor.id}")
        return updated

    @staticmethod
    def ban(
        session: Session,
        actor: User,
        user_id: str,
        reason: str,
        ip_address: Optional[str] = None,
    ) -> User:
        reason = reason.strip()
        if not reason:
            raise ValidationError("A ban reason is required")

        target = _get_target(session, actor, user_id)
        updated = UserService.update(session, target.id, is_banned=True, banned_reason=reason)
        if updated is None:
            raise NotFoundError("User not found")

        AuditService.record(
            session,
            actor,
            AuditAction.BAN_USER,
            target_type="user",
            target_id=updated.id,
            details={"reason": reason},
            ip_address=ip_address,
        )
        logger.info(f"User {updated.id} banned by {actor.id}")
        return updated

    @staticmethod
    def unban(
        session: Session,
        actor: User,
        user_id: str,
        ip_address: Optional[str] = None,
    ) -> User:
        target = _get_target(session, actor, user_id)
        previous_reason = target.banned_reason
        updated = UserService.update(session, target.id, is_banned=False, banned_reason=None)
        if updated is None:
            raise NotFoundError("User not found")

        AuditService.record(
            session,
            actor,
            AuditAction.UNBAN_USER,
            target_type="user",
            target_id=updated.id,
            details={"previousReason": previous_reason},
            ip_address=ip_address,
        )
        logger.info(f"User {updated.id} unbanned by {actor.id}")
        return updated
