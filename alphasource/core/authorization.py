"""
Authorization predicates.

Each predicate is a pure function of the session identity and the user record
fetched for this request, returning a ``Decision``. They are layered from
weakest to strongest; every stronger one includes the checks of the weaker.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from fastapi import status

from alphasource.core.security import Identity
from alphasource.models.user import PRIVILEGED_ROLES, User, UserRole


@dataclass(frozen=True)
class Decision:
    allowed: bool
    status_code: int = status.HTTP_200_OK
    error_code: Optional[str] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


ALLOW = Decision(allowed=True)

Predicate = Callable[[Optional[Identity], Optional[User]], Decision]


def _deny_unauthenticated() -> Decision:
    return Decision(
        allowed=False,
        status_code=status.HTTP_401_UNAUTHORIZED,
        error_code="UNAUTHORIZED",
        reason="Authentication required",
    )


def _deny_forbidden(reason: str, error_code: str = "FORBIDDEN", **details: Any) -> Decision:
    return Decision(
        allowed=False,
        status_code=status.HTTP_403_FORBIDDEN,
        error_code=error_code,
        reason=reason,
        details=details,
    )


def is_authenticated(identity: Optional[Identity], user: Optional[User]) -> Decision:
    """A live, unbanned account matches the session identity."""
    if identity is None or user is None or user.id != identity.user_id:
        return _deny_unauthenticated()
    if user.is_banned:
        return _deny_forbidden("Your account has been banned", "BANNED", bannedReason=user.banned_reason)
    return ALLOW


def is_email_verified(identity: Optional[Identity], user: Optional[User]) -> Decision:
    decision = is_authenticated(identity, user)
    if not decision.allowed or user is None:
        return decision
    if user.email_verified_at is None:
        return _deny_forbidden("Please verify your email address first", "EMAIL_NOT_VERIFIED")
    return ALLOW


def is_staff_or_owner(identity: Optional[Identity], user: Optional[User]) -> Decision:
    decision = is_authenticated(identity, user)
    if not decision.allowed or user is None:
        return decision
    if user.role not in PRIVILEGED_ROLES:
        return _deny_forbidden("Staff access required")
    return ALLOW


# Legacy name: "admin" covers both staff and owner.
is_admin = is_staff_or_owner


def is_owner(identity: Optional[Identity], user: Optional[User]) -> Decision:
    decision = is_authenticated(identity, user)
    if not decision.allowed or user is None:
        return decision
    if user.role != UserRole.OWNER:
        return _deny_forbidden("Owner access required")
    return ALLOW
