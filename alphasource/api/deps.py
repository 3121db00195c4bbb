"""
API dependencies for FastAPI dependency injection.
Provides the session cookie, the live user lookup and the route guards.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, Request, Response, status
from sqlmodel import Session

from alphasource.core import authorization
from alphasource.core.authorization import Decision, Predicate
from alphasource.core.config import settings
from alphasource.core.exceptions import AlphaSourceError, ForbiddenError, UnauthorizedError
from alphasource.core.logging import get_logger
from alphasource.core.security import Identity, create_session_token, decode_session_token
from alphasource.db.session import get_session
from alphasource.models.user import User
from alphasource.services.user_service import UserService

logger = get_logger(__name__)

SessionDep = Annotated[Session, Depends(get_session)]


def get_identity(request: Request) -> Optional[Identity]:
    """
    Read the identity bound to the session cookie.

    Returns:
        The identity, or None for anonymous requests and invalid cookies
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    return decode_session_token(token)


IdentityDep = Annotated[Optional[Identity], Depends(get_identity)]


def get_optional_user(session: SessionDep, identity: IdentityDep) -> Optional[User]:
    """
    Fetch the live user record for the session identity.
    Never cached across requests so role and ban changes apply immediately.
    """
    if identity is None:
        return None
    return UserService.get_by_id(session, identity.user_id)


OptionalUserDep = Annotated[Optional[User], Depends(get_optional_user)]


def _error_for(decision: Decision) -> AlphaSourceError:
    if decision.status_code == status.HTTP_401_UNAUTHORIZED:
        return UnauthorizedError(decision.reason or "Authentication required", decision.error_code)
    return ForbiddenError(decision.reason or "Forbidden", decision.error_code, decision.details)


def require(predicate: Predicate) -> Callable[..., User]:
    """
    Build a route guard from an authorization predicate.

    The guard returns the live user on success and also exposes it as
    ``request.state.user`` for handlers that stamp ownership on content.
    """

    def guard(request: Request, identity: IdentityDep, user: OptionalUserDep) -> User:
        decision = predicate(identity, user)
        if not decision.allowed or user is None:
            if identity is not None:
                logger.warning(
                    f"Access denied for user {identity.user_id} on {request.url.path}: {decision.error_code}",
                    extra={"user_id": identity.user_id},
                )
            raise _error_for(decision)
        request.state.user = user
        return user

    guard.__name__ = f"require_{predicate.__name__}"
    return guard


CurrentUser = Annotated[User, Depends(require(authorization.is_authenticated))]
VerifiedUser = Annotated[User, Depends(require(authorization.is_email_verified))]
StaffUser = Annotated[User, Depends(require(authorization.is_staff_or_owner))]
AdminUser = Annotated[User, Depends(require(authorization.is_admin))]
OwnerUser = Annotated[User, Depends(require(authorization.is_owner))]


def client_ip(request: Request) -> Optional[str]:
    """Client address, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def set_session_cookie(response: Response, identity: Identity) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=create_session_token(identity),
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
