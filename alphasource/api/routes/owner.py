"""
Owner-only routes: user management, audit log and site settings.
Every mutation here is recorded in the audit log.
"""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from alphasource.api.deps import OwnerUser, SessionDep, client_ip
from alphasource.models.user import UserRole
from alphasource.schemas.owner import (
    AuditLogEntry,
    AuditLogPage,
    BanRequest,
    RoleChangeRequest,
    SiteSettings,
    SiteSettingsUpdate,
    UserListResponse,
)
from alphasource.schemas.user import UserResponse
from alphasource.services.audit_service import MAX_PAGE_SIZE, AuditService
from alphasource.services.moderation_service import ModerationService
from alphasource.services.settings_service import SettingsService
from alphasource.services.user_service import UserService

router = APIRouter(prefix="/owner", tags=["owner"])


@router.get("/users", response_model=UserListResponse)
def list_users(owner: OwnerUser, session: SessionDep) -> UserListResponse:
    users = UserService.list_users(session)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])


@router.get("/staff", response_model=UserListResponse)
def list_staff(owner: OwnerUser, session: SessionDep) -> UserListResponse:
    users = UserService.get_staff_users(session)
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])


@router.post("/users/{user_id}/role", response_model=UserResponse)
def change_role(
    user_id: str,
    body: RoleChangeRequest,
    request: Request,
    owner: OwnerUser,
    session: SessionDep,
) -> UserResponse:
    """Promote a user to staff or demote staff to user."""
    updated = ModerationService.change_role(
        session, owner, user_id, UserRole(body.role), ip_address=client_ip(request)
    )
    return UserResponse.model_validate(updated)


@router.post("/users/{user_id}/ban", response_model=UserResponse)
def ban_user(
    user_id: str,
    body: BanRequest,
    request: Request,
    owner: OwnerUser,
    session: SessionDep,
) -> UserResponse:
    """Ban a user. Takes effect on their very next request."""
    updated = ModerationService.ban(session, owner, user_id, body.reason, ip_address=client_ip(request))
    return UserResponse.model_validate(updated)


@router.post("/users/{user_id}/unban", response_model=UserResponse)
def unban_user(
    user_id: str,
    request: Request,
    owner: OwnerUser,
    session: SessionDep,
) -> UserResponse:
    updated = ModerationService.unban(session, owner, user_id, ip_address=client_ip(request))
    return UserResponse.model_validate(updated)


@router.get("/audit-logs", response_model=AuditLogPage)
def list_audit_logs(
    owner: OwnerUser,
    session: SessionDep,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AuditLogPage:
    """Audit log entries, newest first."""
    entries, total = AuditService.list(session, limit=limit, offset=offset)
    return AuditLogPage(
        logs=[AuditLogEntry.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/settings", response_model=SiteSettings)
def get_settings(owner: OwnerUser, session: SessionDep) -> SiteSettings:
    return SettingsService.get(session)


@router.post("/settings", response_model=SiteSettings)
def update_settings(
    body: SiteSettingsUpdate,
    request: Request,
    owner: OwnerUser,
    session: SessionDep,
) -> SiteSettings:
    """Apply a partial settings update."""
    return SettingsService.update(session, owner, body, ip_address=client_ip(request))
