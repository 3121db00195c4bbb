"""Pydantic schemas for request/response validation."""

from alphasource.schemas.auth import (
    CurrentUserResponse,
    FederatedLoginRequest,
    LoginRequest,
    LoginResponse,
    SignupResponse,
    VerifyEmailRequest,
)
from alphasource.schemas.base import CamelModel, SuccessResponse
from alphasource.schemas.owner import (
    AuditLogEntry,
    AuditLogPage,
    BanRequest,
    RoleChangeRequest,
    SiteSettings,
    SiteSettingsUpdate,
    UserListResponse,
)
from alphasource.schemas.two_factor import TwoFactorCodeRequest, TwoFactorSetupResponse
from alphasource.schemas.user import ProfileUpdate, SessionUser, SignupRequest, UserResponse

__all__ = [
    "AuditLogEntry",
    "AuditLogPage",
    "BanRequest",
    "CamelModel",
    "CurrentUserResponse",
    "FederatedLoginRequest",
    "LoginRequest",
    "LoginResponse",
    "ProfileUpdate",
    "RoleChangeRequest",
    "SessionUser",
    "SignupRequest",
    "SignupResponse",
    "SiteSettings",
    "SiteSettingsUpdate",
    "SuccessResponse",
    "TwoFactorCodeRequest",
    "TwoFactorSetupResponse",
    "UserListResponse",
    "UserResponse",
]
