"""
Authentication routes: signup, login (password and two-factor), logout,
federated login, email verification and owner claim.
"""

from fastapi import APIRouter, Request, Response, status

from alphasource.api.deps import (
    CurrentUser,
    OptionalUserDep,
    SessionDep,
    clear_session_cookie,
    client_ip,
    set_session_cookie,
)
from alphasource.core.logging import get_logger
from alphasource.schemas.auth import (
    CurrentUserResponse,
    FederatedLoginRequest,
    LoginRequest,
    LoginResponse,
    SignupResponse,
    VerifyEmailRequest,
)
from alphasource.schemas.base import SuccessResponse
from alphasource.schemas.user import SessionUser, SignupRequest, UserResponse
from alphasource.services.auth_service import AuthService, LoginOutcome

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _finish_login(response: Response, outcome: LoginOutcome) -> LoginResponse:
    if outcome.identity is None:
        return LoginResponse(success=True, requires_two_factor=True, challenge_token=outcome.challenge_token)
    set_session_cookie(response, outcome.identity)
    return LoginResponse(success=True, user=SessionUser.model_validate(outcome.user))


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    session: SessionDep,
    response: Response,
) -> SignupResponse:
    """
    Register with email and password.

    The new user is logged in immediately; a verification email is sent and
    ``requiresEmailVerification`` is always true.
    """
    outcome = AuthService.signup(session, body.first_name, body.last_name, body.email, body.password)
    if outcome.identity is not None:
        set_session_cookie(response, outcome.identity)
    return SignupResponse(user=SessionUser.model_validate(outcome.user))


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    session: SessionDep,
    response: Response,
) -> LoginResponse:
    """
    Password login, or completion of a pending two-factor login.

    With ``{email, password}`` the response either sets the session cookie or,
    for accounts with two-factor enabled, returns ``requiresTwoFactor`` and a
    ``challengeToken``. With ``{challengeToken, twoFactorCode}`` the challenge
    is exchanged for a session.
    """
    if body.is_challenge_response:
        outcome = AuthService.complete_two_factor_login(
            session, body.challenge_token or "", body.two_factor_code or ""
        )
    else:
        outcome = AuthService.login_with_password(session, body.email or "", body.password or "")
    return _finish_login(response, outcome)


@router.post("/federated", response_model=LoginResponse, response_model_exclude_none=True)
def federated_login(
    body: FederatedLoginRequest,
    session: SessionDep,
    response: Response,
) -> LoginResponse:
    """Log in with a signed ID token from the configured identity provider."""
    outcome = AuthService.federated_login(session, body.id_token)
    return _finish_login(response, outcome)


@router.post("/logout", response_model=SuccessResponse)
def logout(response: Response, user: OptionalUserDep) -> SuccessResponse:
    """Clear the session cookie. Safe to call when already logged out."""
    clear_session_cookie(response)
    if user is not None:
        logger.info(f"User logged out: {user.id}")
    return SuccessResponse()


@router.get("/user", response_model=CurrentUserResponse)
def current_user(user: OptionalUserDep) -> CurrentUserResponse:
    """The current user, or ``{"user": null}`` for anonymous requests."""
    if user is None:
        return CurrentUserResponse(user=None)
    return CurrentUserResponse(user=UserResponse.model_validate(user))


@router.post("/verify-email", response_model=SuccessResponse)
def verify_email(body: VerifyEmailRequest, session: SessionDep) -> SuccessResponse:
    AuthService.verify_email(session, body.token)
    return SuccessResponse()


@router.post("/resend-verification", response_model=SuccessResponse)
def resend_verification(user: CurrentUser, session: SessionDep) -> SuccessResponse:
    AuthService.resend_verification(session, user)
    return SuccessResponse()


@router.post("/claim-owner", response_model=CurrentUserResponse)
def claim_owner(request: Request, user: CurrentUser, session: SessionDep) -> CurrentUserResponse:
    """Become the site owner. Only possible while no owner exists."""
    owner = AuthService.claim_owner(session, user, ip_address=client_ip(request))
    return CurrentUserResponse(user=UserResponse.model_validate(owner))
