"""
Session/identity layer: the login state machine.

    Anonymous -> SessionEstablished                   (signup, password login, federated login)
    Anonymous -> TwoFactorPending -> SessionEstablished  (password login with 2FA)

Every path that grants a session returns an ``Identity``; the two-factor
pending state only ever returns a challenge token, which carries no privilege.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from sqlmodel import Session

from alphasource.core.config import settings
from alphasource.core.exceptions import (
    BannedError,
    ForbiddenError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from alphasource.core.logging import get_logger
from alphasource.core.security import Identity
from alphasource.core.timeutils import utc_now
from alphasource.models.audit_log import AuditAction
from alphasource.models.tokens import VerificationTokenType
from alphasource.models.user import User
from alphasource.services import email_service
from alphasource.services.audit_service import AuditService
from alphasource.services.token_service import login_challenges, verification_tokens
from alphasource.services.two_factor_service import TwoFactorService
from alphasource.services.user_service import UserService

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginOutcome:
    """
    Result of a login step: exactly one of ``identity`` (session granted) or
    ``challenge_token`` (second factor pending) is set.
    """

    user: User
    identity: Optional[Identity] = None
    challenge_token: Optional[str] = None

    @property
    def requires_two_factor(self) -> bool:
        return self.identity is None


def _establish(session: Session, user: User) -> LoginOutcome:
    user = UserService.mark_login(session, user)
    return LoginOutcome(user=user, identity=Identity(user_id=user.id))


def _ensure_not_banned(user: User) -> None:
    if user.is_banned:
        logger.warning(f"Banned user {user.id} attempted to log in")
        raise BannedError(user.banned_reason)


def issue_verification(
    session: Session,
    user: User,
    token_type: VerificationTokenType = VerificationTokenType.SIGNUP,
) -> bool:
    """Create a verification token and email it. Returns the send result."""
    if not user.email:
        return False
    record = verification_tokens.issue(session, user.id, token_type)
    return email_service.send_verification_email(user.email, record.token)


class AuthService:
    """Service class for the login flows and email verification."""

    @staticmethod
    def signup(session: Session, first_name: str, last_name: str, email: str, password: str) -> LoginOutcome:
        """
        Register with a password and log straight in.

        The session is granted before the email is verified; verification
        gates content submission, not login.

        Raises:
            ConflictError: If the email is already registered
        """
        user = UserService.create_with_password(session, first_name, last_name, email, password)
        logger.info(f"New user registered: {user.id}")

        if not issue_verification(session, user, VerificationTokenType.SIGNUP):
            logger.warning(f"Verification email for user {user.id} could not be sent")

        return _establish(session, user)

    @staticmethod
    def login_with_password(session: Session, email: str, password: str) -> LoginOutcome:
        """
        Step one of a password login.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password (indistinguishable)
            BannedError: If the account is banned; no session or challenge is issued
        """
        user = UserService.verify_password(session, email, password)
        if user is None:
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()

        _ensure_not_banned(user)

        if user.two_factor_enabled:
            challenge = login_challenges.create(session, user.id)
            logger.info(f"Two-factor challenge issued for user {user.id}")
            return LoginOutcome(user=user, challenge_token=challenge.token)

        logger.info(f"User logged in: {user.id}")
        return _establish(session, user)

    @staticmethod
    def complete_two_factor_login(session: Session, challenge_token: str, code: str) -> LoginOutcome:
        """
        Step two: exchange a live challenge plus a TOTP or backup code for a session.

        A wrong code leaves the challenge in place so the user can retry until
        it expires. An expired challenge is deleted and always rejected,
        whatever the code.

        Raises:
            UnauthorizedError: Missing or expired challenge
            InvalidCodeError: Neither a TOTP nor a backup code matched
            BannedError: If the account was banned meanwhile
        """
        challenge = login_challenges.get(session, challenge_token)
        if challenge is None:
            raise UnauthorizedError("Login challenge is invalid or expired", "INVALID_CHALLENGE")
        if challenge.is_expired():
            login_challenges.delete(session, challenge.token)
            raise UnauthorizedError("Login challenge is invalid or expired", "INVALID_CHALLENGE")

        user = UserService.get_by_id(session, challenge.user_id)
        if user is None or not user.two_factor_enabled:
            login_challenges.delete(session, challenge_token)
            raise UnauthorizedError("Login challenge is invalid or expired", "INVALID_CHALLENGE")
        _ensure_not_banned(user)

        if not TwoFactorService.verify_second_factor(session, user, code):
            logger.warning(f"Invalid two-factor code for user {user.id}")
            raise InvalidCodeError()

        # Only the request that removes the challenge gets the session.
        if not login_challenges.delete(session, challenge_token):
            raise UnauthorizedError("Login challenge is invalid or expired", "INVALID_CHALLENGE")

        logger.info(f"User completed two-factor login: {user.id}")
        return _establish(session, user)

    @staticmethod
    def federated_login(session: Session, id_token: str) -> LoginOutcome:
        """
        Log in with an identity provider's signed ID token.

        No password or second-factor step: the provider is trusted to enforce
        its own MFA.

        Raises:
            NotFoundError: If federated login is not configured
            UnauthorizedError: If the token does not verify
            ConflictError: If the asserted email belongs to another account
            BannedError: If the account is banned
        """
        if not settings.federated_login_enabled:
            raise NotFoundError("Federated login is not enabled")

        claims = decode_federated_token(id_token)
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise UnauthorizedError("Identity token has no subject")

        user = UserService.upsert_federated(
            session,
            external_id=subject,
            email=claims.get("email"),
            first_name=claims.get("given_name") or claims.get("first_name"),
            last_name=claims.get("family_name") or claims.get("last_name"),
            profile_image_url=claims.get("picture") or claims.get("profile_image_url"),
        )
        _ensure_not_banned(user)
        logger.info(f"Federated login for user {user.id}")
        return _establish(session, user)

    @staticmethod
    def verify_email(session: Session, token: str) -> User:
        """
        Consume a verification token and mark the address verified.

        Raises:
            ValidationError: Unknown, already used or expired token
        """
        record = verification_tokens.get(session, token)
        if record is None:
            raise ValidationError("Invalid or expired verification token", "INVALID_TOKEN")
        if record.is_expired():
            verification_tokens.delete(session, record.token)
            raise ValidationError("Invalid or expired verification token", "INVALID_TOKEN")

        user_id = record.user_id
        if not verification_tokens.delete(session, token):
            raise ValidationError("Invalid or expired verification token", "INVALID_TOKEN")

        user = UserService.get_by_id(session, user_id)
        if user is None:
            raise ValidationError("Invalid or expired verification token", "INVALID_TOKEN")
        if user.email_verified_at is None:
            user = UserService.update(session, user_id, email_verified_at=utc_now()) or user
        logger.info(f"Email verified for user {user.id}")
        return user

    @staticmethod
    def resend_verification(session: Session, user: User) -> None:
        """
        Replace any outstanding verification tokens with a fresh one.

        Raises:
            ValidationError: If the email is already verified or missing
        """
        if user.email_verified_at is not None:
            raise ValidationError("Email is already verified", "ALREADY_VERIFIED")
        if not user.email:
            raise ValidationError("Account has no email address")
        verification_tokens.delete_for_user(session, user.id)
        if not issue_verification(session, user, VerificationTokenType.RESEND):
            logger.warning(f"Verification email for user {user.id} could not be sent")

    @staticmethod
    def claim_owner(session: Session, user: User, ip_address: Optional[str] = None) -> User:
        """
        Become the owner if no owner exists yet.

        Raises:
            ForbiddenError: If an owner already exists
        """
        if UserService.has_owner(session) or not UserService.claim_owner(session, user.id):
            logger.warning(f"User {user.id} tried to claim ownership but an owner exists")
            raise ForbiddenError("An owner already exists")

        session.refresh(user)
        AuditService.record(
            session,
            user,
            AuditAction.CLAIM_OWNER,
            target_type="user",
            target_id=user.id,
            ip_address=ip_address,
        )
        logger.info(f"User {user.id} claimed ownership")
        return user


def decode_federated_token(id_token: str) -> Dict[str, Any]:
    """
    Verify the provider's signature, expiry, issuer and audience.

    Raises:
        UnauthorizedError: If any check fails
    """
    # The access token never reaches this endpoint, so at_hash cannot be checked.
    options = {
        "verify_aud": settings.FEDERATED_AUDIENCE is not None,
        "verify_at_hash": False,
    }
    try:
        return jwt.decode(
            id_token,
            settings.FEDERATED_SIGNING_KEY or "",
            algorithms=settings.FEDERATED_ALGORITHMS,
            audience=settings.FEDERATED_AUDIENCE,
            issuer=settings.FEDERATED_ISSUER,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"Federated identity token rejected: {e}")
        raise UnauthorizedError("Identity token could not be verified")
