"""
Tests for authentication endpoints.
"""

from datetime import timedelta
from typing import Callable
from unittest.mock import patch

from fastapi.testclient import TestClient
from httpx import Response
from sqlmodel import Session, select

from alphasource.core.config import settings
from alphasource.core.timeutils import utc_now
from alphasource.models.audit_log import AuditAction, AuditLog
from alphasource.models.tokens import EmailVerificationToken, VerificationTokenType
from alphasource.models.user import User, UserRole

SIGNUP = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "Ada@Example.com",
    "password": "analytical-engine",
}


def _tokens_for(session: Session, user_id: str) -> list[EmailVerificationToken]:
    statement = select(EmailVerificationToken).where(EmailVerificationToken.user_id == user_id)
    return list(session.exec(statement).all())


def test_signup_logs_in_and_sends_verification(client: TestClient, session: Session) -> None:
    """Signup creates the user, starts a session and emails a verification link."""
    with patch("alphasource.services.email_service.send_verification_email", return_value=True) as mock_send:
        response = client.post(f"{settings.API_PREFIX}/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["requiresEmailVerification"] is True
    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["firstName"] == "Ada"
    assert data["user"]["role"] == "user"
    assert data["user"]["emailVerified"] is False
    assert "passwordHash" not in data["user"]
    assert settings.SESSION_COOKIE_NAME in response.cookies

    tokens = _tokens_for(session, data["user"]["id"])
    assert len(tokens) == 1
    assert tokens[0].type == VerificationTokenType.SIGNUP
    mock_send.assert_called_once_with("ada@example.com", tokens[0].token)

    me = client.get(f"{settings.API_PREFIX}/auth/user").json()
    assert me["user"]["id"] == data["user"]["id"]


def test_signup_email_verify_login_scenario(client: TestClient, session: Session) -> None:
    signup = client.post(f"{settings.API_PREFIX}/auth/signup", json=SIGNUP)
    assert signup.status_code == 201
    user_id = signup.json()["user"]["id"]

    token = _tokens_for(session, user_id)[0].token
    response = client.post(f"{settings.API_PREFIX}/auth/verify-email", json={"token": token})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    client.post(f"{settings.API_PREFIX}/auth/logout")
    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "ada@example.com", "password": SIGNUP["password"]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["user"]["emailVerified"] is True
    assert "requiresTwoFactor" not in data or data["requiresTwoFactor"] is False

    # The token was consumed.
    response = client.post(f"{settings.API_PREFIX}/auth/verify-email", json={"token": token})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_TOKEN"


def test_signup_duplicate_email_case_insensitive(client: TestClient, test_user: User) -> None:
    response = client.post(
        f"{settings.API_PREFIX}/auth/signup",
        json={**SIGNUP, "email": "TEST@example.com"},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "CONFLICT"
    assert settings.SESSION_COOKIE_NAME not in response.cookies


def test_signup_validation(client: TestClient) -> None:
    cases = [
        {**SIGNUP, "email": "not-an-email"},
        {**SIGNUP, "password": "short"},
        {**SIGNUP, "password": "x" * 73},
        {**SIGNUP, "firstName": "   "},
        {key: value for key, value in SIGNUP.items() if key != "lastName"},
    ]
    for payload in cases:
        response = client.post(f"{settings.API_PREFIX}/auth/signup", json=payload)
        assert response.status_code == 400, payload
        assert response.json()["error"] == "VALIDATION_ERROR"


def test_login_failures_are_indistinguishable(client: TestClient, test_user: User) -> None:
    wrong_password = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "test@example.com", "password": "wrongpassword"},
    )
    unknown_email = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "nobody@example.com", "password": "wrongpassword"},
    )
    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert settings.SESSION_COOKIE_NAME not in wrong_password.cookies


def test_login_email_is_case_insensitive(client: TestClient, test_user: User) -> None:
    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "Test@Example.COM", "password": "testpassword123"},
    )
    assert response.status_code == 200
    assert response.json()["user"]["id"] == test_user.id


def test_login_requires_a_complete_shape(client: TestClient) -> None:
    response = client.post(f"{settings.API_PREFIX}/auth/login", json={"email": "test@example.com"})
    assert response.status_code == 400
    response = client.post(f"{settings.API_PREFIX}/auth/login", json={"challengeToken": "abc"})
    assert response.status_code == 400


def test_login_records_last_login(client: TestClient, session: Session, test_user: User) -> None:
    assert test_user.last_login_at is None
    client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "test@example.com", "password": "testpassword123"},
    )
    session.refresh(test_user)
    assert test_user.last_login_at is not None


def test_banned_user_cannot_log_in(client: TestClient, session: Session, test_user: User) -> None:
    test_user.is_banned = True
    test_user.banned_reason = "Spam"
    session.add(test_user)
    session.commit()

    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "test@example.com", "password": "testpassword123"},
    )
    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "BANNED"
    assert body["bannedReason"] == "Spam"
    assert settings.SESSION_COOKIE_NAME not in response.cookies


def test_banned_user_with_wrong_password_gets_401(
    client: TestClient, session: Session, test_user: User
) -> None:
    """Ban status is only revealed once the password checks out."""
    test_user.is_banned = True
    test_user.banned_reason = "Spam"
    session.add(test_user)
    session.commit()

    response = client.post(
        f"{settings.API_PREFIX}/auth/login",
        json={"email": "test@example.com", "password": "wrongpassword"},
    )
    assert response.status_code == 401


def test_current_user_anonymous(client: TestClient) -> None:
    response = client.get(f"{settings.API_PREFIX}/auth/user")
    assert response.status_code == 200
    assert response.json() == {"user": None}


def test_current_user_with_tampered_cookie(client: TestClient) -> None:
    client.cookies.set(settings.SESSION_COOKIE_NAME, "not-a-session")
    response = client.get(f"{settings.API_PREFIX}/auth/user")
    assert response.json() == {"user": None}
    assert client.get(f"{settings.API_PREFIX}/users/me").status_code == 401


def test_current_user_omits_secrets(user_client: TestClient, test_user: User) -> None:
    response = user_client.get(f"{settings.API_PREFIX}/auth/user")
    user = response.json()["user"]
    assert user["id"] == test_user.id
    assert user["isAdmin"] is False
    for secret_field in ("passwordHash", "twoFactorSecret", "backupCodes"):
        assert secret_field not in user


def test_logout(user_client: TestClient) -> None:
    response = user_client.post(f"{settings.API_PREFIX}/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert user_client.get(f"{settings.API_PREFIX}/auth/user").json() == {"user": None}

    # Logging out twice is harmless.
    assert user_client.post(f"{settings.API_PREFIX}/auth/logout").status_code == 200


def test_verify_email_unknown_token(client: TestClient) -> None:
    response = client.post(f"{settings.API_PREFIX}/auth/verify-email", json={"token": "nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_TOKEN"


def test_verify_email_expired_token(
    client: TestClient, session: Session, create_user: Callable[..., User]
) -> None:
    user = create_user("late@example.com", verified=False)
    token = EmailVerificationToken(
        token="expired-token",
        user_id=user.id,
        expires_at=utc_now() - timedelta(minutes=1),
    )
    session.add(token)
    session.commit()

    response = client.post(f"{settings.API_PREFIX}/auth/verify-email", json={"token": "expired-token"})
    assert response.status_code == 400
    session.refresh(user)
    assert user.email_verified_at is None
    assert session.get(EmailVerificationToken, "expired-token") is None


def test_resend_verification(
    client: TestClient,
    session: Session,
    create_user: Callable[..., User],
    login: Callable[..., Response],
) -> None:
    user = create_user("pending@example.com", verified=False)
    login(client, "pending@example.com", "testpassword123")
    client.post(f"{settings.API_PREFIX}/auth/resend-verification")
    first = _tokens_for(session, user.id)
    assert len(first) == 1
    first_token = first[0].token

    response = client.post(f"{settings.API_PREFIX}/auth/resend-verification")
    assert response.status_code == 200

    tokens = _tokens_for(session, user.id)
    assert len(tokens) == 1
    assert tokens[0].type == VerificationTokenType.RESEND
    assert tokens[0].token != first_token


def test_resend_verification_already_verified(user_client: TestClient) -> None:
    response = user_client.post(f"{settings.API_PREFIX}/auth/resend-verification")
    assert response.status_code == 400
    assert response.json()["error"] == "ALREADY_VERIFIED"


def test_resend_verification_requires_login(client: TestClient) -> None:
    assert client.post(f"{settings.API_PREFIX}/auth/resend-verification").status_code == 401


def test_claim_owner(user_client: TestClient, session: Session, test_user: User) -> None:
    response = user_client.post(
        f"{settings.API_PREFIX}/auth/claim-owner", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}
    )
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "owner"
    assert response.json()["user"]["isAdmin"] is True

    entries = session.exec(select(AuditLog).where(AuditLog.action == AuditAction.CLAIM_OWNER)).all()
    assert len(entries) == 1
    assert entries[0].actor_id == test_user.id
    assert entries[0].ip_address == "203.0.113.9"


def test_claim_owner_when_owner_exists(
    user_client: TestClient, session: Session, owner_user: User, test_user: User
) -> None:
    response = user_client.post(f"{settings.API_PREFIX}/auth/claim-owner")
    assert response.status_code == 403
    session.refresh(test_user)
    assert test_user.role == UserRole.USER
