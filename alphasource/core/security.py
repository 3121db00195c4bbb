"""
Security utilities for password hashing, session tokens and opaque tokens.

Default hashing uses ``pbkdf2_sha256`` for stable cross-platform behavior in
tests and local development. ``bcrypt`` verification is still supported for
backward compatibility with existing hashes.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from alphasource.core.config import settings
from alphasource.core.logging import get_logger
from alphasource.core.timeutils import utc_now

logger = get_logger(__name__)

# Prefer pbkdf2 for new hashes while still verifying legacy bcrypt hashes.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

SESSION_TOKEN_TYPE = "session"


@dataclass(frozen=True)
class Identity:
    """The authenticated principal bound to a session."""

    user_id: str


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password
        hashed_password: The stored hash; may be missing for federated-only accounts

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using the configured default scheme.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)


def create_session_token(identity: Identity, expires_delta: timedelta | None = None) -> str:
    """
    Create the signed value stored in the session cookie.

    Args:
        identity: The principal to bind to the session
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)
    expire = utc_now() + expires_delta

    to_encode: dict[str, Any] = {
        "exp": expire,
        "sub": identity.user_id,
        "typ": SESSION_TOKEN_TYPE,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> Identity | None:
    """
    Decode a session cookie value.

    Returns:
        The bound identity, or None if the token is invalid or expired
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.info(f"Session token rejected: {e}")
        return None

    if payload.get("typ") != SESSION_TOKEN_TYPE:
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        return None
    return Identity(user_id=user_id)


def generate_token(nbytes: int = 32) -> str:
    """Generate an unguessable URL-safe token."""
    return secrets.token_urlsafe(nbytes)


def keyed_hash(value: str) -> str:
    """One-way keyed hash (HMAC-SHA256) used for backup codes."""
    return hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        value.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
