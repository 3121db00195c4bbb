"""
Tests for password hashing, session tokens and opaque tokens.
"""

from datetime import timedelta

from jose import jwt

from alphasource.core.config import settings
from alphasource.core.security import (
    Identity,
    create_session_token,
    decode_session_token,
    generate_token,
    get_password_hash,
    keyed_hash,
    verify_password,
)


def test_password_hash_round_trip() -> None:
    hashed = get_password_hash("correct horse battery")
    assert hashed != "correct horse battery"
    assert verify_password("correct horse battery", hashed) is True
    assert verify_password("wrong horse battery", hashed) is False


def test_password_hash_is_salted() -> None:
    assert get_password_hash("same-password") != get_password_hash("same-password")


def test_verify_password_without_hash() -> None:
    """Federated-only accounts have no hash and never match."""
    assert verify_password("anything", None) is False
    assert verify_password("anything", "") is False


def test_verify_password_malformed_hash() -> None:
    assert verify_password("anything", "not-a-real-hash") is False


def test_session_token_round_trip() -> None:
    token = create_session_token(Identity(user_id="user-123"))
    assert decode_session_token(token) == Identity(user_id="user-123")


def test_session_token_expired() -> None:
    token = create_session_token(Identity(user_id="user-123"), expires_delta=timedelta(seconds=-1))
    assert decode_session_token(token) is None


def test_session_token_wrong_signature() -> None:
    forged = jwt.encode({"sub": "user-123", "typ": "session"}, "some-other-key", algorithm=settings.ALGORITHM)
    assert decode_session_token(forged) is None


def test_session_token_requires_session_type() -> None:
    other = jwt.encode(
        {"sub": "user-123", "typ": "access"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )
    assert decode_session_token(other) is None


def test_session_token_garbage() -> None:
    assert decode_session_token("not.a.token") is None


def test_generate_token_is_random() -> None:
    tokens = {generate_token() for _ in range(50)}
    assert len(tokens) == 50
    assert all(len(t) >= 40 for t in tokens)


def test_keyed_hash_is_stable() -> None:
    assert keyed_hash("ABCD1234") == keyed_hash("ABCD1234")
    assert keyed_hash("ABCD1234") != keyed_hash("ABCD1235")
    assert len(keyed_hash("ABCD1234")) == 64
