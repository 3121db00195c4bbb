"""
Tests for outbound email and the background tasks.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.engine import Engine
from sqlmodel import Session

from alphasource.core.config import settings
from alphasource.core.timeutils import utc_now
from alphasource.models.tokens import LoginChallenge
from alphasource.models.user import User
from alphasource.services import email_service
from alphasource.workers import tasks


def test_verification_email_contains_link() -> None:
    message = email_service.build_verification_email(
        "ada@example.com", "tok-123", base_url="https://alphasource.example/"
    )
    assert message.to == "ada@example.com"
    assert "https://alphasource.example/verify-email?token=tok-123" in message.text
    assert "https://alphasource.example/verify-email?token=tok-123" in message.html
    assert settings.PROJECT_NAME in message.subject


def test_two_factor_enabled_email() -> None:
    message = email_service.build_two_factor_enabled_email("ada@example.com")
    assert message.subject.startswith("Two-Factor Authentication Enabled")
    assert "did not make this change" in message.text


def test_send_email_log_mode() -> None:
    message = email_service.build_two_factor_enabled_email("ada@example.com")
    with patch("alphasource.workers.queue.enqueue_task") as mock_enqueue:
        assert email_service.send_email(message) is True
    mock_enqueue.assert_not_called()


def test_send_email_queue_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "EMAIL_DELIVERY", "queue")
    message = email_service.build_verification_email("ada@example.com", "tok-123")

    with patch("alphasource.workers.queue.enqueue_task", return_value="job-1") as mock_enqueue:
        assert email_service.send_email(message) is True

    mock_enqueue.assert_called_once_with(
        tasks.send_email_task,
        to="ada@example.com",
        subject=message.subject,
        html=message.html,
        text=message.text,
    )


def test_send_email_queue_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    """A dead queue is reported, not raised into the request."""
    monkeypatch.setattr(settings, "EMAIL_DELIVERY", "queue")
    message = email_service.build_verification_email("ada@example.com", "tok-123")

    with patch(
        "alphasource.workers.queue.enqueue_task",
        side_effect=RedisConnectionError("connection refused"),
    ):
        assert email_service.send_email(message) is False


def test_send_email_task(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("INFO", logger="alphasource.workers.tasks"):
        result = tasks.send_email_task("ada@example.com", "Hello", "<p>Hi</p>", "Hi")
    assert result == {"to": "ada@example.com", "subject": "Hello", "status": "handed_off"}
    # No transport runs here, so the log must not claim delivery.
    assert "handed off" in caplog.text
    assert "sent" not in caplog.text.lower()


def test_purge_expired_tokens_task(engine: Engine, session: Session, test_user: User) -> None:
    session.add(
        LoginChallenge(token="stale", user_id=test_user.id, expires_at=utc_now() - timedelta(minutes=1))
    )
    session.add(
        LoginChallenge(token="fresh", user_id=test_user.id, expires_at=utc_now() + timedelta(minutes=5))
    )
    session.commit()

    with patch.object(tasks, "engine", engine):
        result = tasks.purge_expired_tokens_task()

    assert result["login_challenges"] == 1
    assert result["verification_tokens"] == 0
    assert result["status"] == "completed"
    assert session.get(LoginChallenge, "stale") is None
    assert session.get(LoginChallenge, "fresh") is not None
