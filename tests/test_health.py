"""
Tests for health check endpoints.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from alphasource.core.config import settings


@pytest.mark.smoke
def test_health_check(client: TestClient) -> None:
    """Test basic health check."""
    response = client.get(f"{settings.API_PREFIX}/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == settings.PROJECT_NAME
    assert data["version"] == settings.VERSION


@pytest.mark.smoke
def test_database_health_check(client: TestClient) -> None:
    """Test database health check."""
    response = client.get(f"{settings.API_PREFIX}/health/db")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"


def test_database_health_check_reports_failure(client: TestClient, session: Session) -> None:
    """A database error is reported in the body instead of raised."""
    error = OperationalError("SELECT 1", {}, Exception("database is locked"))
    with patch.object(session, "connection", side_effect=error):
        response = client.get(f"{settings.API_PREFIX}/health/db")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "error"


def test_queue_health_check_log_delivery(client: TestClient) -> None:
    response = client.get(f"{settings.API_PREFIX}/health/queue")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "delivery": "log"}


def test_queue_health_check(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "EMAIL_DELIVERY", "queue")
    queue = MagicMock()
    queue.count = 3
    with patch("alphasource.workers.queue.get_queue", return_value=queue):
        response = client.get(f"{settings.API_PREFIX}/health/queue")
    assert response.json() == {"status": "healthy", "delivery": "queue", "pending": 3}
    queue.connection.ping.assert_called_once()


def test_queue_health_check_redis_down(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "EMAIL_DELIVERY", "queue")
    queue = MagicMock()
    queue.connection.ping.side_effect = RedisConnectionError("connection refused")
    with patch("alphasource.workers.queue.get_queue", return_value=queue):
        response = client.get(f"{settings.API_PREFIX}/health/queue")
    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"
