"""
Pytest configuration and fixtures.
Provides test database, clients, users and login helpers.
"""

import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["EMAIL_DELIVERY"] = "log"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from typing import Callable, Generator, List

import pyotp
import pytest
from fastapi.testclient import TestClient
from httpx import Response
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from alphasource.core.config import settings
from alphasource.core.timeutils import utc_now
from alphasource.db.session import get_session
from alphasource.main import app
from alphasource.models.user import User, UserRole
from alphasource.services.two_factor_service import TwoFactorService, TwoFactorSetup
from alphasource.services.user_service import UserService

API = settings.API_PREFIX

USER_PASSWORD = "testpassword123"
STAFF_PASSWORD = "staffpassword123"
OWNER_PASSWORD = "ownerpassword123"


@pytest.fixture(name="engine")
def engine_fixture() -> Generator[Engine, None, None]:
    """
    In-memory SQLite engine shared by every connection in a test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine: Engine) -> Generator[Session, None, None]:
    """
    Create a test database session.
    """
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with dependency overrides.
    """

    def get_session_override() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(name="client_factory")
def client_factory_fixture(client: TestClient) -> Generator[Callable[[], TestClient], None, None]:
    """
    Extra clients with their own cookie jars, for tests that need two people
    logged in at once.
    """
    clients: List[TestClient] = []

    def _make() -> TestClient:
        extra = TestClient(app)
        clients.append(extra)
        return extra

    yield _make

    for extra in clients:
        extra.close()


@pytest.fixture(name="create_user")
def create_user_fixture(session: Session) -> Callable[..., User]:
    """
    Factory for users with a chosen role and verification state.
    """

    def _create(
        email: str,
        password: str = USER_PASSWORD,
        role: UserRole = UserRole.USER,
        verified: bool = True,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> User:
        user = UserService.create_with_password(
            session, first_name, last_name, email, password, role=role
        )
        if verified:
            user = UserService.update(session, user.id, email_verified_at=utc_now()) or user
        return user

    return _create


@pytest.fixture(name="test_user")
def test_user_fixture(create_user: Callable[..., User]) -> User:
    return create_user("test@example.com", USER_PASSWORD)


@pytest.fixture(name="staff_user")
def staff_user_fixture(create_user: Callable[..., User]) -> User:
    return create_user("staff@example.com", STAFF_PASSWORD, role=UserRole.STAFF, first_name="Staff")


@pytest.fixture(name="owner_user")
def owner_user_fixture(create_user: Callable[..., User]) -> User:
    return create_user("owner@example.com", OWNER_PASSWORD, role=UserRole.OWNER, first_name="Owner")


@pytest.fixture(name="login")
def login_fixture() -> Callable[..., Response]:
    """
    Log a client in with email and password and assert it worked.
    """

    def _login(client: TestClient, email: str, password: str) -> Response:
        response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response

    return _login


@pytest.fixture(name="user_client")
def user_client_fixture(client: TestClient, test_user: User, login: Callable[..., Response]) -> TestClient:
    login(client, test_user.email, USER_PASSWORD)
    return client


@pytest.fixture(name="owner_client")
def owner_client_fixture(
    client_factory: Callable[[], TestClient],
    owner_user: User,
    login: Callable[..., Response],
) -> TestClient:
    owner_client = client_factory()
    login(owner_client, owner_user.email, OWNER_PASSWORD)
    return owner_client


@pytest.fixture(name="wrong_totp_code")
def wrong_totp_code_fixture() -> Callable[[str], str]:
    """
    Produce a six-digit code that does not verify for a secret right now.
    """

    def _wrong(secret: str) -> str:
        totp = pyotp.TOTP(secret)
        candidate = 0
        while totp.verify(f"{candidate:06d}", valid_window=1):
            candidate += 1
        return f"{candidate:06d}"

    return _wrong


@pytest.fixture(name="enable_two_factor")
def enable_two_factor_fixture(session: Session) -> Callable[[User], TwoFactorSetup]:
    """
    Enroll a user in two-factor authentication through the service layer.
    """

    def _enable(user: User) -> TwoFactorSetup:
        setup = TwoFactorService.setup(session, user)
        TwoFactorService.confirm(session, user, pyotp.TOTP(setup.secret).now())
        return setup

    return _enable
