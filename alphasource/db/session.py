"""
Database session management using SQLModel.
Provides the engine, table creation and the per-request session dependency.
"""

from pathlib import Path
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from alphasource.core.config import settings

if settings.is_sqlite:
    # SQLite-specific configuration
    _db_path = settings.SQLALCHEMY_DATABASE_URI.removeprefix("sqlite:///")
    if _db_path and _db_path != ":memory:":
        Path(_db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        settings.SQLALCHEMY_DATABASE_URI,
        echo=settings.DEBUG,
        connect_args={"check_same_thread": False},  # Allow multi-threading for SQLite
    )
else:
    # PostgreSQL configuration with connection pooling
    # pool_pre_ping ensures connections are alive before using them
    engine = create_engine(
        settings.SQLALCHEMY_DATABASE_URI,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def create_db_and_tables() -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Importing the models registers their tables.
    from alphasource.models import audit_log, site_setting, tokens, user  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session for FastAPI routes.
    A fresh session per request means every read sees committed state.

    Yields:
        Database session instance
    """
    with Session(engine) as session:
        yield session
