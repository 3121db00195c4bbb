"""
Application configuration management using Pydantic Settings.
All settings can be overridden via environment variables.
"""

from typing import Any, List, Literal

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Alpha Source"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    PUBLIC_BASE_URL: str = "http://localhost:5000"  # Used to build links in outbound email

    # Sessions
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    SESSION_EXPIRE_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "alphasource_session"
    SESSION_COOKIE_SECURE: bool = False

    # Ephemeral tokens and two-factor
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    LOGIN_CHALLENGE_EXPIRE_MINUTES: int = 5
    TWO_FACTOR_ISSUER: str = "Alpha Source"
    BACKUP_CODE_COUNT: int = 10

    # Federated login (disabled unless a signing key is configured)
    FEDERATED_ISSUER: str | None = None
    FEDERATED_AUDIENCE: str | None = None
    FEDERATED_SIGNING_KEY: str | None = None
    FEDERATED_ALGORITHMS: List[str] = ["HS256"]

    @field_validator("FEDERATED_ALGORITHMS", mode="before")
    @classmethod
    def assemble_algorithms(cls, v: Any) -> List[str] | str:
        """Parse algorithm list from comma-separated string or list."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @property
    def federated_login_enabled(self) -> bool:
        return bool(self.FEDERATED_SIGNING_KEY)

    # Database
    DATABASE_URL: str | None = None  # Optional: Use this if set (e.g., sqlite:///./data/dev.db)
    POSTGRES_SERVER: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str | None = None

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Get database URI - supports both SQLite and PostgreSQL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if self.POSTGRES_SERVER and self.POSTGRES_USER and self.POSTGRES_PASSWORD and self.POSTGRES_DB:
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        # Default to SQLite for local dev if nothing is configured
        return "sqlite:///./data/dev.db"

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.SQLALCHEMY_DATABASE_URI.startswith("sqlite")

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        """Construct Redis URL."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Email
    EMAIL_DELIVERY: Literal["log", "queue"] = "log"  # "queue" hands messages to the RQ worker
    EMAIL_FROM: str = "Alpha Source <noreply@alphasource.dev>"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> List[str] | str:
        """Parse CORS origins from string or list."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)


settings = Settings()  # type: ignore
