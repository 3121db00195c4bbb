"""
Ephemeral token tables: email verification tokens and login challenges.

Both share one shape; rows are deleted when consumed and purged once expired.
"""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from alphasource.core.timeutils import as_utc, utc_now


class VerificationTokenType(str, Enum):
    SIGNUP = "signup"
    RESEND = "resend"


class EphemeralToken(SQLModel):
    """Common columns for single-use, time-boxed tokens."""

    token: str = Field(primary_key=True, max_length=128)
    user_id: str = Field(foreign_key="users.id", index=True)
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return as_utc(now or utc_now()) > as_utc(self.expires_at)


class EmailVerificationToken(EphemeralToken, table=True):
    __tablename__ = "email_verification_tokens"  # type: ignore

    type: VerificationTokenType = Field(default=VerificationTokenType.SIGNUP)


class LoginChallenge(EphemeralToken, table=True):
    """Password accepted, second factor pending. Carries no privilege."""

    __tablename__ = "login_challenges"  # type: ignore
