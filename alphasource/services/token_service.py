"""
Ephemeral token store for email verification tokens and login challenges.
"""

from datetime import datetime, timedelta
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import delete
from sqlmodel import Session, col

from alphasource.core.config import settings
from alphasource.core.logging import get_logger
from alphasource.core.security import generate_token
from alphasource.core.timeutils import utc_now
from alphasource.models.tokens import (
    EmailVerificationToken,
    EphemeralToken,
    LoginChallenge,
    VerificationTokenType,
)

logger = get_logger(__name__)

TokenT = TypeVar("TokenT", bound=EphemeralToken)


class TokenStore(Generic[TokenT]):
    """
    Single-use, time-boxed tokens of one kind.

    Tokens are random (``secrets.token_urlsafe``), never derived from user
    data. ``delete`` reports whether this caller removed the row, which is what
    makes consumption single-use under concurrency.
    """

    def __init__(self, model: Type[TokenT], ttl: timedelta) -> None:
        self.model = model
        self.ttl = ttl

    def create(self, session: Session, user_id: str, **extra: Any) -> TokenT:
        now = utc_now()
        record = self.model(
            token=generate_token(),
            user_id=user_id,
            expires_at=now + self.ttl,
            created_at=now,
            **extra,
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record

    def get(self, session: Session, token: str) -> Optional[TokenT]:
        if not token:
            return None
        return session.get(self.model, token)

    def delete(self, session: Session, token: str) -> bool:
        result = session.connection().execute(delete(self.model).where(col(self.model.token) == token))
        session.commit()
        return result.rowcount == 1

    def delete_for_user(self, session: Session, user_id: str) -> int:
        result = session.connection().execute(delete(self.model).where(col(self.model.user_id) == user_id))
        session.commit()
        return result.rowcount

    def purge_expired(self, session: Session, now: datetime | None = None) -> int:
        """Delete every expired row; returns how many were removed."""
        result = session.connection().execute(
            delete(self.model).where(col(self.model.expires_at) < (now or utc_now()))
        )
        session.commit()
        if result.rowcount:
            logger.info(f"Purged {result.rowcount} expired {self.model.__tablename__} rows")
        return result.rowcount


class EmailVerificationTokens(TokenStore[EmailVerificationToken]):
    def __init__(self) -> None:
        super().__init__(
            EmailVerificationToken,
            timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
        )

    def issue(
        self,
        session: Session,
        user_id: str,
        token_type: VerificationTokenType = VerificationTokenType.SIGNUP,
    ) -> EmailVerificationToken:
        return self.create(session, user_id, type=token_type)


class LoginChallenges(TokenStore[LoginChallenge]):
    def __init__(self) -> None:
        super().__init__(
            LoginChallenge,
            timedelta(minutes=settings.LOGIN_CHALLENGE_EXPIRE_MINUTES),
        )


verification_tokens = EmailVerificationTokens()
login_challenges = LoginChallenges()


def purge_expired_tokens(session: Session) -> int:
    """Purge both token tables."""
    return verification_tokens.purge_expired(session) + login_challenges.purge_expired(session)
