"""
User service layer implementing the credential store.
Separates business logic from API routes and database operations.
"""

from typing import Any, List, Optional

from sqlalchemy import exists, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from alphasource.core.exceptions import ConflictError
from alphasource.core.logging import get_logger
from alphasource.core.security import get_password_hash, pwd_context, verify_password
from alphasource.core.timeutils import utc_now
from alphasource.models.user import PRIVILEGED_ROLES, User, UserRole

logger = get_logger(__name__)

# Fields a caller may change through UserService.update.
UPDATABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "profile_image_url",
        "email_verified_at",
        "is_banned",
        "banned_reason",
        "two_factor_enabled",
        "two_factor_secret",
        "last_login_at",
    }
)


def normalize_email(email: str) -> str:
    """Emails are stored trimmed and lowercased so lookups are case-insensitive."""
    return email.strip().lower()


class UserService:
    """Service class for user-related operations."""

    @staticmethod
    def get_by_id(session: Session, user_id: str) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            session: Database session
            user_id: User ID to search for

        Returns:
            User if found, None otherwise
        """
        return session.get(User, user_id)

    @staticmethod
    def get_by_email(session: Session, email: str) -> Optional[User]:
        """
        Retrieve a user by email address (case-insensitive).

        Args:
            session: Database session
            email: Email address to search for

        Returns:
            User if found, None otherwise
        """
        statement = select(User).where(User.email == normalize_email(email))
        return session.exec(statement).first()

    @staticmethod
    def get_by_external_id(session: Session, external_id: str) -> Optional[User]:
        statement = select(User).where(User.external_id == external_id)
        return session.exec(statement).first()

    @staticmethod
    def create_with_password(
        session: Session,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        """
        Create a new user with a hashed password.

        Args:
            session: Database session
            first_name: Given name
            last_name: Family name
            email: Email address; normalized before storage
            password: Plain text password
            role: User role (defaults to USER)

        Returns:
            Created user instance

        Raises:
            ConflictError: If the email is already registered
        """
        email = normalize_email(email)
        if UserService.get_by_email(session, email) is not None:
            raise ConflictError("An account with this email already exists")

        db_user = User(
            email=email,
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        session.add(db_user)
        try:
            session.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same address
            session.rollback()
            raise ConflictError("An account with this email already exists")
        session.refresh(db_user)
        return db_user

    @staticmethod
    def verify_password(session: Session, email: str, password: str) -> Optional[User]:
        """
        Check an email/password pair.

        Returns None both for an unknown email and for a wrong password, so
        callers cannot tell the two apart.

        Args:
            session: Database session
            email: User's email
            password: Plain text password

        Returns:
            User if the credentials match, None otherwise
        """
        user = UserService.get_by_email(session, email)
        if user is None or not user.password_hash:
            # Spend comparable time so response timing does not reveal the case
            pwd_context.dummy_verify()
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    def update(session: Session, user_id: str, **fields: Any) -> Optional[User]:
        """
        Apply a partial update to a user.

        Args:
            session: Database session
            user_id: ID of the user to update
            **fields: Column values to set; must be in UPDATABLE_FIELDS

        Returns:
            Updated user, or None if the user does not exist
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")

        user = session.get(User, user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        user.updated_at = utc_now()
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    @staticmethod
    def update_role(session: Session, user_id: str, role: UserRole) -> Optional[User]:
        user = session.get(User, user_id)
        if user is None:
            return None
        user.role = role
        user.updated_at = utc_now()
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    @staticmethod
    def mark_login(session: Session, user: User) -> User:
        user.last_login_at = utc_now()
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    @staticmethod
    def has_owner(session: Session) -> bool:
        statement = select(User.id).where(User.role == UserRole.OWNER).limit(1)
        return session.exec(statement).first() is not None

    @staticmethod
    def claim_owner(session: Session, user_id: str) -> bool:
        """
        Make ``user_id`` the owner if, and only if, no owner exists yet.

        The check and the write are a single UPDATE so two concurrent claims
        cannot both succeed.

        Returns:
            True if the claim succeeded
        """
        owners = aliased(User)
        no_owner = ~exists().where(owners.role == UserRole.OWNER)
        statement = (
            update(User)
            .where(col(User.id) == user_id, no_owner)
            .values(role=UserRole.OWNER, updated_at=utc_now())
        )
        result = session.connection().execute(statement)
        session.commit()
        return result.rowcount == 1

    @staticmethod
    def get_staff_users(session: Session) -> List[User]:
        statement = (
            select(User)
            .where(col(User.role).in_(list(PRIVILEGED_ROLES)))
            .order_by(col(User.created_at))
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list_users(session: Session) -> List[User]:
        statement = select(User).order_by(col(User.created_at).desc())
        return list(session.exec(statement).all())

    @staticmethod
    def upsert_federated(
        session: Session,
        external_id: str,
        email: Optional[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        profile_image_url: Optional[str] = None,
    ) -> User:
        """
        Insert or update a user keyed by the identity provider's subject id.

        A provider-asserted email is treated as verified. An email that
        already belongs to a different, unlinked account is a conflict rather
        than a silent account merge.

        Raises:
            ConflictError: If the email belongs to another account
        """
        email = normalize_email(email) if email else None
        user = UserService.get_by_external_id(session, external_id)

        if email is not None:
            holder = UserService.get_by_email(session, email)
            if holder is not None and (user is None or holder.id != user.id):
                raise ConflictError("An account with this email already exists")

        now = utc_now()
        if user is None:
            user = User(external_id=external_id, email=email, email_verified_at=now if email else None)
            logger.info(f"Creating federated user for subject {external_id}")
        elif email is not None and user.email != email:
            user.email = email
            user.email_verified_at = now

        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        if profile_image_url is not None:
            user.profile_image_url = profile_image_url
        user.updated_at = now

        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ConflictError("An account with this email already exists")
        session.refresh(user)
        return user
