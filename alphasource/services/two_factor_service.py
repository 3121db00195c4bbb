"""
Two-factor authentication: TOTP secrets, QR provisioning and backup codes.

The module-level functions are pure; ``TwoFactorService`` persists state on
the user record and the ``backup_codes`` table.
"""

import base64
import io
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

import pyotp
import qrcode
from sqlalchemy import delete, update
from sqlmodel import Session, col, select

from alphasource.core.config import settings
from alphasource.core.exceptions import ConflictError, InvalidCodeError, ValidationError
from alphasource.core.logging import get_logger
from alphasource.core.security import keyed_hash
from alphasource.core.timeutils import utc_now
from alphasource.models.user import BackupCode, User
from alphasource.services import email_service

logger = get_logger(__name__)

TOTP_INTERVAL = 30
TOTP_DIGITS = 6
_NON_CODE_CHARS = re.compile(r"[\s-]")


@dataclass
class TwoFactorSetup:
    """Everything the user needs to enroll an authenticator app."""

    secret: str
    provisioning_uri: str
    qr_code_url: str
    backup_codes: List[str]


@dataclass
class BackupCodeCheck:
    """Result of checking an input against stored backup-code hashes."""

    valid: bool
    remaining_hashes: List[str] = field(default_factory=list)
    matched_hash: Optional[str] = None


def generate_secret() -> str:
    """Fresh random base32 TOTP secret."""
    return pyotp.random_base32()


def provisioning_uri(email: str, secret: str, issuer: str | None = None) -> str:
    """Standard ``otpauth://`` URI for authenticator apps."""
    totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
    return totp.provisioning_uri(name=email, issuer_name=issuer or settings.TWO_FACTOR_ISSUER)


def qr_code_data_url(data: str) -> str:
    """Render ``data`` as a PNG QR code and return it as a data URL."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=6,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    img_str = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{img_str}"


def generate_backup_codes(count: int | None = None) -> List[str]:
    """Human-readable codes: 8 uppercase hex characters as ``XXXX-XXXX``."""
    codes = []
    for _ in range(count or settings.BACKUP_CODE_COUNT):
        raw = secrets.token_hex(4).upper()
        codes.append(f"{raw[:4]}-{raw[4:]}")
    return codes


def normalize_backup_code(code: str) -> str:
    return _NON_CODE_CHARS.sub("", code).upper()


def hash_backup_code(code: str) -> str:
    return keyed_hash(normalize_backup_code(code))


def verify_totp(secret: str | None, code: str, for_time: datetime | None = None) -> bool:
    """
    Check a 6-digit code against ``secret`` with one time-step of tolerance
    either side. Malformed secrets or codes simply fail.
    """
    if not secret or not code:
        return False
    code = code.strip().replace(" ", "")
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False
    try:
        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
        return totp.verify(code, for_time=for_time, valid_window=1)
    except (ValueError, TypeError):
        logger.warning("Stored TOTP secret could not be decoded")
        return False


def consume_backup_code(stored_hashes: Sequence[str], input_code: str) -> BackupCodeCheck:
    """
    Linear scan for ``input_code`` among ``stored_hashes``.

    On a match the entry is removed from the returned list; the caller
    persists ``remaining_hashes``.
    """
    if not input_code or not normalize_backup_code(input_code):
        return BackupCodeCheck(valid=False, remaining_hashes=list(stored_hashes))

    candidate = hash_backup_code(input_code)
    remaining = list(stored_hashes)
    for index, stored in enumerate(remaining):
        if secrets.compare_digest(stored, candidate):
            del remaining[index]
            return BackupCodeCheck(valid=True, remaining_hashes=remaining, matched_hash=stored)
    return BackupCodeCheck(valid=False, remaining_hashes=remaining)


class TwoFactorService:
    """Persistence side of the two-factor lifecycle."""

    @staticmethod
    def setup(session: Session, user: User) -> TwoFactorSetup:
        """
        Start (or restart) enrollment.

        Stores a new secret and a fresh batch of hashed backup codes, replacing
        any previous batch. ``two_factor_enabled`` stays false until confirmed.

        Raises:
            ConflictError: If two-factor authentication is already enabled
        """
        if user.two_factor_enabled:
            raise ConflictError("Two-factor authentication is already enabled")

        secret = generate_secret()
        uri = provisioning_uri(user.email or user.id, secret)
        codes = generate_backup_codes()

        user.two_factor_secret = secret
        user.updated_at = utc_now()
        session.add(user)
        session.connection().execute(delete(BackupCode).where(col(BackupCode.user_id) == user.id))
        for code in codes:
            session.add(BackupCode(user_id=user.id, code_hash=hash_backup_code(code)))
        session.commit()
        session.refresh(user)

        logger.info(f"Two-factor setup started for user {user.id}")
        return TwoFactorSetup(
            secret=secret,
            provisioning_uri=uri,
            qr_code_url=qr_code_data_url(uri),
            backup_codes=codes,
        )

    @staticmethod
    def confirm(session: Session, user: User, code: str) -> User:
        """
        Enable two-factor authentication once the user proves their
        authenticator produces valid codes.

        The enabling write is conditional on the verified secret still being
        the stored one, so a concurrent re-setup makes this confirm fail.

        Raises:
            ValidationError: If setup was never started or 2FA is already on
            InvalidCodeError: If the code does not verify
        """
        if user.two_factor_enabled:
            raise ValidationError("Two-factor authentication is already enabled")
        secret = user.two_factor_secret
        if not secret:
            raise ValidationError("Two-factor setup has not been started")
        if not verify_totp(secret, code):
            logger.warning(f"Invalid 2FA confirmation code for user {user.id}")
            raise InvalidCodeError()

        statement = (
            update(User)
            .where(
                col(User.id) == user.id,
                col(User.two_factor_enabled) == False,  # noqa: E712
                col(User.two_factor_secret) == secret,
            )
            .values(two_factor_enabled=True, updated_at=utc_now())
        )
        result = session.connection().execute(statement)
        session.commit()
        if result.rowcount != 1:
            logger.warning(f"2FA confirmation for user {user.id} lost a race with another setup")
            raise InvalidCodeError()

        session.refresh(user)
        logger.info(f"Two-factor authentication enabled for user {user.id}")
        if user.email:
            email_service.send_two_factor_enabled_email(user.email)
        return user

    @staticmethod
    def disable(session: Session, user: User, code: str) -> User:
        """
        Turn two-factor authentication off. Requires a current TOTP code;
        backup codes are not accepted here.

        Raises:
            ValidationError: If two-factor authentication is not enabled
            InvalidCodeError: If the code does not verify
        """
        if not user.two_factor_enabled:
            raise ValidationError("Two-factor authentication is not enabled")
        if not verify_totp(user.two_factor_secret, code):
            logger.warning(f"Invalid 2FA disable code for user {user.id}")
            raise InvalidCodeError()

        user.two_factor_enabled = False
        user.two_factor_secret = None
        user.updated_at = utc_now()
        session.add(user)
        session.connection().execute(delete(BackupCode).where(col(BackupCode.user_id) == user.id))
        session.commit()
        session.refresh(user)
        logger.info(f"Two-factor authentication disabled for user {user.id}")
        return user

    @staticmethod
    def backup_code_hashes(session: Session, user_id: str) -> List[str]:
        statement = select(BackupCode.code_hash).where(BackupCode.user_id == user_id)
        return list(session.exec(statement).all())

    @staticmethod
    def use_backup_code(session: Session, user_id: str, code: str) -> bool:
        """
        Consume one backup code.

        The matching row is removed with a single DELETE; only the request
        whose DELETE affected the row succeeds, so concurrent uses of the same
        code cannot both pass.
        """
        check = consume_backup_code(TwoFactorService.backup_code_hashes(session, user_id), code)
        if not check.valid:
            return False

        row_id = session.exec(
            select(BackupCode.id)
            .where(BackupCode.user_id == user_id, BackupCode.code_hash == check.matched_hash)
            .limit(1)
        ).first()
        if row_id is None:
            return False

        result = session.connection().execute(delete(BackupCode).where(col(BackupCode.id) == row_id))
        session.commit()
        if result.rowcount != 1:
            logger.warning(f"Backup code for user {user_id} was consumed concurrently")
            return False

        logger.info(f"Backup code used by user {user_id}; {len(check.remaining_hashes)} remaining")
        return True

    @staticmethod
    def verify_second_factor(session: Session, user: User, code: str) -> bool:
        """TOTP first, then fall back to consuming a backup code."""
        if verify_totp(user.two_factor_secret, code):
            return True
        return TwoFactorService.use_backup_code(session, user.id, code)
