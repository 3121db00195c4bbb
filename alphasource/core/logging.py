"""
Structured logging configuration using python-json-logger.

Auth logs must never carry credentials: ``RedactSecretsFilter`` masks known
secret fields passed through ``extra=`` and token query parameters embedded in
messages (verification links, for instance) before any handler formats them.
"""

import logging
import re
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from alphasource.core.config import settings

REDACTED = "[redacted]"

# Attribute names that may arrive through ``extra=`` and must not be emitted.
SECRET_FIELDS = frozenset(
    {
        "password",
        "password_hash",
        "two_factor_secret",
        "two_factor_code",
        "backup_code",
        "backup_codes",
        "challenge_token",
        "token",
        "id_token",
    }
)

_TOKEN_PARAM = re.compile(r"((?:token|challengeToken|idToken)=)[^&\s\"']+")


class RedactSecretsFilter(logging.Filter):
    """Mask secrets on the record in place. Never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in SECRET_FIELDS:
            if name in record.__dict__:
                setattr(record, name, REDACTED)
        if isinstance(record.msg, str) and "=" in record.msg:
            record.msg = _TOKEN_PARAM.sub(rf"\g<1>{REDACTED}", record.msg)
        return True


class AuthJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines with the service identity on every record."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = settings.PROJECT_NAME
        log_record["version"] = settings.VERSION
        log_record["level"] = record.levelname
        user_id = getattr(record, "user_id", None)
        if user_id:
            log_record["user_id"] = user_id


def setup_logging() -> None:
    """
    Configure application-wide logging.
    Uses JSON format in production, simpler format in development.
    """
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactSecretsFilter())

    if settings.DEBUG:
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = AuthJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            timestamp=True,
        )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Called again on reload and from tests; replace our handler, not stack it.
    for existing in list(root_logger.handlers):
        if getattr(existing, "_alphasource", False):
            root_logger.removeHandler(existing)
    handler._alphasource = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    # passlib warns about the optional bcrypt backend version on first use
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
