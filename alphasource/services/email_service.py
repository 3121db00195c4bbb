"""
Outbound email for the auth core.

Messages are either logged (``EMAIL_DELIVERY=log``, the default for local
development and tests) or handed to the RQ worker (``EMAIL_DELIVERY=queue``).
Delivery is fire-and-forget: a failure is logged and reported as ``False``,
never raised into the request.
"""

from dataclasses import dataclass
from html import escape
from urllib.parse import urlencode

from redis.exceptions import RedisError

from alphasource.core.config import settings
from alphasource.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


def send_email(message: EmailMessage) -> bool:
    """
    Deliver a message through the configured channel.

    Args:
        message: The message to send

    Returns:
        True if the message was handed off, False otherwise
    """
    if settings.EMAIL_DELIVERY == "log":
        logger.info(f"Email to {message.to}: {message.subject}")
        return True

    # Imported lazily so the web process only needs redis when queueing.
    from alphasource.workers.queue import enqueue_task
    from alphasource.workers.tasks import send_email_task

    try:
        enqueue_task(
            send_email_task,
            to=message.to,
            subject=message.subject,
            html=message.html,
            text=message.text,
        )
    except RedisError as e:
        logger.error(f"Failed to queue email '{message.subject}' to {message.to}: {e}")
        return False
    return True


def build_verification_email(email: str, token: str, base_url: str | None = None) -> EmailMessage:
    verify_url = f"{(base_url or settings.PUBLIC_BASE_URL).rstrip('/')}/verify-email?{urlencode({'token': token})}"
    site = settings.PROJECT_NAME
    html = (
        f"<h1>Welcome to {escape(site)}</h1>"
        f"<p>Please confirm your email address to start submitting codes and advertisements.</p>"
        f'<p><a href="{escape(verify_url)}">Verify email address</a></p>'
        f"<p>This link expires in {settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours.</p>"
    )
    text = (
        f"Welcome to {site}!\n\n"
        f"Verify your email address: {verify_url}\n\n"
        f"This link expires in {settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours."
    )
    return EmailMessage(to=email, subject=f"Verify your {site} email", html=html, text=text)


def build_two_factor_enabled_email(email: str) -> EmailMessage:
    site = settings.PROJECT_NAME
    html = (
        "<h1>Two-factor authentication enabled</h1>"
        f"<p>Two-factor authentication is now active on your {escape(site)} account.</p>"
        "<p>Keep your backup codes somewhere safe. If you did not make this change, "
        "reset your password and contact support immediately.</p>"
    )
    text = (
        f"Two-factor authentication is now active on your {site} account.\n\n"
        "If you did not make this change, reset your password and contact support immediately."
    )
    return EmailMessage(
        to=email,
        subject=f"Two-Factor Authentication Enabled - {site}",
        html=html,
        text=text,
    )


def send_verification_email(email: str, token: str) -> bool:
    return send_email(build_verification_email(email, token))


def send_two_factor_enabled_email(email: str) -> bool:
    return send_email(build_two_factor_enabled_email(email))
