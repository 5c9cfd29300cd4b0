"""Email sending service.

Supports two backends:
- SMTP via aiosmtplib (production)
- Log-only (development / testing): logs the email instead of sending

Set EMAIL_BACKEND=smtp and configure SMTP_* settings for production.
Default is EMAIL_BACKEND=log which just logs the link.

``Notifier`` is the narrow bridge the token engine talks to: it renders the
confirmation / password reset message and hands it to a sender. Any transport
failure surfaces as ``DeliveryError``.
"""

import enum
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Protocol

import aiosmtplib

from account_lifecycle.config import settings
from account_lifecycle.errors import DeliveryError

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    CONFIRMATION = "confirmation"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    text: str
    html: str | None = None


class EmailSender(Protocol):
    async def send(self, message: OutboundEmail) -> None: ...


class LogEmailSender:
    """Development sender: logs email content instead of sending."""

    async def send(self, message: OutboundEmail) -> None:
        logger.info("EMAIL to=%s subject=%s\n%s", message.to, message.subject, message.text)


class SmtpEmailSender:
    """Production sender: sends via SMTP."""

    async def send(self, message: OutboundEmail) -> None:
        msg = EmailMessage()
        msg["From"] = f'"{settings.smtp_from_name}" <{settings.smtp_from_address}>'
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        if message.html:
            msg.add_alternative(message.html, subtype="html")

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )


def get_email_sender() -> EmailSender:
    if settings.email_backend == "smtp":
        return SmtpEmailSender()
    return LogEmailSender()


def confirmation_link(base_url: str, raw_token: str) -> str:
    return f"{base_url.rstrip('/')}/confirm/{raw_token}"


def reset_link(base_url: str, raw_token: str) -> str:
    return f"{base_url.rstrip('/')}/reset-password/{raw_token}"


def _button(link: str, label: str) -> str:
    return (
        f'<p style="text-align: center;"><a href="{escape(link)}" '
        'style="display: inline-block; background-color: #B22222; color: white; '
        'padding: 12px 24px; text-decoration: none; border-radius: 6px; font-weight: bold;">'
        f"{label}</a></p>"
    )


def _wrap(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; color: #333; max-width: 600px; '
        'margin: auto; padding: 20px; border: 1px solid #eee; border-radius: 10px;">'
        f"{body}"
        f'<p style="margin-top: 40px;">The {escape(settings.smtp_from_name)} Team</p>'
        "</div>"
    )


def render(kind: NotificationKind, recipient: str, link: str, username: str | None = None) -> OutboundEmail:
    """Build the outbound message for a notification kind."""
    app_name = settings.smtp_from_name
    if kind is NotificationKind.CONFIRMATION:
        greeting = f"Thanks for signing up, {escape(username)}!" if username else "Thanks for signing up!"
        hours = settings.confirmation_token_ttl_hours
        return OutboundEmail(
            to=recipient,
            subject=f"Confirm your {app_name} account",
            text=(
                f"Click this link to confirm your account:\n\n{link}\n\n"
                f"This link expires in {hours} hours.\n\n"
                f"If you did not create this account, ignore this email."
            ),
            html=_wrap(
                f'<h2 style="color: #B22222; text-align: center;">Welcome to {escape(app_name)}</h2>'
                f"<p>{greeting}</p>"
                "<p>Please confirm your email address by clicking the button below:</p>"
                f"{_button(link, 'Confirm My Account')}"
                "<p>If you didn't create this account, just ignore this message.</p>"
            ),
        )

    minutes = settings.reset_token_ttl_minutes
    return OutboundEmail(
        to=recipient,
        subject=f"Reset your {app_name} password",
        text=(
            f"Click this link to choose a new password:\n\n{link}\n\n"
            f"This link expires in {minutes} minutes.\n\n"
            f"If you did not request a password reset, ignore this email."
        ),
        html=_wrap(
            f'<h2 style="color: #B22222; text-align: center;">{escape(app_name)} password reset</h2>'
            "<p>Someone asked to reset the password for this account.</p>"
            f"{_button(link, 'Choose a New Password')}"
            "<p>If it wasn't you, just ignore this message. Your password stays the same.</p>"
        ),
    )


class Notifier:
    """Bridge between the token engine and an email transport."""

    def __init__(self, sender: EmailSender | None = None) -> None:
        self._sender = sender

    @property
    def sender(self) -> EmailSender:
        if self._sender is None:
            self._sender = get_email_sender()
        return self._sender

    async def send(
        self,
        kind: NotificationKind,
        recipient: str,
        link: str,
        username: str | None = None,
    ) -> None:
        """Send a notification. Raises DeliveryError on transport failure."""
        message = render(kind, recipient, link, username)
        try:
            await self.sender.send(message)
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("Failed to send %s email to %s: %s", kind.value, recipient, exc)
            raise DeliveryError() from exc
        logger.info("%s email sent to %s", kind.value, recipient)
