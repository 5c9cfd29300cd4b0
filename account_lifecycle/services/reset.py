"""Password reset lifecycle.

NO_RESET_PENDING --issue--> RESET_PENDING --consume--> NO_RESET_PENDING

Only the digest of a reset token is ever stored. An unconsumed token is never
deleted, it just stops matching once its expiry passes.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from account_lifecycle.config import settings
from account_lifecycle.errors import DeliveryError, InvalidCredential, InvalidOrExpiredToken
from account_lifecycle.models.account import Account
from account_lifecycle.services.email import NotificationKind, Notifier, reset_link
from account_lifecycle.services.store import AccountStore
from account_lifecycle.utils.crypto import digest_token, generate_token, hash_password

logger = logging.getLogger(__name__)


class ResetState(str, enum.Enum):
    NO_RESET_PENDING = "no_reset_pending"
    RESET_PENDING = "reset_pending"


@dataclass(frozen=True)
class ResetIssued:
    """Outcome of a reset request.

    Has the same shape whether or not the email belongs to an account.
    ``raw_token`` is None when nothing was issued; never show it to the
    requester.
    """

    expires_at: datetime
    delivered: bool
    raw_token: str | None = None

    def __repr__(self) -> str:
        return f"ResetIssued(expires_at={self.expires_at!r}, delivered={self.delivered!r})"


def reset_ttl() -> timedelta:
    return timedelta(minutes=settings.reset_token_ttl_minutes)


def reset_state(account: Account, now: datetime | None = None) -> ResetState:
    expires = account.reset_token_expires
    if account.reset_token is None or expires is None:
        return ResetState.NO_RESET_PENDING
    now = now or datetime.now(UTC)
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=UTC)
    if expires <= now:
        return ResetState.NO_RESET_PENDING
    return ResetState.RESET_PENDING


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def issue_reset(
    store: AccountStore,
    notifier: Notifier,
    email: str,
    base_url: str,
) -> ResetIssued:
    """Start a password reset for ``email``.

    Unknown addresses get a result of the same shape and nothing is stored or
    sent, so the response does not reveal which emails have accounts.
    """
    email = normalize_email(email)
    token = generate_token()
    expires_at = datetime.now(UTC) + reset_ttl()

    account = await store.find_by_email(email)
    if account is None:
        logger.info("Password reset requested for unknown email")
        return ResetIssued(expires_at=expires_at, delivered=True)

    await store.set_reset_token(account, token.digest, expires_at)
    logger.info("Password reset token issued for account %s", account.account_id)

    delivered = True
    try:
        await notifier.send(
            NotificationKind.PASSWORD_RESET,
            account.email,
            reset_link(base_url, token.raw),
            username=account.username,
        )
    except DeliveryError:
        delivered = False
        logger.warning("Password reset email for account %s was not delivered", account.account_id)

    return ResetIssued(expires_at=expires_at, delivered=delivered, raw_token=token.raw)


async def consume_reset(store: AccountStore, raw_token: str, new_password: str | None) -> Account:
    """Replace the account's password using a live reset token.

    Raises InvalidCredential for a missing or empty password and
    InvalidOrExpiredToken when the token is unknown, expired or already used.
    """
    if not new_password:
        raise InvalidCredential("A new password is required.")
    if len(new_password.encode()) > settings.password_max_length:
        raise InvalidCredential(
            f"Password must be at most {settings.password_max_length} bytes."
        )
    if not raw_token:
        raise InvalidOrExpiredToken()

    password_hash = await asyncio.to_thread(hash_password, new_password)
    account = await store.consume_reset(digest_token(raw_token), password_hash, datetime.now(UTC))
    if account is None:
        raise InvalidOrExpiredToken()

    logger.info("Password reset completed for account %s", account.account_id)
    return account
