"""Email confirmation lifecycle.

UNVERIFIED / PENDING_CONFIRMATION --issue--> PENDING_CONFIRMATION
PENDING_CONFIRMATION --consume--> CONFIRMED

A failed consumption leaves the account untouched.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from account_lifecycle.config import settings
from account_lifecycle.errors import DeliveryError, InvalidOrExpiredToken, InvalidStateError
from account_lifecycle.models.account import Account
from account_lifecycle.services.email import NotificationKind, Notifier, confirmation_link
from account_lifecycle.services.store import AccountStore
from account_lifecycle.utils.crypto import IssuedToken, digest_token, generate_token

logger = logging.getLogger(__name__)


class ConfirmationState(str, enum.Enum):
    UNVERIFIED = "unverified"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class ConfirmationIssued:
    raw_token: str
    expires_at: datetime
    delivered: bool

    def __repr__(self) -> str:
        return (
            f"ConfirmationIssued(raw_token=<redacted>, expires_at={self.expires_at!r}, "
            f"delivered={self.delivered!r})"
        )


def confirmation_ttl() -> timedelta:
    return timedelta(hours=settings.confirmation_token_ttl_hours)


def confirmation_state(account: Account) -> ConfirmationState:
    if account.is_confirmed:
        return ConfirmationState.CONFIRMED
    if account.confirmation_token is not None:
        return ConfirmationState.PENDING_CONFIRMATION
    return ConfirmationState.UNVERIFIED


def stored_confirmation_value(token: IssuedToken | str) -> str:
    """What goes into ``Account.confirmation_token`` for a token.

    The digest, unless legacy cleartext storage is switched on.
    """
    raw = token.raw if isinstance(token, IssuedToken) else token
    if settings.store_raw_confirmation_tokens:
        return raw
    return digest_token(raw)


def new_confirmation_token() -> tuple[IssuedToken, datetime]:
    """A fresh token and the moment it stops working."""
    return generate_token(), datetime.now(UTC) + confirmation_ttl()


async def deliver_confirmation(
    notifier: Notifier,
    account: Account,
    token: IssuedToken,
    expires_at: datetime,
    base_url: str,
) -> ConfirmationIssued:
    """Email the link for an already persisted token.

    A delivery failure is reported through ``delivered=False`` and never
    undoes the stored token.
    """
    delivered = True
    try:
        await notifier.send(
            NotificationKind.CONFIRMATION,
            account.email,
            confirmation_link(base_url, token.raw),
            username=account.username,
        )
    except DeliveryError:
        delivered = False
        logger.warning("Confirmation email for account %s was not delivered", account.account_id)

    return ConfirmationIssued(raw_token=token.raw, expires_at=expires_at, delivered=delivered)


async def issue_confirmation(
    store: AccountStore,
    notifier: Notifier,
    account: Account,
    base_url: str,
) -> ConfirmationIssued:
    """Give the account a fresh confirmation token and email the link.

    Any earlier token is overwritten and stops working. The token is
    persisted before the email goes out.
    """
    if confirmation_state(account) is ConfirmationState.CONFIRMED:
        raise InvalidStateError(
            code="ALREADY_CONFIRMED",
            message="This account is already confirmed.",
        )

    token, expires_at = new_confirmation_token()
    await store.set_confirmation_token(account, stored_confirmation_value(token), expires_at)
    logger.info("Confirmation token issued for account %s", account.account_id)

    return await deliver_confirmation(notifier, account, token, expires_at, base_url)


async def consume_confirmation(store: AccountStore, raw_token: str) -> Account:
    """Confirm the account owning ``raw_token``.

    Raises InvalidOrExpiredToken when the token is unknown, expired or was
    already used.
    """
    if not raw_token:
        raise InvalidOrExpiredToken()

    account = await store.consume_confirmation(
        stored_confirmation_value(raw_token), datetime.now(UTC)
    )
    if account is None:
        raise InvalidOrExpiredToken()

    logger.info("Account %s confirmed", account.account_id)
    return account
