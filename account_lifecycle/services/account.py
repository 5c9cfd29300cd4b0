"""Account service: registration, confirmation resend, login."""

import asyncio
import logging
import uuid
from dataclasses import dataclass

from account_lifecycle.config import settings
from account_lifecycle.errors import (
    ConflictError,
    InvalidCredential,
    InvalidStateError,
    ValidationError,
)
from account_lifecycle.models.account import Account
from account_lifecycle.services.email import Notifier
from account_lifecycle.services.reset import normalize_email
from account_lifecycle.services.store import AccountStore
from account_lifecycle.services.verification import (
    ConfirmationIssued,
    ConfirmationState,
    confirmation_state,
    deliver_confirmation,
    issue_confirmation,
    new_confirmation_token,
    stored_confirmation_value,
)
from account_lifecycle.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registration:
    account: Account
    confirmation: ConfirmationIssued


async def register(
    store: AccountStore,
    notifier: Notifier,
    username: str,
    email: str,
    password: str,
    base_url: str,
) -> Registration:
    """Create an unconfirmed account and send its confirmation email.

    Raises ValidationError for missing fields and ConflictError when the
    username or email is already taken.
    """
    username = (username or "").strip()
    email = normalize_email(email or "")
    if not username or not email or not password:
        raise ValidationError("All fields are required.")
    if len(password.encode()) > settings.password_max_length:
        raise ValidationError(f"Password must be at most {settings.password_max_length} bytes.")

    if await store.find_by_handle_or_email(username, email) is not None:
        raise ConflictError()

    password_hash = await asyncio.to_thread(hash_password, password)
    token, expires_at = new_confirmation_token()
    account = Account(
        account_id=uuid.uuid4(),
        username=username,
        email=email,
        password_hash=password_hash,
        role="user",
        is_confirmed=False,
        confirmation_token=stored_confirmation_value(token),
        confirmation_expires=expires_at,
    )
    # The account and its token land in one insert. A concurrent registration
    # can still win between the lookup and the insert; the unique constraints
    # turn that into ConflictError here.
    await store.add(account)
    logger.info("Account %s registered", account.account_id)

    confirmation = await deliver_confirmation(notifier, account, token, expires_at, base_url)
    return Registration(account=account, confirmation=confirmation)


async def resend_confirmation(
    store: AccountStore,
    notifier: Notifier,
    email: str,
    base_url: str,
) -> ConfirmationIssued | None:
    """Re-issue the confirmation email for an unconfirmed account.

    Returns None, without raising, for unknown or already confirmed emails.
    """
    account = await store.find_by_email(normalize_email(email or ""))
    if account is None or confirmation_state(account) is ConfirmationState.CONFIRMED:
        return None
    return await issue_confirmation(store, notifier, account, base_url)


async def authenticate(store: AccountStore, identifier: str, password: str) -> Account:
    """Check a username-or-email / password pair.

    Raises InvalidCredential on a bad pair and InvalidStateError when the
    email has not been confirmed yet.
    """
    identifier = (identifier or "").strip()
    if not identifier or not password:
        raise ValidationError("All fields are required.")

    if "@" in identifier:
        account = await store.find_by_email(normalize_email(identifier))
    else:
        account = await store.find_by_username(identifier)

    password_hash = account.password_hash if account is not None else None
    if not await asyncio.to_thread(verify_password, password, password_hash):
        raise InvalidCredential("Invalid username or password.", status_code=401)

    if not account.is_confirmed:
        raise InvalidStateError(
            code="EMAIL_NOT_CONFIRMED",
            message="Please confirm your email before logging in.",
            status_code=403,
        )

    logger.info("Account %s logged in", account.account_id)
    return account
