"""Tests for the email confirmation lifecycle."""

import asyncio
from datetime import UTC, datetime, timedelta

import aiosmtplib
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from account_lifecycle.config import settings
from account_lifecycle.errors import InvalidOrExpiredToken, InvalidStateError
from account_lifecycle.models.account import Account
from account_lifecycle.services import account as account_service
from account_lifecycle.services.store import AccountStore
from account_lifecycle.services.verification import (
    ConfirmationState,
    confirmation_state,
    consume_confirmation,
    issue_confirmation,
)
from account_lifecycle.utils.crypto import digest_token

from tests.conftest import TEST_BASE_URL, TEST_PASSWORD, aware


@pytest.mark.asyncio
async def test_register_nova_issues_confirmation(store, notifier, email_sender):
    """Registering nova creates an unconfirmed account with a 24h token and emails nova."""
    before = datetime.now(UTC)
    result = await account_service.register(
        store, notifier, "nova", "nova@x.com", TEST_PASSWORD, TEST_BASE_URL
    )

    account = await store.find_by_email("nova@x.com")
    assert account.is_confirmed is False
    assert confirmation_state(account) is ConfirmationState.PENDING_CONFIRMATION
    expires = aware(account.confirmation_expires)
    assert before + timedelta(hours=24) <= expires <= datetime.now(UTC) + timedelta(hours=24)

    email_sender.send.assert_awaited_once()
    message = email_sender.send.call_args.args[0]
    assert message.to == "nova@x.com"
    assert f"{TEST_BASE_URL}/confirm/{result.confirmation.raw_token}" in message.text
    assert result.confirmation.delivered is True


@pytest.mark.asyncio
async def test_confirmation_token_stored_as_digest(store, notifier, make_account):
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)

    assert account.confirmation_token == digest_token(issued.raw_token)
    assert account.confirmation_token != issued.raw_token


@pytest.mark.asyncio
async def test_legacy_mode_stores_raw_confirmation_token(store, notifier, make_account):
    object.__setattr__(settings, "store_raw_confirmation_tokens", True)
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)

    assert account.confirmation_token == issued.raw_token
    confirmed = await consume_confirmation(store, issued.raw_token)
    assert confirmed.is_confirmed is True


@pytest.mark.asyncio
async def test_consume_confirmation_twice(store, notifier, make_account):
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)

    confirmed = await consume_confirmation(store, issued.raw_token)
    assert confirmed.is_confirmed is True
    assert confirmed.confirmation_token is None
    assert confirmed.confirmation_expires is None
    assert confirmation_state(confirmed) is ConfirmationState.CONFIRMED

    with pytest.raises(InvalidOrExpiredToken):
        await consume_confirmation(store, issued.raw_token)


@pytest.mark.asyncio
async def test_reissue_invalidates_prior_token(store, notifier, make_account):
    account = await make_account()
    first = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    second = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    assert first.raw_token != second.raw_token

    with pytest.raises(InvalidOrExpiredToken):
        await consume_confirmation(store, first.raw_token)

    confirmed = await consume_confirmation(store, second.raw_token)
    assert confirmed.is_confirmed is True


@pytest.mark.asyncio
async def test_expired_token_rejected_even_when_digest_matches(store, notifier, make_account):
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    await store.set_confirmation_token(
        account, digest_token(issued.raw_token), datetime.now(UTC) - timedelta(seconds=1)
    )

    with pytest.raises(InvalidOrExpiredToken):
        await consume_confirmation(store, issued.raw_token)

    refreshed = await store.get(account.account_id)
    assert refreshed.is_confirmed is False


@pytest.mark.asyncio
async def test_bogus_token_mutates_nothing(store, notifier, make_account):
    account = await make_account()
    await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    stored = account.confirmation_token

    with pytest.raises(InvalidOrExpiredToken):
        await consume_confirmation(store, "bogus")

    refreshed = await store.get(account.account_id)
    assert refreshed.is_confirmed is False
    assert refreshed.confirmation_token == stored


@pytest.mark.asyncio
async def test_empty_token_rejected(store):
    with pytest.raises(InvalidOrExpiredToken):
        await consume_confirmation(store, "")


@pytest.mark.asyncio
async def test_unknown_and_expired_share_one_error(store, notifier, make_account):
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    await store.set_confirmation_token(
        account, digest_token(issued.raw_token), datetime.now(UTC) - timedelta(hours=1)
    )

    with pytest.raises(InvalidOrExpiredToken) as expired:
        await consume_confirmation(store, issued.raw_token)
    with pytest.raises(InvalidOrExpiredToken) as unknown:
        await consume_confirmation(store, "nope")
    assert expired.value.message == unknown.value.message
    assert expired.value.code == unknown.value.code


@pytest.mark.asyncio
async def test_issue_on_confirmed_account_rejected(store, notifier, make_account, email_sender):
    account = await make_account(is_confirmed=True)
    assert confirmation_state(account) is ConfirmationState.CONFIRMED

    with pytest.raises(InvalidStateError):
        await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    email_sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_unverified_state_without_token(make_account):
    account = await make_account()
    assert confirmation_state(account) is ConfirmationState.UNVERIFIED


@pytest.mark.asyncio
async def test_delivery_failure_keeps_token(store, notifier, make_account, email_sender):
    email_sender.send.side_effect = aiosmtplib.SMTPConnectError("unreachable")
    account = await make_account()

    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    assert issued.delivered is False

    # The token was committed before the send and still works
    confirmed = await consume_confirmation(store, issued.raw_token)
    assert confirmed.is_confirmed is True


@pytest.mark.asyncio
async def test_digest_never_in_result(store, notifier, make_account):
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    assert account.confirmation_token not in repr(issued)
    assert issued.raw_token not in repr(issued)


@pytest.mark.asyncio
async def test_stale_reader_loses_race(store, notifier, make_account):
    """Both callers saw a live token; only the first conditional update lands."""
    account = await make_account()
    issued = await issue_confirmation(store, notifier, account, TEST_BASE_URL)
    value = digest_token(issued.raw_token)
    now = datetime.now(UTC)

    assert await store.find_by_confirmation_token(value, now) is not None
    assert await store.consume_confirmation(value, now) is not None
    assert await store.consume_confirmation(value, now) is None


@pytest.mark.asyncio
async def test_concurrent_confirmations_exactly_one_wins(file_engine, notifier):
    async with AsyncSession(file_engine, expire_on_commit=False) as session:
        result = await account_service.register(
            AccountStore(session), notifier, "nova", "nova@x.com", TEST_PASSWORD, TEST_BASE_URL
        )
    raw = result.confirmation.raw_token

    async def attempt():
        async with AsyncSession(file_engine, expire_on_commit=False) as session:
            return await consume_confirmation(AccountStore(session), raw)

    outcomes = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    assert sum(isinstance(o, Account) for o in outcomes) == 1
    assert sum(isinstance(o, InvalidOrExpiredToken) for o in outcomes) == 1
