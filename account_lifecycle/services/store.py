"""Account store: the queries and writes the token engine relies on.

Every read used to consume a token filters on expiry in SQL, and consumption
itself is one conditional UPDATE so two concurrent attempts cannot both win.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from account_lifecycle.errors import ConflictError, StoreUnavailable
from account_lifecycle.models.account import Account

logger = logging.getLogger(__name__)

_accounts = Account.__table__


class AccountStore:
    """Store adapter bound to a single ``AsyncSession``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _execute(self, stmt):  # type: ignore[no-untyped-def]
        try:
            return await self.db.execute(stmt)
        except (OperationalError, InterfaceError, OSError) as exc:
            logger.error("Account store unreachable: %s", exc)
            raise StoreUnavailable() from exc

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError() from exc
        except (OperationalError, InterfaceError, OSError) as exc:
            await self.db.rollback()
            logger.error("Account store unreachable: %s", exc)
            raise StoreUnavailable() from exc

    async def find_by_handle_or_email(self, username: str, email: str) -> Account | None:
        result = await self._execute(
            select(Account)
            .where(or_(Account.username == username, Account.email == email))
            .limit(1)
        )
        return result.scalars().first()

    async def find_by_email(self, email: str) -> Account | None:
        result = await self._execute(select(Account).where(Account.email == email))
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Account | None:
        result = await self._execute(select(Account).where(Account.username == username))
        return result.scalar_one_or_none()

    async def get(self, account_id: uuid.UUID) -> Account | None:
        """Load an account, overwriting any stale copy held by the session."""
        try:
            return await self.db.get(Account, account_id, populate_existing=True)
        except (OperationalError, InterfaceError, OSError) as exc:
            raise StoreUnavailable() from exc

    async def find_by_confirmation_token(self, value: str, now: datetime) -> Account | None:
        """Account holding this confirmation value with an unexpired token."""
        result = await self._execute(
            select(Account).where(
                Account.confirmation_token == value,
                Account.confirmation_expires > now,
            )
        )
        return result.scalar_one_or_none()

    async def find_by_reset_digest(self, digest: str, now: datetime) -> Account | None:
        """Account holding this reset digest with an unexpired token."""
        result = await self._execute(
            select(Account).where(
                Account.reset_token == digest,
                Account.reset_token_expires > now,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, account: Account) -> Account:
        """Insert a new account. Raises ConflictError on duplicate username/email."""
        self.db.add(account)
        await self._commit()
        return account

    async def save(self, account: Account) -> Account:
        """Persist pending changes on an account in one write."""
        self.db.add(account)
        await self._commit()
        return account

    async def set_confirmation_token(
        self, account: Account, value: str, expires: datetime
    ) -> Account:
        account.confirmation_token = value
        account.confirmation_expires = expires
        return await self.save(account)

    async def set_reset_token(
        self, account: Account, digest: str, expires: datetime
    ) -> Account:
        account.reset_token = digest
        account.reset_token_expires = expires
        return await self.save(account)

    async def consume_confirmation(self, value: str, now: datetime) -> Account | None:
        """Confirm the account holding ``value`` if its token is still live.

        Returns the updated account, or None when nothing matched (unknown,
        expired or already consumed).
        """
        result = await self._execute(
            update(_accounts)
            .where(
                _accounts.c.confirmation_token == value,
                _accounts.c.confirmation_expires > now,
            )
            .values(
                is_confirmed=True,
                confirmation_token=None,
                confirmation_expires=None,
            )
            .returning(_accounts.c.account_id)
        )
        account_id = result.scalar_one_or_none()
        await self._commit()
        if account_id is None:
            return None
        return await self.get(account_id)

    async def consume_reset(
        self, digest: str, password_hash: str, now: datetime
    ) -> Account | None:
        """Swap in a new password hash if the reset token is still live."""
        result = await self._execute(
            update(_accounts)
            .where(
                _accounts.c.reset_token == digest,
                _accounts.c.reset_token_expires > now,
            )
            .values(
                password_hash=password_hash,
                reset_token=None,
                reset_token_expires=None,
            )
            .returning(_accounts.c.account_id)
        )
        account_id = result.scalar_one_or_none()
        await self._commit()
        if account_id is None:
            return None
        return await self.get(account_id)

    async def delete_expired_unconfirmed(self, now: datetime) -> int:
        """Delete unconfirmed accounts whose confirmation window has closed."""
        result = await self._execute(
            delete(_accounts).where(
                _accounts.c.is_confirmed == False,  # noqa: E712
                _accounts.c.confirmation_expires < now,
            )
        )
        await self._commit()
        return result.rowcount
