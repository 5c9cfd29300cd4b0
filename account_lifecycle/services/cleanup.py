"""Purge accounts that were never confirmed before their token expired.

Runs outside the request path (see scripts/cleanup_unconfirmed.py). The token
engine does not depend on it: an expired confirmation token fails to match
whether or not the account has been purged yet.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from account_lifecycle.services.store import AccountStore

logger = logging.getLogger(__name__)


async def purge_expired_unconfirmed(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete unconfirmed accounts whose confirmation expired. Returns the count."""
    deleted = await AccountStore(db).delete_expired_unconfirmed(now or datetime.now(UTC))
    logger.info("Deleted %d unconfirmed expired account(s)", deleted)
    return deleted
