#!/usr/bin/env python3
"""
Delete accounts that were never confirmed before their confirmation link expired.

Meant to be run periodically (cron, scheduled job). Safe to run at any time:
confirmed accounts and unexpired confirmation windows are never touched.

Run:
  python scripts/cleanup_unconfirmed.py
"""

import asyncio
import logging
import sys

from account_lifecycle.database import async_session, engine
from account_lifecycle.services.cleanup import purge_expired_unconfirmed

logger = logging.getLogger("cleanup_unconfirmed")


async def main() -> int:
    try:
        async with async_session() as db:
            await purge_expired_unconfirmed(db)
    except Exception:
        logger.exception("Error during cleanup")
        return 1
    finally:
        await engine.dispose()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main()))
