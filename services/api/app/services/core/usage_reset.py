"""Background reconciliation of server-side usage counters.

Counters heal themselves on read, so this loop only tidies rows for
users who have not come back since their window ended.
"""

import asyncio
import logging
from typing import Callable

from sqlalchemy.orm import Session

from app.config import get_settings
from app.services.utils.usage import get_usage_ledger

logger = logging.getLogger(__name__)


def reset_due_users(db: Session) -> int:
    """Reset every user whose window ended more than one window ago. Returns the count."""
    ledger = get_usage_ledger(db)
    now = ledger.clock.now()
    due = ledger.list_users_due_for_reset(now)
    if not due:
        return 0
    return ledger.bulk_reset_usage([user.id for user in due], now)


async def run_usage_reset_loop(
    db_factory: Callable[[], Session],
    interval: float | None = None,
) -> None:
    """
    Periodically reset stale usage counters.

    Args:
        db_factory: Factory to create DB sessions
        interval: Seconds between passes (default from settings, 0 disables)
    """
    if interval is None:
        interval = get_settings().usage_reset_interval_seconds

    if interval <= 0:
        logger.info("Usage reset loop disabled")
        return

    logger.info(f"Usage reset loop started: interval={interval}s")

    while True:
        db = db_factory()
        try:
            count = await asyncio.to_thread(reset_due_users, db)
            if count:
                logger.info(f"Usage reset loop reset {count} user(s)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Usage reset pass failed: {e}", exc_info=True)
        finally:
            db.close()

        await asyncio.sleep(interval)
