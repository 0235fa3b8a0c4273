"""Server-side usage ledger keyed by authenticated user id.

Backed by the users table (`usage`, `usage_reset_at`). Every mutation is a
single conditional UPDATE so concurrent requests for the same user,
from any number of processes, cannot push usage past the cap.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.database.base import as_utc
from app.models.user import User
from app.services.quota.clock import Clock, SystemClock
from app.services.quota.policy import QuotaPolicy
from app.services.quota.record import QuotaRecord
from app.services.quota.store import StoreUnavailable
from app.services.quota.tracker import IncrementResult
from app.utils.retry import RetryPolicy, sync_with_retry

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    """No user row exists for the given id."""


class ServerUsageLedger:
    """Same QuotaPolicy as the anonymous tracker, applied to user rows."""

    def __init__(
        self,
        db: Session,
        policy: QuotaPolicy,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.policy = policy
        self.clock = clock or SystemClock()
        self.retry_policy = retry_policy or RetryPolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_usage(self, user_id: str) -> QuotaRecord:
        """Current record for the user, starting a new window if the old one ended."""
        return self._with_retry(self._current, user_id, self._now())

    def increment_usage(self, user_id: str) -> IncrementResult:
        """Consume one unit if below the cap. Denials are not errors."""
        return self._with_retry(self._increment, user_id)

    def reset_usage(self, user_id: str) -> QuotaRecord:
        return self._with_retry(self._reset, user_id)

    def check_limit(self, user_id: str, cap: int | None = None) -> bool:
        """True if the user may run another analysis. Unknown users may not."""
        try:
            record = self.get_usage(user_id)
        except UserNotFoundError:
            return False
        limit = self.policy.cap if cap is None else cap
        return record.used_count < limit

    def list_users_due_for_reset(self, now: datetime | None = None) -> list[User]:
        """Users with usage whose window started more than one window length ago."""
        stmt = (
            select(User)
            .where(*self._due_for_reset(now))
            .order_by(User.usage_reset_at)
        )
        return list(self._with_retry(lambda: self.db.scalars(stmt).all()))

    def bulk_reset_usage(self, user_ids: list[str], now: datetime | None = None) -> int:
        """
        Reset many users in one statement. Returns the number of rows updated.

        Rows are re-checked against the same cutoff as list_users_due_for_reset,
        so a user who started a new window since the scan keeps their usage.
        """
        if not user_ids:
            return 0
        now = (now or self._now()).astimezone(timezone.utc)
        stmt = (
            update(User)
            .where(User.id.in_(user_ids), *self._due_for_reset(now))
            .values(usage=0, usage_reset_at=now)
        )
        count = self._with_retry(self._execute, stmt)
        logger.info(f"Bulk reset usage for {count} user(s)")
        return count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        # SQLite drops tzinfo, so only UTC may reach the database
        return self.clock.now().astimezone(timezone.utc)

    def _due_for_reset(self, now: datetime | None) -> tuple:
        now = (now or self._now()).astimezone(timezone.utc)
        cutoff = now - self.policy.window.length
        return User.usage_reset_at < cutoff, User.usage > 0

    def _with_retry(self, func, *args):
        try:
            return sync_with_retry(
                func,
                *args,
                policy=self.retry_policy,
                exceptions=(OperationalError,),
            )
        except OperationalError as e:
            raise StoreUnavailable(f"Usage ledger unavailable: {e}") from e

    def _execute(self, stmt) -> int:
        """Run one UPDATE in its own transaction and return the affected row count."""
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        # Loaded User objects may now be out of date
        self.db.expire_all()
        return result.rowcount

    def _to_record(self, usage: int, window_start: datetime, last_consumed_at: datetime | None) -> QuotaRecord:
        start = as_utc(window_start)
        record = QuotaRecord(
            used_count=usage,
            remaining_count=max(0, self.policy.cap - usage),
            reset_at=self.policy.window.next_reset(start),
            last_consumed_at=as_utc(last_consumed_at) if last_consumed_at else None,
        )
        return self.policy.reconcile(record)

    def _current(self, user_id: str, now: datetime, heal: bool = True) -> QuotaRecord:
        row = self.db.execute(
            select(User.usage, User.usage_reset_at, User.last_consumed_at).where(User.id == user_id)
        ).first()
        if row is None:
            raise UserNotFoundError(user_id)

        usage, window_start, last_consumed_at = row
        record = self._to_record(usage, window_start, last_consumed_at)
        if not heal or not self.policy.is_stale(record, now):
            return record

        # Compare-and-swap on the observed window start: only one request
        # starts the new window, the others see its result.
        swapped = self._execute(
            update(User)
            .where(User.id == user_id, User.usage_reset_at == window_start)
            .values(usage=0, usage_reset_at=now)
        )
        if swapped:
            logger.info(f"Usage window for user {user_id} expired, starting a new one")
            return self.policy.fresh_record(now)
        return self._current(user_id, now, heal=False)

    def _increment(self, user_id: str) -> IncrementResult:
        now = self._now()
        self._current(user_id, now)

        updated = self._execute(
            update(User)
            .where(User.id == user_id, User.usage < self.policy.cap)
            .values(usage=User.usage + 1, last_consumed_at=now)
        )
        if not updated:
            logger.warning(f"Usage limit reached for user {user_id} (cap {self.policy.cap})")
            return IncrementResult(allowed=False)

        logger.debug(f"User {user_id} consumed one analysis")
        return IncrementResult(allowed=True)

    def _reset(self, user_id: str) -> QuotaRecord:
        now = self._now()
        updated = self._execute(
            update(User)
            .where(User.id == user_id)
            .values(usage=0, usage_reset_at=now)
        )
        if not updated:
            raise UserNotFoundError(user_id)
        logger.info(f"Usage reset for user {user_id}")
        return self.policy.fresh_record(now)
