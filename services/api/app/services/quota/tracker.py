"""Per-client usage tracker: store-authoritative, compare-and-swap writes.

Lifecycle: LOADING until start() has read (or created) the record, then
READY. Operations on one tracker queue on a lock; each re-reads the
store, decides, and writes back only if the stored text is unchanged,
so while the store is reachable any number of trackers for one key
never exceed the cap together.
"""

import asyncio
import enum
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime

from app.services.quota.clock import Clock, SystemClock
from app.services.quota.policy import QuotaPolicy, TimeUntilReset
from app.services.quota.record import QuotaRecord
from app.services.quota.store import QuotaStateStore, StoreUnavailable
from app.utils.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)


class TrackerState(str, enum.Enum):
    LOADING = "loading"
    READY = "ready"


class TrackerNotReady(RuntimeError):
    """An operation was called before start() completed."""


@dataclass(frozen=True)
class IncrementResult:
    allowed: bool
    persisted: bool = True


class UsageTracker:
    """
    Free-tier usage for one client key.

    The store holds the authoritative record. Every operation re-reads it,
    decides against the freshest copy, and writes back with
    compare-and-swap, so two trackers for the same key (other workers, or
    an evicted tracker still in use) cannot both take the last unit.

    Usage:
        tracker = UsageTracker(store, "usage_data_v1:abc", policy)
        await tracker.start()
        if (await tracker.try_increment()).allowed:
            ...run the analysis...
    """

    def __init__(
        self,
        store: QuotaStateStore,
        key: str,
        policy: QuotaPolicy,
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        max_conflicts: int = 5,
    ):
        self.store = store
        self.key = key
        self.policy = policy
        self.clock = clock or SystemClock()
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_conflicts = max_conflicts
        self.state = TrackerState.LOADING

        self._record: QuotaRecord | None = None
        # Text last seen in the store, the expected value for the next write
        self._stored_raw: str | bytes | None = None
        # Consumptions allowed while the store was unreachable
        self._pending = 0
        self._dirty = False
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> QuotaRecord:
        """Load the stored record, replacing it if absent, malformed or stale."""
        async with self._lock:
            if self.state is TrackerState.READY:
                return self._record

            if await self._sync():
                if self._dirty:
                    await self._save_quietly()
            else:
                # Don't clobber a record we merely failed to read
                self._record = self.policy.fresh_record(self.clock.now())
            self.state = TrackerState.READY
            return self._record

    async def flush(self) -> bool:
        """Write any pending change. Returns False if it is still unpersisted."""
        if not self._dirty:
            return True
        async with self._lock:
            for _ in range(self.max_conflicts):
                if not await self._sync():
                    return False
                if not self._dirty:
                    return True
                try:
                    if await self._save():
                        return True
                except StoreUnavailable as e:
                    logger.warning(f"Usage for {self.key} kept in memory only: {e}")
                    return False
            return False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_usage(self) -> QuotaRecord:
        self._require_ready()
        async with self._lock:
            if await self._sync() and self._dirty:
                await self._save_quietly()
            return self._refresh(self.clock.now())

    async def has_remaining(self) -> bool:
        record = await self.get_usage()
        return self.policy.can_consume(record)

    async def try_increment(self) -> IncrementResult:
        """
        Take one unit of quota if any remains.

        A denial changes nothing and is not persisted. An allowed
        consumption stands even if the store cannot be reached; it is
        written on the next successful sync.

        Raises:
            StoreUnavailable if other writers keep changing the record
        """
        self._require_ready()
        async with self._lock:
            for _ in range(self.max_conflicts):
                synced = await self._sync()
                now = self.clock.now()
                record = self._refresh(now)

                if not self.policy.can_consume(record):
                    logger.warning(
                        f"Usage limit reached for {self.key}: "
                        f"{record.used_count}/{self.policy.cap}, resets {record.reset_at.isoformat()}"
                    )
                    return IncrementResult(allowed=False, persisted=not self._dirty)

                self._record = self.policy.consume(record, now)
                self._dirty = True
                logger.debug(f"{self.key} used {self._record.used_count}/{self.policy.cap}")

                if not synced:
                    return self._keep_in_memory()
                try:
                    if await self._save():
                        return IncrementResult(allowed=True)
                except StoreUnavailable as e:
                    return self._keep_in_memory(e)

                logger.info(f"Usage for {self.key} changed concurrently, re-reading")

        raise StoreUnavailable(f"Usage for {self.key} kept changing after {self.max_conflicts} attempts")

    async def reset(self) -> QuotaRecord:
        """Start a new window now, discarding current usage."""
        self._require_ready()
        async with self._lock:
            for _ in range(self.max_conflicts):
                synced = await self._sync()
                self._pending = 0
                self._record = self.policy.fresh_record(self.clock.now())
                self._dirty = True
                if not synced:
                    break
                try:
                    if await self._save():
                        break
                except StoreUnavailable as e:
                    logger.warning(f"Usage reset for {self.key} kept in memory only: {e}")
                    break
            logger.info(f"Usage reset for {self.key}")
            return self._record

    def get_time_until_reset(self) -> TimeUntilReset:
        now = self.clock.now()
        return self.policy.time_until_reset(self._refresh(now), now)

    def get_usage_percentage(self) -> int:
        return self.policy.usage_percentage(self._refresh(self.clock.now()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_ready(self) -> None:
        if self.state is not TrackerState.READY:
            raise TrackerNotReady(f"Usage tracker for {self.key} has not finished loading")

    def _refresh(self, now: datetime) -> QuotaRecord:
        """Swap a stale cached record for a fresh one. Must not await."""
        self._require_ready()
        if self.policy.is_stale(self._record, now):
            logger.info(f"Usage window for {self.key} expired, starting a new one")
            self._record = self.policy.fresh_record(now)
            self._pending = 0
            self._dirty = True
        return self._record

    async def _sync(self) -> bool:
        """
        Replace the cached record with the stored one, healed and with any
        pending consumptions applied. Returns False if the store is unreachable.
        """
        try:
            result = await with_retry(
                self.store.load,
                self.key,
                policy=self.retry_policy,
                exceptions=(StoreUnavailable,),
            )
        except StoreUnavailable as e:
            logger.warning(f"Could not load usage for {self.key}, using cached copy: {e}")
            return False

        now = self.clock.now()
        self._stored_raw = result.raw
        changed = True
        if result.is_valid:
            record = self.policy.reconcile(result.record)
            if self.policy.is_stale(record, now):
                logger.info(f"Usage window for {self.key} expired at {record.reset_at.isoformat()}")
                record = self.policy.fresh_record(now)
            else:
                changed = False
        else:
            record = self.policy.fresh_record(now)

        if self._pending and self.policy.is_stale(self._record, now):
            # Pending usage belongs to a window that has since ended
            self._pending = 0
        if self._pending:
            consumed_at = self._record.last_consumed_at or now
            for _ in range(self._pending):
                if not self.policy.can_consume(record):
                    logger.warning(f"Dropping usage for {self.key} recorded while the store was unreachable")
                    break
                record = self.policy.consume(record, consumed_at)
            changed = True

        self._record = record
        self._dirty = changed
        return True

    async def _save(self) -> bool:
        """Compare-and-swap the cached record. False if another writer got there first."""
        raw = await with_retry(
            self.store.compare_and_save,
            self.key,
            self._stored_raw,
            self._record,
            policy=self.retry_policy,
            exceptions=(StoreUnavailable,),
        )
        if raw is None:
            return False
        self._stored_raw = raw
        self._pending = 0
        self._dirty = False
        return True

    async def _save_quietly(self) -> None:
        # A conflict or failure here is picked up by the next sync
        try:
            await self._save()
        except StoreUnavailable as e:
            logger.warning(f"Could not store usage for {self.key}: {e}")

    def _keep_in_memory(self, error: Exception | None = None) -> IncrementResult:
        self._pending += 1
        logger.warning(f"Usage for {self.key} kept in memory only: {error or 'store unreachable'}")
        return IncrementResult(allowed=True, persisted=False)


class TrackerRegistry:
    """
    One started tracker per client key, shared by concurrent requests.

    The store holds the authoritative record, so evicting the least
    recently used tracker is safe even while a request still holds it.
    """

    def __init__(
        self,
        store: QuotaStateStore,
        policy: QuotaPolicy,
        key_prefix: str = "usage_data_v1",
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
        max_trackers: int = 10_000,
    ):
        self.store = store
        self.policy = policy
        self.key_prefix = key_prefix
        self.clock = clock
        self.retry_policy = retry_policy
        self.max_trackers = max_trackers
        self._trackers: OrderedDict[str, UsageTracker] = OrderedDict()

    def key_for(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    async def get(self, client_id: str) -> UsageTracker:
        key = self.key_for(client_id)
        tracker = self._trackers.get(key)
        if tracker is None:
            tracker = UsageTracker(
                self.store,
                key,
                self.policy,
                clock=self.clock,
                retry_policy=self.retry_policy,
            )
            self._trackers[key] = tracker
            while len(self._trackers) > self.max_trackers:
                self._trackers.popitem(last=False)
        else:
            self._trackers.move_to_end(key)

        await tracker.start()
        return tracker

    def __len__(self) -> int:
        return len(self._trackers)
