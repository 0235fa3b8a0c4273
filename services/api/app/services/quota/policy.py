"""Pure quota decisions: staleness, consumption, and derived figures.

Nothing here performs I/O or reads the clock; callers pass `now`.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import NamedTuple, Protocol
from zoneinfo import ZoneInfo

from app.services.quota.record import QuotaRecord


class ResetWindow(Protocol):
    """Decides where the window that contains `now` ends."""

    length: timedelta

    def next_reset(self, now: datetime) -> datetime: ...


@dataclass(frozen=True)
class NextMidnightWindow:
    """
    Daily window that ends at the next local midnight.

    Two consumptions either side of midnight belong to different windows;
    two consumptions at 00:01 and 23:58 share one.
    """

    tz: tzinfo = timezone.utc
    length: timedelta = timedelta(days=1)

    def next_reset(self, now: datetime) -> datetime:
        local = now.astimezone(self.tz)
        midnight = datetime.combine(local.date() + timedelta(days=1), time(0), tzinfo=self.tz)
        return midnight.astimezone(timezone.utc)


@dataclass(frozen=True)
class RollingWindow:
    """Fixed-length window starting at the moment the record is created."""

    length: timedelta = timedelta(hours=24)

    def next_reset(self, now: datetime) -> datetime:
        return (now + self.length).astimezone(timezone.utc)


def window_from_settings(settings) -> ResetWindow:
    """Build the configured reset window (midnight by default)."""
    if settings.usage_window == "rolling":
        return RollingWindow(length=timedelta(hours=settings.usage_window_hours))
    if settings.usage_window != "midnight":
        raise ValueError(f"Unknown usage_window: {settings.usage_window!r}")
    return NextMidnightWindow(tz=ZoneInfo(settings.usage_timezone))


class TimeUntilReset(NamedTuple):
    hours: int
    minutes: int


def is_stale(record: QuotaRecord, now: datetime) -> bool:
    return now >= record.reset_at


def fresh_record(now: datetime, cap: int, window: ResetWindow) -> QuotaRecord:
    return QuotaRecord(
        used_count=0,
        remaining_count=max(0, cap),
        reset_at=window.next_reset(now),
        last_consumed_at=None,
    )


def reconcile(record: QuotaRecord, cap: int) -> QuotaRecord:
    """Re-evaluate a stored record against the cap in effect now."""
    cap = max(0, cap)
    used = min(record.used_count, cap)
    remaining = max(0, cap - used)
    if used == record.used_count and remaining == record.remaining_count:
        return record
    return replace(record, used_count=used, remaining_count=remaining)


def can_consume(record: QuotaRecord) -> bool:
    return record.remaining_count > 0


def consume(record: QuotaRecord, now: datetime) -> QuotaRecord:
    """
    Take one unit of quota.

    If nothing remains the same record object is returned, which callers
    can detect with an identity check.
    """
    if not can_consume(record):
        return record
    return replace(
        record,
        used_count=record.used_count + 1,
        remaining_count=record.remaining_count - 1,
        last_consumed_at=now,
    )


def time_until_reset(record: QuotaRecord, now: datetime) -> TimeUntilReset:
    """Whole hours and minutes until reset_at, floored; (0, 0) once passed."""
    seconds = (record.reset_at - now).total_seconds()
    if seconds <= 0:
        return TimeUntilReset(0, 0)
    hours, minutes = divmod(int(seconds // 60), 60)
    return TimeUntilReset(hours, minutes)


def seconds_until_reset(record: QuotaRecord, now: datetime) -> int:
    return max(0, math.ceil((record.reset_at - now).total_seconds()))


def usage_percentage(record: QuotaRecord, cap: int) -> int:
    if cap <= 0:
        return 100
    pct = math.floor(record.used_count / cap * 100 + 0.5)
    return max(0, min(100, pct))


@dataclass(frozen=True)
class QuotaPolicy:
    """The module functions bound to one cap and reset window."""

    cap: int
    window: ResetWindow

    def is_stale(self, record: QuotaRecord, now: datetime) -> bool:
        return is_stale(record, now)

    def fresh_record(self, now: datetime) -> QuotaRecord:
        return fresh_record(now, self.cap, self.window)

    def reconcile(self, record: QuotaRecord) -> QuotaRecord:
        return reconcile(record, self.cap)

    def can_consume(self, record: QuotaRecord) -> bool:
        return can_consume(record)

    def consume(self, record: QuotaRecord, now: datetime) -> QuotaRecord:
        return consume(record, now)

    def time_until_reset(self, record: QuotaRecord, now: datetime) -> TimeUntilReset:
        return time_until_reset(record, now)

    def usage_percentage(self, record: QuotaRecord) -> int:
        return usage_percentage(record, self.cap)

    @classmethod
    def from_settings(cls, settings) -> "QuotaPolicy":
        return cls(cap=settings.free_analysis_limit, window=window_from_settings(settings))
