"""Free-tier usage quota: policy, storage, and the trackers built on them."""

from .clock import Clock, ManualClock, SystemClock
from .ledger import ServerUsageLedger, UserNotFoundError
from .policy import (
    NextMidnightWindow,
    QuotaPolicy,
    ResetWindow,
    RollingWindow,
    TimeUntilReset,
    window_from_settings,
)
from .record import DecodeResult, DecodeStatus, QuotaRecord, decode_record, encode_record
from .store import (
    InMemoryQuotaStore,
    JsonFileQuotaStore,
    QuotaStateStore,
    SqlQuotaStore,
    StoreUnavailable,
)
from .tracker import IncrementResult, TrackerNotReady, TrackerRegistry, TrackerState, UsageTracker

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "ServerUsageLedger",
    "UserNotFoundError",
    "NextMidnightWindow",
    "QuotaPolicy",
    "ResetWindow",
    "RollingWindow",
    "TimeUntilReset",
    "window_from_settings",
    "DecodeResult",
    "DecodeStatus",
    "QuotaRecord",
    "decode_record",
    "encode_record",
    "InMemoryQuotaStore",
    "JsonFileQuotaStore",
    "QuotaStateStore",
    "SqlQuotaStore",
    "StoreUnavailable",
    "IncrementResult",
    "TrackerNotReady",
    "TrackerRegistry",
    "TrackerState",
    "UsageTracker",
]
