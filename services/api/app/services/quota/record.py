"""Quota record value type and its storage codec.

The persisted form is a JSON object:

    {"usedCount": 1, "remainingCount": 1,
     "resetAt": "2026-10-20T00:00:00+00:00",
     "lastConsumedAt": "2026-10-19T14:02:11+00:00"}

Anything that does not match that shape decodes as MALFORMED and is
treated exactly like a missing record.
"""

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


@dataclass(frozen=True)
class QuotaRecord:
    """Usage in the current window for one client identity."""

    used_count: int
    remaining_count: int
    reset_at: datetime
    last_consumed_at: datetime | None = None


class StoredQuotaRecord(BaseModel):
    """Schema enforced at the store boundary."""

    used_count: int = Field(alias="usedCount", ge=0)
    remaining_count: int = Field(alias="remainingCount", ge=0)
    reset_at: datetime = Field(alias="resetAt")
    last_consumed_at: datetime | None = Field(default=None, alias="lastConsumedAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("used_count", "remaining_count", mode="before")
    @classmethod
    def _require_number(cls, value: Any) -> int:
        # Strings like "2" and booleans are not counters
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("must be finite")
        return int(value)

    @field_validator("reset_at", "last_consumed_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DecodeStatus(str, enum.Enum):
    VALID = "valid"
    MALFORMED = "malformed"
    ABSENT = "absent"


@dataclass(frozen=True)
class DecodeResult:
    """Tagged outcome of reading a persisted record."""

    status: DecodeStatus
    record: QuotaRecord | None = None
    error: str | None = None
    # Text as read, used as the expected value for compare-and-swap writes
    raw: str | bytes | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is DecodeStatus.VALID

    @classmethod
    def absent(cls) -> "DecodeResult":
        return cls(DecodeStatus.ABSENT)

    @classmethod
    def malformed(cls, error: str, raw: str | bytes | None = None) -> "DecodeResult":
        return cls(DecodeStatus.MALFORMED, error=error, raw=raw)

    @classmethod
    def valid(cls, record: QuotaRecord, raw: str | bytes | None = None) -> "DecodeResult":
        return cls(DecodeStatus.VALID, record=record, raw=raw)


def decode_record(raw: str | bytes | None) -> DecodeResult:
    """Parse and validate persisted text. Never raises."""
    if raw is None:
        return DecodeResult.absent()

    try:
        stored = StoredQuotaRecord.model_validate_json(raw)
    except ValidationError as e:
        return DecodeResult.malformed(f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}", raw)

    return DecodeResult.valid(
        QuotaRecord(
            used_count=stored.used_count,
            remaining_count=stored.remaining_count,
            reset_at=stored.reset_at,
            last_consumed_at=stored.last_consumed_at,
        ),
        raw,
    )


def encode_record(record: QuotaRecord) -> str:
    """Serialize a record to its persisted JSON form."""
    stored = StoredQuotaRecord(
        used_count=record.used_count,
        remaining_count=record.remaining_count,
        reset_at=record.reset_at,
        last_consumed_at=record.last_consumed_at,
    )
    return stored.model_dump_json(by_alias=True, exclude_none=True)
