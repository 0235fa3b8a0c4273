"""Usage schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.services.quota import QuotaPolicy, QuotaRecord


class TimeUntilResetResponse(BaseModel):
    hours: int
    minutes: int


class UsageResponse(BaseModel):
    """Caller's free-tier usage in the current window."""

    used_count: int = Field(alias="usedCount")
    remaining_count: int = Field(alias="remainingCount")
    limit: int
    reset_at: datetime = Field(alias="resetAt")
    last_consumed_at: datetime | None = Field(default=None, alias="lastConsumedAt")
    time_until_reset: TimeUntilResetResponse = Field(alias="timeUntilReset")
    percentage: int

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: QuotaRecord, policy: QuotaPolicy, now: datetime) -> "UsageResponse":
        remaining = policy.time_until_reset(record, now)
        return cls(
            used_count=record.used_count,
            remaining_count=record.remaining_count,
            limit=policy.cap,
            reset_at=record.reset_at,
            last_consumed_at=record.last_consumed_at,
            time_until_reset=TimeUntilResetResponse(hours=remaining.hours, minutes=remaining.minutes),
            percentage=policy.usage_percentage(record),
        )


class UsageResetRequest(BaseModel):
    """Manual reset. Admins may name another user."""

    user_id: str | None = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)
