"""Free-tier quota helpers for FastAPI routes."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user_optional
from app.auth.schemas import CurrentUser
from app.database.session import get_db
from app.schemas.usage import UsageResponse
from app.services.quota import (
    QuotaPolicy,
    QuotaRecord,
    ServerUsageLedger,
    StoreUnavailable,
    TrackerRegistry,
    UserNotFoundError,
)
from app.services.quota.policy import seconds_until_reset
from app.services.utils.usage import get_usage_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageSubject:
    """Who is being counted: an authenticated user or an anonymous client."""

    user: CurrentUser | None
    client_id: str

    @property
    def label(self) -> str:
        return f"user {self.user.id}" if self.user else f"client {self.client_id}"


def get_usage_subject(
    request: Request,
    user: CurrentUser | None = Depends(get_current_user_optional),
    x_client_id: str | None = Header(None, alias="X-Client-Id"),
) -> UsageSubject:
    """Anonymous callers are keyed by X-Client-Id, falling back to their address."""
    client_id = (x_client_id or "").strip()[:128]
    if not client_id:
        client_id = request.client.host if request.client else "unknown"
    return UsageSubject(user=user, client_id=client_id)


def get_ledger(db: Session = Depends(get_db)) -> ServerUsageLedger:
    """Usage ledger bound to the request's database session."""
    return get_usage_ledger(db)


def _rate_limit_error(record: QuotaRecord, policy: QuotaPolicy, now: datetime) -> HTTPException:
    retry_after = seconds_until_reset(record, now)
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "detail": f"Free analysis limit of {policy.cap} reached. Resets at {record.reset_at.isoformat()}.",
            "error_type": "rate_limit",
            "limits": {
                "analyses": {
                    "used": record.used_count,
                    "max": policy.cap,
                    "remaining": record.remaining_count,
                    "resetAt": record.reset_at.isoformat(),
                },
            },
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


def _not_found(user_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


def _unavailable(e: StoreUnavailable) -> HTTPException:
    logger.error(f"Usage storage unavailable: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Usage tracking is temporarily unavailable",
    )


async def _call_ledger(func, user_id: str):
    # Ledger calls block (and may back off), so keep them off the event loop
    try:
        return await asyncio.to_thread(func, user_id)
    except UserNotFoundError:
        raise _not_found(user_id)
    except StoreUnavailable as e:
        raise _unavailable(e)


async def read_usage(
    subject: UsageSubject,
    ledger: ServerUsageLedger,
    registry: TrackerRegistry,
) -> UsageResponse:
    """Current usage for the subject, healing a stale window first."""
    if subject.user:
        record = await _call_ledger(ledger.get_usage, subject.user.id)
        return UsageResponse.from_record(record, ledger.policy, ledger.clock.now())

    tracker = await registry.get(subject.client_id)
    record = await tracker.get_usage()
    return UsageResponse.from_record(record, tracker.policy, tracker.clock.now())


async def consume_free_analysis(
    subject: UsageSubject,
    ledger: ServerUsageLedger,
    registry: TrackerRegistry,
) -> UsageResponse:
    """
    Take one free analysis for the subject or raise 429.

    Call this after validating the request and before invoking the
    analysis service.

    Raises:
        HTTPException 429 if the limit is reached
    """
    if subject.user:
        result = await _call_ledger(ledger.increment_usage, subject.user.id)
        record = await _call_ledger(ledger.get_usage, subject.user.id)
        policy, now = ledger.policy, ledger.clock.now()
    else:
        tracker = await registry.get(subject.client_id)
        try:
            result = await tracker.try_increment()
        except StoreUnavailable as e:
            raise _unavailable(e)
        record = await tracker.get_usage()
        policy, now = tracker.policy, tracker.clock.now()

    if not result.allowed:
        logger.warning(f"Free analysis limit reached for {subject.label}")
        raise _rate_limit_error(record, policy, now)

    return UsageResponse.from_record(record, policy, now)


async def reset_free_analyses(
    subject: UsageSubject,
    ledger: ServerUsageLedger,
    registry: TrackerRegistry,
    target_user_id: str | None = None,
) -> UsageResponse:
    """Start a fresh window for the subject, or for target_user_id."""
    user_id = target_user_id or (subject.user.id if subject.user else None)

    if user_id:
        record = await _call_ledger(ledger.reset_usage, user_id)
        return UsageResponse.from_record(record, ledger.policy, ledger.clock.now())

    tracker = await registry.get(subject.client_id)
    record = await tracker.reset()
    return UsageResponse.from_record(record, tracker.policy, tracker.clock.now())
