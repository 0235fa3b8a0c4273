"""Wiring for the free-tier usage components from settings."""

from functools import lru_cache

from sqlalchemy.orm import Session

from app.config import get_settings
from app.database.session import SessionLocal
from app.services.quota import (
    QuotaPolicy,
    ServerUsageLedger,
    SqlQuotaStore,
    TrackerRegistry,
)
from app.utils.retry import RetryPolicy


def get_quota_policy() -> QuotaPolicy:
    return QuotaPolicy.from_settings(get_settings())


@lru_cache
def get_tracker_registry() -> TrackerRegistry:
    """Process-wide registry of anonymous trackers backed by the quota_states table."""
    settings = get_settings()
    return TrackerRegistry(
        store=SqlQuotaStore(SessionLocal),
        policy=get_quota_policy(),
        key_prefix=settings.usage_store_key,
        retry_policy=RetryPolicy.from_settings(),
    )


def get_usage_ledger(db: Session) -> ServerUsageLedger:
    return ServerUsageLedger(
        db,
        get_quota_policy(),
        retry_policy=RetryPolicy.from_settings(),
    )
