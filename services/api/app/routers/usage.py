"""Free-tier usage endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.config import get_settings
from app.dependencies.rate_limit import (
    UsageSubject,
    get_ledger,
    get_usage_subject,
    read_usage,
    reset_free_analyses,
)
from app.schemas.usage import UsageResetRequest, UsageResponse
from app.services.quota import ServerUsageLedger, TrackerRegistry
from app.services.utils.usage import get_tracker_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("", response_model=UsageResponse)
async def get_usage(
    subject: UsageSubject = Depends(get_usage_subject),
    ledger: ServerUsageLedger = Depends(get_ledger),
    registry: TrackerRegistry = Depends(get_tracker_registry),
) -> UsageResponse:
    """Usage for the signed-in user, or for the anonymous client."""
    return await read_usage(subject, ledger, registry)


@router.post("/reset", response_model=UsageResponse)
async def reset_usage(
    data: UsageResetRequest | None = None,
    subject: UsageSubject = Depends(get_usage_subject),
    ledger: ServerUsageLedger = Depends(get_ledger),
    registry: TrackerRegistry = Depends(get_tracker_registry),
) -> UsageResponse:
    """
    Manually start a new usage window.

    Admins (ADMIN_USER_IDS) may reset any user by passing userId; in dev
    mode anyone may reset their own usage.
    """
    settings = get_settings()
    is_admin = subject.user is not None and subject.user.id in settings.admin_ids

    if not (is_admin or settings.is_dev_mode):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usage reset not allowed")

    target = data.user_id if data else None
    if target and not is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can reset other users")

    logger.info(f"Manual usage reset by {subject.label} (target={target or 'self'})")
    return await reset_free_analyses(subject, ledger, registry, target_user_id=target)
