"""Health check endpoints."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Check API health status."""
    return {"status": "healthy"}


@router.get("/health/db")
def database_health(db: Session = Depends(get_db)) -> dict:
    """Round-trip a trivial query and report how long it took."""
    timestamp = datetime.now(timezone.utc).isoformat()
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e), "timestamp": timestamp}

    return {
        "status": "healthy",
        "responseTime": round((time.perf_counter() - start) * 1000, 2),
        "timestamp": timestamp,
    }
