"""Orchestration and business logic."""

from app.services.core.analyses import (
    count_user_analyses,
    create_analysis,
    delete_analysis,
    get_analysis,
    get_recent_analyses,
    get_user_analyses,
)
from app.services.core.usage_reset import reset_due_users, run_usage_reset_loop

__all__ = [
    "count_user_analyses",
    "create_analysis",
    "delete_analysis",
    "get_analysis",
    "get_recent_analyses",
    "get_user_analyses",
    "reset_due_users",
    "run_usage_reset_loop",
]
