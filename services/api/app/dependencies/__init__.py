"""FastAPI dependencies."""

from .rate_limit import (
    UsageSubject,
    consume_free_analysis,
    get_ledger,
    get_usage_subject,
    read_usage,
    reset_free_analyses,
)

__all__ = [
    "UsageSubject",
    "consume_free_analysis",
    "get_ledger",
    "get_usage_subject",
    "read_usage",
    "reset_free_analyses",
]
