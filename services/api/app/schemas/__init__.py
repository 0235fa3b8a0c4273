"""Pydantic schemas for API request/response validation."""

from .analysis import (
    AnalysisCreate,
    AnalysisCreatedResponse,
    AnalysisResponse,
    AnalysisSummaryResponse,
)
from .auth import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserStats,
)
from .common import PaginatedResponse
from .usage import TimeUntilResetResponse, UsageResetRequest, UsageResponse

__all__ = [
    # Analysis
    "AnalysisCreate",
    "AnalysisCreatedResponse",
    "AnalysisResponse",
    "AnalysisSummaryResponse",
    # Auth
    "LoginRequest",
    "MeResponse",
    "RegisterRequest",
    "TokenResponse",
    "UserResponse",
    "UserStats",
    # Common
    "PaginatedResponse",
    # Usage
    "TimeUntilResetResponse",
    "UsageResetRequest",
    "UsageResponse",
]
