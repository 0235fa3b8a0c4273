"""Account and token schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.auth.passwords import MAX_PASSWORD_BYTES
from app.schemas.analysis import AnalysisSummaryResponse


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8)
    name: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _check_password_bytes(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TokenResponse(BaseModel):
    access_token: str = Field(alias="accessToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    user: UserResponse

    model_config = ConfigDict(populate_by_name=True)


class UserStats(BaseModel):
    total_analyses: int = Field(alias="totalAnalyses")
    current_usage: int = Field(alias="currentUsage")
    remaining_usage: int = Field(alias="remainingUsage")
    recent_analyses: list[AnalysisSummaryResponse] = Field(alias="recentAnalyses")

    model_config = ConfigDict(populate_by_name=True)


class MeResponse(BaseModel):
    user: UserResponse
    stats: UserStats
