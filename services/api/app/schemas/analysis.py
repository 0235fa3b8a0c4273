"""Analysis schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.usage import UsageResponse


class AnalysisCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    title: str | None = Field(default=None, max_length=500)


class AnalysisResponse(BaseModel):
    """Full analysis including the structured result."""

    id: str
    user_id: str | None = Field(default=None, alias="userId")
    video_url: str = Field(alias="videoUrl")
    video_id: str = Field(alias="videoId")
    title: str | None = None
    duration: int | None = None
    summary: str
    key_insights: list[str] = Field(alias="keyInsights")
    action_steps: list[str] = Field(alias="actionSteps")
    examples: list[str]
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AnalysisSummaryResponse(BaseModel):
    """Lightweight listing entry."""

    id: str
    video_id: str = Field(alias="videoId")
    title: str | None = None
    duration: int | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AnalysisCreatedResponse(BaseModel):
    analysis: AnalysisResponse
    usage: UsageResponse
