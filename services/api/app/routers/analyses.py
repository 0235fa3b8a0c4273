"""Video analysis endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.config import get_settings
from app.database.session import get_db
from app.dependencies.rate_limit import (
    UsageSubject,
    consume_free_analysis,
    get_ledger,
    get_usage_subject,
)
from app.models.analysis import Analysis
from app.schemas.analysis import (
    AnalysisCreate,
    AnalysisCreatedResponse,
    AnalysisResponse,
    AnalysisSummaryResponse,
)
from app.schemas.common import PaginatedResponse
from app.services.core.analyses import (
    create_analysis as store_analysis,
    delete_analysis as remove_analysis,
    get_analysis as load_analysis,
    get_recent_analyses,
    get_user_analyses,
)
from app.services.providers.claude import AnalysisFailed, ClaudeVideoAnalyzer, VideoAnalyzer
from app.services.providers.transcripts import (
    TranscriptFetcher,
    TranscriptUnavailable,
    YouTubeTranscriptFetcher,
)
from app.services.quota import ServerUsageLedger, TrackerRegistry
from app.services.utils.usage import get_tracker_registry
from app.services.utils.youtube import extract_video_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyses", tags=["analyses"])


def get_transcript_fetcher() -> TranscriptFetcher:
    return YouTubeTranscriptFetcher(max_length=get_settings().max_transcript_length)


def get_video_analyzer() -> VideoAnalyzer:
    return ClaudeVideoAnalyzer()


@router.post("", response_model=AnalysisCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_analysis(
    data: AnalysisCreate,
    subject: UsageSubject = Depends(get_usage_subject),
    db: Session = Depends(get_db),
    ledger: ServerUsageLedger = Depends(get_ledger),
    registry: TrackerRegistry = Depends(get_tracker_registry),
    fetcher: TranscriptFetcher = Depends(get_transcript_fetcher),
    analyzer: VideoAnalyzer = Depends(get_video_analyzer),
) -> AnalysisCreatedResponse:
    """
    Analyze a YouTube video.

    The URL is validated first, then one free analysis is consumed; the
    transcript and AI services are only called once that is allowed.
    """
    video_id = extract_video_id(data.url)
    if video_id is None:
        raise HTTPException(status_code=400, detail="Please enter a valid YouTube URL")

    usage = await consume_free_analysis(subject, ledger, registry)

    try:
        transcript = await fetcher.fetch(video_id)
    except TranscriptUnavailable as e:
        logger.warning(f"Transcript unavailable for {video_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="This video has no transcript available",
        )

    max_minutes = get_settings().max_video_duration_minutes
    if transcript.duration and transcript.duration > max_minutes * 60:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Videos longer than {max_minutes} minutes are not supported",
        )

    try:
        result = await analyzer.analyze(transcript.text, title=data.title)
    except AnalysisFailed as e:
        logger.error(f"Analysis failed for {video_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Analysis service failed")

    analysis = store_analysis(
        db,
        video_url=data.url,
        transcript=transcript,
        result=result,
        user_id=subject.user.id if subject.user else None,
        title=data.title,
    )
    return AnalysisCreatedResponse(
        analysis=AnalysisResponse.model_validate(analysis),
        usage=usage,
    )


@router.get("", response_model=PaginatedResponse[AnalysisSummaryResponse])
def list_analyses(
    search: str | None = Query(None, max_length=200),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """List the current user's analyses, newest first."""
    items, total = get_user_analyses(db, user.id, search=search, limit=limit, offset=offset)
    return {
        "items": items,
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + limit < total,
    }


@router.get("/recent", response_model=list[AnalysisSummaryResponse])
def recent_analyses(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> list[Analysis]:
    """Public feed of recent titled analyses."""
    return get_recent_analyses(db, limit=limit)


def _owned_analysis(analysis_id: str, user: CurrentUser, db: Session) -> Analysis:
    analysis = load_analysis(db, analysis_id)
    if not analysis or analysis.user_id != user.id:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis


@router.get("/{analysis_id}", response_model=AnalysisResponse)
def get_analysis(
    analysis_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Analysis:
    """Get one of the current user's analyses."""
    return _owned_analysis(analysis_id, user, db)


@router.delete("/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_analysis(
    analysis_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    """Delete one of the current user's analyses."""
    remove_analysis(db, _owned_analysis(analysis_id, user, db))
