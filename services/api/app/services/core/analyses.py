"""Analysis persistence and queries."""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.analysis import Analysis
from app.services.providers.claude import AnalysisResult
from app.services.providers.transcripts import Transcript

logger = logging.getLogger(__name__)


def create_analysis(
    db: Session,
    *,
    video_url: str,
    transcript: Transcript,
    result: AnalysisResult,
    user_id: str | None = None,
    title: str | None = None,
) -> Analysis:
    """Store a finished analysis. Quota has already been consumed by the caller."""
    analysis = Analysis(
        user_id=user_id,
        video_url=video_url,
        video_id=transcript.video_id,
        title=title,
        duration=transcript.duration,
        transcript=transcript.text,
        summary=result.summary,
        key_insights=list(result.key_insights),
        action_steps=list(result.action_steps),
        examples=list(result.examples),
    )
    db.add(analysis)
    db.commit()
    db.refresh(analysis)
    logger.info(f"Stored analysis {analysis.id} for video {analysis.video_id} (user={user_id})")
    return analysis


def get_analysis(db: Session, analysis_id: str) -> Analysis | None:
    return db.get(Analysis, analysis_id)


def get_user_analyses(
    db: Session,
    user_id: str,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Analysis], int]:
    """Newest-first page of a user's analyses and the total matching count."""
    conditions = [Analysis.user_id == user_id]
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                Analysis.title.ilike(pattern),
                Analysis.summary.ilike(pattern),
                Analysis.transcript.ilike(pattern),
            )
        )

    total = db.scalar(select(func.count(Analysis.id)).where(*conditions)) or 0
    items = db.scalars(
        select(Analysis)
        .where(*conditions)
        .order_by(Analysis.created_at.desc(), Analysis.id)
        .limit(limit)
        .offset(offset)
    ).all()
    return list(items), total


def get_recent_analyses(db: Session, limit: int = 10) -> list[Analysis]:
    """Public feed: latest analyses that have a title."""
    return list(
        db.scalars(
            select(Analysis)
            .where(Analysis.title.is_not(None))
            .order_by(Analysis.created_at.desc())
            .limit(limit)
        ).all()
    )


def delete_analysis(db: Session, analysis: Analysis) -> None:
    db.delete(analysis)
    db.commit()


def count_user_analyses(db: Session, user_id: str) -> int:
    return db.scalar(select(func.count(Analysis.id)).where(Analysis.user_id == user_id)) or 0
