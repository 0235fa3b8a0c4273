"""Test SQLAlchemy models."""

from datetime import timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database.base import as_utc
from app.models import Analysis, QuotaState, User


def make_analysis(user_id: str | None, video_id: str = "dQw4w9WgXcQ", title: str | None = "Habits") -> Analysis:
    return Analysis(
        user_id=user_id,
        video_url=f"https://youtu.be/{video_id}",
        video_id=video_id,
        title=title,
        duration=300,
        transcript="transcript text",
        summary="summary",
        key_insights=["insight"],
        action_steps=["step one", "step two"],
        examples=[],
    )


class TestUser:
    """Test User model."""

    def test_create_user(self, session: Session):
        user = User(email="new@example.com")
        session.add(user)
        session.commit()

        assert user.id is not None
        assert len(user.id) == 36  # UUID format
        assert user.usage == 0
        assert user.usage_reset_at is not None
        assert user.last_consumed_at is None
        assert user.created_at is not None

    def test_email_unique(self, session: Session, sample_user: User):
        session.add(User(email=sample_user.email))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_reset_at_reads_back_as_utc(self, session: Session, sample_user: User):
        session.expire_all()
        user = session.get(User, sample_user.id)
        assert as_utc(user.usage_reset_at).tzinfo == timezone.utc


class TestAnalysis:
    """Test Analysis model."""

    def test_create_analysis(self, session: Session, sample_user: User):
        analysis = make_analysis(sample_user.id)
        session.add(analysis)
        session.commit()
        session.refresh(analysis)

        assert len(analysis.id) == 36
        assert analysis.action_steps == ["step one", "step two"]
        assert analysis.user.id == sample_user.id
        assert sample_user.analyses == [analysis]

    def test_anonymous_analysis(self, session: Session):
        analysis = make_analysis(None)
        session.add(analysis)
        session.commit()
        assert analysis.user is None

    def test_deleting_user_removes_analyses(self, session: Session, sample_user: User):
        session.add(make_analysis(sample_user.id))
        session.commit()

        session.delete(sample_user)
        session.commit()

        assert session.query(Analysis).count() == 0


class TestQuotaState:
    """Test QuotaState model."""

    def test_create(self, session: Session):
        session.add(QuotaState(key="usage_data_v1:abc", value="{}"))
        session.commit()

        row = session.get(QuotaState, "usage_data_v1:abc")
        assert row.value == "{}"
        assert row.updated_at is not None
