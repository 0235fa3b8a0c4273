import os

# Settings are read once and cached, so the environment must be set before app imports
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("USAGE_RESET_INTERVAL_SECONDS", "0")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.base import Base


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key enforcement in SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


from app.models import Analysis, QuotaState, User
from app.services.providers.claude import AnalysisFailed, AnalysisResult
from app.services.providers.transcripts import Transcript, TranscriptUnavailable
from app.services.quota import (
    InMemoryQuotaStore,
    ManualClock,
    NextMidnightWindow,
    QuotaPolicy,
    TrackerRegistry,
)
from app.utils.retry import RetryPolicy

# Ensure all models are imported so they're registered with Base.metadata
__all__ = ["Analysis", "QuotaState", "User"]

# Monday 2026-10-19, mid-afternoon UTC
START = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class FakeTranscriptFetcher:
    """Returns a canned transcript, or raises when `unavailable` is set."""

    def __init__(self, duration: int = 300):
        self.duration = duration
        self.unavailable = False
        self.calls: list[str] = []

    async def fetch(self, video_id: str) -> Transcript:
        self.calls.append(video_id)
        if self.unavailable:
            raise TranscriptUnavailable(f"No transcript for video {video_id}")
        return Transcript(
            video_id=video_id,
            text="Today we talk about habits. Start small and stay consistent.",
            duration=self.duration,
            language="en",
        )


class FakeVideoAnalyzer:
    """Returns a fixed analysis, or raises when `fail` is set."""

    def __init__(self):
        self.fail = False
        self.calls: list[str] = []

    async def analyze(self, transcript: str, title: str | None = None) -> AnalysisResult:
        self.calls.append(transcript)
        if self.fail:
            raise AnalysisFailed("Analysis service error")
        return AnalysisResult(
            summary="A short talk about building habits.",
            key_insights=["Small habits compound"],
            action_steps=["Pick one habit", "Track it daily"],
            examples=["Two push-ups a day"],
        )


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing.

    Uses StaticPool to ensure all connections share the same in-memory database.
    Without this, each connection would get a fresh database without tables.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    # Enable foreign key enforcement in SQLite
    event.listen(engine, "connect", _set_sqlite_pragma)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
def session(session_factory) -> Session:
    """Create a test database session."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def policy() -> QuotaPolicy:
    """Two analyses per UTC day."""
    return QuotaPolicy(cap=2, window=NextMidnightWindow())


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry budget without real sleeps."""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0)


@pytest.fixture
def memory_store() -> InMemoryQuotaStore:
    return InMemoryQuotaStore()


@pytest.fixture
def sample_user(session: Session) -> User:
    """Create a user with no usage, window started at START."""
    user = User(
        email="viewer@example.com",
        name="Viewer",
        usage=0,
        usage_reset_at=START,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def transcript_fetcher() -> FakeTranscriptFetcher:
    return FakeTranscriptFetcher()


@pytest.fixture
def video_analyzer() -> FakeVideoAnalyzer:
    return FakeVideoAnalyzer()


@pytest.fixture
def registry(memory_store, policy, clock, fast_retry) -> TrackerRegistry:
    return TrackerRegistry(
        store=memory_store,
        policy=policy,
        key_prefix="usage_data_v1",
        clock=clock,
        retry_policy=fast_retry,
    )


@pytest.fixture
def client(session_factory, registry, transcript_fetcher, video_analyzer) -> TestClient:
    """
    Create a FastAPI test client with in-memory database.

    Anonymous trackers run on an in-memory store and a manual clock;
    transcript and AI services are fakes.
    """
    # Import get_db from the same place routers import it
    from app.database import session as session_module
    from app.main import app
    from app.routers import analyses as analyses_router
    from app.services.utils import usage as usage_module

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    # Override the get_db function that routers use
    app.dependency_overrides[session_module.get_db] = override_get_db
    app.dependency_overrides[usage_module.get_tracker_registry] = lambda: registry
    app.dependency_overrides[analyses_router.get_transcript_fetcher] = lambda: transcript_fetcher
    app.dependency_overrides[analyses_router.get_video_analyzer] = lambda: video_analyzer

    with TestClient(app) as client:
        yield client

    # Clear overrides after test
    app.dependency_overrides.clear()


def register(client: TestClient, email: str = "viewer@example.com", password: str = "correct-horse") -> dict:
    """Register an account and return the token response body."""
    response = client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": "Viewer"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(token_body: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_body['accessToken']}"}
