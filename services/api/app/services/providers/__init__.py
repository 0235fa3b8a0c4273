"""External API provider wrappers."""

from app.services.providers.claude import (
    AnalysisFailed,
    AnalysisResult,
    ClaudeVideoAnalyzer,
    VideoAnalyzer,
    parse_analysis,
)
from app.services.providers.transcripts import (
    Transcript,
    TranscriptFetcher,
    TranscriptUnavailable,
    YouTubeTranscriptFetcher,
)

__all__ = [
    "AnalysisFailed",
    "AnalysisResult",
    "ClaudeVideoAnalyzer",
    "VideoAnalyzer",
    "parse_analysis",
    "Transcript",
    "TranscriptFetcher",
    "TranscriptUnavailable",
    "YouTubeTranscriptFetcher",
]
