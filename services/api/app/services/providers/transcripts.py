"""YouTube transcript retrieval."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = ("en", "en-US", "en-GB")


class TranscriptUnavailable(Exception):
    """No transcript could be fetched for the video."""


@dataclass(frozen=True)
class Transcript:
    video_id: str
    text: str
    duration: int | None = None  # seconds
    language: str | None = None


class TranscriptFetcher(Protocol):
    async def fetch(self, video_id: str) -> Transcript: ...


class YouTubeTranscriptFetcher:
    """Caption track fetcher built on youtube-transcript-api."""

    def __init__(self, languages: tuple[str, ...] = DEFAULT_LANGUAGES, max_length: int | None = None):
        self.languages = languages
        self.max_length = max_length
        self._api = YouTubeTranscriptApi()

    def _fetch_sync(self, video_id: str) -> Transcript:
        try:
            fetched = self._api.fetch(video_id, languages=list(self.languages))
        except CouldNotRetrieveTranscript as e:
            raise TranscriptUnavailable(f"No transcript for video {video_id}") from e

        snippets = list(fetched)
        if not snippets:
            raise TranscriptUnavailable(f"Transcript for video {video_id} is empty")

        text = " ".join(s.text.strip() for s in snippets if s.text.strip())
        last = snippets[-1]
        duration = int(last.start + last.duration)

        if self.max_length and len(text) > self.max_length:
            logger.info(f"Truncating transcript for {video_id} from {len(text)} to {self.max_length} chars")
            text = text[: self.max_length]

        return Transcript(
            video_id=video_id,
            text=text,
            duration=duration,
            language=getattr(fetched, "language_code", None),
        )

    async def fetch(self, video_id: str) -> Transcript:
        return await asyncio.to_thread(self._fetch_sync, video_id)
