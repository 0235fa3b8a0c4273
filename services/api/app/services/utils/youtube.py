"""YouTube URL validation and video ID extraction."""

import re

# watch?v=, youtu.be/ and embed/ forms; IDs are 11 URL-safe characters
YOUTUBE_URL_PATTERNS = [
    re.compile(r"^https?://(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=(?P<id>[\w-]{11})(?:[&#].*)?$"),
    re.compile(r"^https?://youtu\.be/(?P<id>[\w-]{11})(?:[?#].*)?$"),
    re.compile(r"^https?://(?:www\.)?youtube\.com/embed/(?P<id>[\w-]{11})(?:[?#].*)?$"),
]


class InvalidYouTubeUrl(ValueError):
    """The submitted URL is not a recognised YouTube video URL."""


def extract_video_id(url: str) -> str | None:
    """Return the 11-character video ID, or None if the URL is not a video URL."""
    url = (url or "").strip()
    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group("id")
    return None


def is_valid_youtube_url(url: str) -> bool:
    return extract_video_id(url) is not None


def require_video_id(url: str) -> str:
    video_id = extract_video_id(url)
    if video_id is None:
        raise InvalidYouTubeUrl(f"Not a YouTube video URL: {url!r}")
    return video_id
