"""Internal utility services."""

from app.services.utils.parsing import coerce_str_list, extract_json_response
from app.services.utils.usage import get_quota_policy, get_tracker_registry, get_usage_ledger
from app.services.utils.youtube import (
    InvalidYouTubeUrl,
    extract_video_id,
    is_valid_youtube_url,
    require_video_id,
)

__all__ = [
    # parsing
    "coerce_str_list",
    "extract_json_response",
    # usage
    "get_quota_policy",
    "get_tracker_registry",
    "get_usage_ledger",
    # youtube
    "InvalidYouTubeUrl",
    "extract_video_id",
    "is_valid_youtube_url",
    "require_video_id",
]
