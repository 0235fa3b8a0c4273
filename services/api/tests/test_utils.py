"""Tests for URL validation and model reply parsing."""

import pytest

from app.services.providers.claude import AnalysisFailed, parse_analysis
from app.services.utils.parsing import coerce_str_list, extract_json_response
from app.services.utils.youtube import (
    InvalidYouTubeUrl,
    extract_video_id,
    is_valid_youtube_url,
    require_video_id,
)


class TestYouTubeUrls:
    """Test YouTube URL validation."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
            "https://m.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "http://youtu.be/dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=abc",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "  https://www.youtube.com/watch?v=dQw4w9WgXcQ  ",
        ],
    )
    def test_valid(self, url):
        assert extract_video_id(url) == "dQw4w9WgXcQ"
        assert is_valid_youtube_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "not a url",
            "https://vimeo.com/123456",
            "https://www.youtube.com/watch?v=short",
            "https://www.youtube.com/channel/UC123",
            "ftp://youtu.be/dQw4w9WgXcQ",
            "https://youtube.com.evil.example/watch?v=dQw4w9WgXcQ",
        ],
    )
    def test_invalid(self, url):
        assert extract_video_id(url) is None
        assert not is_valid_youtube_url(url)

    def test_require_video_id(self):
        assert require_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        with pytest.raises(InvalidYouTubeUrl):
            require_video_id("https://example.com")


class TestExtractJsonResponse:
    """Test JSON extraction from model replies."""

    def test_raw_json(self):
        assert extract_json_response('{"summary": "x"}') == {"summary": "x"}

    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"summary": "x"}\n```'
        assert extract_json_response(text) == {"summary": "x"}

    def test_embedded_json(self):
        assert extract_json_response('Result: {"a": 1} done') == {"a": 1}

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2]"])
    def test_no_object(self, text):
        with pytest.raises(ValueError):
            extract_json_response(text)


class TestCoerceStrList:
    def test_list(self):
        assert coerce_str_list([" a ", "", "b", 3]) == ["a", "b", "3"]

    def test_single_string(self):
        assert coerce_str_list("one") == ["one"]

    def test_other(self):
        assert coerce_str_list(None) == []
        assert coerce_str_list({"a": 1}) == []


class TestParseAnalysis:
    """Test turning a model reply into an AnalysisResult."""

    def test_camel_case_keys(self):
        result = parse_analysis(
            '{"summary": "Habits.", "keyInsights": ["Start small"], '
            '"actionSteps": ["Do one push-up"], "examples": ["Flossing one tooth"]}'
        )
        assert result.summary == "Habits."
        assert result.key_insights == ["Start small"]
        assert result.action_steps == ["Do one push-up"]
        assert result.examples == ["Flossing one tooth"]

    def test_snake_case_keys(self):
        result = parse_analysis('{"summary": "S", "key_insights": ["k"], "action_steps": ["a"]}')
        assert result.key_insights == ["k"]
        assert result.action_steps == ["a"]
        assert result.examples == []

    def test_missing_summary(self):
        with pytest.raises(AnalysisFailed):
            parse_analysis('{"keyInsights": ["k"]}')

    def test_not_json(self):
        with pytest.raises(AnalysisFailed):
            parse_analysis("I cannot help with that.")
