"""
Claude-backed video analysis.

Transcript in, structured analysis out. The model is asked for a JSON
object; anything else is reported as AnalysisFailed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import anthropic

from app.config import get_settings
from app.services.utils.parsing import coerce_str_list, extract_json_response

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You analyze YouTube video transcripts for busy viewers.
Reply with a single JSON object and nothing else, using exactly these keys:
  "summary": a concise paragraph describing what the video covers,
  "keyInsights": list of the most important ideas,
  "actionSteps": list of concrete steps a viewer can take,
  "examples": list of examples or stories used in the video.
Lists hold plain strings. Do not invent content that is not in the transcript."""


class AnalysisFailed(Exception):
    """The analysis service failed or returned an unusable reply."""


@dataclass(frozen=True)
class AnalysisResult:
    summary: str
    key_insights: list[str] = field(default_factory=list)
    action_steps: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)


class VideoAnalyzer(Protocol):
    async def analyze(self, transcript: str, title: str | None = None) -> AnalysisResult: ...


def _anthropic_client() -> anthropic.AsyncAnthropic:
    settings = get_settings()
    if not settings.anthropic_api_key:
        raise AnalysisFailed("Anthropic API key must be configured")
    return anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)


def parse_analysis(text: str) -> AnalysisResult:
    """Turn the model's JSON reply into an AnalysisResult."""
    try:
        data = extract_json_response(text)
    except ValueError as e:
        raise AnalysisFailed(str(e)) from e

    summary = str(data.get("summary") or "").strip()
    if not summary:
        raise AnalysisFailed("Model reply has no summary")

    return AnalysisResult(
        summary=summary,
        key_insights=coerce_str_list(data.get("keyInsights") or data.get("key_insights")),
        action_steps=coerce_str_list(data.get("actionSteps") or data.get("action_steps")),
        examples=coerce_str_list(data.get("examples")),
    )


class ClaudeVideoAnalyzer:
    def __init__(self, model: str | None = None, max_tokens: int = 2048):
        self.model = model or get_settings().claude_model
        self.max_tokens = max_tokens

    async def analyze(self, transcript: str, title: str | None = None) -> AnalysisResult:
        client = _anthropic_client()
        heading = f"Title: {title}\n\n" if title else ""

        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": f"{heading}Transcript:\n{transcript}"}],
                temperature=0.2,
            )
        except anthropic.APIError as e:
            logger.error(f"Claude analysis request failed: {e}")
            raise AnalysisFailed("Analysis service error") from e

        text = "".join(
            block.text for block in response.content or [] if getattr(block, "type", None) == "text"
        )
        return parse_analysis(text)
