"""
Shared parsing utilities for model replies.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_response(text: str) -> dict:
    """
    Best-effort JSON extraction from LLM responses.

    Handles raw JSON, markdown code blocks, and text with embedded JSON.

    Args:
        text: Raw response text from LLM

    Returns:
        Parsed dictionary

    Raises:
        ValueError: If no valid JSON object can be extracted
    """
    if not text:
        raise ValueError("Empty response from model")

    candidates = [text]
    candidates.extend(match.group(1) for match in _FENCE.finditer(text))
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError("Could not extract valid JSON from response")


def coerce_str_list(value: Any) -> list[str]:
    """Normalize a model field that should be a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]
