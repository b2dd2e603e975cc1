"""Tolerant JSON parsing for model responses.

Models frequently wrap JSON in a markdown code fence or add a sentence
around it. The parser strips a leading/trailing fence first and falls back
to the outermost ``{...}`` span.
"""

from __future__ import annotations

import json
from typing import Any


def parse_json_response(content: str) -> dict[str, Any]:
    """Parse a JSON object from a model response.

    Raises:
        json.JSONDecodeError: If no JSON object can be decoded
    """
    if not content or not content.strip():
        raise json.JSONDecodeError("Empty content", content or "", 0)
    cleaned = strip_code_fence(content)
    try:
        obj = json.loads(cleaned)
    except json.JSONDecodeError:
        obj = json.loads(_extract_json_snippet(content))
    if not isinstance(obj, dict):
        raise json.JSONDecodeError("Expected a JSON object", content, 0)
    return obj


def strip_code_fence(content: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` marker."""
    cleaned = content.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _extract_json_snippet(content: str) -> str:
    fence = _extract_fenced_json(content)
    if fence:
        return fence
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return content[start : end + 1]


def _extract_fenced_json(content: str) -> str | None:
    lines = content.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        if line.strip().startswith("```"):
            start_idx = idx + 1
            break
    if start_idx is None:
        return None
    for idx in range(start_idx, len(lines)):
        if lines[idx].strip().startswith("```"):
            snippet = "\n".join(lines[start_idx:idx]).strip()
            return snippet or None
    return None
