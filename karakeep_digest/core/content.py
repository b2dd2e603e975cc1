"""Content helpers: sufficiency filtering, read time, age and truncation."""

from __future__ import annotations

from datetime import datetime
import math
from typing import Iterable

from bs4 import BeautifulSoup

from .types import Item


MIN_CONTENT_LENGTH = 200
CONTENT_MAX_LENGTH = 8000
WORDS_PER_MINUTE = 238
MAX_READ_MINUTES = 90
TRUNCATION_MARKER = "\n\n[... content truncated ...]\n\n"

_SECONDS_PER_DAY = 24 * 60 * 60


def filter_sufficient(items: Iterable[Item], min_length: int = MIN_CONTENT_LENGTH) -> list[Item]:
    """Keep items with enough content or summary text to summarize.

    Either field may carry the text since summarization falls back from
    content to summary. Order is preserved.
    """
    return [
        item
        for item in items
        if len(item.content or "") >= min_length or len(item.summary or "") >= min_length
    ]


def strip_markup(text: str) -> str:
    """Return the visible text of an HTML fragment (plain text passes through)."""
    if "<" not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(separator=" ")


def estimate_read_time(
    content: str | None,
    words_per_minute: int = WORDS_PER_MINUTE,
    max_minutes: int = MAX_READ_MINUTES,
) -> int:
    """Estimate reading time in minutes, clamped to [1, max_minutes].

    Items without content read in one minute; the read time is always shown.
    """
    if not content:
        return 1
    word_count = len(strip_markup(content).split())
    minutes = math.ceil(word_count / words_per_minute)
    return max(1, min(minutes, max_minutes))


def days_ago(created_at: datetime, now: datetime) -> int:
    """Whole days elapsed since created_at, never negative."""
    elapsed = (now - created_at).total_seconds()
    return max(0, math.floor(elapsed / _SECONDS_PER_DAY))


def age_in_days(created_at: datetime, now: datetime) -> float:
    return (now - created_at).total_seconds() / _SECONDS_PER_DAY


def truncate_content(text: str, max_chars: int = CONTENT_MAX_LENGTH) -> str:
    """Truncate long content keeping both the beginning and the end."""
    if len(text) <= max_chars:
        return text
    half = max(max_chars // 2 - 50, 1)
    return f"{text[:half]}{TRUNCATION_MARKER}{text[-half:]}"


def item_text(item: Item) -> str:
    """Best text to send to the model: content, then summary, then title."""
    return item.content or item.summary or item.title or ""
