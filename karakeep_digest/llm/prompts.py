"""Prompt loading and rendering helpers for text-generation providers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Sequence

from ..core.content import CONTENT_MAX_LENGTH, item_text, truncate_content
from ..core.types import Item


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def build_article_prompt(item: Item, max_chars: int = CONTENT_MAX_LENGTH) -> str:
    return _render_template(
        "single_article",
        title=item.title or "Untitled",
        content=truncate_content(item_text(item), max_chars),
    )


def build_cluster_prompt(tag: str, items: Sequence[Item], max_chars: int = CONTENT_MAX_LENGTH) -> str:
    articles = "\n\n---\n\n".join(
        f"## {item.title or 'Untitled'}\n"
        f"{truncate_content(item.content or item.summary or '', max_chars)}"
        for item in items
    )
    return _render_template(
        "topic_cluster",
        count=str(len(items)),
        tag=tag,
        articles=articles,
    )
