"""Tag cluster synthesis: one combined call for the Tag Roundup section."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ..core.content import CONTENT_MAX_LENGTH
from ..core.types import ClusterSynthesis, Item
from ..llm.json_parser import parse_json_response
from ..llm.prompts import build_cluster_prompt
from ..llm.providers.base import TextProvider
from ..utils.logging import log_event

logger = logging.getLogger(__name__)

CLUSTER_MAX_TOKENS = 500


class TagClusterSynthesizer:
    def __init__(
        self,
        provider: TextProvider,
        max_tokens: int = CLUSTER_MAX_TOKENS,
        content_max_chars: int = CONTENT_MAX_LENGTH,
    ):
        self.provider = provider
        self.max_tokens = max_tokens
        self.content_max_chars = content_max_chars

    async def synthesize(self, tag: str, items: Sequence[Item]) -> ClusterSynthesis:
        """Synthesize an overview of the items sharing ``tag``.

        Never raises: any provider or parse failure yields the deterministic
        fallback synthesis.
        """
        prompt = build_cluster_prompt(tag, items, self.content_max_chars)
        try:
            content = await self.provider.complete(prompt, self.max_tokens)
            return _parse_synthesis(parse_json_response(content))
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Cluster synthesis failed, using fallback",
                level=logging.WARNING,
                event="synthesize_failed",
                tag=tag,
                count=len(items),
                error=f"{type(exc).__name__}: {exc}",
            )
            return fallback_synthesis(tag, items)


def fallback_synthesis(tag: str, items: Sequence[Item]) -> ClusterSynthesis:
    titles = [item.title or "Untitled" for item in items]
    first = items[0].title if items and items[0].title else "the first article"
    return ClusterSynthesis(
        overview=f"A collection of {len(items)} articles about {tag}.",
        key_insights=titles[:3],
        standout=f'Check out "{first}" first.',
    )


def _parse_synthesis(obj: dict[str, Any]) -> ClusterSynthesis:
    overview = str(obj.get("overview") or "").strip()
    if not overview:
        raise ValueError("Synthesis is missing an overview")
    insights = obj.get("keyInsights") or []
    if not isinstance(insights, list):
        insights = [insights]
    return ClusterSynthesis(
        overview=overview,
        key_insights=[str(i).strip() for i in insights if str(i).strip()],
        standout=str(obj.get("standout") or "").strip(),
    )
