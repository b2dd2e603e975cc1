"""
Per-item summarization and digest assembly.

Every provider call is recovered locally: a failed or unparsable response
falls back to the item's stored summary, then its title, then a generic
placeholder. Once selection has succeeded a digest is always produced.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Awaitable, Callable, Optional, Sequence

from ..config import SummaryConfig
from ..core.content import days_ago, estimate_read_time
from ..core.types import Digest, DigestSections, Item, SummarizedItem, TagRoundup
from ..errors import SummarizationError
from ..llm.json_parser import parse_json_response
from ..llm.prompts import build_article_prompt
from ..llm.providers.base import TextProvider
from ..utils.logging import log_event
from .pool import map_with_concurrency
from .synthesizer import TagClusterSynthesizer

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "No summary available"

ContentFetcher = Callable[[Item], Awaitable[Optional[str]]]
SectionCallback = Callable[[str, int], None]


def fallback_summary(item: Item) -> str:
    return item.summary or item.title or FALLBACK_SUMMARY


class Summarizer:
    """Enrich selected sections with summaries, ages and read times.

    Args:
        provider: Text-generation provider
        cfg: Summary settings (pool width, budgets, read-time constants)
        content_fetcher: Optional best-effort lookup of an item's full body;
            must return None instead of raising
        now: Reference time for ``days_ago``; defaults to the sections'
            generation time
        on_section: Optional callback receiving (section name, item count)
            after each section completes
    """

    def __init__(
        self,
        provider: TextProvider,
        cfg: SummaryConfig | None = None,
        content_fetcher: ContentFetcher | None = None,
        now: datetime | None = None,
        on_section: SectionCallback | None = None,
    ):
        self.provider = provider
        self.cfg = cfg or SummaryConfig()
        self.content_fetcher = content_fetcher
        self.now = now
        self.on_section = on_section
        self.synthesizer = TagClusterSynthesizer(
            provider,
            max_tokens=self.cfg.cluster_max_tokens,
            content_max_chars=self.cfg.content_max_chars,
        )

    async def summarize_item(self, item: Item) -> SummarizedItem:
        now = self.now or datetime.now(timezone.utc)
        status = "ok"
        try:
            ai_summary = await self._generate_summary(item)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Summarization failed, using fallback",
                level=logging.WARNING,
                event="summarize_failed",
                item_id=item.id,
                title=item.title,
                error=f"{type(exc).__name__}: {exc}",
            )
            ai_summary = fallback_summary(item)
            status = "fallback"

        body = await self._read_time_content(item)
        return SummarizedItem(
            item=item,
            ai_summary=ai_summary,
            days_ago=days_ago(item.created_at, now),
            read_time=estimate_read_time(body, self.cfg.words_per_minute, self.cfg.max_read_minutes),
            status=status,
        )

    async def summarize_many(self, items: Sequence[Item]) -> list[SummarizedItem]:
        return await map_with_concurrency(items, self.summarize_item, self.cfg.concurrency)

    async def summarize_sections(self, sections: DigestSections) -> Digest:
        """Summarize every selected section into a Digest.

        List sections go through the bounded pool one section at a time; the
        single-item sections are summarized directly.
        """
        if self.now is None:
            self.now = sections.stats.generated_at

        digest = Digest(stats=sections.stats)
        digest.recently_saved = await self.summarize_many(sections.recently_saved)
        self._section_done("recently_saved", len(digest.recently_saved))
        digest.buried_treasure = await self.summarize_many(sections.buried_treasure)
        self._section_done("buried_treasure", len(digest.buried_treasure))
        digest.this_month_last_year = await self.summarize_many(sections.this_month_last_year)
        self._section_done("this_month_last_year", len(digest.this_month_last_year))

        if sections.tag_roundup is not None:
            cluster = sections.tag_roundup
            summarized = await self.summarize_many(cluster.items)
            synthesis = await self.synthesizer.synthesize(cluster.tag, cluster.items)
            digest.tag_roundup = TagRoundup(tag=cluster.tag, items=summarized, synthesis=synthesis)
            self._section_done("tag_roundup", len(summarized))
        else:
            self._section_done("tag_roundup", 0)

        if sections.random_pick is not None:
            digest.random_pick = await self.summarize_item(sections.random_pick)
        self._section_done("random_pick", 1 if digest.random_pick else 0)
        if sections.from_the_archives is not None:
            digest.from_the_archives = await self.summarize_item(sections.from_the_archives)
        self._section_done("from_the_archives", 1 if digest.from_the_archives else 0)

        fallbacks = sum(1 for s in digest.all_items() if s.status == "fallback")
        log_event(
            logger,
            "Summarization complete",
            event="summarize_complete",
            count=len(digest.all_items()),
            fallbacks=fallbacks,
        )
        return digest

    async def _generate_summary(self, item: Item) -> str:
        prompt = build_article_prompt(item, self.cfg.content_max_chars)
        content = await self.provider.complete(prompt, self.cfg.article_max_tokens)
        obj = parse_json_response(content)
        summary = str(obj.get("summary") or "").strip()
        if not summary:
            raise SummarizationError("Response JSON has no summary")
        return summary

    async def _read_time_content(self, item: Item) -> str | None:
        if self.content_fetcher is not None and self.cfg.fetch_full_content:
            fetched = await self.content_fetcher(item)
            if fetched:
                return fetched
        return item.content

    def _section_done(self, section: str, count: int) -> None:
        log_event(logger, "Section summarized", event="section_summarized", section=section, count=count)
        if self.on_section is not None:
            self.on_section(section, count)
