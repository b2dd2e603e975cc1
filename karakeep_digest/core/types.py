"""
Core data types for the Karakeep Digest.

This module defines the data structures flowing through the pipeline:
- Item: A saved link as returned by the store
- ScoredItem: Item with a priority score, used only for ranking
- DigestSections: The six exclusive sections chosen for one run
- SummarizedItem: Item with AI summary, age and read time
- TagRoundup / ClusterSynthesis: The synthesized tag cluster
- Digest: Final aggregate handed to rendering and delivery
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Item:
    """A saved link (bookmark) fetched from the store.

    Attributes:
        id: Opaque, stable identifier
        url: Link target, empty string when the store has none
        created_at: Timezone-aware save timestamp
        title: Optional display title
        content: Optional raw text or HTML body
        summary: Optional summary previously computed by the store
        tags: Tag names; may repeat, order is irrelevant
        archived: Whether the item is archived
        favourited: Whether the item is favourited
        source: Display domain derived from url
        note: Optional user note
        content_asset_id: Optional asset holding the crawled body
    """

    id: str
    url: str
    created_at: datetime
    title: str | None = None
    content: str | None = None
    summary: str | None = None
    tags: tuple[str, ...] = ()
    archived: bool = False
    favourited: bool = False
    source: str = "unknown"
    note: str | None = None
    content_asset_id: str | None = None


@dataclass(frozen=True)
class ScoredItem:
    """Item paired with its priority score."""

    item: Item
    score: float


@dataclass
class TagCluster:
    """Tag chosen for the roundup together with its candidate items."""

    tag: str
    items: list[Item] = field(default_factory=list)


@dataclass
class DigestStats:
    """Run-level counts.

    ``total_unread`` counts unread items with enough text to summarize;
    ``fetched_unread`` counts every distinct unread item retrieved.
    """

    total_unread: int
    generated_at: datetime
    fetched_unread: int = 0


@dataclass
class DigestSections:
    """Mutually exclusive sections selected for one run.

    No item identifier appears in more than one section.
    """

    stats: DigestStats
    recently_saved: list[Item] = field(default_factory=list)
    buried_treasure: list[Item] = field(default_factory=list)
    this_month_last_year: list[Item] = field(default_factory=list)
    tag_roundup: TagCluster | None = None
    random_pick: Item | None = None
    from_the_archives: Item | None = None

    def all_items(self) -> list[Item]:
        items = [*self.recently_saved, *self.buried_treasure, *self.this_month_last_year]
        if self.tag_roundup:
            items.extend(self.tag_roundup.items)
        if self.random_pick:
            items.append(self.random_pick)
        if self.from_the_archives:
            items.append(self.from_the_archives)
        return items

    def counts(self) -> dict[str, int | str | None]:
        """Section sizes as plain data for logging and progress display."""
        return {
            "recently_saved": len(self.recently_saved),
            "buried_treasure": len(self.buried_treasure),
            "this_month_last_year": len(self.this_month_last_year),
            "tag_roundup": len(self.tag_roundup.items) if self.tag_roundup else 0,
            "tag_roundup_tag": self.tag_roundup.tag if self.tag_roundup else None,
            "random_pick": 1 if self.random_pick else 0,
            "from_the_archives": 1 if self.from_the_archives else 0,
        }


@dataclass(frozen=True)
class SummarizedItem:
    """Item enriched for rendering.

    Attributes:
        item: The original Item
        ai_summary: Generated summary, or a fallback when generation failed
        days_ago: Whole days since the item was saved
        read_time: Estimated reading time in minutes, within [1, 90]
        status: "ok" or "fallback"
    """

    item: Item
    ai_summary: str
    days_ago: int
    read_time: int
    status: str = "ok"


@dataclass
class ClusterSynthesis:
    overview: str
    key_insights: list[str] = field(default_factory=list)
    standout: str = ""


@dataclass
class TagRoundup:
    tag: str
    items: list[SummarizedItem]
    synthesis: ClusterSynthesis


@dataclass
class Digest:
    """Complete per-run output handed to rendering; never persisted."""

    stats: DigestStats
    recently_saved: list[SummarizedItem] = field(default_factory=list)
    buried_treasure: list[SummarizedItem] = field(default_factory=list)
    this_month_last_year: list[SummarizedItem] = field(default_factory=list)
    tag_roundup: TagRoundup | None = None
    random_pick: SummarizedItem | None = None
    from_the_archives: SummarizedItem | None = None

    def all_items(self) -> list[SummarizedItem]:
        items = [*self.recently_saved, *self.buried_treasure, *self.this_month_last_year]
        if self.tag_roundup:
            items.extend(self.tag_roundup.items)
        if self.random_pick:
            items.append(self.random_pick)
        if self.from_the_archives:
            items.append(self.from_the_archives)
        return items

    @property
    def is_empty(self) -> bool:
        return not self.all_items()
