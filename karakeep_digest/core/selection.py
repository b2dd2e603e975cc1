"""Section selection: partitions items into six mutually exclusive sections.

Sections are filled in a fixed priority order. Every selected identifier is
added to a single used-id set, so an item chosen by an earlier section is
never offered to a later one:

    recently_saved -> buried_treasure -> this_month_last_year
        -> tag_roundup -> random_pick -> from_the_archives

Randomness comes from an injected ``random.Random`` so tests can seed it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import math
import random
from typing import Iterable, Sequence

from ..config import DigestConfig
from .content import age_in_days, filter_sufficient
from .types import DigestSections, DigestStats, Item, ScoredItem, TagCluster


PRIORITY_TAG_BONUS = 20.0
CONTENT_BONUS = 5.0
LONG_CONTENT_BONUS = 3.0


def priority_score(item: Item, now: datetime, priority_tags: Iterable[str]) -> float:
    """Score an item for the top-N ranking mode; higher means more urgent.

    Age contributes logarithmically, a priority tag adds a fixed bonus and
    longer content adds smaller bonuses.
    """
    age = max(age_in_days(item.created_at, now), 0.0)
    score = math.log(age + 1) * 10

    wanted = {tag.strip().lower() for tag in priority_tags if tag.strip()}
    if wanted and any(tag.lower() in wanted for tag in item.tags):
        score += PRIORITY_TAG_BONUS

    length = len(item.content or "")
    if length > 500:
        score += CONTENT_BONUS
    if length > 2000:
        score += LONG_CONTENT_BONUS
    return score


def rank_by_priority(
    items: Iterable[Item], now: datetime, priority_tags: Sequence[str]
) -> list[ScoredItem]:
    scored = [ScoredItem(item=item, score=priority_score(item, now, priority_tags)) for item in items]
    return sorted(scored, key=lambda s: s.score, reverse=True)


def select_sections(
    unread: Sequence[Item],
    last_year: Sequence[Item],
    archived: Sequence[Item],
    cfg: DigestConfig,
    now: datetime,
    rng: random.Random,
) -> DigestSections:
    """Select the six digest sections from the fetched collections.

    Args:
        unread: Unread items
        last_year: Items saved in this calendar month last year (unread and archived)
        archived: Archived items
        cfg: Section sizes, windows and thresholds
        now: Reference time for age windows
        rng: Random source for sampling

    Returns:
        DigestSections whose item identifiers are pairwise disjoint
    """
    # Cursor pages can shift between requests and repeat an item.
    unread = unique_by_id(unread)
    valid_unread = filter_sufficient(unread, cfg.min_content_length)
    valid_last_year = filter_sufficient(unique_by_id(last_year), cfg.min_content_length)
    valid_archived = filter_sufficient(unique_by_id(archived), cfg.min_content_length)

    used: set[str] = set()

    recent_cutoff = now - timedelta(days=cfg.recently_saved_days)
    recently_saved = _sample(
        [i for i in valid_unread if i.created_at >= recent_cutoff],
        cfg.recently_saved_count,
        used,
        rng,
    )

    buried_cutoff = now - timedelta(days=cfg.buried_treasure_days)
    buried_treasure = _sample(
        [i for i in valid_unread if i.created_at <= buried_cutoff],
        cfg.buried_treasure_count,
        used,
        rng,
    )

    this_month_last_year = _sample(valid_last_year, cfg.this_month_last_year_count, used, rng)

    tag_roundup = pick_tag_cluster(
        build_tag_map(valid_unread), used, rng, cfg.tag_min_items, cfg.tag_max_items
    )
    if tag_roundup:
        _mark_used(tag_roundup.items, used)

    random_pick = _pick_one(valid_unread, used, rng)
    from_the_archives = _pick_one(valid_archived, used, rng)

    return DigestSections(
        stats=DigestStats(
            total_unread=len(valid_unread),
            generated_at=now,
            fetched_unread=len(unread),
        ),
        recently_saved=recently_saved,
        buried_treasure=buried_treasure,
        this_month_last_year=this_month_last_year,
        tag_roundup=tag_roundup,
        random_pick=random_pick,
        from_the_archives=from_the_archives,
    )


def unique_by_id(items: Iterable[Item]) -> list[Item]:
    """Drop repeated identifiers, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


def build_tag_map(items: Iterable[Item]) -> dict[str, list[Item]]:
    """Map each tag to the items carrying it, counting each item once per tag."""
    tag_map: dict[str, list[Item]] = {}
    for item in unique_by_id(items):
        for tag in dict.fromkeys(item.tags):
            tag_map.setdefault(tag, []).append(item)
    return tag_map


def pick_tag_cluster(
    tag_map: dict[str, list[Item]],
    used: set[str],
    rng: random.Random,
    min_items: int = 3,
    max_items: int = 5,
) -> TagCluster | None:
    """Choose a random tag among those with at least min_items unused items.

    Choosing randomly rather than the most frequent tag spreads coverage
    across runs. Does not mutate ``used``.
    """
    qualifying: list[TagCluster] = []
    for tag, items in tag_map.items():
        available = _unused(items, used)
        if len(available) >= min_items:
            qualifying.append(TagCluster(tag=tag, items=available[:max_items]))

    if not qualifying:
        return None
    return rng.choice(qualifying)


def _sample(pool: Sequence[Item], count: int, used: set[str], rng: random.Random) -> list[Item]:
    available = _unused(pool, used)
    chosen = rng.sample(available, min(count, len(available))) if count > 0 else []
    _mark_used(chosen, used)
    return chosen


def _pick_one(pool: Sequence[Item], used: set[str], rng: random.Random) -> Item | None:
    available = _unused(pool, used)
    if not available:
        return None
    chosen = rng.choice(available)
    used.add(chosen.id)
    return chosen


def _unused(pool: Iterable[Item], used: set[str]) -> list[Item]:
    return [item for item in unique_by_id(pool) if item.id not in used]


def _mark_used(items: Iterable[Item], used: set[str]) -> None:
    for item in items:
        used.add(item.id)
