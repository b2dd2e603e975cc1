"""
Digest rendering for HTML and plain-text output.

HTML goes through a Jinja2 template; the plain-text body is built line by
line and mirrors the same section order.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import StoreConfig, get_reader_base_url
from ..core.types import Digest, SummarizedItem

_RULE = "=" * 50
_SUBRULE = "-" * 20


def format_date(value: datetime) -> str:
    """Format a date as "January 2, 2026"."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def reader_link(base_url: str, item_id: str) -> str:
    return f"{base_url}/reader/{item_id}"


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(Path(__file__).parent.parent / "templates")),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["display_title"] = _display_title
    return env


def render_html(digest: Digest, cfg: StoreConfig) -> str:
    """Render the digest as an HTML email body."""
    base_url = get_reader_base_url(cfg)
    template = _environment().get_template("digest.html")
    return template.render(
        digest=digest,
        total_unread=digest.stats.total_unread,
        formatted_date=format_date(digest.stats.generated_at),
        karakeep_url=base_url,
        reader_link=lambda item_id: reader_link(base_url, item_id),
    )


def render_plain_text(digest: Digest, cfg: StoreConfig) -> str:
    """Render the digest as a plain-text email body."""
    base_url = get_reader_base_url(cfg)
    lines: list[str] = [
        "YOUR WEEKLY KARAKEEP DIGEST",
        f"{digest.stats.total_unread} unread items - {format_date(digest.stats.generated_at)}",
        "",
        _RULE,
        "",
    ]

    def section(heading: str, subtitle: str | None, items: list[SummarizedItem]) -> None:
        if not items:
            return
        lines.append(heading)
        if subtitle:
            lines.append(subtitle)
        lines.append(_SUBRULE)
        for entry in items:
            lines.extend(_item_lines(entry, base_url))
        lines.append("")

    section("HOT OFF THE PRESS", "Your latest finds from the past month", digest.recently_saved)
    section("BURIED TREASURE", "Saved 30+ days ago, still unread", digest.buried_treasure)
    section(
        "THROWBACK: ONE YEAR AGO",
        "What you were reading this time last year",
        digest.this_month_last_year,
    )

    roundup = digest.tag_roundup
    if roundup is not None:
        lines.append(f"{roundup.tag.upper()} ROUNDUP")
        lines.append(_SUBRULE)
        lines.append(roundup.synthesis.overview)
        lines.append("")
        if roundup.synthesis.key_insights:
            lines.append("Key insights:")
            lines.extend(f"  - {insight}" for insight in roundup.synthesis.key_insights)
            lines.append("")
        if roundup.synthesis.standout:
            lines.append(f"Standout: {roundup.synthesis.standout}")
            lines.append("")
        lines.append("Articles:")
        for entry in roundup.items:
            lines.append(f"  * {_display_title(entry)}")
            lines.append(f"    {entry.read_time} min | {entry.days_ago}d ago | {entry.item.source}")
            lines.append(f"    {reader_link(base_url, entry.item.id)}")
        lines.append("")

    if digest.random_pick is not None:
        section("RANDOM PICK", None, [digest.random_pick])
    if digest.from_the_archives is not None:
        section(
            "FROM THE ARCHIVES",
            "A forgotten gem from your archived collection",
            [digest.from_the_archives],
        )

    if digest.is_empty:
        lines.append("Nothing to read this week. Your queue is empty.")
        lines.append("")

    lines.append(_RULE)
    lines.append("Generated by Karakeep Digest")
    if base_url:
        lines.append(f"Open Karakeep: {base_url}")
    return "\n".join(lines)


def _item_lines(entry: SummarizedItem, base_url: str) -> list[str]:
    return [
        f"* {_display_title(entry)}",
        f"  {entry.read_time} min read | Saved {entry.days_ago} days ago | {entry.item.source}",
        f"  {reader_link(base_url, entry.item.id)}",
        f"  {entry.ai_summary}",
        "",
    ]


def _display_title(entry: SummarizedItem) -> str:
    return entry.item.title or entry.item.url or "Untitled"
