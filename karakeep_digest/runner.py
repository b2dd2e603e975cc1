"""
Main pipeline orchestration for the Karakeep Digest.

This module coordinates one digest run:
1. Fetch unread and archived bookmarks from Karakeep
2. Select the six exclusive digest sections
3. Summarize every selected item (bounded concurrency, per-item fallback)
4. Render HTML and plain-text output files
5. Deliver by email when requested

Retrieval or configuration failures abort the run. Summarization failures
never do; the digest degrades to fallback text instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from pathlib import Path
import random

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from .config import AppConfig, validate_config
from .core.selection import rank_by_priority, select_sections, unique_by_id
from .core.types import Digest
from .fetch.client import KarakeepClient, filter_date_range, last_year_month_range
from .llm.providers import TextProvider, create_provider
from .llm.tracing import set_span_output, setup_langfuse, start_span
from .output.email import send_digest
from .output.renderer import render_html, render_plain_text
from .summarize.summarizer import SectionCallback, Summarizer
from .utils.logging import log_event, setup_llm_logger, setup_logging

logger = logging.getLogger(__name__)

_SECTION_COUNT = 6
_TOP_CANDIDATES = 5
_STAGES = ("Fetch", "Select", "Summarize", "Render", "Deliver")


@dataclass
class RunResult:
    """Outcome of one pipeline run.

    Attributes:
        digest: The assembled digest
        html_path: Written HTML file, if enabled
        text_path: Written plain-text file, if enabled
        sent: Whether the email was delivered
        message_id: Message-ID of the delivered email
    """

    digest: Digest
    html_path: Path | None = None
    text_path: Path | None = None
    sent: bool = False
    message_id: str | None = None


async def build_digest(
    cfg: AppConfig,
    client: KarakeepClient,
    provider: TextProvider,
    rng: random.Random,
    now: datetime,
    on_section: SectionCallback | None = None,
) -> Digest:
    """Fetch, select and summarize; the async core of a run."""
    with start_span("karakeep_digest.fetch", kind="retriever") as span:
        unread = await client.fetch_unread()
        archived = await client.fetch_archived()
        set_span_output(span, {"unread": len(unread), "archived": len(archived)})

    # The last-year pool is drawn from both collections already in memory.
    start, end = last_year_month_range(now)
    last_year = filter_date_range([*unread, *archived], start, end)

    with start_span(
        "karakeep_digest.select",
        kind="chain",
        input_value={"unread": len(unread), "last_year": len(last_year), "archived": len(archived)},
    ) as span:
        sections = select_sections(unread, last_year, archived, cfg.digest, now, rng)
        counts = sections.counts()
        set_span_output(span, counts)
    log_event(
        logger,
        "Sections selected",
        event="sections_selected",
        total_unread=sections.stats.total_unread,
        **counts,
    )
    ranked = rank_by_priority(unique_by_id(unread), now, cfg.digest.priority_tags)[:_TOP_CANDIDATES]
    log_event(
        logger,
        "Top unread by priority",
        event="priority_candidates",
        candidates=[{"id": s.item.id, "score": round(s.score, 2)} for s in ranked],
    )

    summarizer = Summarizer(
        provider,
        cfg.summary,
        content_fetcher=client.fetch_item_content,
        now=now,
        on_section=on_section,
    )
    with start_span(
        "karakeep_digest.summarize",
        kind="chain",
        input_value={"count": len(sections.all_items())},
    ):
        return await summarizer.summarize_sections(sections)


def run_pipeline(
    cfg: AppConfig,
    output_dir: Path,
    send: bool = False,
    show_progress: bool = True,
    console: Console | None = None,
    seed: int | None = None,
    provider: TextProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> RunResult:
    """Run the complete digest pipeline once.

    Args:
        cfg: Application configuration
        output_dir: Directory for digest.html, digest.txt and log files
        send: Whether to deliver the digest by email
        show_progress: Whether to display progress bars
        console: Rich console for output (creates default if None)
        seed: Seed for reproducible section selection; None uses system randomness
        provider: Pre-built text provider; built from config when None
        transport: Optional httpx transport for the Karakeep client
        now: Reference time for the run; defaults to the current UTC time

    Returns:
        RunResult describing written files and delivery

    Raises:
        ConfigurationError: If the configuration is invalid
        DigestError: If retrieval fails
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(cfg.logging, output_dir)
    llm_logger = setup_llm_logger(cfg.logging, output_dir)
    setup_langfuse(cfg.langfuse)
    validate_config(cfg, require_email=send)

    rng = random.Random(seed) if seed is not None else random.SystemRandom()
    now = now or datetime.now(timezone.utc)
    if provider is None:
        provider = create_provider(cfg.provider, cfg.logging, llm_logger)

    with start_span(
        "karakeep_digest.run",
        kind="chain",
        input_value={"output_dir": str(output_dir), "send": send},
        attributes={"llm.provider": provider.name},
    ) as run_span:
        log_event(
            logger,
            "Pipeline start",
            event="pipeline_start",
            output=str(output_dir),
            provider=provider.name,
            send=send,
        )
        if show_progress:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console or Console(),
            )
            with progress:
                result = asyncio.run(
                    _run(cfg, output_dir, send, provider, transport, rng, now, progress)
                )
        else:
            result = asyncio.run(_run(cfg, output_dir, send, provider, transport, rng, now, None))

        set_span_output(
            run_span,
            {"items": len(result.digest.all_items()), "sent": result.sent},
        )
        log_event(
            logger,
            "Pipeline complete",
            event="pipeline_complete",
            items=len(result.digest.all_items()),
            sent=result.sent,
        )
    return result


async def _run(
    cfg: AppConfig,
    output_dir: Path,
    send: bool,
    provider: TextProvider,
    transport: httpx.AsyncBaseTransport | None,
    rng: random.Random,
    now: datetime,
    progress: Progress | None,
) -> RunResult:
    stage_task = progress.add_task("Stages", total=len(_STAGES)) if progress else None
    section_task = progress.add_task("Sections", total=_SECTION_COUNT) if progress else None

    def on_section(name: str, count: int) -> None:
        if progress is not None and section_task is not None:
            progress.update(section_task, advance=1, description=f"Sections ({name}: {count})")

    def advance_stage() -> None:
        if progress is not None and stage_task is not None:
            progress.advance(stage_task, 1)

    async with KarakeepClient(cfg.store, transport=transport) as client:
        digest = await build_digest(cfg, client, provider, rng, now, on_section=on_section)
    # fetch, select and summarize are all complete here
    advance_stage()
    advance_stage()
    advance_stage()

    result = RunResult(digest=digest)
    html = render_html(digest, cfg.store)
    text = render_plain_text(digest, cfg.store)
    if cfg.output.write_html:
        result.html_path = output_dir / "digest.html"
        result.html_path.write_text(html, encoding="utf-8")
    if cfg.output.write_text:
        result.text_path = output_dir / "digest.txt"
        result.text_path.write_text(text, encoding="utf-8")
    advance_stage()

    if not send:
        advance_stage()
        return result
    if cfg.digest.skip_when_empty and digest.stats.fetched_unread == 0:
        log_event(logger, "No unread items, skipping delivery", event="delivery_skipped")
        advance_stage()
        return result

    with start_span("karakeep_digest.deliver", kind="tool") as span:
        result.message_id = await send_digest(html, text, cfg.email, now)
        result.sent = True
        set_span_output(span, result.message_id)
    advance_stage()
    return result
