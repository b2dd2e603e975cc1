"""Tests for content helpers: sufficiency filter, read time, age and truncation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from karakeep_digest.core.content import (
    TRUNCATION_MARKER,
    days_ago,
    estimate_read_time,
    filter_sufficient,
    item_text,
    strip_markup,
    truncate_content,
)
from karakeep_digest.core.types import Item

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


def _item(item_id: str, content: str | None = None, summary: str | None = None, title: str | None = None) -> Item:
    return Item(id=item_id, url="", created_at=NOW, content=content, summary=summary, title=title)


def test_filter_sufficient_accepts_content_or_summary():
    items = [
        _item("content", content="x" * 200),
        _item("summary", summary="y" * 250),
        _item("short", content="x" * 199, summary="y" * 10),
        _item("empty"),
    ]
    assert [i.id for i in filter_sufficient(items)] == ["content", "summary"]


def test_filter_sufficient_is_idempotent_and_order_preserving():
    items = [_item(str(n), content="x" * (n * 40)) for n in range(10)]
    once = filter_sufficient(items, 150)
    assert filter_sufficient(once, 150) == once
    assert [i.id for i in once] == ["4", "5", "6", "7", "8", "9"]


def test_estimate_read_time_counts_words_and_clamps():
    assert estimate_read_time("word " * 238) == 1
    assert estimate_read_time("word " * 239) == 2
    assert estimate_read_time("word " * 100_000) == 90
    assert estimate_read_time("one") == 1


def test_estimate_read_time_defaults_to_one_without_content():
    assert estimate_read_time(None) == 1
    assert estimate_read_time("") == 1


def test_estimate_read_time_ignores_markup():
    html = "<html><head><style>p { color: red; }</style></head><body>" + "<p>word</p>" * 476 + "</body></html>"
    assert estimate_read_time(html) == 2


def test_strip_markup_passes_plain_text_through():
    assert strip_markup("no tags here") == "no tags here"
    assert "hello" in strip_markup("<div><script>evil()</script>hello</div>")
    assert "evil" not in strip_markup("<div><script>evil()</script>hello</div>")


def test_days_ago_floors_and_never_negative():
    assert days_ago(NOW - timedelta(days=3, hours=23), NOW) == 3
    assert days_ago(NOW, NOW) == 0
    assert days_ago(NOW + timedelta(days=2), NOW) == 0


def test_truncate_content_keeps_head_and_tail():
    text = "A" * 5000 + "B" * 5000
    out = truncate_content(text, 8000)
    assert TRUNCATION_MARKER in out
    head, tail = out.split(TRUNCATION_MARKER)
    assert head == "A" * 3950
    assert tail == "B" * 3950
    assert truncate_content("short", 8000) == "short"


def test_item_text_prefers_content_then_summary_then_title():
    assert item_text(_item("a", content="c", summary="s", title="t")) == "c"
    assert item_text(_item("b", summary="s", title="t")) == "s"
    assert item_text(_item("c", title="t")) == "t"
    assert item_text(_item("d")) == ""
