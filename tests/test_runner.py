"""End-to-end pipeline tests with a mocked Karakeep server and a fake provider."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json
from pathlib import Path

import httpx
import pytest

from karakeep_digest import runner
from karakeep_digest.config import AppConfig
from karakeep_digest.errors import ClientError, ConfigurationError

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
BODY = "<p>" + "interesting words " * 150 + "</p>"


class FakeProvider:
    name = "fake"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.calls += 1
        if self.fail:
            raise RuntimeError("model offline")
        if max_tokens == 500:
            return json.dumps({"overview": "Cluster overview.", "keyInsights": ["i1"], "standout": "s"})
        return '```json\n{"summary": "Generated summary."}\n```'


def _bookmark(bookmark_id: str, days_old: int, tags=(), archived: bool = False, body: str = BODY) -> dict:
    created = (NOW - timedelta(days=days_old)).isoformat().replace("+00:00", "Z")
    return {
        "id": bookmark_id,
        "createdAt": created,
        "title": f"Title {bookmark_id}",
        "archived": archived,
        "content": {"type": "link", "url": f"https://example.com/{bookmark_id}", "htmlContent": body},
        "tags": [{"name": tag} for tag in tags],
    }


def _transport(unread: list[dict], archived: list[dict]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/api/v1/assets/"):
            return httpx.Response(404)
        if request.url.params.get("archived") == "true":
            return httpx.Response(200, json={"bookmarks": archived, "nextCursor": None})
        return httpx.Response(200, json={"bookmarks": unread, "nextCursor": None})

    return httpx.MockTransport(handler)


def _cfg() -> AppConfig:
    cfg = AppConfig()
    cfg.store.base_url = "http://keep:3000"
    cfg.store.api_key = "kk"
    cfg.provider.name = "ollama"
    cfg.provider.ollama_url = "http://ollama:11434"
    cfg.logging.console = False
    cfg.email.smtp_host = "smtp.example.com"
    cfg.email.sender = "digest@example.com"
    cfg.email.recipients = ["me@example.com"]
    return cfg


def test_run_pipeline_writes_digest_files(tmp_path: Path):
    unread = [_bookmark(f"u{n}", days_old=n * 5, tags=("python",)) for n in range(12)]
    archived = [_bookmark("a1", days_old=365, archived=True), _bookmark("a2", days_old=800, archived=True)]
    provider = FakeProvider()

    result = runner.run_pipeline(
        _cfg(),
        tmp_path,
        show_progress=False,
        seed=7,
        provider=provider,
        transport=_transport(unread, archived),
        now=NOW,
    )

    digest = result.digest
    ids = [entry.item.id for entry in digest.all_items()]
    assert len(ids) == len(set(ids))
    assert digest.stats.total_unread == 12
    assert len(digest.recently_saved) == 3
    assert len(digest.buried_treasure) == 3
    assert [e.item.id for e in digest.this_month_last_year] == ["a1"]
    assert digest.tag_roundup is not None
    assert digest.tag_roundup.synthesis.overview == "Cluster overview."
    assert digest.random_pick is not None
    assert digest.from_the_archives.item.id == "a2"
    assert all(entry.ai_summary == "Generated summary." for entry in digest.all_items())
    assert result.sent is False

    html = (tmp_path / "digest.html").read_text(encoding="utf-8")
    text = (tmp_path / "digest.txt").read_text(encoding="utf-8")
    assert "http://keep:3000/reader/" in html
    assert "PYTHON ROUNDUP" in text
    assert (tmp_path / "run.jsonl").exists()


def test_run_pipeline_is_reproducible_with_seed(tmp_path: Path):
    unread = [_bookmark(f"u{n}", days_old=n * 3, tags=("t", "u")) for n in range(20)]

    def run_once(folder: Path) -> list[str]:
        result = runner.run_pipeline(
            _cfg(),
            folder,
            show_progress=False,
            seed=123,
            provider=FakeProvider(),
            transport=_transport(unread, []),
            now=NOW,
        )
        return [entry.item.id for entry in result.digest.all_items()]

    assert run_once(tmp_path / "one") == run_once(tmp_path / "two")


def test_summarization_outage_still_produces_digest(tmp_path: Path):
    unread = [_bookmark(f"u{n}", days_old=n * 10) for n in range(6)]

    result = runner.run_pipeline(
        _cfg(),
        tmp_path,
        show_progress=False,
        seed=1,
        provider=FakeProvider(fail=True),
        transport=_transport(unread, []),
        now=NOW,
    )

    entries = result.digest.all_items()
    assert entries
    assert all(entry.ai_summary == entry.item.title for entry in entries)
    assert (tmp_path / "digest.html").exists()


def test_empty_collection_skips_delivery(tmp_path: Path, monkeypatch):
    async def must_not_send(*args, **kwargs):
        raise AssertionError("email must not be sent for an empty digest")

    monkeypatch.setattr(runner, "send_digest", must_not_send)

    result = runner.run_pipeline(
        _cfg(),
        tmp_path,
        send=True,
        show_progress=False,
        provider=FakeProvider(),
        transport=_transport([], []),
        now=NOW,
    )

    assert result.digest.is_empty
    assert result.digest.stats.total_unread == 0
    assert result.sent is False
    assert "Your queue is empty" in (tmp_path / "digest.txt").read_text(encoding="utf-8")


def test_short_unread_items_still_deliver_archive_content(tmp_path: Path, monkeypatch):
    sent: list[str] = []

    async def fake_send(html, text, cfg, when):
        sent.append(text)
        return "<archive@example.com>"

    monkeypatch.setattr(runner, "send_digest", fake_send)
    unread = [_bookmark(f"s{n}", days_old=n, body="<p>too short</p>") for n in range(5)]
    archived = [_bookmark("a1", days_old=400, archived=True)]

    result = runner.run_pipeline(
        _cfg(),
        tmp_path,
        send=True,
        show_progress=False,
        provider=FakeProvider(),
        transport=_transport(unread, archived),
        now=NOW,
    )

    assert result.digest.stats.total_unread == 0
    assert result.digest.stats.fetched_unread == 5
    assert result.digest.from_the_archives.item.id == "a1"
    assert result.sent is True
    assert len(sent) == 1


def test_priority_candidates_are_logged(tmp_path: Path):
    cfg = _cfg()
    cfg.digest.priority_tags = ["work"]
    unread = [_bookmark("plain", days_old=2), _bookmark("tagged", days_old=2, tags=("Work",))]

    runner.run_pipeline(
        cfg,
        tmp_path,
        show_progress=False,
        seed=2,
        provider=FakeProvider(),
        transport=_transport(unread, []),
        now=NOW,
    )

    records = [json.loads(line) for line in (tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()]
    ranked = next(r for r in records if r.get("event") == "priority_candidates")
    assert [c["id"] for c in ranked["candidates"]] == ["tagged", "plain"]


def test_send_delivers_rendered_bodies(tmp_path: Path, monkeypatch):
    captured: dict = {}

    async def fake_send(html, text, cfg, when):
        captured.update(html=html, text=text, recipients=cfg.recipients, when=when)
        return "<id@example.com>"

    monkeypatch.setattr(runner, "send_digest", fake_send)

    result = runner.run_pipeline(
        _cfg(),
        tmp_path,
        send=True,
        show_progress=False,
        provider=FakeProvider(),
        transport=_transport([_bookmark("u1", days_old=2)], []),
        now=NOW,
    )

    assert result.sent is True
    assert result.message_id == "<id@example.com>"
    assert captured["recipients"] == ["me@example.com"]
    assert captured["when"] == NOW
    assert "HOT OFF THE PRESS" in captured["text"]


def test_retrieval_failure_aborts_run(tmp_path: Path):
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden"))

    with pytest.raises(ClientError):
        runner.run_pipeline(
            _cfg(),
            tmp_path,
            show_progress=False,
            provider=FakeProvider(),
            transport=transport,
            now=NOW,
        )
    assert not (tmp_path / "digest.html").exists()


def test_missing_email_settings_fail_before_fetching(tmp_path: Path):
    cfg = _cfg()
    cfg.email.recipients = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ConfigurationError, match="EMAIL_TO"):
        runner.run_pipeline(
            cfg,
            tmp_path,
            send=True,
            show_progress=False,
            provider=FakeProvider(),
            transport=httpx.MockTransport(handler),
            now=NOW,
        )
