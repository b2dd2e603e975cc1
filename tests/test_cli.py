"""Tests for the Typer command-line interface."""

from __future__ import annotations

from typer.testing import CliRunner

from karakeep_digest import cli
from karakeep_digest.core.types import Digest, DigestStats
from karakeep_digest.runner import RunResult

runner = CliRunner()

_ENV_KEYS = (
    "KARAKEEP_URL",
    "KARAKEEP_API_KEY",
    "ANTHROPIC_API_KEY",
    "OLLAMA_URL",
    "SMTP_HOST",
    "EMAIL_FROM",
    "EMAIL_TO",
    "CRON_SCHEDULE",
)


def _clear_env(monkeypatch):
    monkeypatch.setattr(cli, "load_dotenv", lambda: False)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_run_exits_with_error_on_invalid_configuration(monkeypatch, tmp_path):
    _clear_env(monkeypatch)

    result = runner.invoke(cli.app, ["run", "--output", str(tmp_path), "--no-progress"])

    assert result.exit_code == 1
    assert "Digest failed" in result.output


def test_run_passes_options_to_pipeline(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    captured: dict = {}

    def fake_run_pipeline(cfg, output, **kwargs):
        captured.update(kwargs, level=cfg.logging.level, output=output)
        stats = DigestStats(total_unread=0, generated_at=None)
        return RunResult(digest=Digest(stats=stats))

    monkeypatch.setattr(cli, "run_pipeline", fake_run_pipeline)

    result = runner.invoke(
        cli.app,
        ["run", "-o", str(tmp_path), "--seed", "5", "--no-progress", "--send", "--log-level", "DEBUG"],
    )

    assert result.exit_code == 0, result.output
    assert captured["seed"] == 5
    assert captured["send"] is True
    assert captured["show_progress"] is False
    assert captured["level"] == "DEBUG"
    assert "Email not sent" in result.output


def test_verify_smtp_reports_failure(monkeypatch):
    _clear_env(monkeypatch)

    result = runner.invoke(cli.app, ["verify-smtp"])

    assert result.exit_code == 1
    assert "SMTP verification failed" in result.output


def test_daemon_exits_on_invalid_schedule(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("CRON_SCHEDULE", "every sunday")

    def must_not_schedule(*args, **kwargs):
        raise AssertionError("daemon must not start")

    monkeypatch.setattr(cli, "run_forever", must_not_schedule)

    result = runner.invoke(cli.app, ["daemon", "-o", str(tmp_path)])

    assert result.exit_code == 1
    assert "Invalid cron schedule" in result.output


def test_daemon_checks_smtp_then_runs_on_schedule(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    for key, value in {
        "KARAKEEP_URL": "http://keep",
        "KARAKEEP_API_KEY": "kk",
        "OLLAMA_URL": "http://ollama",
        "SMTP_HOST": "smtp.example.com",
        "EMAIL_FROM": "digest@example.com",
        "EMAIL_TO": "me@example.com",
    }.items():
        monkeypatch.setenv(key, value)
    events: list[str] = []

    async def fake_verify(cfg):
        events.append("verify")
        return False

    def fake_run_pipeline(cfg, output, **kwargs):
        events.append(f"run:send={kwargs['send']}")

    def fake_run_forever(expression, job):
        events.append(f"schedule:{expression}")
        job()
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "verify_smtp_connection", fake_verify)
    monkeypatch.setattr(cli, "run_pipeline", fake_run_pipeline)
    monkeypatch.setattr(cli, "run_forever", fake_run_forever)

    result = runner.invoke(cli.app, ["daemon", "-o", str(tmp_path), "--schedule", "30 7 * * 1"])

    assert result.exit_code == 0, result.output
    assert events == ["verify", "schedule:30 7 * * 1", "run:send=True"]
    assert "SMTP verification failed" in result.output
    assert "Shutting down" in result.output
