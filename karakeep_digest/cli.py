"""
Command-line interface for the Karakeep Digest.

Uses Typer for the `run`, `daemon` and `verify-smtp` commands. Settings
come from an optional YAML file, then environment variables (a local .env
is loaded first). `run` performs exactly one run; `daemon` stays up and
runs on the CRON_SCHEDULE expression.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console

from .config import load_config, validate_config
from .errors import DigestError
from .llm.tracing import flush
from .output.email import verify_smtp_connection
from .runner import run_pipeline
from .scheduler import run_forever, validate_schedule
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False)
console = Console()


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    output: Path = typer.Option(Path("out"), "--output", "-o"),
    send: bool = typer.Option(False, "--send/--no-send", help="Deliver the digest by email."),
    seed: int | None = typer.Option(None, "--seed", help="Seed for reproducible section selection."),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Build the digest once, write it to the output directory and optionally email it.

    Args:
        config: Optional path to YAML config file
        output: Directory for digest.html, digest.txt and logs
        send: Whether to deliver the digest by email
        seed: Seed for the section selection random source
        progress: Whether to show progress bars
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    load_dotenv()
    try:
        cfg = load_config(str(config) if config else None)
        if log_level:
            cfg.logging.level = log_level
        result = run_pipeline(
            cfg,
            output,
            send=send,
            show_progress=progress,
            console=console,
            seed=seed,
        )
    except (DigestError, ValueError) as exc:
        console.print(f"[bold red]Digest failed:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        flush()

    counts = {
        "recently saved": len(result.digest.recently_saved),
        "buried treasure": len(result.digest.buried_treasure),
        "last year": len(result.digest.this_month_last_year),
        "roundup": len(result.digest.tag_roundup.items) if result.digest.tag_roundup else 0,
    }
    console.print(
        f"Digest built from {result.digest.stats.total_unread} unread items: "
        + ", ".join(f"{name}={count}" for name, count in counts.items())
    )
    if result.html_path:
        console.print(f"HTML written: {result.html_path}")
    if result.text_path:
        console.print(f"Text written: {result.text_path}")
    if result.sent:
        console.print(f"Email sent: {result.message_id}")
    elif send:
        console.print("Email not sent: no unread items.")


@app.command("verify-smtp")
def verify_smtp(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
):
    """Check that the SMTP server accepts a connection and login."""
    load_dotenv()
    try:
        cfg = load_config(str(config) if config else None)
    except DigestError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    if asyncio.run(verify_smtp_connection(cfg.email)):
        console.print("SMTP connection verified.")
        return
    console.print("[bold red]SMTP verification failed.[/bold red]")
    raise typer.Exit(code=1)


@app.command()
def daemon(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    output: Path = typer.Option(Path("out"), "--output", "-o"),
    schedule: str | None = typer.Option(None, "--schedule", help="Cron expression; overrides CRON_SCHEDULE."),
):
    """Stay running and send the digest on a cron schedule (local time)."""
    load_dotenv()
    try:
        cfg = load_config(str(config) if config else None)
        if schedule:
            cfg.digest.schedule = schedule
        validate_schedule(cfg.digest.schedule)
        validate_config(cfg, require_email=True)
    except DigestError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    setup_logging(cfg.logging, output)
    if asyncio.run(verify_smtp_connection(cfg.email)):
        console.print("SMTP connection verified.")
    else:
        console.print("[yellow]SMTP verification failed; emails may not send.[/yellow]")

    def job() -> None:
        try:
            run_pipeline(cfg, output, send=True, show_progress=False, console=console)
        finally:
            flush()

    console.print(f"Daemon running on schedule {cfg.digest.schedule!r}. Press Ctrl+C to stop.")
    try:
        run_forever(cfg.digest.schedule, job)
    except KeyboardInterrupt:
        console.print("Shutting down...")


if __name__ == "__main__":
    app()
