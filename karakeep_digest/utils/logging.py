"""
Structured logging for digest runs.

Run events go to the ``karakeep_digest`` logger: a Rich console handler and
a run file (JSON lines or plain text) in the output directory. Model
responses go to a separate ``karakeep_digest.llm`` JSONL file so prompt
payloads never mix with run events.

Payloads written to the LLM log or to traces pass through ``redact_text``:

- ``none``: kept as is
- ``redact_urls``: bookmark and reader links are masked
- ``redact_bodies``: only the payload size is kept
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
import re
from typing import Any

from rich.logging import RichHandler

from ..config import LoggingConfig

ROOT_LOGGER = "karakeep_digest"
LLM_LOGGER = f"{ROOT_LOGGER}.llm"

_URL_RE = re.compile(r"https?://[^\s\"'<>)\]]+")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def setup_logging(cfg: LoggingConfig, log_dir: Path | None) -> logging.Logger:
    """Configure the package logger for one run and return it."""
    level = _level_from_string(cfg.level)
    logger = _fresh_logger(ROOT_LOGGER, level)

    if cfg.console:
        console_handler = RichHandler(rich_tracebacks=True, show_time=False, show_level=True)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        _attach(logger, console_handler, level)

    if cfg.file and log_dir is not None:
        formatter = JsonlFormatter() if cfg.format == "jsonl" else logging.Formatter(
            "%(asctime)s %(levelname)s %(message)s"
        )
        _attach(logger, _file_handler(log_dir / cfg.filename, formatter), level)

    return logger


def setup_llm_logger(cfg: LoggingConfig, log_dir: Path | None) -> logging.Logger | None:
    """Return the model-response logger, or None when disabled or no directory is set."""
    if not cfg.llm_log_enabled or log_dir is None:
        return None
    level = _level_from_string(cfg.level)
    logger = _fresh_logger(LLM_LOGGER, level)
    _attach(logger, _file_handler(log_dir / cfg.llm_log_file, JsonlFormatter()), level)
    return logger


def log_event(logger: logging.Logger | None, message: str, level: int = logging.INFO, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, message, extra=fields)


def redact_text(text: str, mode: str) -> str:
    if mode == "redact_bodies":
        return f"[{len(text)} chars]"
    if mode == "redact_urls":
        return _URL_RE.sub("[URL]", text)
    return text


def truncate_text(text: str, max_chars: int = 20000) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "...(truncated)"


class JsonlFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _fresh_logger(name: str, level: int) -> logging.Logger:
    # Repeated runs in one process must not stack handlers.
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False
    return logger


def _file_handler(path: Path, formatter: logging.Formatter) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    logger.addHandler(handler)


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
