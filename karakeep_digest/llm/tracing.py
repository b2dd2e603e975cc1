"""
Langfuse tracing for digest runs.

A run produces one ``karakeep_digest.run`` span with nested stage spans
(fetch, select, summarize, deliver) and one generation span per model call.
Payloads are redacted and truncated according to ``LangfuseConfig`` before
they leave the process.

Tracing is optional: when it is disabled, keys are missing or the
``langfuse`` extra is not installed, spans are ``None`` and every helper
does nothing.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import os
from typing import Any, Iterator

from ..config import LangfuseConfig
from ..utils.logging import redact_text, truncate_text

logger = logging.getLogger(__name__)

_TRACER = None
_CFG: LangfuseConfig | None = None


def setup_langfuse(cfg: LangfuseConfig) -> bool:
    """Create the Langfuse client for this run; returns whether tracing is active."""
    global _TRACER, _CFG  # noqa: PLW0603
    _CFG = cfg
    _TRACER = None
    if not cfg.enabled:
        return False

    credentials = {
        "public_key": cfg.public_key or os.getenv("LANGFUSE_PUBLIC_KEY"),
        "secret_key": cfg.secret_key or os.getenv("LANGFUSE_SECRET_KEY"),
    }
    missing = [name for name, value in credentials.items() if not value]
    if missing:
        logger.warning("Langfuse tracing disabled, missing %s", ", ".join(missing))
        return False

    try:
        from langfuse import Langfuse  # type: ignore
    except ImportError:
        logger.warning("Langfuse tracing disabled, install the 'tracing' extra to enable it")
        return False

    _TRACER = Langfuse(
        **credentials,
        host=cfg.host or os.getenv("LANGFUSE_HOST"),
        environment=cfg.environment or os.getenv("LANGFUSE_ENVIRONMENT"),
        release=cfg.release or os.getenv("LANGFUSE_RELEASE"),
    )
    return True


def get_tracer():
    return _TRACER


@contextmanager
def start_span(
    name: str,
    kind: str,
    input_value: Any | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Any | None]:
    """Open a span around a pipeline stage.

    An exception escaping the block marks the span as failed and propagates.
    Tracer failures never interrupt the pipeline.
    """
    tracer = _TRACER
    if tracer is None:
        yield None
        return

    metadata = {key: _scalar(value) for key, value in (attributes or {}).items() if value is not None}
    metadata.setdefault("span.kind", kind)
    try:
        cm = tracer.start_as_current_span(name=name, input=_payload(input_value), metadata=metadata)
        span = cm.__enter__()
    except Exception:  # noqa: BLE001
        logger.debug("Could not open span %s", name, exc_info=True)
        yield None
        return

    try:
        yield span
    except BaseException as exc:
        record_span_error(span, exc)
        raise
    finally:
        try:
            cm.__exit__(None, None, None)
        except Exception:  # noqa: BLE001
            logger.debug("Could not close span %s", name, exc_info=True)


@contextmanager
def generation_span(provider: str, model: str, prompt: str, max_tokens: int) -> Iterator[Any | None]:
    """Span for one model call, tagged with provider, model and token budget."""
    with start_span(
        f"{provider}.complete",
        kind="llm",
        input_value=prompt,
        attributes={"llm.provider": provider, "llm.model": model, "llm.max_tokens": max_tokens},
    ) as span:
        yield span


def set_span_output(span: Any | None, output_value: Any) -> None:
    if span is None:
        return
    payload = _payload(output_value)
    if payload is not None:
        _update(span, output=payload)


def record_span_error(span: Any | None, exc: BaseException) -> None:
    if span is None:
        return
    _update(span, level="ERROR", status_message=str(exc))


def flush() -> None:
    """Send buffered spans; called once when the CLI exits."""
    if _TRACER is None:
        return
    try:
        _TRACER.flush()
    except Exception:  # noqa: BLE001
        logger.warning("Langfuse flush failed", exc_info=True)


def _payload(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=True, default=str)
    if _CFG is None:
        return text
    return truncate_text(redact_text(text, _CFG.redaction), _CFG.max_text_chars)


def _scalar(value: Any) -> str | int | float | bool:
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _update(span: Any, **kwargs: Any) -> None:
    try:
        span.update(**kwargs)
    except Exception:  # noqa: BLE001
        logger.debug("Could not update span", exc_info=True)
