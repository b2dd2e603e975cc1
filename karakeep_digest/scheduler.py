"""
Cron scheduling for the long-running ``daemon`` command.

Runs fire at the times matched by a five-field cron expression evaluated in
local time. A failed run is logged and the daemon waits for the next slot.
"""

from __future__ import annotations

from datetime import datetime
import logging
import time
from typing import Callable

from croniter import croniter

from .errors import ConfigurationError
from .utils.logging import log_event

logger = logging.getLogger(__name__)


def validate_schedule(expression: str) -> None:
    if not expression or not croniter.is_valid(expression):
        raise ConfigurationError(f"Invalid cron schedule: {expression!r}")


def next_run(expression: str, after: datetime) -> datetime:
    """First time strictly after ``after`` matched by the expression."""
    return croniter(expression, after).get_next(datetime)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def run_forever(
    expression: str,
    job: Callable[[], object],
    clock: Callable[[], datetime] = _local_now,
    sleep: Callable[[float], None] = time.sleep,
    max_runs: int | None = None,
) -> int:
    """Sleep until each scheduled time and call ``job``.

    Args:
        expression: Cron expression, validated before the first wait
        job: Called once per scheduled slot
        clock: Source of the current time
        sleep: Blocking sleep, replaced in tests
        max_runs: Stop after this many runs; None runs until interrupted

    Returns:
        Number of runs that completed without raising
    """
    validate_schedule(expression)
    runs = 0
    succeeded = 0
    while max_runs is None or runs < max_runs:
        now = clock()
        due = next_run(expression, now)
        log_event(logger, "Next digest scheduled", event="schedule_wait", next_run=due.isoformat())
        sleep(max((due - now).total_seconds(), 0.0))

        runs += 1
        log_event(logger, "Scheduled run triggered", event="schedule_fire", run=runs)
        try:
            job()
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Scheduled digest failed",
                level=logging.ERROR,
                event="schedule_run_failed",
                error=f"{type(exc).__name__}: {exc}",
            )
            continue
        succeeded += 1
    return succeeded
