"""Bounded-concurrency map over coroutine functions."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int = 5,
) -> list[R]:
    """Apply ``fn`` to every item with at most ``concurrency`` calls in flight.

    Workers pull the next index from a shared iterator, so no position is
    claimed twice. Results are stored by input index; completion order does
    not affect the output order. An exception from ``fn`` propagates.
    """
    if not items:
        return []
    width = min(max(1, int(concurrency)), len(items))
    results: list[R | None] = [None] * len(items)
    queue = iter(enumerate(items))

    async def worker() -> None:
        for index, item in queue:
            results[index] = await fn(item)

    await asyncio.gather(*(worker() for _ in range(width)))
    return results  # type: ignore[return-value]
