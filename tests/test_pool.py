"""Tests for the bounded-concurrency map."""

from __future__ import annotations

import asyncio

import pytest

from karakeep_digest.summarize.pool import map_with_concurrency


def test_in_flight_calls_never_exceed_limit():
    state = {"in_flight": 0, "peak": 0}

    async def work(n: int) -> int:
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0.005)
        state["in_flight"] -= 1
        return n * 2

    results = asyncio.run(map_with_concurrency(list(range(20)), work, concurrency=3))

    assert results == [n * 2 for n in range(20)]
    assert state["peak"] == 3
    assert state["in_flight"] == 0


def test_results_follow_input_order_when_completion_is_reversed():
    completed: list[int] = []

    async def work(n: int) -> str:
        await asyncio.sleep((10 - n) * 0.003)
        completed.append(n)
        return f"item-{n}"

    results = asyncio.run(map_with_concurrency(list(range(10)), work, concurrency=10))

    assert completed == list(reversed(range(10)))
    assert results == [f"item-{n}" for n in range(10)]


def test_each_item_is_processed_exactly_once():
    seen: list[int] = []

    async def work(n: int) -> int:
        seen.append(n)
        await asyncio.sleep(0)
        return n

    asyncio.run(map_with_concurrency(list(range(13)), work, concurrency=4))

    assert sorted(seen) == list(range(13))


def test_empty_input_and_degenerate_limits():
    async def work(n: int) -> int:
        return n + 1

    assert asyncio.run(map_with_concurrency([], work, concurrency=5)) == []
    assert asyncio.run(map_with_concurrency([1, 2, 3], work, concurrency=0)) == [2, 3, 4]
    assert asyncio.run(map_with_concurrency([1, 2], work, concurrency=50)) == [2, 3]


def test_errors_from_the_mapped_function_propagate():
    async def work(n: int) -> int:
        if n == 2:
            raise RuntimeError("boom")
        return n

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(map_with_concurrency([1, 2, 3], work, concurrency=2))
