"""
Karakeep REST client with cursor pagination and retry/backoff.

Retry policy per request:
- 5xx, transport errors and undecodable bodies are retried with exponential
  backoff (base delay x 2^(attempt-1)) up to ``max_retries`` attempts.
- 429 waits for the server's Retry-After (or a fallback delay) without
  consuming an attempt; waits are bounded by ``max_rate_limit_waits``.
- Any other 4xx fails immediately with ClientError.

A failed page aborts the whole retrieval; partial results are discarded.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Awaitable, Callable, Iterable

import httpx

from ..config import StoreConfig
from ..core.types import Item
from ..errors import ClientError, RateLimitedError, TransientNetworkError
from ..utils.logging import log_event
from .parser import parse_bookmarks

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ItemFilter:
    """Bookmark list filter; ``archived=None`` requests every bookmark."""

    archived: bool | None = None


@dataclass
class Page:
    items: list[Item]
    next_cursor: str | None


class KarakeepClient:
    """Async client for the Karakeep bookmarks API.

    Use as an async context manager so the underlying connection pool is
    closed at the end of a run.
    """

    def __init__(
        self,
        cfg: StoreConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not cfg.base_url:
            raise ValueError("Missing Karakeep base URL")
        self.cfg = cfg
        self._sleep = sleep
        headers = {"Accept": "application/json"}
        if cfg.api_key:
            headers["Authorization"] = f"Bearer {cfg.api_key}"
        self._client = httpx.AsyncClient(
            base_url=cfg.base_url.rstrip("/"),
            headers=headers,
            timeout=cfg.timeout_seconds,
            trust_env=cfg.trust_env,
            transport=transport,
        )

    async def __aenter__(self) -> KarakeepClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_page(self, item_filter: ItemFilter, cursor: str | None = None) -> Page:
        """Fetch one page of bookmarks."""
        params: dict[str, str] = {"limit": str(min(max(self.cfg.page_size, 1), MAX_PAGE_SIZE))}
        if item_filter.archived is not None:
            params["archived"] = "true" if item_filter.archived else "false"
        if cursor:
            params["cursor"] = cursor

        data = await self._request_json("/api/v1/bookmarks", params)
        if not isinstance(data, dict):
            raise TransientNetworkError("Unexpected bookmarks payload: expected an object")
        return Page(
            items=parse_bookmarks(data.get("bookmarks") or []),
            next_cursor=data.get("nextCursor") or None,
        )

    async def fetch_all(self, item_filter: ItemFilter) -> list[Item]:
        """Fetch every page for the filter, in server order."""
        items: list[Item] = []
        cursor: str | None = None
        pages = 0
        while True:
            page = await self.fetch_page(item_filter, cursor)
            pages += 1
            items.extend(page.items)
            cursor = page.next_cursor
            if not cursor:
                break

        log_event(
            logger,
            "Bookmarks fetched",
            event="fetch_all_complete",
            archived=item_filter.archived,
            count=len(items),
            pages=pages,
        )
        return items

    async def fetch_unread(self) -> list[Item]:
        return await self.fetch_all(ItemFilter(archived=False))

    async def fetch_archived(self) -> list[Item]:
        return await self.fetch_all(ItemFilter(archived=True))

    async def fetch_item_content(self, item: Item) -> str | None:
        """Best-effort lookup of an item's full body for read-time accuracy.

        Returns None on any failure; never raises.
        """
        if item.content and "<" in item.content:
            return item.content
        if not item.content_asset_id:
            return None
        try:
            resp = await self._client.get(f"/api/v1/assets/{item.content_asset_id}")
            if not resp.is_success:
                return None
            return resp.text or None
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Asset fetch failed",
                level=logging.DEBUG,
                event="asset_fetch_failed",
                item_id=item.id,
                error=f"{type(exc).__name__}: {exc}",
            )
            return None

    async def _request_json(self, path: str, params: dict[str, str]) -> Any:
        attempt = 0
        rate_limit_waits = 0
        while True:
            try:
                resp = await self._client.get(path, params=params)
            except httpx.RequestError as exc:
                error: TransientNetworkError = TransientNetworkError(f"{type(exc).__name__}: {exc}")
            else:
                if resp.status_code == 429:
                    rate_limit_waits += 1
                    if rate_limit_waits > self.cfg.max_rate_limit_waits:
                        raise RateLimitedError(
                            f"Rate limited {rate_limit_waits} times requesting {path}"
                        )
                    delay = parse_retry_after(resp.headers.get("Retry-After"))
                    if delay is None:
                        delay = self.cfg.rate_limit_fallback_delay
                    log_event(
                        logger,
                        "Rate limited",
                        level=logging.WARNING,
                        event="rate_limited",
                        path=path,
                        delay_seconds=delay,
                    )
                    await self._sleep(delay)
                    continue
                if resp.status_code >= 500:
                    error = TransientNetworkError(f"Server error: {resp.status_code}")
                elif resp.status_code >= 400:
                    raise ClientError(
                        f"API error {resp.status_code}: {resp.text[:200]}",
                        status_code=resp.status_code,
                    )
                else:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        error = TransientNetworkError(f"Invalid JSON response: {exc}")

            attempt += 1
            if attempt >= self.cfg.max_retries:
                raise error
            delay = self.cfg.retry_base_delay * 2 ** (attempt - 1)
            log_event(
                logger,
                "Request failed, retrying",
                level=logging.WARNING,
                event="request_retry",
                path=path,
                attempt=attempt,
                max_retries=self.cfg.max_retries,
                delay_seconds=delay,
                error=str(error),
            )
            await self._sleep(delay)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds; HTTP dates are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(seconds, 0.0)


def last_year_month_range(now: datetime) -> tuple[datetime, datetime]:
    """Inclusive bounds of the same calendar month one year before ``now``."""
    start = now.replace(year=now.year - 1, day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - timedelta(microseconds=1)


def filter_date_range(items: Iterable[Item], start: datetime, end: datetime) -> list[Item]:
    return [item for item in items if start <= item.created_at <= end]
