"""Parser for Karakeep bookmark payloads.

The bookmarks endpoint returns objects shaped like:

    {
        "id": "ieidlxygmwj87oxz5hxttoc8",
        "createdAt": "2025-10-02T08:15:00.000Z",
        "title": null,
        "archived": false,
        "favourited": false,
        "summary": null,
        "note": null,
        "content": {
            "type": "link",
            "url": "https://example.com/post",
            "title": "Post title",
            "description": "Short description",
            "htmlContent": "<p>...</p>",
            "text": null,
            "contentAssetId": null
        },
        "tags": [{"id": "t1", "name": "python", "attachedBy": "ai"}]
    }
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any
from urllib.parse import urlparse

from ..core.types import Item

logger = logging.getLogger(__name__)


def parse_bookmarks(payload: list[dict[str, Any]]) -> list[Item]:
    """Parse a page of raw bookmarks, skipping malformed entries with a warning."""
    items: list[Item] = []
    for raw in payload:
        item = parse_bookmark(raw)
        if item is not None:
            items.append(item)
    return items


def parse_bookmark(raw: dict[str, Any]) -> Item | None:
    """Convert one raw bookmark into an Item.

    Returns None when the id or creation timestamp is missing or invalid.
    """
    bookmark_id = raw.get("id")
    created_raw = raw.get("createdAt")
    if not bookmark_id or not created_raw:
        logger.warning("Skipping bookmark %s: missing id or createdAt", bookmark_id or "unknown")
        return None

    try:
        created_at = parse_timestamp(created_raw)
    except ValueError:
        logger.warning("Skipping bookmark %s: invalid createdAt %r", bookmark_id, created_raw)
        return None

    content = raw.get("content") or {}
    url = content.get("url") or ""
    tags = tuple(
        str(tag.get("name")).strip()
        for tag in raw.get("tags") or []
        if isinstance(tag, dict) and tag.get("name")
    )

    return Item(
        id=str(bookmark_id),
        url=url,
        created_at=created_at,
        title=raw.get("title") or content.get("title") or None,
        content=content.get("htmlContent") or content.get("text") or None,
        summary=raw.get("summary") or content.get("description") or None,
        tags=tags,
        archived=bool(raw.get("archived")),
        favourited=bool(raw.get("favourited")),
        source=extract_domain(url),
        note=raw.get("note") or None,
        content_asset_id=content.get("contentAssetId") or None,
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def extract_domain(url: str) -> str:
    """Display domain for a URL, without a leading "www."."""
    if not url:
        return "unknown"
    try:
        host = urlparse(url).hostname
    except ValueError:
        return "unknown"
    if not host:
        return "unknown"
    return host[4:] if host.startswith("www.") else host
