"""
Bookmark retrieval.

This package handles paginated fetching from the Karakeep API
and conversion of raw bookmark payloads into Items.
"""

from .client import (
    ItemFilter,
    KarakeepClient,
    Page,
    filter_date_range,
    last_year_month_range,
    parse_retry_after,
)
from .parser import parse_bookmark, parse_bookmarks

__all__ = [
    "ItemFilter",
    "KarakeepClient",
    "Page",
    "filter_date_range",
    "last_year_month_range",
    "parse_retry_after",
    "parse_bookmark",
    "parse_bookmarks",
]
