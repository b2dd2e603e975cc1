"""
Karakeep Digest - AI-enriched periodic digest of saved links.

This package pulls unread and archived bookmarks from a Karakeep server,
selects six mutually exclusive digest sections, summarizes each item with
a text-generation provider and renders the result for email delivery.

Main entry point is the CLI via `karakeep-digest run` command.

Example:
    $ karakeep-digest run -c config.yaml -o out/ --no-send
"""

__all__ = ["__version__", "select_sections", "filter_sufficient", "priority_score"]
__version__ = "1.0.0"

from .core.content import filter_sufficient
from .core.selection import priority_score, select_sections
