"""
Core domain models and business logic.

This package contains data types, content helpers and the section
selection engine, independent of any I/O.
"""

from .types import (
    ClusterSynthesis,
    Digest,
    DigestSections,
    DigestStats,
    Item,
    ScoredItem,
    SummarizedItem,
    TagCluster,
    TagRoundup,
)
from .content import estimate_read_time, filter_sufficient, truncate_content
from .selection import priority_score, rank_by_priority, select_sections

__all__ = [
    "ClusterSynthesis",
    "Digest",
    "DigestSections",
    "DigestStats",
    "Item",
    "ScoredItem",
    "SummarizedItem",
    "TagCluster",
    "TagRoundup",
    "estimate_read_time",
    "filter_sufficient",
    "truncate_content",
    "priority_score",
    "rank_by_priority",
    "select_sections",
]
