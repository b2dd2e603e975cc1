"""
Summarization stage.

Bounded-concurrency summarization of selected sections with per-item
fallback, plus the single tag cluster synthesis call.
"""

from .pool import map_with_concurrency
from .summarizer import FALLBACK_SUMMARY, Summarizer, fallback_summary
from .synthesizer import TagClusterSynthesizer, fallback_synthesis

__all__ = [
    "FALLBACK_SUMMARY",
    "Summarizer",
    "TagClusterSynthesizer",
    "fallback_summary",
    "fallback_synthesis",
    "map_with_concurrency",
]
