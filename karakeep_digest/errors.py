"""Error taxonomy for the digest pipeline.

Retrieval errors propagate and abort a run. Summarization errors are raised
inside providers and parsers but are always recovered by the summarizer.
"""

from __future__ import annotations


class DigestError(Exception):
    """Base error for all digest failures."""


class ConfigurationError(DigestError):
    """Configuration is missing or invalid; raised before the pipeline starts."""


class TransientNetworkError(DigestError):
    """Retryable store failure: 5xx, timeouts, connection resets."""


class RateLimitedError(DigestError):
    """Store kept answering 429 beyond the allowed number of waits."""


class ClientError(DigestError):
    """Non-retryable 4xx response from the store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SummarizationError(DigestError):
    """Generating or parsing a summary failed."""


class DeliveryError(DigestError):
    """SMTP delivery of a rendered digest failed."""
