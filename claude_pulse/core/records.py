"""
Usage records parsed from session logs.

Immutable value objects produced by the parser and consumed by the
aggregation engine.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported for a single API response."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.input_tokens < 0:
            raise ValueError("input_tokens cannot be negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens cannot be negative")
        if self.cache_read_tokens < 0:
            raise ValueError("cache_read_tokens cannot be negative")
        if self.cache_creation_tokens < 0:
            raise ValueError("cache_creation_tokens cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens across all four kinds."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_read_tokens
            + self.cache_creation_tokens
        )


@dataclass(frozen=True)
class UsageRecord:
    """One billable API exchange extracted from a shard.

    Records are already deduplicated by request id within their shard.
    The timestamp is always timezone-aware UTC.
    """
    model: str
    usage: TokenUsage
    timestamp: datetime
    session_id: str = ""

    def __post_init__(self):
        """Validate the timestamp carries a timezone."""
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
