"""
Usage snapshot data structures.

Value objects assembled by the aggregation engine and serialized for
the presentation layer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List

from .records import TokenUsage, UsageRecord


@dataclass
class ModelUsage:
    """Aggregation bucket for one model within one time interval."""
    model: str
    display_name: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    message_count: int = 0

    def add(self, record: UsageRecord) -> None:
        """Accumulate one record into this bucket."""
        self.input_tokens += record.usage.input_tokens
        self.output_tokens += record.usage.output_tokens
        self.cache_read_tokens += record.usage.cache_read_tokens
        self.cache_creation_tokens += record.usage.cache_creation_tokens
        self.message_count += 1

    @property
    def token_usage(self) -> TokenUsage:
        """Summed counts as a TokenUsage, for pricing."""
        return TokenUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_read_tokens=self.cache_read_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "display_name": self.display_name,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "message_count": self.message_count,
        }


@dataclass(frozen=True)
class WindowUsage:
    """Totals for the rolling window."""
    total_input_tokens: int
    total_output_tokens: int
    total_cache_read_tokens: int
    total_cache_creation_tokens: int
    message_count: int
    session_count: int
    window_start: datetime
    window_end: datetime

    def __post_init__(self):
        """Validate the window is not inverted."""
        if self.window_start > self.window_end:
            raise ValueError("window_start must be before window_end")

    @property
    def total_tokens(self) -> int:
        """All tokens in the window, cache reads and writes included."""
        return (
            self.total_input_tokens
            + self.total_output_tokens
            + self.total_cache_read_tokens
            + self.total_cache_creation_tokens
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cache_read_tokens": self.total_cache_read_tokens,
            "total_cache_creation_tokens": self.total_cache_creation_tokens,
            "message_count": self.message_count,
            "session_count": self.session_count,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
        }


@dataclass(frozen=True)
class DailyUsage:
    """Input/output totals for a single UTC day."""
    date: date
    input_tokens: int
    output_tokens: int
    message_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "message_count": self.message_count,
        }


@dataclass(frozen=True)
class WeeklyUsage:
    """Totals for the calendar week with one entry per elapsed day."""
    total_input_tokens: int
    total_output_tokens: int
    total_cache_read_tokens: int
    total_cache_creation_tokens: int
    message_count: int
    session_count: int
    daily_breakdown: List[DailyUsage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cache_read_tokens": self.total_cache_read_tokens,
            "total_cache_creation_tokens": self.total_cache_creation_tokens,
            "message_count": self.message_count,
            "session_count": self.session_count,
            "daily_breakdown": [day.to_dict() for day in self.daily_breakdown],
        }


@dataclass(frozen=True)
class ModelCost:
    """Estimated cost for a single model."""
    model: str
    display_name: str
    cost_usd: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "display_name": self.display_name,
            "cost_usd": self.cost_usd,
        }


@dataclass(frozen=True)
class CostEstimate:
    """Window and week cost, plus the week's per-model costs."""
    window_cost_usd: float
    weekly_cost_usd: float
    by_model: List[ModelCost] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_cost_usd": self.window_cost_usd,
            "weekly_cost_usd": self.weekly_cost_usd,
            "by_model": [cost.to_dict() for cost in self.by_model],
        }


@dataclass(frozen=True)
class UsageSnapshot:
    """Complete usage picture at one instant.

    Recomputed in full for every request; never updated in place.
    """
    window: WindowUsage
    weekly: WeeklyUsage
    models: List[ModelUsage]
    cost_estimate: CostEstimate
    last_updated: datetime

    @property
    def is_empty(self) -> bool:
        """True when neither the window nor the week saw any messages."""
        return self.window.message_count == 0 and self.weekly.message_count == 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with RFC 3339 instants and ISO dates."""
        return {
            "window": self.window.to_dict(),
            "weekly": self.weekly.to_dict(),
            "models": [model.to_dict() for model in self.models],
            "cost_estimate": self.cost_estimate.to_dict(),
            "last_updated": self.last_updated.isoformat(),
        }
