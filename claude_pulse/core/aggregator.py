"""
Usage aggregation and snapshot assembly.

Aggregation is a pure function of the record set and interval bounds.
A snapshot composes a rolling-window aggregation, a calendar-week
aggregation and one aggregation per elapsed day of the week.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from .pricing import calculate_cost, display_name_for
from .records import UsageRecord
from .scanner import collect_records, week_start
from .snapshot import (
    CostEstimate,
    DailyUsage,
    ModelCost,
    ModelUsage,
    UsageSnapshot,
    WeeklyUsage,
    WindowUsage,
)

# Last representable instant of a day at datetime resolution
DAY_END_OFFSET = timedelta(days=1) - timedelta(microseconds=1)


@dataclass
class AggregateResult:
    """Per-model buckets and counts for one interval."""
    models: Dict[str, ModelUsage] = field(default_factory=dict)
    message_count: int = 0
    sessions: Set[str] = field(default_factory=set)

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    @property
    def total_input_tokens(self) -> int:
        return sum(m.input_tokens for m in self.models.values())

    @property
    def total_output_tokens(self) -> int:
        return sum(m.output_tokens for m in self.models.values())

    @property
    def total_cache_read_tokens(self) -> int:
        return sum(m.cache_read_tokens for m in self.models.values())

    @property
    def total_cache_creation_tokens(self) -> int:
        return sum(m.cache_creation_tokens for m in self.models.values())

    @property
    def total_cost_usd(self) -> float:
        return sum(calculate_cost(m.model, m.token_usage) for m in self.models.values())


def aggregate(records: Iterable[UsageRecord], start: datetime, end: datetime) -> AggregateResult:
    """Aggregate records whose timestamp lies in [start, end], both inclusive.

    Buckets are keyed by the exact model identifier and kept in order of
    first appearance. Records with an empty session id count as messages
    but not as sessions.

    Args:
        records: Usage records (any order)
        start: Inclusive interval start (timezone-aware)
        end: Inclusive interval end (timezone-aware)

    Returns:
        AggregateResult; empty when start > end
    """
    result = AggregateResult()
    if start > end:
        return result

    for record in records:
        if record.timestamp < start or record.timestamp > end:
            continue
        result.message_count += 1
        if record.session_id:
            result.sessions.add(record.session_id)

        bucket = result.models.get(record.model)
        if bucket is None:
            bucket = ModelUsage(model=record.model, display_name=display_name_for(record.model))
            result.models[record.model] = bucket
        bucket.add(record)

    return result


def build_daily_breakdown(records: List[UsageRecord], now: datetime) -> List[DailyUsage]:
    """One entry per day from Monday through today.

    Each day covers 00:00:00 through its last microsecond; today ends at now,
    matching the calendar-week interval.
    """
    now = now.astimezone(timezone.utc)
    monday = week_start(now)
    days = []
    for offset in range(now.weekday() + 1):
        day_start = monday + timedelta(days=offset)
        day_end = min(day_start + DAY_END_OFFSET, now)
        day_agg = aggregate(records, day_start, day_end)
        days.append(DailyUsage(
            date=day_start.date(),
            input_tokens=day_agg.total_input_tokens,
            output_tokens=day_agg.total_output_tokens,
            message_count=day_agg.message_count,
        ))
    return days


def build_snapshot(
    records: Iterable[UsageRecord],
    now: datetime,
    window_hours: float,
) -> UsageSnapshot:
    """Build the complete usage snapshot.

    Pure function of the record set, the current instant and the window
    length; holds no state between calls.

    Args:
        records: Full deduplicated record set
        now: Current instant (timezone-aware)
        window_hours: Rolling window length in hours, fractional allowed

    Returns:
        UsageSnapshot with window, weekly, per-model and cost figures
    """
    records = list(records)
    now = now.astimezone(timezone.utc)

    # Rolling window
    window_start = now - timedelta(hours=window_hours)
    window_agg = aggregate(records, window_start, now)
    window = WindowUsage(
        total_input_tokens=window_agg.total_input_tokens,
        total_output_tokens=window_agg.total_output_tokens,
        total_cache_read_tokens=window_agg.total_cache_read_tokens,
        total_cache_creation_tokens=window_agg.total_cache_creation_tokens,
        message_count=window_agg.message_count,
        session_count=window_agg.session_count,
        window_start=window_start,
        window_end=now,
    )

    # Calendar week, Monday to now
    weekly_agg = aggregate(records, week_start(now), now)
    weekly = WeeklyUsage(
        total_input_tokens=weekly_agg.total_input_tokens,
        total_output_tokens=weekly_agg.total_output_tokens,
        total_cache_read_tokens=weekly_agg.total_cache_read_tokens,
        total_cache_creation_tokens=weekly_agg.total_cache_creation_tokens,
        message_count=weekly_agg.message_count,
        session_count=weekly_agg.session_count,
        daily_breakdown=build_daily_breakdown(records, now),
    )

    # sorted() is stable, so ties keep first-appearance order
    models = sorted(window_agg.models.values(), key=lambda m: m.output_tokens, reverse=True)

    by_model = [
        ModelCost(
            model=bucket.model,
            display_name=bucket.display_name,
            cost_usd=calculate_cost(bucket.model, bucket.token_usage),
        )
        for bucket in weekly_agg.models.values()
    ]
    cost_estimate = CostEstimate(
        window_cost_usd=window_agg.total_cost_usd,
        weekly_cost_usd=sum(cost.cost_usd for cost in by_model),
        by_model=by_model,
    )

    return UsageSnapshot(
        window=window,
        weekly=weekly,
        models=models,
        cost_estimate=cost_estimate,
        last_updated=now,
    )


def snapshot_from_disk(
    root: Optional[Union[str, Path]],
    now: Optional[datetime] = None,
    window_hours: float = 5.0,
    max_workers: Optional[int] = None,
) -> UsageSnapshot:
    """Scan the corpus and build a snapshot in one call."""
    if now is None:
        now = datetime.now(timezone.utc)
    records = collect_records(root, now, window_hours, max_workers=max_workers)
    return build_snapshot(records, now, window_hours)
