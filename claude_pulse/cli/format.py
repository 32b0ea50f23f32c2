"""
Display formatting helpers for the CLI.
"""

from datetime import datetime, timezone
from typing import Optional


def format_token_count(count: int) -> str:
    """Format a token count with K/M suffix."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def format_currency(amount: float) -> str:
    """Format a USD amount; tiny non-zero amounts show as <$0.01."""
    if 0 < amount < 0.01:
        return "<$0.01"
    return f"${amount:,.2f}"


def format_relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    """Format how long ago an instant was, e.g. ``5m ago``."""
    if now is None:
        now = datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def usage_level(percent: float) -> str:
    """Meter level for a usage percentage."""
    if percent >= 90:
        return "critical"
    if percent >= 70:
        return "warning"
    return "normal"


def usage_percent(current: int, limit: int) -> float:
    """Percentage of limit used, capped at 100."""
    return min(current / limit * 100, 100.0)
