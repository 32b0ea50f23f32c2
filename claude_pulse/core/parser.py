"""
Session log parsing.

Turns one JSONL shard into a deduplicated, input-ordered list of
usage records. Parsing is total: malformed lines are skipped and
unreadable files yield no records.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import structlog

from .records import TokenUsage, UsageRecord

logger = structlog.get_logger(__name__)

ASSISTANT_TYPE = "assistant"

# usage field name -> TokenUsage attribute
USAGE_FIELDS = {
    "input_tokens": "input_tokens",
    "output_tokens": "output_tokens",
    "cache_read_input_tokens": "cache_read_tokens",
    "cache_creation_input_tokens": "cache_creation_tokens",
}


def parse_shard(path: Union[str, Path]) -> List[UsageRecord]:
    """Parse a single session file into usage records.

    One API response is written as several lines (thinking, text and
    tool_use content blocks) that all carry identical usage figures, so
    lines are deduplicated by ``requestId`` within this shard. Lines
    without a request id are never deduplicated.

    Args:
        path: Path to the JSONL shard

    Returns:
        Usage records in input line order (empty if the file can't be read)
    """
    shard_path = Path(path)
    try:
        handle = open(shard_path, "rb")
    except OSError as e:
        logger.warning("shard_open_failed", path=str(shard_path), error=str(e))
        return []

    records: List[UsageRecord] = []
    seen_requests: Set[str] = set()
    skipped = 0

    with handle:
        try:
            for raw_line in handle:
                record = _parse_line(raw_line, seen_requests)
                if record is None:
                    if raw_line.strip():
                        skipped += 1
                    continue
                records.append(record)
        except OSError as e:
            logger.warning("shard_read_failed", path=str(shard_path), error=str(e))

    logger.debug(
        "shard_parsed",
        path=str(shard_path),
        records=len(records),
        skipped=skipped,
    )
    return records


def _parse_line(raw_line: bytes, seen_requests: Set[str]) -> Optional[UsageRecord]:
    """Extract a usage record from one physical line, or None to skip it."""
    if not raw_line.strip():
        return None

    try:
        entry = json.loads(raw_line.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError):
        return None

    if not isinstance(entry, dict) or entry.get("type") != ASSISTANT_TYPE:
        return None

    message = entry.get("message")
    if not isinstance(message, dict):
        return None

    model = message.get("model")
    if "usage" not in message or not isinstance(model, str):
        return None

    # Mark the request as seen before validating usage and timestamp
    request_id = _get_str(entry, "requestId")
    if request_id:
        if request_id in seen_requests:
            return None
        seen_requests.add(request_id)

    usage = _extract_usage(message["usage"])
    if usage is None:
        return None

    timestamp = _parse_timestamp(entry.get("timestamp"))
    if timestamp is None:
        return None

    return UsageRecord(
        model=model,
        usage=usage,
        timestamp=timestamp,
        session_id=_get_str(entry, "sessionId"),
    )


def _get_str(entry: Dict[str, Any], key: str) -> str:
    """Return a string field, or an empty string when absent or not a string."""
    value = entry.get(key)
    return value if isinstance(value, str) else ""


def _extract_usage(value: Any) -> Optional[TokenUsage]:
    """Extract token counts; missing counts default to zero.

    Returns None when the usage object or any present count has the
    wrong shape (not an object, not a non-negative integer).
    """
    if not isinstance(value, dict):
        return None

    counts = {}
    for field_name, attribute in USAGE_FIELDS.items():
        if field_name not in value:
            counts[attribute] = 0
            continue
        count = value[field_name]
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            return None
        counts[attribute] = count

    return TokenUsage(**counts)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 instant into an aware UTC datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)
