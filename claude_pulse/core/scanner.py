"""
Corpus discovery and record collection.

Finds session shards under ``<root>/<project>/<shard>.jsonl`` and merges
their parsed records. Discovery failures degrade to "no data".
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import structlog

from .parser import parse_shard
from .records import UsageRecord

logger = structlog.get_logger(__name__)

SHARD_EXTENSION = ".jsonl"
SHARD_PATTERN = f"*/*{SHARD_EXTENSION}"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def default_corpus_root() -> Optional[Path]:
    """Return ``~/.claude/projects``, or None when there is no home directory."""
    try:
        home = Path.home()
    except RuntimeError:
        return None
    return home / ".claude" / "projects"


def to_epoch_ns(moment: datetime) -> int:
    """Nanoseconds since the Unix epoch, exact to the microsecond.

    Comparable with ``st_mtime_ns``; float seconds would round away the
    low microseconds of present-day instants.
    """
    elapsed = moment.astimezone(timezone.utc) - EPOCH
    return elapsed // timedelta(microseconds=1) * 1000


def stat_shards(root: Optional[Union[str, Path]]) -> Dict[Path, Tuple[int, int]]:
    """Map every shard under root to its (mtime_ns, size).

    Shards that vanish or can't be stat'ed between listing and stat are
    left out. A missing or unreadable root yields an empty mapping.
    """
    if root is None:
        return {}
    root_path = Path(root)
    if not root_path.is_dir():
        logger.debug("corpus_root_missing", root=str(root_path))
        return {}

    try:
        candidates = list(root_path.glob(SHARD_PATTERN))
    except OSError as e:
        logger.warning("shard_discovery_failed", root=str(root_path), error=str(e))
        return {}

    shards = {}
    for path in candidates:
        try:
            stat = path.stat()
        except OSError:
            continue
        if not path.is_file():
            continue
        shards[path] = (stat.st_mtime_ns, stat.st_size)
    return shards


def discover_shards(
    root: Optional[Union[str, Path]],
    min_modified_time: Optional[datetime] = None,
) -> List[Path]:
    """Discover session shards, optionally only those modified recently.

    Args:
        root: Corpus root containing one directory per project
        min_modified_time: If given, only shards modified at or after
            this instant are returned

    Returns:
        Shard paths in no particular order
    """
    shards = stat_shards(root)
    if min_modified_time is None:
        return list(shards)

    threshold_ns = to_epoch_ns(min_modified_time)
    return [path for path, (mtime_ns, _) in shards.items() if mtime_ns >= threshold_ns]


def week_start(now: datetime) -> datetime:
    """Most recent Monday 00:00:00 UTC at or before now."""
    now_utc = now.astimezone(timezone.utc)
    monday = now_utc.date() - timedelta(days=now_utc.weekday())
    return datetime(monday.year, monday.month, monday.day, tzinfo=timezone.utc)


def collection_cutoff(now: datetime, window_hours: float) -> datetime:
    """Earliest instant any snapshot view needs: window start or week start."""
    return min(now - timedelta(hours=window_hours), week_start(now))


def collect_records(
    root: Optional[Union[str, Path]],
    now: datetime,
    window_hours: float,
    max_workers: Optional[int] = None,
) -> List[UsageRecord]:
    """Collect records needed for a snapshot at ``now``.

    Only shards modified since the cutoff are parsed, which keeps refreshes
    cheap against a large, mostly static corpus. Each shard keeps its own
    deduplication set.

    Args:
        root: Corpus root directory
        now: Current instant (timezone-aware)
        window_hours: Rolling window length in hours
        max_workers: Parse shards on a thread pool when greater than 1

    Returns:
        Records at or after the cutoff, sorted by timestamp
    """
    cutoff = collection_cutoff(now, window_hours)
    shards = discover_shards(root, min_modified_time=cutoff)

    if max_workers and max_workers > 1 and len(shards) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            parsed = list(executor.map(parse_shard, shards))
    else:
        parsed = [parse_shard(shard) for shard in shards]

    records = [
        record
        for shard_records in parsed
        for record in shard_records
        if record.timestamp >= cutoff
    ]
    records.sort(key=lambda r: r.timestamp)

    logger.debug("records_collected", shards=len(shards), records=len(records))
    return records
