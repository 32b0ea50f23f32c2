"""
In-memory cache of parsed shards.

Keeps records per shard so repeated refreshes only reparse shards whose
modification time or size changed.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import structlog

from claude_pulse.core.parser import parse_shard
from claude_pulse.core.records import UsageRecord
from claude_pulse.core.scanner import stat_shards, to_epoch_ns

logger = structlog.get_logger(__name__)


class ShardCache:
    """Parsed records keyed by shard path and (mtime_ns, size).

    Refreshes are serialized by a lock, so concurrent recomputation
    triggers never observe a half-updated cache.
    """

    def __init__(self):
        self._entries: Dict[Path, Tuple[Tuple[int, int], List[UsageRecord]]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def records(
        self,
        root: Optional[Union[str, Path]],
        min_modified_time: Optional[datetime] = None,
    ) -> List[UsageRecord]:
        """Refresh from disk and return cached records sorted by timestamp.

        Args:
            root: Corpus root directory
            min_modified_time: Skip shards last modified before this instant

        Returns:
            Records of all current shards (at or after min_modified_time)
        """
        shards = stat_shards(root)
        if min_modified_time is not None:
            threshold_ns = to_epoch_ns(min_modified_time)
            shards = {
                path: stat for path, stat in shards.items() if stat[0] >= threshold_ns
            }

        with self._lock:
            dropped = [path for path in self._entries if path not in shards]
            for path in dropped:
                del self._entries[path]

            reparsed = 0
            for path, stat in shards.items():
                cached = self._entries.get(path)
                if cached is not None and cached[0] == stat:
                    continue
                self._entries[path] = (stat, parse_shard(path))
                reparsed += 1

            records = [
                record
                for _, shard_records in self._entries.values()
                for record in shard_records
            ]

        logger.debug(
            "cache_refreshed",
            reparsed=reparsed,
            dropped=len(dropped),
            cached=len(shards),
        )
        records.sort(key=lambda r: r.timestamp)
        return records
