"""
Shard change notification.

A background thread polls shard modification times and emits an event
whenever a session file is added, modified or removed. Aggregation never
depends on the watcher; consumers simply rebuild a snapshot per event.
"""

import queue
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple, Union

import structlog

from .scanner import stat_shards

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShardChangeEvent:
    """Shards that changed since the previous poll."""
    paths: FrozenSet[Path]
    detected_at: datetime


def diff_shards(
    previous: Dict[Path, Tuple[int, int]],
    current: Dict[Path, Tuple[int, int]],
) -> FrozenSet[Path]:
    """Paths added, removed or modified between two stat snapshots."""
    changed = {path for path, stat in current.items() if previous.get(path) != stat}
    changed.update(path for path in previous if path not in current)
    return frozenset(changed)


class ShardWatcher:
    """Polls a corpus root and queues a ShardChangeEvent per detected change.

    Events go to a single consumer via ``get``. There is no debouncing
    beyond the poll interval.
    """

    def __init__(self, root: Optional[Union[str, Path]], poll_interval: float = 2.0):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self.root = Path(root) if root is not None else None
        self.poll_interval = poll_interval
        self._events: "queue.Queue[ShardChangeEvent]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._known: Dict[Path, Tuple[int, int]] = {}

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ShardWatcher":
        """Start polling in a daemon thread."""
        if self.running:
            return self
        self._stop.clear()
        self._known = stat_shards(self.root)
        self._thread = threading.Thread(
            target=self._run, name="claude-pulse-watcher", daemon=True
        )
        self._thread.start()
        logger.debug("watcher_started", root=str(self.root), shards=len(self._known))
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the polling thread to exit and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.debug("watcher_stopped", root=str(self.root))

    def get(self, timeout: Optional[float] = None) -> Optional[ShardChangeEvent]:
        """Next change event, or None if none arrives within timeout."""
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    def poll(self) -> Optional[ShardChangeEvent]:
        """Run one poll cycle, queueing and returning an event if shards changed."""
        current = stat_shards(self.root)
        changed = diff_shards(self._known, current)
        self._known = current
        if not changed:
            return None

        event = ShardChangeEvent(paths=changed, detected_at=datetime.now(timezone.utc))
        self._events.put(event)
        logger.debug("shards_changed", count=len(changed))
        return event

    def _run(self) -> None:
        while not self._stop.wait(self.poll_interval):
            self.poll()

    def __enter__(self) -> "ShardWatcher":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
