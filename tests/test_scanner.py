"""
Unit tests for corpus discovery and record collection.
"""

import os
from datetime import datetime, timedelta, timezone

from claude_pulse.core.scanner import (
    collect_records,
    collection_cutoff,
    discover_shards,
    stat_shards,
    to_epoch_ns,
    week_start,
)
from tests.test_parser import make_entry

# Wednesday
NOW = datetime(2026, 2, 11, 15, 30, tzinfo=timezone.utc)


def _write(path, lines=(), mtime=NOW):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    os.utime(path, (mtime.timestamp(), mtime.timestamp()))
    return path


class TestDiscoverShards:
    """Test shard discovery under the two-level layout."""

    def test_finds_shards_in_project_directories(self, tmp_path):
        """Only <root>/<project>/*.jsonl files are returned."""
        a = _write(tmp_path / "project-a" / "one.jsonl")
        b = _write(tmp_path / "project-b" / "two.jsonl")
        _write(tmp_path / "top-level.jsonl")
        _write(tmp_path / "project-a" / "notes.txt")
        _write(tmp_path / "project-a" / "nested" / "deep.jsonl")

        shards = discover_shards(tmp_path)

        assert sorted(shards) == sorted([a, b])

    def test_missing_root_returns_empty(self, tmp_path):
        """A root that doesn't exist means no data, not an error."""
        assert discover_shards(tmp_path / "missing") == []

    def test_none_root_returns_empty(self):
        """No root (no home directory) means no data."""
        assert discover_shards(None) == []

    def test_filters_by_modified_time(self, tmp_path):
        """Shards modified before the threshold are skipped."""
        old = _write(tmp_path / "p" / "old.jsonl", mtime=NOW - timedelta(days=10))
        fresh = _write(tmp_path / "p" / "fresh.jsonl", mtime=NOW - timedelta(hours=1))

        shards = discover_shards(tmp_path, min_modified_time=NOW - timedelta(days=1))

        assert shards == [fresh]
        assert old not in shards

    def test_threshold_is_inclusive(self, tmp_path):
        """A shard modified exactly at the threshold is included."""
        exact = NOW - timedelta(hours=2)
        shard = _write(tmp_path / "p" / "exact.jsonl", mtime=exact)

        assert discover_shards(tmp_path, min_modified_time=exact) == [shard]

    def test_threshold_is_exact_to_the_microsecond(self, tmp_path):
        """An mtime equal to a threshold with sub-second precision is included."""
        threshold = datetime(2026, 2, 11, 15, 29, 59, 999999, tzinfo=timezone.utc)
        whole_seconds = int(threshold.replace(microsecond=0).timestamp())
        exact_ns = whole_seconds * 1_000_000_000 + 999_999_000
        shard = _write(tmp_path / "p" / "exact.jsonl")
        os.utime(shard, ns=(exact_ns, exact_ns))

        assert to_epoch_ns(threshold) == exact_ns
        assert discover_shards(tmp_path, min_modified_time=threshold) == [shard]
        assert discover_shards(
            tmp_path, min_modified_time=threshold + timedelta(microseconds=1)
        ) == []

    def test_stat_shards_reports_mtime_and_size(self, tmp_path):
        """stat_shards maps each shard to (mtime_ns, size)."""
        shard = _write(tmp_path / "p" / "s.jsonl", ["{}"])

        stats = stat_shards(tmp_path)

        assert list(stats) == [shard]
        assert stats[shard][1] == 3


class TestWeekStart:
    """Test calendar week boundaries."""

    def test_midweek(self):
        """Wednesday maps to the preceding Monday at midnight."""
        assert week_start(NOW) == datetime(2026, 2, 9, tzinfo=timezone.utc)

    def test_monday_is_its_own_week_start(self):
        """Monday maps to itself at midnight."""
        monday = datetime(2026, 2, 9, 0, 0, 1, tzinfo=timezone.utc)
        assert week_start(monday) == datetime(2026, 2, 9, tzinfo=timezone.utc)

    def test_sunday(self):
        """Sunday belongs to the week starting six days earlier."""
        sunday = datetime(2026, 2, 15, 23, 59, tzinfo=timezone.utc)
        assert week_start(sunday) == datetime(2026, 2, 9, tzinfo=timezone.utc)

    def test_converts_offsets_to_utc(self):
        """Week start is computed on the UTC calendar."""
        # Monday 01:00 at +02:00 is still Sunday in UTC
        local = datetime(2026, 2, 9, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert week_start(local) == datetime(2026, 2, 2, tzinfo=timezone.utc)


class TestCollectRecords:
    """Test merging shards into one record set."""

    def test_cutoff_is_earlier_of_window_and_week(self):
        """The cutoff covers both the window and the calendar week."""
        assert collection_cutoff(NOW, 5.0) == week_start(NOW)
        assert collection_cutoff(NOW, 24 * 10) == NOW - timedelta(days=10)

    def test_merges_and_sorts_by_timestamp(self, tmp_path):
        """Records from all shards are merged in timestamp order."""
        _write(tmp_path / "a" / "1.jsonl", [
            make_entry("req_a1", timestamp="2026-02-11T12:00:00Z", output_tokens=3),
            make_entry("req_a2", timestamp="2026-02-10T12:00:00Z", output_tokens=1),
        ])
        _write(tmp_path / "b" / "2.jsonl", [
            make_entry("req_b1", timestamp="2026-02-11T09:00:00Z", output_tokens=2),
        ])

        records = collect_records(tmp_path, NOW, 5.0)

        assert [r.usage.output_tokens for r in records] == [1, 2, 3]

    def test_drops_records_before_cutoff(self, tmp_path):
        """Records older than the cutoff are not collected."""
        _write(tmp_path / "a" / "1.jsonl", [
            make_entry("req_old", timestamp="2026-02-01T12:00:00Z"),
            make_entry("req_new", timestamp="2026-02-10T12:00:00Z"),
        ])

        records = collect_records(tmp_path, NOW, 5.0)

        assert len(records) == 1
        assert records[0].timestamp.day == 10

    def test_skips_stale_shards(self, tmp_path):
        """Shards last modified before the cutoff are never parsed."""
        _write(
            tmp_path / "a" / "stale.jsonl",
            [make_entry("req_1", timestamp="2026-02-10T12:00:00Z")],
            mtime=NOW - timedelta(days=30),
        )

        assert collect_records(tmp_path, NOW, 5.0) == []

    def test_parallel_parse_matches_sequential(self, tmp_path):
        """A thread pool produces the same records as a sequential scan."""
        for i in range(4):
            _write(tmp_path / f"p{i}" / "s.jsonl", [
                make_entry(f"req_{i}", timestamp=f"2026-02-1{i % 2}T0{i}:00:00Z", output_tokens=i)
            ])

        sequential = collect_records(tmp_path, NOW, 5.0)
        parallel = collect_records(tmp_path, NOW, 5.0, max_workers=4)

        assert sequential == parallel
        assert len(parallel) == 4

    def test_same_request_id_across_shards_counts_twice(self, tmp_path):
        """Deduplication never spans shards."""
        _write(tmp_path / "a" / "1.jsonl", [make_entry("req_1", timestamp="2026-02-10T12:00:00Z")])
        _write(tmp_path / "a" / "2.jsonl", [make_entry("req_1", timestamp="2026-02-10T12:00:00Z")])

        assert len(collect_records(tmp_path, NOW, 5.0)) == 2

    def test_missing_root_collects_nothing(self, tmp_path):
        """A missing corpus root yields no records."""
        assert collect_records(tmp_path / "missing", NOW, 5.0) == []
