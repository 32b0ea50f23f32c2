"""
Core modules for Claude Pulse.

This package contains shard discovery, record parsing, pricing,
and the aggregation engine that builds usage snapshots.
"""
