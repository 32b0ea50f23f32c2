"""
Storage helpers for Claude Pulse.

Holds the optional in-memory cache of parsed session records.
"""
