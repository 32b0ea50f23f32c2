"""
Claude Pulse.

Usage and cost summaries built from local Claude Code session logs.
"""

__version__ = "0.1.0"
