"""
Command-line presentation layer for Claude Pulse.
"""
