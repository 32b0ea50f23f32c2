"""
Configuration and logging setup for Claude Pulse.
"""
