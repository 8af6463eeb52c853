"""Plum - scoped plugin configuration manager for Claude Code."""

__version__ = "0.4.0"
