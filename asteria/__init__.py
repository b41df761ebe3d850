"""Relay keyboard and mouse events between machines over TCP."""

__version__ = "1.3.0"