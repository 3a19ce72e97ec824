"""Jarvis — SMS organizational assistant."""

__version__ = "0.3.0"
