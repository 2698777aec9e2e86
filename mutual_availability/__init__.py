"""Mutual availability engine: rated open time slots across calendars, preferences and commitments."""

__version__ = "1.0.0"
