"""Tunes - local music library with a single-stream audio player."""

__version__ = "0.1.0"
