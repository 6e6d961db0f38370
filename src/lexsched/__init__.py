"""Task dependency and critical-path scheduling engine."""

__version__ = "0.1.0"
