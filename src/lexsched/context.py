"""Process-wide CLI state."""

from __future__ import annotations

from pathlib import Path


class _Context:
    def __init__(self) -> None:
        self.config_path: Path | None = None


_context = _Context()


def get_config_path() -> Path | None:
    """Config file chosen with ``--config``, if any."""
    return _context.config_path


def set_config_path(path: Path | None) -> None:
    _context.config_path = path
