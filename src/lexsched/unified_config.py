"""Unified configuration loader.

A single ``lexsched_config.yaml`` holds the default working calendar and the
scheduler settings. Project files may override the calendar.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from . import context
from .calendar import WorkingCalendar
from .exceptions import ParseError
from .logger import get_logger
from .scheduler import SchedulingConfig

CONFIG_FILENAME = "lexsched_config.yaml"

logger = get_logger()


class UnifiedConfig(BaseModel):
    """Calendar and scheduler settings."""

    calendar: WorkingCalendar = Field(default_factory=WorkingCalendar)
    scheduler: SchedulingConfig = Field(default_factory=SchedulingConfig)


def load_unified_config(config_path: Path | str) -> UnifiedConfig:
    """Load unified configuration from YAML file.

    Args:
        config_path: Path to lexsched_config.yaml file

    Returns:
        UnifiedConfig; missing sections take their defaults

    Raises:
        ParseError: If the file is missing, unreadable or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ParseError(f"Config file not found: {config_path}")

    with config_path.open(encoding="utf-8") as f:
        try:
            data: Any = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"Failed to parse config YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("Config must contain a mapping at the root level")

    sections = cast(dict[str, Any], data)
    unknown = set(sections) - {"calendar", "scheduler"}
    if unknown:
        logger.warning(f"Ignoring unknown config section(s): {', '.join(sorted(unknown))}")

    try:
        calendar = WorkingCalendar.model_validate(sections.get("calendar") or {})
        scheduler = SchedulingConfig.model_validate(sections.get("scheduler") or {})
    except PydanticValidationError as e:
        raise ParseError(f"Invalid config {config_path}: {e}") from e

    logger.checks(f"Loaded config from {config_path}")
    return UnifiedConfig(calendar=calendar, scheduler=scheduler)


def discover_config(project_path: Path | None = None) -> UnifiedConfig:
    """Find and load the config for a project file.

    Search order:
    1. Global context (set via CLI --config)
    2. project file directory / lexsched_config.yaml
    3. Current directory / lexsched_config.yaml

    Falls back to defaults when no file is found.
    """
    ctx_config = context.get_config_path()
    if ctx_config is not None:
        return load_unified_config(ctx_config)

    candidates: list[Path] = []
    if project_path is not None:
        candidates.append(Path(project_path).parent / CONFIG_FILENAME)
    candidates.append(Path(CONFIG_FILENAME))

    for candidate in candidates:
        if candidate.exists():
            return load_unified_config(candidate)

    return UnifiedConfig()
