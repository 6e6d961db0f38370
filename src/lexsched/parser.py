"""YAML parser for project files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .calendar import WorkingCalendar
from .exceptions import ParseError
from .graph import DependencyGraph
from .models import DependencyLink, TaskNode
from .schemas import ProjectSchema
from .wire import link_from_schema, links_from_task, task_from_schema, unique_links


@dataclass
class Project:
    """A parsed project file: tasks, links and optional calendar."""

    project_id: str
    nodes: list[TaskNode] = field(default_factory=list[TaskNode])
    links: list[DependencyLink] = field(default_factory=list[DependencyLink])
    anchor_date: date | None = None
    calendar: WorkingCalendar | None = None

    def build_graph(self) -> DependencyGraph:
        """Validate the tasks and links into a DependencyGraph.

        Raises:
            ValidationError: Duplicate ids, unknown references, self links or cycles
        """
        return DependencyGraph.build(self.nodes, self.links)


def parse_project_data(data: dict[str, Any], default_id: str = "") -> Project:
    """Convert loaded YAML data into a Project."""
    try:
        schema = ProjectSchema.model_validate(data)
        calendar = schema.calendar.to_calendar() if schema.calendar else None
    except PydanticValidationError as e:
        raise ParseError(f"Invalid project structure: {e}") from e

    nodes = [task_from_schema(task) for task in schema.tasks]
    links = [link_from_schema(link) for link in schema.links]
    # Inline requires, blocked_by and dependencies entries
    links.extend(link for task in schema.tasks for link in links_from_task(task))

    return Project(
        project_id=schema.project or default_id,
        nodes=nodes,
        links=unique_links(links),
        anchor_date=schema.anchor_date,
        calendar=calendar,
    )


def load_project(file_path: Path | str) -> Project:
    """Parse a project YAML file.

    The project id defaults to the file name without its extension.

    Raises:
        ParseError: If the file is missing, is not YAML or does not match the schema
    """
    path = Path(file_path)
    if not path.exists():
        raise ParseError(f"File not found: {file_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level")

    return parse_project_data(data, default_id=path.stem)  # type: ignore[arg-type]
