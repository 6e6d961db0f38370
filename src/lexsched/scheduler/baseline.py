"""Schedule baselines and variance analysis.

A baseline is an immutable snapshot of planned dates captured at a point in
time. A newer baseline supersedes an older one; neither is ever edited.
Comparison is always baseline versus the current schedule.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import yaml

from lexsched.exceptions import ParseError
from lexsched.logger import checks_enabled, get_logger

if TYPE_CHECKING:
    from lexsched.graph import DependencyGraph

    from .core import Schedule

logger = get_logger()

BASELINE_FILE_VERSION = 1


@dataclass(frozen=True)
class BaselineEntry:
    """Planned dates for one task at capture time."""

    task_id: str
    planned_start: date
    planned_end: date
    planned_duration: int


@dataclass(frozen=True)
class BaselineSnapshot:
    """Immutable baseline of a project's schedule."""

    project_id: str
    captured_at: datetime
    tasks: tuple[BaselineEntry, ...]

    def entry(self, task_id: str) -> BaselineEntry | None:
        for entry in self.tasks:
            if entry.task_id == task_id:
                return entry
        return None


@dataclass(frozen=True)
class TaskVariance:
    """Drift of one task relative to the baseline. Positive means later/longer."""

    task_id: str
    schedule_variance: int  # calendar days, current start - planned start
    finish_variance: int  # calendar days, current end - planned end
    duration_variance: int  # working days, current duration - planned duration

    @property
    def has_variance(self) -> bool:
        return bool(self.schedule_variance or self.finish_variance or self.duration_variance)


@dataclass(frozen=True)
class ScopeChanges:
    """Tasks added since the baseline and tasks the baseline had that are gone."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


@dataclass(frozen=True)
class BaselineComparison:
    """Variance report of the current schedule against a baseline."""

    project_id: str
    baseline_captured_at: datetime
    per_task: dict[str, TaskVariance]
    scope_changes: ScopeChanges
    # Baselined tasks still in the graph that the current schedule has no dates for
    unscheduled: list[str] = field(default_factory=list)

    @property
    def slipped_tasks(self) -> list[str]:
        return [task_id for task_id, v in self.per_task.items() if v.schedule_variance > 0]


def capture_baseline(
    project_id: str,
    schedule: Schedule,
    graph: DependencyGraph,
    captured_at: datetime | None = None,
) -> BaselineSnapshot:
    """Snapshot the planned dates of every scheduled task, in graph order."""
    entries = tuple(
        BaselineEntry(
            task_id=node.id,
            planned_start=schedule.intervals[node.id].start,
            planned_end=schedule.intervals[node.id].end,
            planned_duration=node.duration,
        )
        for node in graph.nodes
        if node.id in schedule.intervals
    )
    snapshot = BaselineSnapshot(
        project_id=project_id,
        captured_at=captured_at or datetime.now(tz=timezone.utc),
        tasks=entries,
    )
    logger.changes(f"Captured baseline for '{project_id}' with {len(entries)} task(s)")
    return snapshot


def compare_to_baseline(
    baseline: BaselineSnapshot,
    schedule: Schedule,
    graph: DependencyGraph,
) -> BaselineComparison:
    """Compute per-task variance and scope changes against ``baseline``.

    Every task is accounted for: tasks on both sides get a variance entry,
    tasks only in the current graph are ``added`` and tasks only in the
    baseline are ``removed``. A baselined task that is still in the graph
    but has no current interval is neither; it is listed as ``unscheduled``.
    """
    planned_by_id = {entry.task_id: entry for entry in baseline.tasks}
    per_task: dict[str, TaskVariance] = {}
    added: list[str] = []
    unscheduled: list[str] = []

    for node in graph.nodes:
        planned = planned_by_id.get(node.id)
        if planned is None:
            added.append(node.id)
            continue
        interval = schedule.intervals.get(node.id)
        if interval is None:
            unscheduled.append(node.id)
            continue
        variance = TaskVariance(
            task_id=node.id,
            schedule_variance=(interval.start - planned.planned_start).days,
            finish_variance=(interval.end - planned.planned_end).days,
            duration_variance=node.duration - planned.planned_duration,
        )
        per_task[node.id] = variance
        if variance.has_variance and checks_enabled():
            logger.checks(
                f"  {node.id}: start {variance.schedule_variance:+d}d, "
                f"finish {variance.finish_variance:+d}d, "
                f"duration {variance.duration_variance:+d}"
            )

    removed = [entry.task_id for entry in baseline.tasks if entry.task_id not in graph]

    return BaselineComparison(
        project_id=baseline.project_id,
        baseline_captured_at=baseline.captured_at,
        per_task=per_task,
        scope_changes=ScopeChanges(added=added, removed=removed),
        unscheduled=unscheduled,
    )


def write_baseline_file(path: Path, baseline: BaselineSnapshot) -> None:
    """Persist a baseline as YAML."""
    output: dict[str, Any] = {
        "version": BASELINE_FILE_VERSION,
        "project_id": baseline.project_id,
        "captured_at": baseline.captured_at.isoformat(),
        "tasks": [
            {
                "task_id": entry.task_id,
                "planned_start": entry.planned_start.isoformat(),
                "planned_end": entry.planned_end.isoformat(),
                "planned_duration": entry.planned_duration,
            }
            for entry in baseline.tasks
        ],
    }
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)


def read_baseline_file(path: Path) -> BaselineSnapshot:  # noqa: PLR0912
    """Load a baseline written by ``write_baseline_file``.

    Raises:
        ParseError: If the file is malformed or has an unsupported version
    """
    if not path.exists():
        raise ParseError(f"File not found: {path}")
    with path.open(encoding="utf-8") as f:
        try:
            raw_data: Any = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"Failed to parse baseline YAML: {e}") from e

    if not isinstance(raw_data, dict):
        raise ParseError(f"Invalid baseline file format: expected dict, got {type(raw_data)}")
    data = cast(dict[str, Any], raw_data)

    version = data.get("version")
    if version != BASELINE_FILE_VERSION:
        raise ParseError(
            f"Unsupported baseline file version {version!r}, expected {BASELINE_FILE_VERSION}"
        )

    project_id = data.get("project_id")
    if not project_id:
        raise ParseError("Baseline file missing 'project_id'")

    try:
        captured_at = _parse_datetime(data.get("captured_at"))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid 'captured_at' in baseline: {e}") from e

    raw_tasks = data.get("tasks", [])
    if not isinstance(raw_tasks, list):
        raise ParseError("Baseline 'tasks' field must be a list")

    entries: list[BaselineEntry] = []
    for item in cast(list[Any], raw_tasks):
        if not isinstance(item, dict):
            raise ParseError("Each baseline task must be a mapping")
        task_data = cast(dict[str, Any], item)
        task_id = task_data.get("task_id")
        if not task_id:
            raise ParseError("Baseline task missing 'task_id'")
        try:
            entries.append(
                BaselineEntry(
                    task_id=str(task_id),
                    planned_start=_parse_date(task_data["planned_start"]),
                    planned_end=_parse_date(task_data["planned_end"]),
                    planned_duration=int(task_data.get("planned_duration", 0)),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Invalid baseline entry for '{task_id}': {e}") from e

    return BaselineSnapshot(
        project_id=str(project_id), captured_at=captured_at, tasks=tuple(entries)
    )


def _parse_date(value: Any) -> date:
    # PyYAML already turns unquoted ISO dates into date objects
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return datetime.fromisoformat(str(value))
