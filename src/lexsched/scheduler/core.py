"""Core result dataclasses for the scheduling engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from lexsched.exceptions import ConstraintViolation
from lexsched.models import ScheduledInterval

if TYPE_CHECKING:
    from .summary import ProjectSummary


def _default_paths() -> list[list[str]]:
    return []


def _default_violations() -> list[ConstraintViolation]:
    return []


@dataclass(frozen=True)
class TaskTiming:
    """CPM timing for one task, in working-day offsets from the project start."""

    task_id: str
    duration: int
    earliest_start: int
    earliest_finish: int
    latest_start: int
    latest_finish: int
    total_float: int
    is_critical: bool


@dataclass(frozen=True)
class TimingResult:
    """Output of the forward and backward pass."""

    per_task: dict[str, TaskTiming]
    project_duration: int
    critical_paths: list[list[str]] = field(default_factory=_default_paths)
    infeasible: list[ConstraintViolation] = field(default_factory=_default_violations)
    critical_paths_truncated: bool = False

    @property
    def critical_tasks(self) -> list[str]:
        return [task_id for task_id, timing in self.per_task.items() if timing.is_critical]

    @property
    def is_feasible(self) -> bool:
        return not self.infeasible


@dataclass(frozen=True)
class Schedule:
    """Concrete dates for every task of a project."""

    anchor_date: date
    intervals: dict[str, ScheduledInterval]

    @property
    def project_start(self) -> date | None:
        if not self.intervals:
            return None
        return min(interval.start for interval in self.intervals.values())

    @property
    def project_end(self) -> date | None:
        if not self.intervals:
            return None
        return max(interval.end for interval in self.intervals.values())


@dataclass(frozen=True)
class ConflictPair:
    """Two assignments of the same assignee whose intervals overlap."""

    task_a: str
    task_b: str
    overlap_start: date
    overlap_end: date


@dataclass(frozen=True)
class DayLoad:
    """Allocated minutes for one assignee on one calendar day."""

    day: date
    minutes: float
    task_ids: tuple[str, ...]


@dataclass(frozen=True)
class ConflictReport:
    """Resource conflicts and workload for a set of assignments."""

    conflicts_by_assignee: dict[str, list[ConflictPair]]
    workload_by_assignee: dict[str, float]
    overallocated_days: dict[str, list[DayLoad]] = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return any(self.conflicts_by_assignee.values())


@dataclass(frozen=True)
class SchedulingResult:
    """Complete result of one scheduling request."""

    project_id: str
    timing: TimingResult
    schedule: Schedule
    conflicts: ConflictReport | None = None
    warnings: list[str] = field(default_factory=list)
    summary: ProjectSummary | None = None


@dataclass(frozen=True)
class AssigneeLoad:
    """How busy one assignee is over a candidate task's interval."""

    assignee_id: str
    workload_minutes: float
    minutes_per_day: float
    overlapping_tasks: tuple[str, ...]
    score: float
