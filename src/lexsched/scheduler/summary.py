"""Project summary: task counts, completion and the critical path."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from lexsched.logger import get_logger
from lexsched.models import MAX_PROGRESS

if TYPE_CHECKING:
    from lexsched.graph import DependencyGraph

    from .core import Schedule, TimingResult

logger = get_logger()


def _default_path() -> list[str]:
    return []


@dataclass(frozen=True)
class ProjectSummary:
    """Headline figures for one scheduled project."""

    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    not_started_tasks: int
    overdue_tasks: int
    milestones: int
    completion_percentage: int
    project_duration: int
    project_start: date | None = None
    project_end: date | None = None
    critical_path: list[str] = field(default_factory=_default_path)
    critical_tasks: int = 0


def project_summary(
    graph: DependencyGraph,
    timing: TimingResult,
    schedule: Schedule,
    as_of: date | None = None,
) -> ProjectSummary:
    """Summarize a computed schedule.

    Completion is the mean task progress, rounded half up. A task is overdue
    when it is unfinished and its last working day lies before ``as_of``;
    without ``as_of`` nothing is counted as overdue. ``critical_path`` is the
    first critical path, empty when there is none.
    """
    completed = in_progress = overdue = milestones = 0
    total_progress = 0
    for node in graph.nodes:
        total_progress += node.progress
        if node.progress >= MAX_PROGRESS:
            completed += 1
        elif node.progress > 0:
            in_progress += 1
        if node.is_milestone:
            milestones += 1

        interval = schedule.intervals.get(node.id)
        if as_of is None or interval is None or node.progress >= MAX_PROGRESS:
            continue
        due = interval.end - timedelta(days=1) if interval.end > interval.start else interval.start
        if due < as_of:
            overdue += 1

    total = len(graph)
    completion = math.floor(total_progress / total + 0.5) if total else 0
    summary = ProjectSummary(
        total_tasks=total,
        completed_tasks=completed,
        in_progress_tasks=in_progress,
        not_started_tasks=total - completed - in_progress,
        overdue_tasks=overdue,
        milestones=milestones,
        completion_percentage=completion,
        project_duration=timing.project_duration,
        project_start=schedule.project_start,
        project_end=schedule.project_end,
        critical_path=list(timing.critical_paths[0]) if timing.critical_paths else [],
        critical_tasks=len(timing.critical_tasks),
    )
    logger.checks(
        f"Summary: {completed}/{total} task(s) complete, {completion}% overall, "
        f"{overdue} overdue"
    )
    return summary
