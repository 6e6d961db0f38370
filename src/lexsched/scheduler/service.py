"""High-level scheduling service."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from lexsched.calendar import WorkingCalendar
from lexsched.graph import DependencyGraph
from lexsched.logger import get_logger
from lexsched.wire import (
    calendar_from_record,
    link_from_record,
    links_from_task,
    task_from_schema,
    task_schema_from_record,
    unique_links,
)

from .auto import AutoScheduler
from .config import SchedulingConfig
from .conflicts import assignments_from_schedule, find_conflicts
from .core import SchedulingResult
from .cpm import compute_timing
from .summary import project_summary

if TYPE_CHECKING:
    from lexsched.models import DependencyLink, TaskNode

logger = get_logger()


class SchedulingService:
    """Runs one scheduling request end to end.

    This service coordinates:
    - DependencyGraph (validation and ordering)
    - CriticalPathScheduler (offsets, float and critical paths)
    - AutoScheduler (offsets to working-calendar dates)
    - Conflict detection (overlapping assignments per assignee)
    """

    def __init__(  # noqa: PLR0913 - needs multiple optional config params
        self,
        graph: DependencyGraph,
        anchor_date: date | None = None,
        calendar: WorkingCalendar | None = None,
        config: SchedulingConfig | None = None,
        project_id: str = "",
    ):
        """Initialize scheduling service.

        Args:
            graph: Validated dependency graph to schedule
            anchor_date: Project anchor date (defaults to today)
            calendar: Working calendar (defaults to Monday-Friday, no holidays)
            config: Optional scheduling configuration
            project_id: Identifier carried into the result
        """
        self.graph = graph
        self.anchor_date = anchor_date or date.today()  # noqa: DTZ011
        self.calendar = calendar or WorkingCalendar()
        self.config = config or SchedulingConfig()
        self.project_id = project_id

    @classmethod
    def from_tasks(  # noqa: PLR0913 - mirrors __init__
        cls,
        nodes: Iterable[TaskNode],
        links: Iterable[DependencyLink],
        anchor_date: date | None = None,
        calendar: WorkingCalendar | None = None,
        config: SchedulingConfig | None = None,
        project_id: str = "",
    ) -> SchedulingService:
        """Build and validate the graph, then wrap it in a service."""
        graph = DependencyGraph.build(nodes, links)
        return cls(graph, anchor_date, calendar, config, project_id)

    @classmethod
    def from_records(  # noqa: PLR0913 - mirrors __init__
        cls,
        tasks: Iterable[Mapping[str, Any]],
        links: Iterable[Mapping[str, Any]],
        anchor_date: date | None = None,
        calendar: Mapping[str, Any] | None = None,
        config: SchedulingConfig | None = None,
        project_id: str = "",
    ) -> SchedulingService:
        """Build a service from external task/link/calendar records.

        See ``lexsched.wire`` for the accepted record shapes.
        """
        task_schemas = [task_schema_from_record(record) for record in tasks]
        nodes = [task_from_schema(schema) for schema in task_schemas]
        all_links = [link_from_record(record) for record in links]
        all_links.extend(link for schema in task_schemas for link in links_from_task(schema))
        all_links = unique_links(all_links)
        working_calendar = calendar_from_record(calendar) if calendar is not None else None
        return cls.from_tasks(nodes, all_links, anchor_date, working_calendar, config, project_id)

    def schedule(self, as_of: date | None = None) -> SchedulingResult:
        """Compute timing, place tasks on the calendar and check assignees.

        Args:
            as_of: Reference date for counting overdue tasks in the summary

        Returns:
            SchedulingResult with timing, dates, conflicts and warnings

        Raises:
            ScheduleInfeasibleError: Negative float without ``best_effort``
            CalendarExhaustedError: The calendar ran out of working days
        """
        logger.changes(
            f"Scheduling '{self.project_id or 'project'}': {len(self.graph)} task(s), "
            f"anchor {self.anchor_date.isoformat()}"
        )
        timing = compute_timing(
            self.graph,
            calendar=self.calendar,
            anchor_date=self.anchor_date,
            config=self.config,
        )
        schedule = AutoScheduler(self.calendar).schedule(self.graph, timing, self.anchor_date)

        warnings = [violation.describe() for violation in timing.infeasible]
        if timing.critical_paths_truncated:
            warnings.append(
                f"Critical path enumeration stopped at {self.config.max_critical_paths} path(s)"
            )

        conflicts = None
        if self.config.detect_conflicts:
            assignments = assignments_from_schedule(
                self.graph, schedule, self.config.minutes_per_day
            )
            conflicts = find_conflicts(
                assignments,
                daily_capacity_minutes=self.config.daily_capacity_minutes,
                calendar=self.calendar,
            )
            for assignee_id, pairs in conflicts.conflicts_by_assignee.items():
                for pair in pairs:
                    warnings.append(
                        f"Assignee '{assignee_id}' is double-booked on "
                        f"'{pair.task_a}' and '{pair.task_b}' "
                        f"from {pair.overlap_start.isoformat()} to {pair.overlap_end.isoformat()}"
                    )

        return SchedulingResult(
            project_id=self.project_id,
            timing=timing,
            schedule=schedule,
            conflicts=conflicts,
            warnings=warnings,
            summary=project_summary(self.graph, timing, schedule, as_of=as_of),
        )

