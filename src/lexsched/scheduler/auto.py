"""Auto-scheduling: place CPM offsets onto a working calendar."""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from lexsched.exceptions import ValidationError
from lexsched.logger import get_logger
from lexsched.models import ScheduledInterval

from .core import Schedule

if TYPE_CHECKING:
    from lexsched.calendar import WorkingCalendar
    from lexsched.graph import DependencyGraph

    from .core import TimingResult

logger = get_logger()


class AutoScheduler:
    """Converts working-day offsets into concrete dates.

    Offset ``k`` is the k-th working day on or after the anchor date. A task
    with timing ``[es, ef)`` starts on working day ``es`` and its exclusive end
    is the day after working day ``ef - 1``. Zero-duration tasks and
    milestones get ``end == start``. Lags are already folded into the offsets,
    so a 2 day lag skips 2 working days rather than 2 elapsed days.
    """

    def __init__(self, calendar: WorkingCalendar):
        self.calendar = calendar

    def schedule(
        self,
        graph: DependencyGraph,
        timing: TimingResult,
        anchor_date: date,
    ) -> Schedule:
        """Assign dates to every task of ``graph``.

        Raises:
            CalendarExhaustedError: The calendar has no working days within its lookahead
            ValidationError: ``timing`` is missing a task of ``graph``
        """
        if len(graph) == 0:
            return Schedule(anchor_date=anchor_date, intervals={})

        # One extra day so milestones at the project end have a date
        working_days = self.calendar.working_days(anchor_date, timing.project_duration + 1)

        intervals: dict[str, ScheduledInterval] = {}
        for node in graph.nodes:
            task_timing = timing.per_task.get(node.id)
            if task_timing is None:
                raise ValidationError(f"No timing computed for task '{node.id}'")

            start = working_days[task_timing.earliest_start]
            if node.duration == 0:
                end = start
            else:
                end = working_days[task_timing.earliest_finish - 1] + timedelta(days=1)

            intervals[node.id] = ScheduledInterval(task_id=node.id, start=start, end=end)
            logger.changes(f"  {node.id}: {start.isoformat()} -> {end.isoformat()}")

        return Schedule(anchor_date=anchor_date, intervals=intervals)
