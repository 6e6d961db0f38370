"""Resource conflict detection and workload accounting.

Conflicts are reported data, not errors: callers decide whether an
overlapping assignment blocks anything.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING

from lexsched.logger import get_logger
from lexsched.models import ResourceAssignment

from .core import AssigneeLoad, ConflictPair, ConflictReport, DayLoad

if TYPE_CHECKING:
    from lexsched.calendar import WorkingCalendar
    from lexsched.graph import DependencyGraph
    from lexsched.models import ScheduledInterval

    from .core import Schedule

logger = get_logger()

MINUTES_PER_ELAPSED_DAY = 24 * 60
IDLE_SCORE = 100.0
SCORE_PER_HOUR = 10.0


def assignments_from_schedule(
    graph: DependencyGraph,
    schedule: Schedule,
    minutes_per_day: int,
) -> list[ResourceAssignment]:
    """Build the assignment view for every scheduled task that has an assignee.

    Effort defaults to ``duration * minutes_per_day`` when the task carries no
    explicit estimate.
    """
    assignments: list[ResourceAssignment] = []
    for node in graph.nodes:
        if node.assignee_id is None:
            continue
        interval = schedule.intervals.get(node.id)
        if interval is None:
            continue
        effort = node.effort_minutes
        if effort is None:
            effort = node.duration * minutes_per_day
        assignments.append(
            ResourceAssignment(
                assignee_id=node.assignee_id,
                task_id=node.id,
                start=interval.start,
                end=interval.end,
                effort_minutes=effort,
            )
        )
    return assignments


def _group_by_assignee(
    assignments: Iterable[ResourceAssignment],
) -> dict[str, list[ResourceAssignment]]:
    grouped: dict[str, list[ResourceAssignment]] = defaultdict(list)
    for assignment in assignments:
        grouped[assignment.assignee_id].append(assignment)
    return dict(grouped)


def _sweep_conflicts(assignments: list[ResourceAssignment]) -> list[ConflictPair]:
    """Find every overlapping pair for a single assignee.

    Intervals are sorted by start and swept once. The active list holds the
    intervals still running at the current start; anything that ended at or
    before it can never overlap a later interval, so it is dropped.
    """
    ordered = sorted(assignments, key=lambda a: (a.start, a.end, a.task_id))
    active: list[ResourceAssignment] = []
    pairs: list[ConflictPair] = []
    for current in ordered:
        # Milestones and other empty intervals hold no time
        if current.end <= current.start:
            continue
        active = [a for a in active if a.end > current.start]
        for earlier in active:
            if earlier.overlaps(current):
                pairs.append(
                    ConflictPair(
                        task_a=earlier.task_id,
                        task_b=current.task_id,
                        overlap_start=max(earlier.start, current.start),
                        overlap_end=min(earlier.end, current.end),
                    )
                )
        active.append(current)
    return pairs


def _effort_minutes(assignment: ResourceAssignment) -> float:
    if assignment.effort_minutes is not None:
        return float(assignment.effort_minutes)
    return (assignment.end - assignment.start).days * float(MINUTES_PER_ELAPSED_DAY)


def _touches_range(assignment: ResourceAssignment, date_range: tuple[date, date]) -> bool:
    range_start, range_end = date_range
    if assignment.start == assignment.end:
        return range_start <= assignment.start < range_end
    return assignment.start < range_end and range_start < assignment.end


def _minutes_in_range(
    assignment: ResourceAssignment, date_range: tuple[date, date] | None
) -> float:
    """Scheduled minutes of ``assignment`` falling inside the half-open ``date_range``."""
    minutes = _effort_minutes(assignment)
    if date_range is None:
        return minutes
    range_start, range_end = date_range
    elapsed = (assignment.end - assignment.start).days
    if elapsed == 0:
        return minutes if range_start <= assignment.start < range_end else 0.0
    overlap = (min(assignment.end, range_end) - max(assignment.start, range_start)).days
    if overlap <= 0:
        return 0.0
    return minutes * overlap / elapsed


def daily_load(
    assignments: Iterable[ResourceAssignment],
    calendar: WorkingCalendar | None = None,
) -> dict[str, list[DayLoad]]:
    """Spread each assignment's effort evenly over the days it covers.

    With a calendar, effort is spread over working days only; otherwise over
    every calendar day in the interval.

    Returns:
        Per assignee, one DayLoad per day with any allocation, in date order
    """
    loads: dict[str, dict[date, list[tuple[str, float]]]] = defaultdict(lambda: defaultdict(list))
    for assignment in assignments:
        days: list[date] = []
        current = assignment.start
        while current < assignment.end:
            if calendar is None or calendar.is_working_day(current):
                days.append(current)
            current += timedelta(days=1)
        if not days:
            continue
        per_day = _effort_minutes(assignment) / len(days)
        for day in days:
            loads[assignment.assignee_id][day].append((assignment.task_id, per_day))

    result: dict[str, list[DayLoad]] = {}
    for assignee_id, by_day in loads.items():
        result[assignee_id] = [
            DayLoad(
                day=day,
                minutes=sum(minutes for _, minutes in entries),
                task_ids=tuple(task_id for task_id, _ in entries),
            )
            for day, entries in sorted(by_day.items())
        ]
    return result


def find_conflicts(
    assignments: Iterable[ResourceAssignment],
    *,
    date_range: tuple[date, date] | None = None,
    daily_capacity_minutes: int | None = None,
    calendar: WorkingCalendar | None = None,
) -> ConflictReport:
    """Report overlapping assignments and workload per assignee.

    Two intervals ``[s1, e1)`` and ``[s2, e2)`` conflict iff ``s1 < e2`` and
    ``s2 < e1``; back-to-back intervals do not conflict. Zero-length
    assignments (milestones) hold no time, so they never conflict, even when
    they fall inside another task of the same assignee.

    Args:
        assignments: Assignments to check
        date_range: Optional half-open range restricting conflicts and workload
        daily_capacity_minutes: When set, also report days whose allocated
            minutes exceed this capacity
        calendar: Working calendar used to spread effort for daily load

    Returns:
        ConflictReport with conflict pairs, total minutes and overallocated days
    """
    grouped = _group_by_assignee(assignments)

    if date_range is not None:
        grouped = {
            assignee_id: [a for a in items if _touches_range(a, date_range)]
            for assignee_id, items in grouped.items()
        }

    conflicts_by_assignee: dict[str, list[ConflictPair]] = {}
    workload_by_assignee: dict[str, float] = {}
    for assignee_id, items in grouped.items():
        pairs = _sweep_conflicts(items)
        if date_range is not None:
            pairs = [
                ConflictPair(
                    task_a=p.task_a,
                    task_b=p.task_b,
                    overlap_start=max(p.overlap_start, date_range[0]),
                    overlap_end=min(p.overlap_end, date_range[1]),
                )
                for p in pairs
                if p.overlap_start < date_range[1] and date_range[0] < p.overlap_end
            ]
        conflicts_by_assignee[assignee_id] = pairs
        workload_by_assignee[assignee_id] = sum(_minutes_in_range(a, date_range) for a in items)
        if pairs:
            logger.changes(
                f"Assignee '{assignee_id}' has {len(pairs)} overlapping assignment(s): "
                + ", ".join(f"{p.task_a}/{p.task_b}" for p in pairs)
            )

    overallocated: dict[str, list[DayLoad]] = {}
    if daily_capacity_minutes is not None:
        all_items = [a for items in grouped.values() for a in items]
        for assignee_id, loads in daily_load(all_items, calendar).items():
            over = [
                load
                for load in loads
                if load.minutes > daily_capacity_minutes
                and (date_range is None or date_range[0] <= load.day < date_range[1])
            ]
            if over:
                overallocated[assignee_id] = over
                logger.checks(f"Assignee '{assignee_id}' overallocated on {len(over)} day(s)")

    return ConflictReport(
        conflicts_by_assignee=conflicts_by_assignee,
        workload_by_assignee=workload_by_assignee,
        overallocated_days=overallocated,
    )


def rank_assignees(
    report: ConflictReport,
    candidates: Iterable[str] = (),
    *,
    days: int = 1,
    tasks_by_assignee: dict[str, list[str]] | None = None,
) -> list[AssigneeLoad]:
    """Rank assignees from least to most loaded over the report's window.

    Each assignee scores ``100 - 10 * hours per day``; candidates absent from
    the report are idle and score 100. Ties go to fewer tasks, then to id.

    Args:
        report: Workload over the window being staffed
        candidates: Assignees to rank even when they hold no work
        days: Days in the window, used to average the workload
        tasks_by_assignee: Task ids each assignee holds in the window
    """
    tasks_by_assignee = tasks_by_assignee or {}
    assignee_ids = set(report.workload_by_assignee) | set(candidates)
    loads: list[AssigneeLoad] = []
    for assignee_id in assignee_ids:
        minutes = report.workload_by_assignee.get(assignee_id, 0.0)
        per_day = minutes / max(1, days)
        loads.append(
            AssigneeLoad(
                assignee_id=assignee_id,
                workload_minutes=minutes,
                minutes_per_day=per_day,
                overlapping_tasks=tuple(tasks_by_assignee.get(assignee_id, [])),
                score=IDLE_SCORE - per_day / 60 * SCORE_PER_HOUR,
            )
        )
    loads.sort(key=lambda load: (-load.score, len(load.overlapping_tasks), load.assignee_id))
    return loads


def suggest_assignees(
    assignments: Iterable[ResourceAssignment],
    interval: ScheduledInterval,
    candidates: Iterable[str] = (),
    calendar: WorkingCalendar | None = None,
) -> list[AssigneeLoad]:
    """Suggest who should take the task scheduled at ``interval``.

    Workload is measured over the task's own interval (one day for a
    milestone), ignoring any existing assignment of the task itself.
    """
    window_end = max(interval.end, interval.start + timedelta(days=1))
    window = (interval.start, window_end)
    others = [
        a for a in assignments if a.task_id != interval.task_id and _touches_range(a, window)
    ]
    report = find_conflicts(others, date_range=window)

    if calendar is not None:
        days = calendar.working_days_between(*window)
    else:
        days = (window_end - interval.start).days

    tasks_by_assignee: dict[str, list[str]] = defaultdict(list)
    for assignment in others:
        tasks_by_assignee[assignment.assignee_id].append(assignment.task_id)

    ranking = rank_assignees(
        report, candidates, days=days, tasks_by_assignee=dict(tasks_by_assignee)
    )
    if ranking:
        logger.checks(
            f"Suggested assignee for '{interval.task_id}': {ranking[0].assignee_id} "
            f"({ranking[0].minutes_per_day / 60:.1f}h/day)"
        )
    return ranking
