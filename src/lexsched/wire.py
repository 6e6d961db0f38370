"""Conversion between engine types and the record shapes of the Gantt contract.

Inbound records (tasks, links, calendars) are validated with the pydantic
schemas in ``lexsched.schemas``. Outbound records use the contract's keys:
camelCase timing fields, ``start_date``/``end_date`` strings and link types
as the string codes ``"0"``-``"3"``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from .calendar import WorkingCalendar
from .exceptions import ParseError
from .logger import get_logger
from .models import DependencyLink, LinkType, ManualConstraint, TaskNode
from .schemas import CalendarSchema, LinkSchema, TaskSchema

if TYPE_CHECKING:
    from .graph import DependencyGraph
    from .scheduler.core import AssigneeLoad, ConflictReport, SchedulingResult, TaskTiming
    from .scheduler.summary import ProjectSummary

logger = get_logger()

# Dependency kinds that order two tasks
BLOCKED_BY = "blocked_by"
BLOCKS = "blocks"


def link_type_code(link_type: LinkType) -> str:
    """Wire code for a link type, as the string the contract carries."""
    return str(link_type.code)


def link_type_from_code(code: int | str) -> LinkType:
    """Parse a wire code (``0``-``3`` or ``"0"``-``"3"``).

    Raises:
        ParseError: If the code is not one of the four known values
    """
    try:
        return LinkType.from_code(code)
    except ValueError as e:
        raise ParseError(str(e)) from e


def task_from_schema(schema: TaskSchema) -> TaskNode:
    constraint = None
    if schema.manual_constraint is not None:
        constraint = ManualConstraint(
            kind=schema.manual_constraint.kind,
            date=schema.manual_constraint.constraint_date,
        )
    try:
        return TaskNode(
            id=schema.id,
            duration=schema.duration,
            name=schema.name,
            is_milestone=schema.is_milestone,
            assignee_id=schema.assignee_id,
            progress=schema.progress,
            manual_constraint=constraint,
            effort_minutes=schema.effort_minutes,
        )
    except ValueError as e:
        raise ParseError(str(e)) from e


def task_schema_from_record(record: Mapping[str, Any]) -> TaskSchema:
    """Validate a task record.

    Raises:
        ParseError: If the record does not match the task schema
    """
    try:
        return TaskSchema.model_validate(dict(record))
    except PydanticValidationError as e:
        raise ParseError(f"Invalid task record: {e}") from e


def task_from_record(record: Mapping[str, Any]) -> TaskNode:
    """Build a TaskNode from a task record.

    Raises:
        ParseError: If the record does not match the task schema
    """
    return task_from_schema(task_schema_from_record(record))


def link_from_schema(schema: LinkSchema) -> DependencyLink:
    return DependencyLink(
        source_id=schema.source,
        target_id=schema.target,
        type=schema.type,
        lag=schema.lag,
    )


def link_from_record(record: Mapping[str, Any]) -> DependencyLink:
    """Build a DependencyLink from a link record.

    ``type`` may be a wire code (``0``/``"0"`` is finish-to-start), a name
    such as ``"start_to_start"`` or an abbreviation such as ``"SS"``.

    Raises:
        ParseError: If the record does not match the link schema
    """
    try:
        schema = LinkSchema.model_validate(dict(record))
    except PydanticValidationError as e:
        raise ParseError(f"Invalid link record: {e}") from e
    return link_from_schema(schema)


def links_from_task(schema: TaskSchema) -> list[DependencyLink]:
    """Links a task declares on itself.

    Sources, in order:
    - ``requires``: compact specs such as "draft SS + 1d", targeting this task
    - ``blocked_by``: finish-to-start from each blocker to this task
    - ``dependencies``: ``blocked_by`` entries point at this task, ``blocks``
      entries point away from it

    Raises:
        ParseError: If a requires entry is not a valid dependency spec
    """
    links: list[DependencyLink] = []
    for spec in schema.requires:
        try:
            links.append(DependencyLink.parse(spec, schema.id))
        except ValueError as e:
            raise ParseError(f"Task '{schema.id}': {e}") from e

    for blocker in schema.blocked_by:
        links.append(DependencyLink(source_id=blocker, target_id=schema.id))

    for dependency in schema.dependencies:
        if dependency.type == BLOCKED_BY:
            links.append(DependencyLink(source_id=dependency.task_id, target_id=schema.id))
        elif dependency.type == BLOCKS:
            links.append(DependencyLink(source_id=schema.id, target_id=dependency.task_id))
        else:
            logger.debug(
                f"Task '{schema.id}': '{dependency.type}' dependency on "
                f"'{dependency.task_id}' does not constrain the schedule"
            )
    return links


def unique_links(links: Iterable[DependencyLink]) -> list[DependencyLink]:
    """Drop repeated links, keeping the first per (source, target, type).

    A blocker listed both in ``blocked_by`` and in ``dependencies`` yields
    one link.
    """
    seen: set[tuple[str, str, LinkType]] = set()
    result: list[DependencyLink] = []
    for link in links:
        key = (link.source_id, link.target_id, link.type)
        if key in seen:
            continue
        seen.add(key)
        result.append(link)
    return result


def calendar_from_record(record: Mapping[str, Any]) -> WorkingCalendar:
    """Build a WorkingCalendar from a calendar record.

    Raises:
        ParseError: If the record does not match the calendar schema
    """
    try:
        return CalendarSchema.model_validate(dict(record)).to_calendar()
    except PydanticValidationError as e:
        raise ParseError(f"Invalid calendar record: {e}") from e


def format_wire_date(day: date) -> str:
    """Dates travel as local midnight, ``YYYY-MM-DD 00:00``."""
    return f"{day.isoformat()} 00:00"


def timing_to_record(timing: TaskTiming) -> dict[str, Any]:
    """CPM fields of one task in the contract's camelCase shape."""
    return {
        "id": timing.task_id,
        "earliestStart": timing.earliest_start,
        "earliestFinish": timing.earliest_finish,
        "latestStart": timing.latest_start,
        "latestFinish": timing.latest_finish,
        "float": timing.total_float,
        "isCritical": timing.is_critical,
    }


def link_to_record(link: DependencyLink, link_id: str) -> dict[str, Any]:
    return {
        "id": link_id,
        "source": link.source_id,
        "target": link.target_id,
        "type": link_type_code(link.type),
        "lag": link.lag,
    }


def schedule_to_records(result: SchedulingResult, graph: DependencyGraph) -> dict[str, Any]:
    """Serialize a scheduling result into ``{"data": [...], "links": [...]}``.

    Every task record carries its dates, CPM timing, progress as a 0-1
    fraction and its assignee. Records follow graph order.
    """
    data: list[dict[str, Any]] = []
    for node in graph.nodes:
        interval = result.schedule.intervals.get(node.id)
        timing = result.timing.per_task.get(node.id)
        record: dict[str, Any] = {
            "id": node.id,
            "text": node.label,
            "type": "milestone" if node.is_milestone else "task",
            "duration": node.duration,
            "progress": node.progress / 100,
            "assigneeId": node.assignee_id,
        }
        if interval is not None:
            record["start_date"] = format_wire_date(interval.start)
            record["end_date"] = format_wire_date(interval.end)
        if timing is not None:
            record.update(
                {key: value for key, value in timing_to_record(timing).items() if key != "id"}
            )
        data.append(record)

    links = [link_to_record(link, f"link_{i}") for i, link in enumerate(graph.links, start=1)]

    output: dict[str, Any] = {
        "projectId": result.project_id,
        "projectDuration": result.timing.project_duration,
        "criticalPaths": [list(path) for path in result.timing.critical_paths],
        "data": data,
        "links": links,
    }
    if result.conflicts is not None:
        output["conflicts"] = conflicts_to_record(result.conflicts)
    if result.summary is not None:
        output["summary"] = summary_to_record(result.summary)
    if result.warnings:
        output["warnings"] = list(result.warnings)
    return output


def conflicts_to_record(report: ConflictReport) -> dict[str, Any]:
    """Per-assignee conflicts and workload, keyed by assignee id."""
    output: dict[str, Any] = {}
    assignees = set(report.conflicts_by_assignee) | set(report.workload_by_assignee)
    for assignee_id in sorted(assignees):
        output[assignee_id] = {
            "workloadMinutes": report.workload_by_assignee.get(assignee_id, 0),
            "conflicts": [
                {
                    "taskA": pair.task_a,
                    "taskB": pair.task_b,
                    "overlapStart": pair.overlap_start.isoformat(),
                    "overlapEnd": pair.overlap_end.isoformat(),
                }
                for pair in report.conflicts_by_assignee.get(assignee_id, [])
            ],
            "overallocatedDays": [
                {
                    "date": load.day.isoformat(),
                    "minutes": load.minutes,
                    "tasks": list(load.task_ids),
                }
                for load in report.overallocated_days.get(assignee_id, [])
            ],
        }
    return output


def summary_to_record(summary: ProjectSummary) -> dict[str, Any]:
    """Project summary in the contract's camelCase shape."""
    return {
        "totalTasks": summary.total_tasks,
        "completedTasks": summary.completed_tasks,
        "inProgressTasks": summary.in_progress_tasks,
        "notStartedTasks": summary.not_started_tasks,
        "overdueTasks": summary.overdue_tasks,
        "milestones": summary.milestones,
        "completionPercentage": summary.completion_percentage,
        "projectDuration": summary.project_duration,
        "projectStart": format_wire_date(summary.project_start) if summary.project_start else None,
        "projectEnd": format_wire_date(summary.project_end) if summary.project_end else None,
        "criticalPath": list(summary.critical_path),
        "criticalTasks": summary.critical_tasks,
    }


def assignee_loads_to_record(loads: list[AssigneeLoad]) -> list[dict[str, Any]]:
    """Assignee suggestions, best match first."""
    return [
        {
            "assigneeId": load.assignee_id,
            "currentTasks": len(load.overlapping_tasks),
            "totalHours": load.workload_minutes / 60,
            "avgHoursPerDay": load.minutes_per_day / 60,
            "score": load.score,
        }
        for load in loads
    ]
