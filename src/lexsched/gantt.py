"""Mermaid Gantt rendering of a computed schedule."""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .graph import DependencyGraph
    from .models import TaskNode
    from .scheduler import SchedulingResult

COMPLETE = 100
UNASSIGNED_SECTION = "Unassigned"


class GroupBy(str, Enum):
    NONE = "none"
    ASSIGNEE = "assignee"


def _mermaid_id(task_id: str) -> str:
    """Mermaid task ids may only hold word characters and dashes."""
    return re.sub(r"[^\w-]", "_", task_id)


def _mermaid_label(node: TaskNode) -> str:
    # ":" ends the label and "#" starts a comment in Mermaid
    return node.label.replace(":", " -").replace("#", "")


class GanttRenderer:
    """Renders a SchedulingResult as a Mermaid gantt chart.

    Critical tasks are tagged ``crit``, finished tasks ``done`` and tasks in
    progress ``active``. Milestones render as Mermaid milestones.
    """

    def __init__(self, graph: DependencyGraph, result: SchedulingResult):
        self.graph = graph
        self.result = result

    def _build_mermaid_header(
        self, title: str, axis_format: str | None, today: date | None
    ) -> list[str]:
        lines = [
            "gantt",
            f"    title {title}",
            "    dateFormat YYYY-MM-DD",
        ]
        if axis_format:
            lines.append(f"    axisFormat {axis_format}")
        if today is not None:
            lines.append(f"    todayMarker {today.isoformat()}")
        return lines

    def _task_tags(self, node: TaskNode) -> list[str]:
        tags: list[str] = []
        timing = self.result.timing.per_task.get(node.id)
        if timing is not None and timing.is_critical:
            tags.append("crit")
        if node.progress >= COMPLETE:
            tags.append("done")
        elif node.progress > 0:
            tags.append("active")
        return tags

    def _task_line(self, node: TaskNode) -> str | None:
        interval = self.result.schedule.intervals.get(node.id)
        if interval is None:
            return None
        tags = self._task_tags(node)
        label = _mermaid_label(node)
        start_str = interval.start.isoformat()
        if node.is_milestone or interval.start == interval.end:
            tags.append("milestone")
            return f"    {label} :{', '.join(tags)}, {_mermaid_id(node.id)}, {start_str}, 0d"
        tags_str = ", ".join(tags) + ", " if tags else ""
        # Explicit end date: the exclusive end already skips non-working days
        return (
            f"    {label} :{tags_str}{_mermaid_id(node.id)}, {start_str}, "
            f"{interval.end.isoformat()}"
        )

    def generate_mermaid(
        self,
        *,
        title: str = "Project Schedule",
        group_by: GroupBy = GroupBy.NONE,
        axis_format: str | None = None,
        today: date | None = None,
    ) -> str:
        """Generate Mermaid gantt chart syntax.

        Args:
            title: Chart title
            group_by: ``assignee`` puts each assignee's tasks in its own section
            axis_format: Mermaid axisFormat string (e.g., "%Y-%m-%d", "%b %d")
            today: Date for the today marker, omitted when None

        Returns:
            Mermaid gantt chart syntax as a string
        """
        lines = self._build_mermaid_header(title, axis_format, today)
        lines.append("")

        if group_by == GroupBy.ASSIGNEE:
            sections: dict[str, list[TaskNode]] = {}
            for node in self.graph.nodes:
                sections.setdefault(node.assignee_id or UNASSIGNED_SECTION, []).append(node)
            for section, nodes in sections.items():
                lines.append(f"    section {section}")
                lines.extend(line for line in map(self._task_line, nodes) if line is not None)
        else:
            lines.extend(line for line in map(self._task_line, self.graph.nodes) if line)

        return "\n".join(lines)
