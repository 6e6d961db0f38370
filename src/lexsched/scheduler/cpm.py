"""Critical path method: forward pass, backward pass, float and critical paths.

All timing is expressed in working-day offsets from the project start
(offset 0 is the first working day on or after the anchor date). A task
occupies offsets ``[earliest_start, earliest_finish)``.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from lexsched.exceptions import ConstraintViolation, ScheduleInfeasibleError, ValidationError
from lexsched.logger import debug_enabled, get_logger
from lexsched.models import ConstraintKind, LinkType

from .config import SchedulingConfig
from .core import TaskTiming, TimingResult

if TYPE_CHECKING:
    from lexsched.calendar import WorkingCalendar
    from lexsched.graph import DependencyGraph, Edge

logger = get_logger()


def forward_constraint(edge: Edge, es: list[int], ef: list[int], duration: int) -> int:
    """Earliest start the link ``edge`` allows for its target."""
    if edge.type == LinkType.FINISH_TO_START:
        return ef[edge.source] + edge.lag
    if edge.type == LinkType.START_TO_START:
        return es[edge.source] + edge.lag
    if edge.type == LinkType.FINISH_TO_FINISH:
        return ef[edge.source] + edge.lag - duration
    return es[edge.source] + edge.lag - duration


def backward_constraint(edge: Edge, ls: list[int], lf: list[int], duration: int) -> int:
    """Latest finish the link ``edge`` allows for its source."""
    if edge.type == LinkType.FINISH_TO_START:
        return ls[edge.target] - edge.lag
    if edge.type == LinkType.START_TO_START:
        return ls[edge.target] - edge.lag + duration
    if edge.type == LinkType.FINISH_TO_FINISH:
        return lf[edge.target] - edge.lag
    return lf[edge.target] - edge.lag + duration


class CriticalPathScheduler:
    """Runs CPM over a validated dependency graph.

    Manual date constraints are converted to offsets with ``calendar`` and
    ``anchor_date``; both are required only when some task carries one.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        *,
        calendar: WorkingCalendar | None = None,
        anchor_date: date | None = None,
        config: SchedulingConfig | None = None,
    ):
        self.graph = graph
        self.calendar = calendar
        self.anchor_date = anchor_date
        self.config = config or SchedulingConfig()
        self._constraints = self._resolve_constraints()

    def _resolve_constraints(self) -> dict[int, tuple[ConstraintKind, int]]:
        """Convert manual constraint dates to working-day offsets."""
        offsets: dict[int, tuple[ConstraintKind, int]] = {}
        for idx, node in enumerate(self.graph.nodes):
            constraint = node.manual_constraint
            if constraint is None:
                continue
            if self.calendar is None or self.anchor_date is None:
                raise ValidationError(
                    f"Task '{node.id}' has a {constraint.kind.value} constraint; "
                    "an anchor date and calendar are required to resolve it"
                )
            start = self.calendar.next_working_day(self.anchor_date)
            if constraint.kind == ConstraintKind.MUST_FINISH_ON:
                # Finish offsets are exclusive: finishing on day D ends after D
                offset = self.calendar.working_days_between(
                    start, constraint.date + timedelta(days=1)
                )
            else:
                offset = self.calendar.working_days_between(start, constraint.date)
            logger.checks(
                f"  Constraint {constraint.kind.value} {constraint.date} on '{node.id}' "
                f"resolves to offset {offset}"
            )
            offsets[idx] = (constraint.kind, offset)
        return offsets

    def compute(self) -> TimingResult:
        """Run both passes and derive float and critical paths.

        Raises:
            ScheduleInfeasibleError: Some task has negative float and
                ``config.best_effort`` is False
        """
        nodes = self.graph.nodes
        order = self.graph.topological_indices()
        edges = self.graph.edges
        n = len(nodes)

        es = [0] * n
        ef = [0] * n
        for idx in order:
            duration = nodes[idx].duration
            start = 0
            for edge_idx in self.graph.incoming_edges(idx):
                bound = forward_constraint(edges[edge_idx], es, ef, duration)
                if debug_enabled():
                    edge = edges[edge_idx]
                    logger.debug(
                        f"    {nodes[edge.source].id} -> {nodes[idx].id} "
                        f"({edge.type.abbreviation}{edge.lag:+d}): start >= {bound}"
                    )
                start = max(start, bound)
            if idx in self._constraints:
                kind, offset = self._constraints[idx]
                if kind == ConstraintKind.MUST_FINISH_ON:
                    start = max(start, offset - duration)
                else:
                    start = max(start, offset)
            es[idx] = start
            ef[idx] = start + duration

        project_duration = max(ef, default=0)

        ls = [0] * n
        lf = [0] * n
        for idx in reversed(order):
            duration = nodes[idx].duration
            finish = project_duration
            for edge_idx in self.graph.outgoing_edges(idx):
                bound = backward_constraint(edges[edge_idx], ls, lf, duration)
                if debug_enabled():
                    edge = edges[edge_idx]
                    logger.debug(
                        f"    {nodes[idx].id} -> {nodes[edge.target].id} "
                        f"({edge.type.abbreviation}{edge.lag:+d}): finish <= {bound}"
                    )
                finish = min(finish, bound)
            if idx in self._constraints:
                kind, offset = self._constraints[idx]
                if kind == ConstraintKind.MUST_START_ON:
                    finish = min(finish, offset + duration)
                elif kind == ConstraintKind.MUST_FINISH_ON:
                    finish = min(finish, offset)
            lf[idx] = finish
            ls[idx] = finish - duration

        per_task: dict[str, TaskTiming] = {}
        violations: list[ConstraintViolation] = []
        for idx, node in enumerate(nodes):
            total_float = ls[idx] - es[idx]
            per_task[node.id] = TaskTiming(
                task_id=node.id,
                duration=node.duration,
                earliest_start=es[idx],
                earliest_finish=ef[idx],
                latest_start=ls[idx],
                latest_finish=lf[idx],
                total_float=total_float,
                # Negative float only survives in best-effort mode; those tasks drive too
                is_critical=total_float <= 0,
            )
            if total_float < 0:
                constraint = node.manual_constraint
                violations.append(
                    ConstraintViolation(
                        task_id=node.id,
                        total_float=total_float,
                        constraint_kind=constraint.kind.value if constraint else None,
                        constraint_date=constraint.date if constraint else None,
                    )
                )

        if violations and not self.config.best_effort:
            raise ScheduleInfeasibleError(violations)
        for violation in violations:
            logger.warning(violation.describe())

        critical = [ls[i] <= es[i] for i in range(n)]
        paths, truncated = self._critical_paths(es, ef, critical)
        logger.changes(
            f"Project duration {project_duration} working days; "
            f"{len(paths)} critical path(s): " + "; ".join(" -> ".join(p) for p in paths)
        )

        return TimingResult(
            per_task=per_task,
            project_duration=project_duration,
            critical_paths=paths,
            infeasible=violations,
            critical_paths_truncated=truncated,
        )

    def _critical_paths(
        self, es: list[int], ef: list[int], critical: list[bool]
    ) -> tuple[list[list[str]], bool]:
        """Enumerate every chain of critical tasks joined by driving links.

        A link is driving when the start it imposes equals its target's
        earliest start. Chains begin at a critical task with no driving
        critical predecessor and end at one with no driving critical successor.
        """
        nodes = self.graph.nodes
        edges = self.graph.edges
        next_critical: list[list[int]] = [[] for _ in nodes]
        has_critical_pred = [False] * len(nodes)
        for edge in edges:
            if not (critical[edge.source] and critical[edge.target]):
                continue
            bound = forward_constraint(edge, es, ef, nodes[edge.target].duration)
            if bound == es[edge.target] and edge.target not in next_critical[edge.source]:
                next_critical[edge.source].append(edge.target)
                has_critical_pred[edge.target] = True

        limit = self.config.max_critical_paths
        paths: list[list[str]] = []
        for root in self.graph.topological_indices():
            if not critical[root] or has_critical_pred[root]:
                continue
            stack: list[tuple[int, list[int]]] = [(root, [root])]
            while stack:
                current, path = stack.pop()
                if not next_critical[current]:
                    if limit is not None and len(paths) >= limit:
                        logger.warning(
                            f"Stopped after {limit} critical paths; more alternatives exist"
                        )
                        return paths, True
                    paths.append([nodes[i].id for i in path])
                    continue
                # Reversed so the first successor is explored first
                for child in reversed(next_critical[current]):
                    stack.append((child, [*path, child]))
        return paths, False


def compute_timing(
    graph: DependencyGraph,
    *,
    calendar: WorkingCalendar | None = None,
    anchor_date: date | None = None,
    config: SchedulingConfig | None = None,
) -> TimingResult:
    """Compute CPM timing for ``graph``. See ``CriticalPathScheduler``."""
    return CriticalPathScheduler(
        graph, calendar=calendar, anchor_date=anchor_date, config=config
    ).compute()
