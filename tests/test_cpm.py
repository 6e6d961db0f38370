"""Tests for the critical path method: forward/backward pass, float and paths."""

import io
import random
from datetime import date

import pytest

from lexsched.calendar import WorkingCalendar
from lexsched.exceptions import ScheduleInfeasibleError, ValidationError
from lexsched.graph import DependencyGraph
from lexsched.logger import setup_logger
from lexsched.models import ConstraintKind, LinkType, ManualConstraint, TaskNode
from lexsched.scheduler import SchedulingConfig, compute_timing
from tests.conftest import ANCHOR, build_graph, chain, link


def _with_duration(graph: DependencyGraph, task_id: str, duration: int) -> DependencyGraph:
    nodes = [
        TaskNode(id=node.id, duration=duration if node.id == task_id else node.duration)
        for node in graph.nodes
    ]
    return DependencyGraph.build(nodes, graph.links)


class TestForwardBackwardPass:
    """Test timing for each link type."""

    def test_simple_chain(self) -> None:
        """A(1) -> B(2) -> C(3): all critical, duration 6."""
        timing = compute_timing(chain(("A", 1), ("B", 2), ("C", 3)))

        assert timing.project_duration == 6
        assert [timing.per_task[t].total_float for t in "ABC"] == [0, 0, 0]
        assert timing.critical_paths == [["A", "B", "C"]]
        assert timing.per_task["C"].earliest_start == 3
        assert timing.per_task["C"].latest_finish == 6

    def test_finish_to_start_lag(self) -> None:
        graph = build_graph({"A": 3, "B": 2}, [link("A", "B", lag=2)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 5
        assert timing.per_task["B"].earliest_finish == 7
        assert timing.project_duration == 7
        assert timing.critical_paths == [["A", "B"]]

    def test_finish_to_start_lead(self) -> None:
        graph = build_graph({"A": 5, "B": 3}, [link("A", "B", lag=-2)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 3
        assert timing.project_duration == 6

    def test_start_to_start(self) -> None:
        graph = build_graph({"A": 5, "B": 3}, [link("A", "B", LinkType.START_TO_START)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 0
        assert timing.project_duration == 5
        assert timing.per_task["A"].is_critical
        assert timing.per_task["B"].total_float == 2
        assert timing.critical_paths == [["A"]]

    def test_finish_to_finish(self) -> None:
        graph = build_graph({"A": 5, "B": 3}, [link("A", "B", LinkType.FINISH_TO_FINISH)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 2
        assert timing.per_task["B"].earliest_finish == 5
        assert timing.project_duration == 5
        assert timing.critical_paths == [["A", "B"]]

    def test_start_to_finish(self) -> None:
        graph = build_graph({"A": 2, "B": 3}, [link("A", "B", LinkType.START_TO_FINISH, 4)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 1
        assert timing.per_task["B"].earliest_finish == 4
        assert timing.project_duration == 4
        assert timing.per_task["A"].latest_finish == 2
        assert timing.critical_paths == [["A", "B"]]

    def test_earliest_start_never_negative(self) -> None:
        graph = build_graph({"A": 1, "B": 5}, [link("A", "B", LinkType.FINISH_TO_FINISH)])
        timing = compute_timing(graph)

        assert timing.per_task["B"].earliest_start == 0
        assert timing.per_task["A"].total_float == 4

    def test_milestone_ends_chain(self) -> None:
        nodes = [TaskNode(id="filing", duration=3), TaskNode(id="hearing", is_milestone=True)]
        timing = compute_timing(DependencyGraph.build(nodes, [link("filing", "hearing")]))

        assert timing.per_task["hearing"].earliest_start == 3
        assert timing.per_task["hearing"].earliest_finish == 3
        assert timing.critical_paths == [["filing", "hearing"]]

    def test_empty_graph(self) -> None:
        timing = compute_timing(DependencyGraph.build([], []))
        assert timing.project_duration == 0
        assert timing.critical_paths == []


class TestCriticalPaths:
    """Test critical path enumeration."""

    @pytest.fixture
    def matter(self) -> DependencyGraph:
        # intake(2) -> research(5) -> draft(4) -> review(2)
        #           \-> evidence(3) ------------/
        return build_graph(
            {"intake": 2, "research": 5, "evidence": 3, "draft": 4, "review": 2},
            [
                link("intake", "research"),
                link("intake", "evidence"),
                link("research", "draft"),
                link("draft", "review"),
                link("evidence", "review"),
            ],
        )

    def test_single_critical_path(self, matter: DependencyGraph) -> None:
        timing = compute_timing(matter)

        assert timing.project_duration == 13
        assert timing.critical_paths == [["intake", "research", "draft", "review"]]
        assert timing.per_task["evidence"].total_float == 6
        assert timing.critical_tasks == ["intake", "research", "draft", "review"]

    def test_shortening_critical_task_shortens_project(self, matter: DependencyGraph) -> None:
        timing = compute_timing(matter)
        for task_id in timing.critical_paths[0]:
            node = matter.node(task_id)
            shorter = compute_timing(_with_duration(matter, task_id, node.duration - 1))
            assert shorter.project_duration == timing.project_duration - 1, task_id

    def test_shortening_non_critical_task_does_not(self, matter: DependencyGraph) -> None:
        shorter = compute_timing(_with_duration(matter, "evidence", 2))
        assert shorter.project_duration == 13

    def test_all_alternative_paths(self) -> None:
        graph = build_graph({"a": 2, "b": 2, "c": 1}, [link("a", "c"), link("b", "c")])
        timing = compute_timing(graph)

        assert timing.critical_paths == [["a", "c"], ["b", "c"]]
        assert not timing.critical_paths_truncated

    def test_disconnected_critical_tasks_are_separate_paths(self) -> None:
        timing = compute_timing(build_graph({"x": 4, "y": 4}))
        assert timing.critical_paths == [["x"], ["y"]]

    def test_max_critical_paths(self) -> None:
        graph = build_graph({"a": 2, "b": 2, "c": 1}, [link("a", "c"), link("b", "c")])
        timing = compute_timing(graph, config=SchedulingConfig(max_critical_paths=1))

        assert timing.critical_paths == [["a", "c"]]
        assert timing.critical_paths_truncated

    def test_non_driving_link_is_not_on_path(self) -> None:
        # b and c are both critical, but b finishes long before c may start
        graph = build_graph(
            {"a": 3, "b": 1, "c": 3, "d": 2},
            [link("a", "c"), link("b", "c"), link("b", "d", lag=3)],
        )
        timing = compute_timing(graph)

        assert timing.project_duration == 6
        assert timing.per_task["b"].is_critical
        assert timing.per_task["c"].is_critical
        assert timing.critical_paths == [["a", "c"], ["b", "d"]]


class TestFloatNonNegative:
    """Without manual constraints every float is >= 0."""

    @pytest.mark.parametrize("seed", range(20))
    def test_random_dag(self, seed: int) -> None:
        rng = random.Random(seed)
        count = rng.randint(2, 15)
        ids = [f"t{i}" for i in range(count)]
        durations = {task_id: rng.randint(0, 6) for task_id in ids}
        links = []
        for i in range(count):
            for j in range(i + 1, count):
                if rng.random() < 0.3:
                    links.append(
                        link(ids[i], ids[j], rng.choice(list(LinkType)), rng.randint(-2, 3))
                    )
        timing = compute_timing(build_graph(durations, links))

        for task_timing in timing.per_task.values():
            assert task_timing.total_float >= 0
            assert task_timing.earliest_start >= 0
            assert task_timing.latest_finish <= timing.project_duration
        assert timing.is_feasible

    @pytest.mark.parametrize("seed", range(10))
    def test_shortening_float_task_never_shortens_project(self, seed: int) -> None:
        rng = random.Random(seed)
        ids = [f"t{i}" for i in range(10)]
        durations = {task_id: rng.randint(1, 6) for task_id in ids}
        links = [
            link(ids[i], ids[j])
            for i in range(10)
            for j in range(i + 1, 10)
            if rng.random() < 0.25
        ]
        graph = build_graph(durations, links)
        timing = compute_timing(graph)

        for task_id, task_timing in timing.per_task.items():
            if task_timing.total_float > 0:
                shorter = _with_duration(graph, task_id, durations[task_id] - 1)
                assert compute_timing(shorter).project_duration == timing.project_duration


class TestManualConstraints:
    """Test manual date constraints and infeasibility."""

    def _constrained(
        self, kind: ConstraintKind, on: date, duration: int = 2
    ) -> TaskNode:
        return TaskNode(id="B", duration=duration, manual_constraint=ManualConstraint(kind, on))

    def test_start_no_earlier_than(self, calendar: WorkingCalendar) -> None:
        # 2024-01-03 is the third working day after Monday 2024-01-01
        node = self._constrained(ConstraintKind.START_NO_EARLIER_THAN, date(2024, 1, 3))
        graph = DependencyGraph.build([node], [])
        timing = compute_timing(graph, calendar=calendar, anchor_date=ANCHOR)

        assert timing.per_task["B"].earliest_start == 2
        assert timing.project_duration == 4

    def test_must_start_on(self, calendar: WorkingCalendar) -> None:
        node = self._constrained(ConstraintKind.MUST_START_ON, date(2024, 1, 3), duration=3)
        graph = DependencyGraph.build([TaskNode(id="A", duration=2), node], [])
        timing = compute_timing(graph, calendar=calendar, anchor_date=ANCHOR)

        assert timing.per_task["B"].earliest_start == 2
        assert timing.per_task["B"].total_float == 0
        assert timing.per_task["A"].total_float == 3

    def test_must_finish_on_infeasible(self, calendar: WorkingCalendar) -> None:
        node = self._constrained(ConstraintKind.MUST_FINISH_ON, date(2024, 1, 3))
        graph = DependencyGraph.build([TaskNode(id="A", duration=5), node], [link("A", "B")])

        with pytest.raises(ScheduleInfeasibleError) as exc_info:
            compute_timing(graph, calendar=calendar, anchor_date=ANCHOR)

        violations = {v.task_id: v for v in exc_info.value.violations}
        assert set(violations) == {"A", "B"}
        assert violations["B"].total_float == -4
        assert violations["B"].constraint_kind == "must_finish_on"
        assert violations["B"].constraint_date == date(2024, 1, 3)
        assert violations["A"].constraint_kind is None

    def test_best_effort_returns_flagged_timing(self, calendar: WorkingCalendar) -> None:
        node = self._constrained(ConstraintKind.MUST_FINISH_ON, date(2024, 1, 3))
        graph = DependencyGraph.build([TaskNode(id="A", duration=5), node], [link("A", "B")])

        timing = compute_timing(
            graph,
            calendar=calendar,
            anchor_date=ANCHOR,
            config=SchedulingConfig(best_effort=True),
        )

        assert not timing.is_feasible
        assert {v.task_id for v in timing.infeasible} == {"A", "B"}
        assert timing.per_task["B"].earliest_start == 5
        assert timing.per_task["B"].total_float == -4
        assert timing.critical_tasks == ["A", "B"]
        assert timing.critical_paths == [["A", "B"]]

    def test_best_effort_negative_float_is_critical(self, calendar: WorkingCalendar) -> None:
        # Finishing on Monday 2024-01-08 is two working days before the chain allows
        node = self._constrained(ConstraintKind.MUST_FINISH_ON, date(2024, 1, 8), duration=3)
        graph = DependencyGraph.build([TaskNode(id="A", duration=5), node], [link("A", "B")])

        timing = compute_timing(
            graph,
            calendar=calendar,
            anchor_date=ANCHOR,
            config=SchedulingConfig(best_effort=True),
        )

        assert timing.project_duration == 8
        assert [timing.per_task[t].total_float for t in "AB"] == [-2, -2]
        assert all(timing.per_task[t].is_critical for t in "AB")
        assert timing.critical_paths == [["A", "B"]]

    def test_must_finish_on_feasible(self, calendar: WorkingCalendar) -> None:
        # Finishing on Friday 2024-01-05 ends after working day offset 4
        node = self._constrained(ConstraintKind.MUST_FINISH_ON, date(2024, 1, 5))
        graph = DependencyGraph.build([TaskNode(id="A", duration=2), node], [link("A", "B")])
        timing = compute_timing(graph, calendar=calendar, anchor_date=ANCHOR)

        assert timing.per_task["B"].earliest_start == 3
        assert timing.per_task["B"].latest_finish == 5
        assert timing.per_task["A"].total_float == 1
        assert timing.is_feasible

    def test_constraint_requires_calendar(self) -> None:
        node = self._constrained(ConstraintKind.MUST_START_ON, date(2024, 1, 3))
        with pytest.raises(ValidationError, match="anchor date"):
            compute_timing(DependencyGraph.build([node], []))


class TestPassLogging:
    """Per-link pass detail is only formatted at debug verbosity."""

    def test_debug_lists_each_link(self) -> None:
        stream = io.StringIO()
        setup_logger(3, stream)

        compute_timing(chain(("A", 1), ("B", 2)))

        assert "    A -> B (FS+0): start >= 1" in stream.getvalue()
        assert "    A -> B (FS+0): finish <= 1" in stream.getvalue()

    def test_checks_omits_link_detail(self) -> None:
        stream = io.StringIO()
        setup_logger(2, stream)

        compute_timing(chain(("A", 1), ("B", 2)))

        assert ">=" not in stream.getvalue()
