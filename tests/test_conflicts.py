"""Tests for resource conflict detection and workload."""

from datetime import date, timedelta

import pytest

from lexsched.calendar import WorkingCalendar
from lexsched.graph import DependencyGraph
from lexsched.models import ResourceAssignment, ScheduledInterval, TaskNode
from lexsched.scheduler import (
    AutoScheduler,
    assignments_from_schedule,
    compute_timing,
    daily_load,
    find_conflicts,
    rank_assignees,
    suggest_assignees,
)
from tests.conftest import ANCHOR, link


def _day(offset: int) -> date:
    return ANCHOR + timedelta(days=offset)


def _assign(
    task_id: str, start: date, end: date, assignee: str = "X", effort: int | None = None
) -> ResourceAssignment:
    return ResourceAssignment(
        assignee_id=assignee, task_id=task_id, start=start, end=end, effort_minutes=effort
    )


class TestOverlapBoundary:
    """Half-open intervals: touching is not overlapping."""

    def test_back_to_back_is_not_a_conflict(self) -> None:
        report = find_conflicts([_assign("a", _day(0), _day(5)), _assign("b", _day(5), _day(10))])
        assert report.conflicts_by_assignee["X"] == []
        assert not report.has_conflicts

    def test_one_day_overlap_is_a_conflict(self) -> None:
        report = find_conflicts([_assign("a", _day(0), _day(5)), _assign("b", _day(4), _day(10))])
        pairs = report.conflicts_by_assignee["X"]
        assert len(pairs) == 1
        assert (pairs[0].overlap_start, pairs[0].overlap_end) == (_day(4), _day(5))

    def test_overallocation_scenario(self) -> None:
        report = find_conflicts(
            [
                _assign("T1", date(2024, 1, 1), date(2024, 1, 3)),
                _assign("T2", date(2024, 1, 2), date(2024, 1, 4)),
            ]
        )
        pairs = report.conflicts_by_assignee["X"]
        assert len(pairs) == 1
        assert (pairs[0].task_a, pairs[0].task_b) == ("T1", "T2")
        assert pairs[0].overlap_start == date(2024, 1, 2)
        assert pairs[0].overlap_end == date(2024, 1, 3)


class TestSweep:
    """Every overlapping pair is found, whatever the input order."""

    def test_nested_intervals(self) -> None:
        long_task = _assign("brief", _day(1), _day(20))
        report = find_conflicts(
            [_assign("call", _day(5), _day(7)), long_task, _assign("memo", _day(2), _day(4))]
        )
        pairs = {(p.task_a, p.task_b) for p in report.conflicts_by_assignee["X"]}
        assert pairs == {("brief", "memo"), ("brief", "call")}

    def test_assignees_are_independent(self) -> None:
        report = find_conflicts(
            [
                _assign("a", _day(0), _day(5), assignee="X"),
                _assign("b", _day(0), _day(5), assignee="Y"),
            ]
        )
        assert not report.has_conflicts
        assert set(report.workload_by_assignee) == {"X", "Y"}

    def test_zero_length_assignment_never_conflicts(self) -> None:
        report = find_conflicts(
            [_assign("trial", _day(0), _day(5)), _assign("deadline", _day(2), _day(2))]
        )
        assert report.conflicts_by_assignee["X"] == []

    def test_three_way_overlap(self) -> None:
        report = find_conflicts(
            [
                _assign("a", _day(0), _day(3)),
                _assign("b", _day(1), _day(4)),
                _assign("c", _day(2), _day(5)),
            ]
        )
        assert len(report.conflicts_by_assignee["X"]) == 3


class TestWorkload:
    """Test scheduled minutes per assignee."""

    def test_effort_minutes_summed(self) -> None:
        report = find_conflicts(
            [_assign("a", _day(0), _day(2), effort=600), _assign("b", _day(5), _day(6), effort=90)]
        )
        assert report.workload_by_assignee["X"] == 690

    def test_elapsed_minutes_without_effort(self) -> None:
        report = find_conflicts([_assign("a", _day(0), _day(2))])
        assert report.workload_by_assignee["X"] == 2 * 24 * 60

    def test_range_clips_workload_and_conflicts(self) -> None:
        report = find_conflicts(
            [
                _assign("T1", date(2024, 1, 1), date(2024, 1, 3), effort=960),
                _assign("T2", date(2024, 1, 2), date(2024, 1, 4), effort=960),
            ],
            date_range=(date(2024, 1, 2), date(2024, 1, 3)),
        )
        assert report.workload_by_assignee["X"] == pytest.approx(960)
        pairs = report.conflicts_by_assignee["X"]
        assert len(pairs) == 1
        assert pairs[0].overlap_start == date(2024, 1, 2)

    def test_range_outside_assignments(self) -> None:
        report = find_conflicts(
            [_assign("T1", date(2024, 1, 1), date(2024, 1, 3), effort=960)],
            date_range=(date(2024, 2, 1), date(2024, 3, 1)),
        )
        assert report.workload_by_assignee["X"] == 0
        assert report.conflicts_by_assignee["X"] == []


class TestDailyLoad:
    """Test per-day allocation and overallocation."""

    def test_spread_over_calendar_days(self) -> None:
        loads = daily_load([_assign("a", date(2024, 1, 5), date(2024, 1, 9), effort=960)])
        assert [load.minutes for load in loads["X"]] == [240, 240, 240, 240]

    def test_spread_over_working_days(self) -> None:
        loads = daily_load(
            [_assign("a", date(2024, 1, 5), date(2024, 1, 9), effort=960)],
            WorkingCalendar(),
        )
        assert [load.day for load in loads["X"]] == [date(2024, 1, 5), date(2024, 1, 8)]
        assert [load.minutes for load in loads["X"]] == [480, 480]

    def test_overallocated_days(self) -> None:
        report = find_conflicts(
            [
                _assign("T1", date(2024, 1, 1), date(2024, 1, 3), effort=960),
                _assign("T2", date(2024, 1, 2), date(2024, 1, 4), effort=960),
            ],
            daily_capacity_minutes=480,
        )
        over = report.overallocated_days["X"]
        assert [load.day for load in over] == [date(2024, 1, 2)]
        assert over[0].minutes == 960
        assert over[0].task_ids == ("T1", "T2")

    def test_no_capacity_means_no_overallocation_check(self) -> None:
        report = find_conflicts(
            [
                _assign("T1", date(2024, 1, 1), date(2024, 1, 3), effort=960),
                _assign("T2", date(2024, 1, 2), date(2024, 1, 4), effort=960),
            ]
        )
        assert report.overallocated_days == {}


class TestAssignmentsFromSchedule:
    """Test building assignments from a computed schedule."""

    def test_parallel_tasks_for_one_assignee_conflict(self, calendar: WorkingCalendar) -> None:
        nodes = [
            TaskNode(id="intake", duration=1, assignee_id="paralegal"),
            TaskNode(id="research", duration=3, assignee_id="associate"),
            TaskNode(id="evidence", duration=2, assignee_id="associate", effort_minutes=300),
            TaskNode(id="hearing", is_milestone=True),
        ]
        graph = DependencyGraph.build(
            nodes,
            [link("intake", "research"), link("intake", "evidence"), link("research", "hearing")],
        )
        timing = compute_timing(graph)
        schedule = AutoScheduler(calendar).schedule(graph, timing, ANCHOR)

        assignments = assignments_from_schedule(graph, schedule, minutes_per_day=480)

        assert {a.task_id for a in assignments} == {"intake", "research", "evidence"}
        by_task = {a.task_id: a for a in assignments}
        assert by_task["research"].effort_minutes == 3 * 480
        assert by_task["evidence"].effort_minutes == 300

        report = find_conflicts(assignments)
        pairs = report.conflicts_by_assignee["associate"]
        assert [(p.task_a, p.task_b) for p in pairs] == [("evidence", "research")]
        assert report.conflicts_by_assignee["paralegal"] == []


class TestRankAssignees:
    """Test ordering assignees by load."""

    def test_idle_candidates_rank_first(self) -> None:
        report = find_conflicts([_assign("a", _day(0), _day(2), effort=960)])

        ranking = rank_assignees(report, ["Y"], days=2)

        assert [load.assignee_id for load in ranking] == ["Y", "X"]
        assert ranking[0].score == 100
        assert ranking[1].minutes_per_day == 480
        assert ranking[1].score == pytest.approx(20)

    def test_ties_go_to_fewer_tasks_then_id(self) -> None:
        ranking = rank_assignees(
            find_conflicts([]), ["c", "a", "b"], tasks_by_assignee={"a": ["memo"]}
        )
        assert [load.assignee_id for load in ranking] == ["b", "c", "a"]
        assert ranking[2].overlapping_tasks == ("memo",)

    def test_empty(self) -> None:
        assert rank_assignees(find_conflicts([])) == []


class TestSuggestAssignees:
    """Test suggesting assignees for a scheduled task."""

    def test_load_over_the_task_interval(self) -> None:
        assignments = [
            _assign("draft", _day(0), _day(2), assignee="X"),
            _assign("memo", _day(5), _day(6), assignee="Y"),
            _assign("brief", _day(0), _day(2), assignee="Y"),
        ]

        ranking = suggest_assignees(
            assignments, ScheduledInterval("brief", _day(0), _day(2)), ["X", "Y", "Z"]
        )

        assert [load.assignee_id for load in ranking] == ["Y", "Z", "X"]
        assert ranking[0].overlapping_tasks == ()
        assert ranking[0].workload_minutes == 0
        assert ranking[2].overlapping_tasks == ("draft",)
        assert ranking[2].minutes_per_day == 24 * 60

    def test_milestone_uses_one_day(self) -> None:
        assignments = [_assign("trial", _day(0), _day(5), effort=500)]

        ranking = suggest_assignees(assignments, ScheduledInterval("hearing", _day(3), _day(3)))

        assert [load.assignee_id for load in ranking] == ["X"]
        assert ranking[0].workload_minutes == pytest.approx(100)
        assert ranking[0].overlapping_tasks == ("trial",)

    def test_working_days_with_calendar(self, calendar: WorkingCalendar) -> None:
        # Friday 2024-01-05 to Tuesday 2024-01-09 holds two working days
        assignments = [_assign("a", date(2024, 1, 5), date(2024, 1, 9), effort=960)]
        interval = ScheduledInterval("b", date(2024, 1, 5), date(2024, 1, 9))

        assert suggest_assignees(assignments, interval)[0].minutes_per_day == 240
        assert suggest_assignees(assignments, interval, calendar=calendar)[0].score == (
            pytest.approx(20)
        )
