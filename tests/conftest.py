"""Pytest configuration and fixtures for lexsched tests."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date

import pytest

from lexsched.calendar import WorkingCalendar
from lexsched.graph import DependencyGraph
from lexsched.logger import reset_logger
from lexsched.models import DependencyLink, LinkType, TaskNode

# Monday
ANCHOR = date(2024, 1, 1)


@pytest.fixture(autouse=True)
def quiet_logger() -> Iterator[None]:
    """Reset the lexsched logger around each test for isolation."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def calendar() -> WorkingCalendar:
    """Monday-Friday calendar without holidays."""
    return WorkingCalendar()


def link(
    source: str, target: str, link_type: LinkType = LinkType.FINISH_TO_START, lag: int = 0
) -> DependencyLink:
    """Shorthand for building a DependencyLink in tests."""
    return DependencyLink(source_id=source, target_id=target, type=link_type, lag=lag)


def build_graph(
    durations: dict[str, int],
    links: list[DependencyLink] | None = None,
) -> DependencyGraph:
    """Build a graph from ``{task_id: duration}`` and a list of links."""
    nodes = [TaskNode(id=task_id, duration=duration) for task_id, duration in durations.items()]
    return DependencyGraph.build(nodes, links or [])


def chain(*durations: tuple[str, int]) -> DependencyGraph:
    """Build a finish-to-start chain, e.g. ``chain(("a", 1), ("b", 2))``."""
    ids = [task_id for task_id, _ in durations]
    return build_graph(dict(durations), [link(a, b) for a, b in zip(ids, ids[1:])])
