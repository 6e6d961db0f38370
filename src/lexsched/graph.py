"""Dependency graph over task nodes.

Nodes live in a flat tuple and edges refer to them by index, so the graph
holds no object references between nodes. A graph can only be obtained
through ``DependencyGraph.build``, which validates references and rejects
cycles; every instance is therefore a DAG with a known topological order.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .exceptions import (
    CycleDetectedError,
    DuplicateTaskError,
    SelfDependencyError,
    UnknownNodeReferenceError,
)
from .logger import get_logger
from .models import DependencyLink, LinkType, TaskNode

logger = get_logger()

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class Edge:
    """A validated link with its endpoints resolved to node indices."""

    source: int
    target: int
    type: LinkType
    lag: int


class DependencyGraph:
    """Immutable, validated task dependency graph."""

    def __init__(
        self,
        nodes: tuple[TaskNode, ...],
        edges: tuple[Edge, ...],
        order: tuple[int, ...],
    ):
        self._nodes = nodes
        self._edges = edges
        self._order = order
        self._index = {node.id: i for i, node in enumerate(nodes)}
        incoming: list[list[int]] = [[] for _ in nodes]
        outgoing: list[list[int]] = [[] for _ in nodes]
        for edge_idx, edge in enumerate(edges):
            incoming[edge.target].append(edge_idx)
            outgoing[edge.source].append(edge_idx)
        self._incoming = tuple(tuple(e) for e in incoming)
        self._outgoing = tuple(tuple(e) for e in outgoing)

    @classmethod
    def build(cls, nodes: Iterable[TaskNode], links: Iterable[DependencyLink]) -> DependencyGraph:
        """Validate nodes and links and build the graph.

        Raises:
            DuplicateTaskError: Two nodes share an id
            SelfDependencyError: A link points from a task to itself
            UnknownNodeReferenceError: A link references a missing task
            CycleDetectedError: The links contain a cycle
        """
        node_tuple = tuple(nodes)
        index: dict[str, int] = {}
        for i, node in enumerate(node_tuple):
            if node.id in index:
                raise DuplicateTaskError(node.id)
            index[node.id] = i

        edges: list[Edge] = []
        for link in links:
            if link.source_id == link.target_id:
                raise SelfDependencyError(link.source_id)
            for endpoint in (link.source_id, link.target_id):
                if endpoint not in index:
                    raise UnknownNodeReferenceError(link.source_id, link.target_id, endpoint)
            edges.append(
                Edge(
                    source=index[link.source_id],
                    target=index[link.target_id],
                    type=link.type,
                    lag=link.lag,
                )
            )

        edge_tuple = tuple(edges)
        _raise_on_cycle(node_tuple, edge_tuple)
        order = _kahn_order(node_tuple, edge_tuple)

        logger.debug(f"Built dependency graph: {len(node_tuple)} tasks, {len(edge_tuple)} links")
        return cls(node_tuple, edge_tuple, order)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._index

    def __iter__(self) -> Iterator[TaskNode]:
        return iter(self._nodes)

    @property
    def nodes(self) -> tuple[TaskNode, ...]:
        return self._nodes

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def links(self) -> list[DependencyLink]:
        return [self._to_link(edge) for edge in self._edges]

    def index_of(self, task_id: str) -> int:
        try:
            return self._index[task_id]
        except KeyError:
            raise KeyError(f"Unknown task: {task_id}") from None

    def node(self, task_id: str) -> TaskNode:
        return self._nodes[self.index_of(task_id)]

    def incoming_edges(self, idx: int) -> tuple[int, ...]:
        """Indices into ``edges`` of the links ending at node ``idx``."""
        return self._incoming[idx]

    def outgoing_edges(self, idx: int) -> tuple[int, ...]:
        """Indices into ``edges`` of the links starting at node ``idx``."""
        return self._outgoing[idx]

    def topological_order(self) -> list[str]:
        """Task ids such that every link's source precedes its target."""
        return [self._nodes[i].id for i in self._order]

    def topological_indices(self) -> tuple[int, ...]:
        return self._order

    def predecessors(self, task_id: str) -> list[DependencyLink]:
        return [self._to_link(self._edges[e]) for e in self._incoming[self.index_of(task_id)]]

    def successors(self, task_id: str) -> list[DependencyLink]:
        return [self._to_link(self._edges[e]) for e in self._outgoing[self.index_of(task_id)]]

    def ancestors(self, task_id: str) -> list[str]:
        """All tasks that ``task_id`` transitively depends on, nearest first."""
        return self._walk(self.index_of(task_id), upstream=True)

    def descendants(self, task_id: str) -> list[str]:
        """All tasks that transitively depend on ``task_id``, nearest first."""
        return self._walk(self.index_of(task_id), upstream=False)

    def would_create_cycle(self, source_id: str, target_id: str) -> bool:
        """Check whether adding a link ``source_id -> target_id`` would close a cycle."""
        if source_id == target_id:
            return True
        return source_id in self.descendants(target_id)

    def bottlenecks(self, min_dependents: int = 2) -> list[tuple[str, int]]:
        """Tasks that directly block at least ``min_dependents`` others.

        Returns:
            (task_id, direct dependent count) pairs, most blocking first
        """
        result: list[tuple[str, int]] = []
        for idx, node in enumerate(self._nodes):
            dependents = {self._edges[e].target for e in self._outgoing[idx]}
            if len(dependents) >= min_dependents:
                result.append((node.id, len(dependents)))
        result.sort(key=lambda item: (-item[1], item[0]))
        return result

    def _walk(self, start: int, *, upstream: bool) -> list[str]:
        seen = {start}
        queue = deque([start])
        result: list[str] = []
        while queue:
            current = queue.popleft()
            adjacency = self._incoming[current] if upstream else self._outgoing[current]
            for edge_idx in adjacency:
                edge = self._edges[edge_idx]
                neighbor = edge.source if upstream else edge.target
                if neighbor not in seen:
                    seen.add(neighbor)
                    result.append(self._nodes[neighbor].id)
                    queue.append(neighbor)
        return result

    def _to_link(self, edge: Edge) -> DependencyLink:
        return DependencyLink(
            source_id=self._nodes[edge.source].id,
            target_id=self._nodes[edge.target].id,
            type=edge.type,
            lag=edge.lag,
        )


def _raise_on_cycle(nodes: tuple[TaskNode, ...], edges: tuple[Edge, ...]) -> None:
    """Three-colour depth-first search; raises with the exact cycle on a back edge."""
    successors: list[list[int]] = [[] for _ in nodes]
    for edge in edges:
        successors[edge.source].append(edge.target)

    color = [_WHITE] * len(nodes)
    for root in range(len(nodes)):
        if color[root] != _WHITE:
            continue
        # Iterative to stay clear of the recursion limit on long chains
        path: list[int] = [root]
        position = {root: 0}
        stack: list[Iterator[int]] = [iter(successors[root])]
        color[root] = _GRAY
        while stack:
            child = next(stack[-1], None)
            if child is None:
                finished = path.pop()
                del position[finished]
                color[finished] = _BLACK
                stack.pop()
                continue
            if color[child] == _GRAY:
                cycle = [nodes[i].id for i in path[position[child] :]]
                cycle.append(nodes[child].id)
                raise CycleDetectedError(cycle)
            if color[child] == _WHITE:
                color[child] = _GRAY
                position[child] = len(path)
                path.append(child)
                stack.append(iter(successors[child]))


def _kahn_order(nodes: tuple[TaskNode, ...], edges: tuple[Edge, ...]) -> tuple[int, ...]:
    """Topological order by repeatedly removing zero in-degree nodes (input order on ties)."""
    in_degree = [0] * len(nodes)
    successors: list[list[int]] = [[] for _ in nodes]
    for edge in edges:
        in_degree[edge.target] += 1
        successors[edge.source].append(edge.target)

    queue = deque(i for i, degree in enumerate(in_degree) if degree == 0)
    order: list[int] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for child in successors[current]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if len(order) != len(nodes):
        stuck = [nodes[i].id for i, degree in enumerate(in_degree) if degree > 0]
        raise CycleDetectedError(stuck)
    return tuple(order)
