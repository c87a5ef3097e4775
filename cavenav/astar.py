"""A* search over a navigation graph.

Implements deterministic A* using a binary heap with stable tie-breaking.
Reconstructs the node path from recorded predecessor links. Respects
``max_expansions`` and ``timeout_ms`` from :class:`SearchOptions`.
"""

from __future__ import annotations

import heapq
import itertools
import time
from dataclasses import dataclass
from math import inf
from typing import Dict, List, Optional, Tuple

from .cost import DEFAULT_HEURISTIC, Heuristic, zero_heuristic
from .graph import NavigationGraph
from .options import SearchOptions
from .path import NodeId, PathResult


@dataclass(slots=True)
class _QueueItem:
    f: float
    h: float
    g: float
    seq: int
    node: NodeId

    def key(self) -> Tuple[float, float, float, int, NodeId]:
        # Deterministic ordering: (f, h, g, seq, node). Equal f favours the
        # entry closer to the target, then the cheaper one, then FIFO.
        return (self.f, self.h, self.g, self.seq, self.node)


def astar(
    graph: NavigationGraph,
    start: NodeId,
    target: NodeId,
    heuristic: Optional[Heuristic] = None,
    options: Optional[SearchOptions] = None,
) -> PathResult:
    """Run A* from ``start`` to ``target`` over ``graph``.

    Returns a :class:`PathResult` with the node path, or ``path=None`` and a
    reason when the endpoints are unknown, the target is unreachable or a
    search limit is hit.
    """

    opts = options or SearchOptions()
    estimate = heuristic or DEFAULT_HEURISTIC

    if not (graph.has_node(start) and graph.has_node(target)):
        return PathResult(path=None, reason="invalid-endpoint", expanded=0, cost=0.0)

    if start == target:
        return PathResult(path=[start], reason=None, expanded=0, cost=0.0)

    start_time = time.monotonic_ns()
    timeout_ns = int(opts.timeout_ms) * 1_000_000
    target_pos = graph.node(target).position

    # Best-known cost to each node.
    cost_so_far: Dict[NodeId, float] = {start: 0.0}

    # Predecessor on the best-known path.
    came_from: Dict[NodeId, NodeId] = {}

    counter = itertools.count()
    start_h = estimate(graph.node(start).position, target_pos)
    open_heap: List[Tuple[float, float, float, int, NodeId]] = [
        _QueueItem(f=start_h, h=start_h, g=0.0, seq=next(counter), node=start).key()
    ]

    expanded = 0

    while open_heap:
        if timeout_ns and (time.monotonic_ns() - start_time) >= timeout_ns:
            return PathResult(path=None, reason="timeout", expanded=expanded, cost=0.0)

        _, _, g, _, current = heapq.heappop(open_heap)
        # A cheaper route to this node was queued after this entry
        if g != cost_so_far.get(current, inf):
            continue

        if current == target:
            return PathResult(path=_reconstruct(current, came_from), reason=None, expanded=expanded, cost=g)

        expanded += 1
        if expanded > opts.max_expansions:
            return PathResult(path=None, reason="max-expansions", expanded=expanded, cost=0.0)

        for neighbour, edge in graph.neighbours(current):
            tentative_g = g + edge.weight
            # Strict improvement only: the first-discovered of equal-cost paths is kept.
            if tentative_g >= cost_so_far.get(neighbour, inf):
                continue

            cost_so_far[neighbour] = tentative_g
            came_from[neighbour] = current

            nh = estimate(graph.node(neighbour).position, target_pos)
            item = _QueueItem(f=tentative_g + nh, h=nh, g=tentative_g, seq=next(counter), node=neighbour)
            heapq.heappush(open_heap, item.key())

    return PathResult(path=None, reason="unreachable", expanded=expanded, cost=0.0)


def dijkstra(
    graph: NavigationGraph,
    start: NodeId,
    target: NodeId,
    options: Optional[SearchOptions] = None,
) -> PathResult:
    """Uninformed shortest-path search; A* with a zero heuristic."""

    return astar(graph, start, target, heuristic=zero_heuristic, options=options)


def _reconstruct(end: NodeId, came_from: Dict[NodeId, NodeId]) -> List[NodeId]:
    path: List[NodeId] = [end]
    current = end
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path


def path_cost(graph: NavigationGraph, path: List[NodeId]) -> float:
    """Sum the weights of the edges joining consecutive nodes of ``path``."""

    total = 0.0
    for a, b in zip(path, path[1:]):
        edge = graph.edge_between(a, b)
        if edge is None:
            raise ValueError(f"Nodes {a} and {b} are not connected")
        total += edge.weight
    return total


__all__ = ["astar", "dijkstra", "path_cost"]
