"""Navigation graph storage and visibility-graph construction.

Nodes and edges live in two arenas keyed by integer handles. A node keeps
the handles of its incident edges and an edge keeps the ids of its two
nodes, so no object owns another across the cycle. Node ids and edge
handles are assigned once and never reused.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Set, Tuple

from .cost import euclidean_distance, squared_distance
from .path import NodeId, Vec3
from .visibility import VisibilityPoint

LOGGER = logging.getLogger(__name__)

UP: Vec3 = (0.0, 1.0, 0.0)


class OcclusionTest(Protocol):
    """Line-of-sight query supplied by the hosting environment."""

    def __call__(self, origin: Vec3, direction: Vec3, max_distance: float) -> bool:
        """Return ``True`` when a ray from ``origin`` is blocked within ``max_distance``."""


class EmptyPointSetError(ValueError):
    """Raised when a graph build is requested without any visibility points."""

    def __init__(self) -> None:
        super().__init__("Cannot build a navigation graph from an empty point set")


@dataclass(slots=True, eq=False)
class GraphNode:
    """Graph vertex; equality and hashing use the id only."""

    id: NodeId
    position: Vec3
    edges: Set[int] = field(default_factory=set)
    """Handles of the incident edges."""

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GraphNode) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True, slots=True)
class GraphEdge:
    """Undirected weighted edge between two distinct nodes."""

    handle: int
    node_a: NodeId
    node_b: NodeId
    weight: float

    def other(self, node_id: NodeId) -> NodeId:
        if node_id == self.node_a:
            return self.node_b
        if node_id == self.node_b:
            return self.node_a
        raise ValueError(f"Node {node_id} is not an endpoint of edge {self.handle}")

    def key(self) -> Tuple[NodeId, NodeId]:
        return _pair_key(self.node_a, self.node_b)


def _pair_key(a: NodeId, b: NodeId) -> Tuple[NodeId, NodeId]:
    return (a, b) if a <= b else (b, a)


class NavigationGraph:
    """Weighted undirected graph over visibility points."""

    def __init__(self) -> None:
        self._nodes: Dict[NodeId, GraphNode] = {}
        self._edges: Dict[int, GraphEdge] = {}
        self._edge_by_pair: Dict[Tuple[NodeId, NodeId], int] = {}
        self._next_node_id = 0
        self._next_edge_handle = 0

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Nodes
    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    def add_node(self, position: Vec3, node_id: Optional[NodeId] = None) -> GraphNode:
        """Add a node at ``position``.

        Without ``node_id`` the next unused id is taken. An explicit id must
        not be in use and is never handed out again afterwards.
        """

        if node_id is None:
            node_id = self._next_node_id
        elif node_id in self._nodes or node_id < 0:
            raise ValueError(f"Node id {node_id} is already taken or invalid")
        node = GraphNode(node_id, (float(position[0]), float(position[1]), float(position[2])))
        self._nodes[node_id] = node
        self._next_node_id = max(self._next_node_id, node_id + 1)
        return node

    def add_nodes(self, positions: Iterable[Vec3]) -> List[GraphNode]:
        return [self.add_node(position) for position in positions]

    def has_node(self, node_id: NodeId) -> bool:
        return node_id in self._nodes

    def node(self, node_id: NodeId) -> GraphNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise KeyError(f"Unknown graph node: {node_id}") from None

    def remove_node(self, node_id: NodeId) -> None:
        """Remove a node together with all of its edges."""

        node = self.node(node_id)
        for handle in sorted(node.edges):
            self.remove_edge(handle)
        del self._nodes[node_id]

    def closest_node(self, position: Vec3) -> Optional[GraphNode]:
        """Return the node nearest to ``position``; the first one wins ties."""

        closest: Optional[GraphNode] = None
        best = math.inf
        for node in self._nodes.values():
            dist_sqr = squared_distance(node.position, position)
            if dist_sqr < best:
                best = dist_sqr
                closest = node
        return closest

    # ------------------------------------------------------------------
    # Edges
    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges.values())

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def edge(self, handle: int) -> GraphEdge:
        return self._edges[handle]

    def edge_between(self, a: NodeId, b: NodeId) -> Optional[GraphEdge]:
        handle = self._edge_by_pair.get(_pair_key(a, b))
        return self._edges[handle] if handle is not None else None

    def add_edge(self, a: NodeId, b: NodeId) -> GraphEdge:
        """Connect ``a`` and ``b``, weighting the edge by their distance.

        Adding an existing pair returns the edge already stored.
        """

        if a == b:
            raise ValueError(f"Self-loop rejected for node {a}")
        existing = self.edge_between(a, b)
        if existing is not None:
            return existing
        node_a = self.node(a)
        node_b = self.node(b)
        handle = self._next_edge_handle
        self._next_edge_handle += 1
        edge = GraphEdge(handle, a, b, euclidean_distance(node_a.position, node_b.position))
        self._edges[handle] = edge
        self._edge_by_pair[edge.key()] = handle
        node_a.edges.add(handle)
        node_b.edges.add(handle)
        return edge

    def remove_edge(self, handle: int) -> None:
        edge = self._edges.pop(handle)
        del self._edge_by_pair[edge.key()]
        self._nodes[edge.node_a].edges.discard(handle)
        self._nodes[edge.node_b].edges.discard(handle)

    def neighbours(self, node_id: NodeId) -> Iterator[Tuple[NodeId, GraphEdge]]:
        """Yield ``(neighbour id, edge)`` pairs in edge creation order."""

        for handle in sorted(self.node(node_id).edges):
            edge = self._edges[handle]
            yield edge.other(node_id), edge


# ----------------------------------------------------------------------
# Construction


def complete_graph(points: Sequence[VisibilityPoint]) -> NavigationGraph:
    """Return a graph with one node per point and an edge between every pair."""

    if not points:
        raise EmptyPointSetError()
    graph = NavigationGraph()
    for point in points:
        graph.add_node(point.position, node_id=point.id)
    ids = [point.id for point in points]
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            graph.add_edge(a, b)
    return graph


def _normalized(v: Vec3) -> Vec3:
    length = math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])
    if length == 0.0:
        return (0.0, 0.0, 0.0)
    return (v[0] / length, v[1] / length, v[2] / length)


def _cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def sweep_offsets(a: Vec3, b: Vec3, clearance: float) -> Tuple[Vec3, Vec3]:
    """Return the two side-probe origins displaced ``clearance / 2`` from ``a``.

    The displacement is perpendicular to ``a -> b`` on the horizontal plane.
    """

    direction = (b[0] - a[0], b[1] - a[1], b[2] - a[2])
    side = _normalized(_cross(direction, UP))
    half = clearance / 2.0
    left = (a[0] + side[0] * half, a[1] + side[1] * half, a[2] + side[2] * half)
    right = (a[0] - side[0] * half, a[1] - side[1] * half, a[2] - side[2] * half)
    return left, right


def _edge_blocked(a: Vec3, b: Vec3, weight: float, clearance: float, occlusion: OcclusionTest) -> bool:
    direction = (b[0] - a[0], b[1] - a[1], b[2] - a[2])
    if occlusion(a, direction, weight):
        return True
    left, right = sweep_offsets(a, b, clearance)
    return occlusion(left, direction, weight) or occlusion(right, direction, weight)


def prune_occluded(
    graph: NavigationGraph,
    occlusion: OcclusionTest,
    clearance: Optional[float] = None,
    radii: Optional[Dict[NodeId, float]] = None,
) -> int:
    """Remove every edge whose three-ray sweep hits an obstacle.

    Each edge is probed along its centre line and along two parallel lines
    offset sideways by half the clearance. ``clearance`` applies to every
    edge; without it the larger of the endpoint radii from ``radii`` is
    used (``0`` for nodes missing from it). Returns the number of removed
    edges.
    """

    radii = radii or {}
    blocked: List[int] = []
    for edge in graph.edges:
        if clearance is not None:
            edge_clearance = clearance
        else:
            edge_clearance = max(radii.get(edge.node_a, 0.0), radii.get(edge.node_b, 0.0))
        a = graph.node(edge.node_a).position
        b = graph.node(edge.node_b).position
        if _edge_blocked(a, b, edge.weight, edge_clearance, occlusion):
            blocked.append(edge.handle)
    for handle in blocked:
        graph.remove_edge(handle)
    return len(blocked)


def build_graph(
    points: Sequence[VisibilityPoint],
    occlusion: OcclusionTest,
    clearance: Optional[float] = None,
) -> NavigationGraph:
    """Build the pruned visibility graph over ``points``."""

    graph = complete_graph(points)
    total = graph.edge_count
    removed = prune_occluded(graph, occlusion, clearance, radii={p.id: p.radius for p in points})
    LOGGER.info(
        "build_graph: nodes=%d candidate_edges=%d pruned=%d kept=%d",
        len(graph),
        total,
        removed,
        graph.edge_count,
    )
    return graph


__all__ = [
    "EmptyPointSetError",
    "GraphEdge",
    "GraphNode",
    "NavigationGraph",
    "OcclusionTest",
    "build_graph",
    "complete_graph",
    "prune_occluded",
    "sweep_offsets",
]
