"""Path-related data models for cavenav.

These dataclasses define the publicly shared shapes for search results.
They are JSON-friendly so callers can serialize them via the provided
``to_json_dict`` helpers without losing fidelity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

Vec3 = Tuple[float, float, float]
"""Alias for a world-space position ``(x, y, z)`` with ``y`` pointing up."""

NodeId = int
"""Alias for a navigation graph node id."""

FailureReason = Literal[
    "unreachable",
    "invalid-endpoint",
    "max-expansions",
    "timeout",
    "empty-graph",
]
"""Literal string type capturing why a search produced no path."""


@dataclass(slots=True)
class PathResult:
    """Outcome of a node-to-node search."""

    path: Optional[List[NodeId]]
    """Ordered node ids from start to target, or ``None`` when no path exists."""

    reason: Optional[FailureReason]
    """Reason string explaining why a path was not produced, when relevant."""

    expanded: int
    """Total node expansions performed by the search."""

    cost: float
    """Sum of the edge weights along ``path`` (``0.0`` when no path)."""

    @property
    def found(self) -> bool:
        return self.path is not None

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "path": list(self.path) if self.path is not None else None,
            "reason": self.reason,
            "expanded": self.expanded,
            "cost": self.cost,
        }


@dataclass(slots=True)
class RouteResult:
    """Outcome of a position-to-position route query.

    The search runs between the graph nodes closest to the requested
    positions; ``waypoints`` then frames the node positions with the
    requested start and goal so callers get a drawable polyline.
    """

    start: Vec3
    """Requested start position."""

    goal: Vec3
    """Requested goal position."""

    start_node: Optional[NodeId]
    """Graph node the start snapped to."""

    goal_node: Optional[NodeId]
    """Graph node the goal snapped to."""

    result: PathResult
    """Underlying node search result."""

    waypoints: List[Vec3] = field(default_factory=list)
    """Start, every node position along the path, goal. Empty when not found."""

    @property
    def found(self) -> bool:
        return self.result.found

    def to_json_dict(self) -> Dict[str, Any]:
        payload = {
            "start": list(self.start),
            "goal": list(self.goal),
            "start_node": self.start_node,
            "goal_node": self.goal_node,
            "waypoints": [list(p) for p in self.waypoints],
        }
        payload.update(self.result.to_json_dict())
        return payload


__all__ = ["FailureReason", "NodeId", "PathResult", "RouteResult", "Vec3"]
