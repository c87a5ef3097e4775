"""Visibility point placement at the convex corners of wall outlines."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .mesher import Bounds, Outline
from .path import Vec3

LOGGER = logging.getLogger(__name__)

Vec2 = Tuple[float, float]


@dataclass(slots=True)
class VisibilityPoint:
    """Navigation graph candidate placed next to a wall corner."""

    id: int
    """Sequential id in discovery order; becomes the graph node id."""

    position: Vec3
    """World-space position, pulled off the corner into open space."""

    radius: float
    """Agent clearance used when probing edges from this point."""

    def to_json_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "position": list(self.position), "radius": self.radius}


def _perpendicular_clockwise(v: Vec2) -> Vec2:
    return (v[1], -v[0])


def _signed_angle(from_v: Vec2, to_v: Vec2) -> float:
    """Counter-clockwise angle in radians from ``from_v`` to ``to_v``."""

    cross = from_v[0] * to_v[1] - from_v[1] * to_v[0]
    dot = from_v[0] * to_v[0] + from_v[1] * to_v[1]
    return math.atan2(cross, dot)


def _normalized(v: Vec2) -> Vec2:
    length = math.hypot(v[0], v[1])
    if length == 0.0:
        return (0.0, 0.0)
    return (v[0] / length, v[1] / length)


def is_convex_corner(a: Vec2, b: Vec2, c: Vec2) -> bool:
    """Return whether the outline turns towards the solid at ``b``.

    Outlines keep the solid on their right, so a right turn wraps around a
    protruding corner of the wall.
    """

    a2b = (b[0] - a[0], b[1] - a[1])
    b2c = (c[0] - b[0], c[1] - b[1])
    return _signed_angle(_perpendicular_clockwise(b2c), _perpendicular_clockwise(a2b)) > 0


def corner_offset_direction(a: Vec2, b: Vec2, c: Vec2) -> Vec2:
    """Unit vector pointing from corner ``b`` into open space."""

    a2b = (b[0] - a[0], b[1] - a[1])
    b2c = (c[0] - b[0], c[1] - b[1])
    return _normalized((a2b[0] - b2c[0], a2b[1] - b2c[1]))


def _inside(bounds: Bounds, position: Vec3) -> bool:
    min_x, min_z, max_x, max_z = bounds
    return min_x <= position[0] <= max_x and min_z <= position[2] <= max_z


def place_points(
    outlines: Sequence[Outline],
    vertices: Sequence[Vec3],
    radius: float,
    corner_offset: float,
    height_offset: float = 0.0,
    bounds: Optional[Bounds] = None,
) -> List[VisibilityPoint]:
    """Place one visibility point at every convex corner of every outline.

    Corners are visited in outline order and then in position order within
    the outline, each distinct vertex once. Positions are moved
    ``corner_offset`` away from the corner on the horizontal plane and
    ``height_offset`` below it.

    When ``bounds`` is given, points pushed outside that ``(min_x, min_z,
    max_x, max_z)`` footprint are dropped. That happens at the outer corners
    of a single-cell wall frame, where the open side faces off the map.
    """

    points: List[VisibilityPoint] = []
    for outline in outlines:
        loop = outline[:-1] if len(outline) > 1 and outline[0] == outline[-1] else list(outline)
        count = len(loop)
        if count < 3:
            LOGGER.debug("Outline with %d distinct vertices has no corners", count)
            continue
        # Cyclic: the start vertex is a corner like any other
        for i in range(count):
            pa = vertices[loop[i - 1]]
            pb = vertices[loop[i]]
            pc = vertices[loop[(i + 1) % count]]
            a = (pa[0], pa[2])
            b = (pb[0], pb[2])
            c = (pc[0], pc[2])
            if not is_convex_corner(a, b, c):
                continue
            dx, dz = corner_offset_direction(a, b, c)
            position = (
                pb[0] + dx * corner_offset,
                pb[1] - height_offset,
                pb[2] + dz * corner_offset,
            )
            if bounds is not None and not _inside(bounds, position):
                LOGGER.debug("Dropped corner point outside the map at %s", position)
                continue
            points.append(VisibilityPoint(id=len(points), position=position, radius=radius))
    LOGGER.debug("Placed %d visibility points on %d outlines", len(points), len(outlines))
    return points


__all__ = [
    "VisibilityPoint",
    "corner_offset_direction",
    "is_convex_corner",
    "place_points",
]
