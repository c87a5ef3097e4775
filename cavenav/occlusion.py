"""Line-of-sight queries against the extruded cave walls.

Walls are vertical quads hanging below the outline segments, so a ray is
blocked exactly when its footprint on the x-z plane crosses an outline
segment while the ray runs within the vertical span of the walls. Segment
footprints are kept as shapely ``LineString`` objects and indexed by their
bounding boxes in an rtree index so a probe only tests nearby walls.

Dependencies
------------
  pip install shapely rtree
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Sequence, Tuple

from rtree import index as rtree_index
from shapely.geometry import LineString

from .mesher import Outline
from .path import Vec3

LOGGER = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


class SegmentIndex:
    """Bounding-box index over 2D wall segments."""

    def __init__(self) -> None:
        p = rtree_index.Property()
        p.interleaved = True
        self._rt = rtree_index.Index(properties=p)
        self._segments: Dict[int, LineString] = {}

    def __len__(self) -> int:
        return len(self._segments)

    def insert(self, segment: LineString) -> int:
        id_ = len(self._segments)
        self._segments[id_] = segment
        self._rt.insert(id_, segment.bounds)
        return id_

    def candidates(self, bbox: BBox) -> List[LineString]:
        return [self._segments[i] for i in sorted(self._rt.intersection(bbox))]

    def intersects(self, line: LineString) -> bool:
        return any(line.intersects(seg) for seg in self.candidates(line.bounds))


class WallOcclusion:
    """Occlusion test over the walls extruded from a set of outlines.

    Instances are callables matching :class:`cavenav.graph.OcclusionTest`.
    """

    def __init__(
        self,
        vertices: Sequence[Vec3],
        outlines: Iterable[Outline],
        wall_height: float,
    ) -> None:
        self._index = SegmentIndex()
        self.top = -math.inf
        self.bottom = math.inf
        for outline in outlines:
            for vertex_a, vertex_b in zip(outline, outline[1:]):
                pa = vertices[vertex_a]
                pb = vertices[vertex_b]
                if (pa[0], pa[2]) == (pb[0], pb[2]):
                    continue
                self._index.insert(LineString([(pa[0], pa[2]), (pb[0], pb[2])]))
                self.top = max(self.top, pa[1], pb[1])
                self.bottom = min(self.bottom, pa[1] - wall_height, pb[1] - wall_height)
        self.queries = 0
        LOGGER.debug("Indexed %d wall segments (span %.3f..%.3f)", len(self._index), self.bottom, self.top)

    @property
    def segment_count(self) -> int:
        return len(self._index)

    def __call__(self, origin: Vec3, direction: Vec3, max_distance: float) -> bool:
        self.queries += 1
        length = math.sqrt(direction[0] ** 2 + direction[1] ** 2 + direction[2] ** 2)
        if length == 0.0 or max_distance <= 0.0 or len(self._index) == 0:
            return False
        scale = max_distance / length
        end = (
            origin[0] + direction[0] * scale,
            origin[1] + direction[1] * scale,
            origin[2] + direction[2] * scale,
        )
        if min(origin[1], end[1]) > self.top or max(origin[1], end[1]) < self.bottom:
            return False
        footprint = (origin[0], origin[2]), (end[0], end[2])
        if footprint[0] == footprint[1]:
            return False
        return self._index.intersects(LineString(footprint))


__all__ = ["SegmentIndex", "WallOcclusion"]
