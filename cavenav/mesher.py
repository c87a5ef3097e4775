"""Marching-squares contour mesher.

Turns an occupancy grid into a triangulated cap mesh over the wall cells,
traces the boundary loops of that mesh and extrudes them downwards into a
separate wall mesh.

Every grid square is classified by which of its four corners are walls
(top-left 8, top-right 4, bottom-right 2, bottom-left 1). The resulting
configuration index selects an ordered list of point roles from
:data:`CONFIGURATION_TABLE`; the points are fanned into triangles from the
first one. The table fixes the winding of every triangle so that
``cross(b - a, c - a)`` points up (+y) in world space.

Corners and edge midpoints live in a flat arena addressed by integer
handles. A handle receives a vertex id the first time a square uses it,
so squares sharing a corner or midpoint share the vertex.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .grid import Grid, WALL
from .path import Vec3

LOGGER = logging.getLogger(__name__)

Outline = List[int]
Bounds = Tuple[float, float, float, float]
"""Closed loop of vertex ids; the first id is repeated at the end."""


class Role(IntEnum):
    """Structural point of a grid square."""

    TOP_LEFT = 0
    TOP_RIGHT = 1
    BOTTOM_RIGHT = 2
    BOTTOM_LEFT = 3
    CENTER_TOP = 4
    CENTER_RIGHT = 5
    CENTER_BOTTOM = 6
    CENTER_LEFT = 7


_TL = Role.TOP_LEFT
_TR = Role.TOP_RIGHT
_BR = Role.BOTTOM_RIGHT
_BL = Role.BOTTOM_LEFT
_CT = Role.CENTER_TOP
_CR = Role.CENTER_RIGHT
_CB = Role.CENTER_BOTTOM
_CL = Role.CENTER_LEFT

CONFIGURATION_TABLE: Tuple[Tuple[Role, ...], ...] = (
    (),                                 # 0
    (_CL, _CB, _BL),                    # 1
    (_BR, _CB, _CR),                    # 2
    (_CR, _BR, _BL, _CL),               # 3
    (_TR, _CR, _CT),                    # 4
    (_CT, _TR, _CR, _CB, _BL, _CL),     # 5
    (_CT, _TR, _BR, _CB),               # 6
    (_CT, _TR, _BR, _BL, _CL),          # 7
    (_TL, _CT, _CL),                    # 8
    (_TL, _CT, _CB, _BL),               # 9
    (_TL, _CT, _CR, _BR, _CB, _CL),     # 10
    (_TL, _CT, _CR, _BR, _BL),          # 11
    (_TL, _TR, _CR, _CL),               # 12
    (_TL, _TR, _CR, _CB, _BL),          # 13
    (_TL, _TR, _BR, _CB, _CL),          # 14
    (_TL, _TR, _BR, _BL),               # 15
)
"""Configuration index -> ordered point roles of the filled region."""

FULL_CONFIGURATION = 15


@dataclass(frozen=True, slots=True)
class Triangle:
    """Three vertex ids in winding order."""

    a: int
    b: int
    c: int

    def __iter__(self) -> Iterator[int]:
        yield self.a
        yield self.b
        yield self.c

    def __contains__(self, vertex: object) -> bool:
        return vertex == self.a or vertex == self.b or vertex == self.c

    def after(self, vertex: int) -> int:
        """Return the vertex that follows ``vertex`` in winding order."""

        if vertex == self.a:
            return self.b
        if vertex == self.b:
            return self.c
        if vertex == self.c:
            return self.a
        raise ValueError(f"Vertex {vertex} is not part of {self}")


@dataclass(slots=True)
class MeshData:
    """Vertex positions plus a flat triangle index list."""

    vertices: List[Vec3] = field(default_factory=list)
    triangles: List[int] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles) // 3

    def iter_triangles(self) -> Iterator[Tuple[int, int, int]]:
        t = self.triangles
        for i in range(0, len(t) - 2, 3):
            yield (t[i], t[i + 1], t[i + 2])

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "vertices": [list(v) for v in self.vertices],
            "triangles": list(self.triangles),
        }


@dataclass(slots=True)
class FloorMesh:
    """Triangulated cap mesh together with the topology needed for outlines."""

    mesh: MeshData
    triangles: List[Triangle]
    adjacency: Dict[int, List[Triangle]]
    """Vertex id -> triangles touching it, in creation order."""

    pre_visited: Set[int]
    """Corner vertices of fully solid squares; they never start an outline."""

    @property
    def vertices(self) -> List[Vec3]:
        return self.mesh.vertices


@dataclass(slots=True)
class CaveMesh:
    """Everything the mesher produces for one grid."""

    floor: MeshData
    walls: MeshData
    outlines: List[Outline]


class _NodeArena:
    """Flat storage of grid corners and the midpoints above/right of them."""

    CORNER = 0
    ABOVE = 1
    RIGHT = 2

    def __init__(self, width: int, height: int, cell_size: float) -> None:
        self.width = width
        self.height = height
        self.cell_size = cell_size
        self._origin_x = -width * cell_size / 2.0 + cell_size / 2.0
        self._origin_z = -height * cell_size / 2.0 + cell_size / 2.0
        self.vertex_ids: List[Optional[int]] = [None] * (3 * width * height)

    def handle(self, kind: int, x: int, y: int) -> int:
        return kind * self.width * self.height + x * self.height + y

    def position(self, handle: int) -> Vec3:
        kind, rest = divmod(handle, self.width * self.height)
        x, y = divmod(rest, self.height)
        px = self._origin_x + x * self.cell_size
        pz = self._origin_z + y * self.cell_size
        half = self.cell_size / 2.0
        if kind == self.ABOVE:
            pz += half
        elif kind == self.RIGHT:
            px += half
        return (px, 0.0, pz)

    def square_handles(self, x: int, y: int) -> Tuple[int, ...]:
        """Handles of square ``(x, y)`` indexed by :class:`Role`."""

        h = self.handle
        return (
            h(self.CORNER, x, y + 1),       # TOP_LEFT
            h(self.CORNER, x + 1, y + 1),   # TOP_RIGHT
            h(self.CORNER, x + 1, y),       # BOTTOM_RIGHT
            h(self.CORNER, x, y),           # BOTTOM_LEFT
            h(self.RIGHT, x, y + 1),        # CENTER_TOP
            h(self.ABOVE, x + 1, y),        # CENTER_RIGHT
            h(self.RIGHT, x, y),            # CENTER_BOTTOM
            h(self.ABOVE, x, y),            # CENTER_LEFT
        )


def configuration_index(grid: Grid, x: int, y: int) -> int:
    """Return the 4-bit wall pattern of the square whose bottom-left corner is ``(x, y)``."""

    cells = grid.cells
    index = 0
    if cells[x][y + 1] == WALL:
        index += 8
    if cells[x + 1][y + 1] == WALL:
        index += 4
    if cells[x + 1][y] == WALL:
        index += 2
    if cells[x][y] == WALL:
        index += 1
    return index


class _FloorBuilder:
    def __init__(self, arena: _NodeArena) -> None:
        self._arena = arena
        self._mesh = MeshData()
        self._triangles: List[Triangle] = []
        self._adjacency: Dict[int, List[Triangle]] = {}
        self._pre_visited: Set[int] = set()

    def add_square(self, x: int, y: int, configuration: int) -> None:
        if not 0 <= configuration < len(CONFIGURATION_TABLE):
            raise ValueError(f"Configuration index out of range: {configuration}")
        roles = CONFIGURATION_TABLE[configuration]
        if not roles:
            return
        handles = self._arena.square_handles(x, y)
        ids = [self._assign(handles[role]) for role in roles]
        for i in range(1, len(ids) - 1):
            self._add_triangle(ids[0], ids[i], ids[i + 1])
        if configuration == FULL_CONFIGURATION:
            self._pre_visited.update(ids)

    def _assign(self, handle: int) -> int:
        vertex_ids = self._arena.vertex_ids
        vertex_id = vertex_ids[handle]
        if vertex_id is None:
            vertex_id = len(self._mesh.vertices)
            vertex_ids[handle] = vertex_id
            self._mesh.vertices.append(self._arena.position(handle))
        return vertex_id

    def _add_triangle(self, a: int, b: int, c: int) -> None:
        triangle = Triangle(a, b, c)
        self._mesh.triangles.extend((a, b, c))
        self._triangles.append(triangle)
        for vertex in triangle:
            self._adjacency.setdefault(vertex, []).append(triangle)

    def finish(self) -> FloorMesh:
        return FloorMesh(
            mesh=self._mesh,
            triangles=self._triangles,
            adjacency=self._adjacency,
            pre_visited=self._pre_visited,
        )


def triangulate(grid: Grid, cell_size: float = 1.0) -> FloorMesh:
    """Triangulate every square of ``grid`` into a cap mesh over the wall cells."""

    arena = _NodeArena(grid.width, grid.height, cell_size)
    builder = _FloorBuilder(arena)
    for x in range(grid.width - 1):
        for y in range(grid.height - 1):
            builder.add_square(x, y, configuration_index(grid, x, y))
    floor = builder.finish()
    LOGGER.debug(
        "Triangulated %dx%d grid: vertices=%d triangles=%d",
        grid.width,
        grid.height,
        len(floor.vertices),
        len(floor.triangles),
    )
    return floor


def is_outline_edge(floor: FloorMesh, vertex_a: int, vertex_b: int) -> bool:
    """Return whether the edge ``a-b`` belongs to exactly one triangle."""

    shared = 0
    for triangle in floor.adjacency.get(vertex_a, ()):
        if vertex_b in triangle:
            shared += 1
            if shared > 1:
                break
    return shared == 1


def _next_outline_vertex(floor: FloorMesh, vertex: int, visited: Set[int]) -> Optional[int]:
    triangles = floor.adjacency.get(vertex, ())
    # Following the triangle winding keeps the solid on the right of every loop
    for triangle in triangles:
        candidate = triangle.after(vertex)
        if candidate not in visited and is_outline_edge(floor, vertex, candidate):
            return candidate
    for triangle in triangles:
        for candidate in triangle:
            if candidate != vertex and candidate not in visited and is_outline_edge(floor, vertex, candidate):
                return candidate
    return None


def extract_outlines(floor: FloorMesh) -> List[Outline]:
    """Trace every boundary loop of ``floor``.

    Vertices are scanned in id order. An unvisited vertex with an
    unvisited boundary neighbour starts a loop which is walked until no
    unvisited boundary neighbour remains; the start vertex is then
    appended again to close it.
    """

    visited: Set[int] = set(floor.pre_visited)
    outlines: List[Outline] = []
    for vertex in range(len(floor.vertices)):
        if vertex in visited:
            continue
        following = _next_outline_vertex(floor, vertex, visited)
        if following is None:
            continue
        visited.add(vertex)
        outline = [vertex]
        while following is not None:
            outline.append(following)
            visited.add(following)
            following = _next_outline_vertex(floor, following, visited)
        outline.append(vertex)
        outlines.append(outline)
    LOGGER.debug("Extracted %d outlines", len(outlines))
    return outlines


def _lowered(position: Vec3, amount: float) -> Vec3:
    return (position[0], position[1] - amount, position[2])


def extrude_walls(vertices: Sequence[Vec3], outlines: Sequence[Outline], wall_height: float) -> MeshData:
    """Build the wall mesh hanging ``wall_height`` below every outline segment.

    Each segment becomes a quad of four fresh vertices; its two triangles
    face away from the solid side of the outline.
    """

    walls = MeshData()
    for index, outline in enumerate(outlines):
        if len(outline) < 2:
            LOGGER.debug("Skipping degenerate outline %d with %d vertices", index, len(outline))
            continue
        for vertex_a, vertex_b in zip(outline, outline[1:]):
            start = len(walls.vertices)
            top_a = vertices[vertex_a]
            top_b = vertices[vertex_b]
            walls.vertices.extend((top_a, top_b, _lowered(top_a, wall_height), _lowered(top_b, wall_height)))
            walls.triangles.extend((start, start + 2, start + 3, start + 3, start + 1, start))
    return walls


def grid_bounds(grid: Grid, cell_size: float = 1.0) -> Bounds:
    """Return the ``(min_x, min_z, max_x, max_z)`` footprint spanned by the grid's corner nodes."""

    half_x = (grid.width - 1) * cell_size / 2.0
    half_z = (grid.height - 1) * cell_size / 2.0
    return (-half_x, -half_z, half_x, half_z)


def build_mesh(grid: Grid, cell_size: float = 1.0, wall_height: float = 1.0) -> CaveMesh:
    """Triangulate ``grid``, trace its outlines and extrude the walls."""

    floor = triangulate(grid, cell_size)
    outlines = extract_outlines(floor)
    walls = extrude_walls(floor.vertices, outlines, wall_height)
    return CaveMesh(floor=floor.mesh, walls=walls, outlines=outlines)


__all__ = [
    "Bounds",
    "CONFIGURATION_TABLE",
    "CaveMesh",
    "FloorMesh",
    "MeshData",
    "Outline",
    "Role",
    "Triangle",
    "build_mesh",
    "configuration_index",
    "extract_outlines",
    "extrude_walls",
    "grid_bounds",
    "is_outline_edge",
    "triangulate",
]
