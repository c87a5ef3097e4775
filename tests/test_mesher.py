from __future__ import annotations

from collections import Counter

import pytest

from cavenav.grid import Grid, WALL, add_border
from cavenav.mesher import (
    CONFIGURATION_TABLE,
    FloorMesh,
    build_mesh,
    configuration_index,
    extract_outlines,
    extrude_walls,
    grid_bounds,
    is_outline_edge,
    triangulate,
)

EXPECTED_TRIANGLES = {
    0: 0,
    1: 1, 2: 1, 4: 1, 8: 1,
    3: 2, 6: 2, 9: 2, 12: 2,
    5: 4, 10: 4,
    7: 3, 11: 3, 13: 3, 14: 3,
    15: 2,
}


def _single_square(configuration: int) -> Grid:
    grid = Grid.filled(2, 2)
    if configuration & 8:
        grid.cells[0][1] = WALL
    if configuration & 4:
        grid.cells[1][1] = WALL
    if configuration & 2:
        grid.cells[1][0] = WALL
    if configuration & 1:
        grid.cells[0][0] = WALL
    return grid


def _normal_y(floor: FloorMesh, a: int, b: int, c: int) -> float:
    pa, pb, pc = floor.vertices[a], floor.vertices[b], floor.vertices[c]
    u = (pb[0] - pa[0], pb[2] - pa[2])
    v = (pc[0] - pa[0], pc[2] - pa[2])
    # y component of cross(b - a, c - a)
    return u[1] * v[0] - u[0] * v[1]


def _assert_clean(floor: FloorMesh) -> None:
    used = set(floor.mesh.triangles)
    assert all(0 <= i < len(floor.vertices) for i in used)
    assert used == set(range(len(floor.vertices)))
    for a, b, c in floor.mesh.iter_triangles():
        assert _normal_y(floor, a, b, c) > 0


@pytest.mark.parametrize("configuration", range(16))
def test_triangle_count_per_configuration(configuration: int) -> None:
    grid = _single_square(configuration)
    assert configuration_index(grid, 0, 0) == configuration

    floor = triangulate(grid)
    assert len(floor.triangles) == EXPECTED_TRIANGLES[configuration]
    assert floor.mesh.triangle_count == EXPECTED_TRIANGLES[configuration]
    assert len(floor.vertices) == len(CONFIGURATION_TABLE[configuration])
    _assert_clean(floor)


def test_full_square_corners_are_pre_visited() -> None:
    floor = triangulate(_single_square(15))
    assert floor.pre_visited == {0, 1, 2, 3}
    assert extract_outlines(floor) == []


def test_node_positions_are_centred() -> None:
    floor = triangulate(_single_square(8), cell_size=2.0)
    # TL corner, top midpoint, left midpoint of a 2x2 grid with 2-unit cells
    assert floor.vertices == [(-1.0, 0.0, 1.0), (0.0, 0.0, 1.0), (-1.0, 0.0, 0.0)]


def test_shared_nodes_share_vertices() -> None:
    grid = add_border(Grid.filled(3, 3))
    floor = triangulate(grid)
    assert len(set(floor.vertices)) == len(floor.vertices)
    _assert_clean(floor)


def test_bordered_open_grid_has_one_rectangular_frame() -> None:
    grid = add_border(Grid.filled(3, 3))
    mesh = build_mesh(grid)
    assert len(mesh.outlines) == 2

    frame, inner = mesh.outlines
    assert len(frame) == 17
    assert frame[0] == frame[-1]
    assert len(set(frame)) == 16
    for vertex in frame:
        x, _, z = mesh.floor.vertices[vertex]
        assert abs(x) == 2.0 or abs(z) == 2.0

    assert len(inner) == 13
    for vertex in inner:
        x, _, z = mesh.floor.vertices[vertex]
        assert abs(x) == 1.5 or abs(z) == 1.5


def test_ring_grid_outlines() -> None:
    grid = Grid.from_rows([
        "###",
        "#.#",
        "###",
    ])
    outlines = extract_outlines(triangulate(grid))
    assert [len(o) for o in outlines] == [9, 5]


def test_outline_edges_belong_to_exactly_one_triangle(pillar_grid: Grid) -> None:
    floor = triangulate(pillar_grid)
    outlines = extract_outlines(floor)
    assert outlines
    outline_edges = set()
    for outline in outlines:
        assert outline[0] == outline[-1]
        assert len(outline) >= 4
        for a, b in zip(outline, outline[1:]):
            assert is_outline_edge(floor, a, b)
            outline_edges.add(frozenset((a, b)))

    counts = Counter()
    for triangle in floor.triangles:
        verts = list(triangle)
        for i in range(3):
            counts[frozenset((verts[i], verts[(i + 1) % 3]))] += 1
    for edge, count in counts.items():
        assert is_outline_edge(floor, *edge) == (count == 1)
        if edge in outline_edges:
            assert count == 1


def test_pillar_outline_is_a_diamond(pillar_grid: Grid) -> None:
    mesh = build_mesh(pillar_grid)
    # Double wall frame leaves only the room loop and the pillar loop
    assert len(mesh.outlines) == 2
    pillar = [o for o in mesh.outlines if len(o) == 5]
    assert len(pillar) == 1
    positions = {(mesh.floor.vertices[v][0], mesh.floor.vertices[v][2]) for v in pillar[0]}
    assert positions == {(0.5, 0.0), (-0.5, 0.0), (0.0, 0.5), (0.0, -0.5)}


def test_wall_normals_face_away_from_the_solid(pillar_grid: Grid) -> None:
    mesh = build_mesh(pillar_grid, wall_height=2.0)
    pillar = next(o for o in mesh.outlines if len(o) == 5)
    walls = extrude_walls(mesh.floor.vertices, [pillar], 2.0)
    assert len(walls.vertices) == 16
    assert walls.triangle_count == 8
    for a, b, c in walls.iter_triangles():
        pa, pb, pc = walls.vertices[a], walls.vertices[b], walls.vertices[c]
        u = (pb[0] - pa[0], pb[1] - pa[1], pb[2] - pa[2])
        v = (pc[0] - pa[0], pc[1] - pa[1], pc[2] - pa[2])
        normal = (
            u[1] * v[2] - u[2] * v[1],
            u[2] * v[0] - u[0] * v[2],
            u[0] * v[1] - u[1] * v[0],
        )
        centre = ((pa[0] + pb[0] + pc[0]) / 3, (pa[2] + pb[2] + pc[2]) / 3)
        # The pillar sits at the origin
        assert normal[0] * centre[0] + normal[2] * centre[1] > 0
        assert normal[1] == pytest.approx(0.0)
        assert min(pa[1], pb[1], pc[1]) == -2.0


def test_degenerate_outlines_are_skipped() -> None:
    vertices = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)]
    walls = extrude_walls(vertices, [[0], [], [0, 1]], 1.0)
    assert len(walls.vertices) == 4
    assert walls.triangles == [0, 2, 3, 3, 1, 0]


def test_random_cave_mesh_is_clean() -> None:
    from cavenav.grid import generate

    grid = generate(30, 20, 0.45, 4, 5, seed=11)
    floor = triangulate(grid)
    _assert_clean(floor)
    for outline in extract_outlines(floor):
        assert outline[0] == outline[-1]
        assert len(outline) >= 4


def test_mesh_data_json() -> None:
    payload = triangulate(_single_square(1)).mesh.to_json_dict()
    assert payload["triangles"] == [0, 1, 2]
    assert payload["vertices"][2] == [-0.5, 0.0, -0.5]


def test_grid_bounds_span_the_corner_nodes() -> None:
    grid = add_border(Grid.filled(3, 3))
    floor = triangulate(grid, cell_size=2.0)
    assert grid_bounds(grid, 2.0) == (-4.0, -4.0, 4.0, 4.0)
    assert max(abs(v[0]) for v in floor.vertices) == 4.0
