from __future__ import annotations

import pytest

from cavenav.graph import (
    EmptyPointSetError,
    NavigationGraph,
    build_graph,
    complete_graph,
    prune_occluded,
    sweep_offsets,
)
from cavenav.visibility import VisibilityPoint


def _points(*positions, radius: float = 0.0):
    return [VisibilityPoint(id=i, position=p, radius=radius) for i, p in enumerate(positions)]


def _never(_origin, _direction, _max_distance) -> bool:
    return False


def _always(_origin, _direction, _max_distance) -> bool:
    return True


class RecordingOcclusion:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, origin, direction, max_distance) -> bool:
        self.calls.append((origin, direction, max_distance))
        return False


def test_complete_graph_connects_every_pair() -> None:
    points = _points((0, 0, 0), (1, 0, 0), (2, 0, 0), (0, 0, 3), (5, 0, 5))
    graph = complete_graph(points)
    assert len(graph) == 5
    assert graph.edge_count == 10
    assert graph.edge_between(0, 1).weight == pytest.approx(1.0)
    assert graph.edge_between(3, 0).weight == pytest.approx(3.0)


def test_always_blocked_occlusion_removes_every_edge() -> None:
    graph = complete_graph(_points((0, 0, 0), (1, 0, 0), (2, 0, 0), (0, 0, 3)))
    assert prune_occluded(graph, _always, clearance=0.5) == 6
    assert graph.edge_count == 0
    assert all(not node.edges for node in graph.nodes)


def test_never_blocked_occlusion_keeps_every_edge() -> None:
    graph = build_graph(_points((0, 0, 0), (1, 0, 0), (2, 0, 0)), _never)
    assert graph.edge_count == 3


def test_each_edge_is_probed_three_times() -> None:
    occlusion = RecordingOcclusion()
    graph = complete_graph(_points((0, 0, 0), (4, 0, 0)))
    prune_occluded(graph, occlusion, clearance=1.0)

    assert len(occlusion.calls) == 3
    origins = sorted(call[0] for call in occlusion.calls)
    assert origins == [(0.0, 0.0, -0.5), (0.0, 0.0, 0.0), (0.0, 0.0, 0.5)]
    for _origin, direction, max_distance in occlusion.calls:
        assert direction == (4.0, 0.0, 0.0)
        assert max_distance == pytest.approx(4.0)


def test_clearance_defaults_to_the_larger_radius() -> None:
    occlusion = RecordingOcclusion()
    points = [
        VisibilityPoint(id=0, position=(0.0, 0.0, 0.0), radius=0.5),
        VisibilityPoint(id=1, position=(0.0, 0.0, 2.0), radius=1.0),
    ]
    build_graph(points, occlusion)
    xs = sorted(call[0][0] for call in occlusion.calls)
    assert xs == [pytest.approx(-0.5), pytest.approx(0.0), pytest.approx(0.5)]


def test_sweep_offsets_are_horizontal_and_perpendicular() -> None:
    left, right = sweep_offsets((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), 2.0)
    assert left == (0.0, 0.0, 1.0)
    assert right == (0.0, 0.0, -1.0)

    left, right = sweep_offsets((1.0, 2.0, 1.0), (1.0, 2.0, 5.0), 1.0)
    assert left == (pytest.approx(0.5), 2.0, 1.0)
    assert right == (pytest.approx(1.5), 2.0, 1.0)


def test_self_loops_and_duplicates() -> None:
    graph = NavigationGraph()
    a = graph.add_node((0.0, 0.0, 0.0))
    b = graph.add_node((3.0, 4.0, 0.0))

    with pytest.raises(ValueError):
        graph.add_edge(a.id, a.id)

    edge = graph.add_edge(a.id, b.id)
    assert edge.weight == pytest.approx(5.0)
    assert graph.add_edge(b.id, a.id) is edge
    assert graph.edge_count == 1
    assert [n for n, _ in graph.neighbours(a.id)] == [b.id]


def test_closest_node_prefers_the_first_on_ties() -> None:
    graph = NavigationGraph()
    assert graph.closest_node((0.0, 0.0, 0.0)) is None

    first = graph.add_node((1.0, 0.0, 0.0))
    graph.add_node((-1.0, 0.0, 0.0))
    graph.add_node((5.0, 0.0, 0.0))
    assert graph.closest_node((0.0, 0.0, 0.0)) is first
    assert graph.closest_node((4.0, 0.0, 0.0)).id == 2


def test_remove_node_drops_incident_edges_and_keeps_ids() -> None:
    graph = complete_graph(_points((0, 0, 0), (1, 0, 0), (2, 0, 0)))
    graph.remove_node(1)

    assert not graph.has_node(1)
    assert graph.edge_count == 1
    assert graph.edge_between(0, 1) is None
    assert [n for n, _ in graph.neighbours(0)] == [2]
    assert graph.add_node((9.0, 0.0, 0.0)).id == 3
    with pytest.raises(KeyError):
        graph.node(1)
    with pytest.raises(ValueError):
        graph.add_node((0.0, 0.0, 0.0), node_id=0)


def test_neighbours_follow_edge_creation_order() -> None:
    graph = complete_graph(_points((0, 0, 0), (1, 0, 0), (2, 0, 0), (3, 0, 0)))
    assert [n for n, _ in graph.neighbours(2)] == [0, 1, 3]


def test_empty_point_set_is_rejected() -> None:
    with pytest.raises(EmptyPointSetError):
        complete_graph([])
    with pytest.raises(ValueError):
        build_graph([], _never)
