from __future__ import annotations

import pytest

from cavenav.astar import astar, dijkstra, path_cost
from cavenav.graph import NavigationGraph, build_graph
from cavenav.options import SearchOptions
from cavenav.visibility import VisibilityPoint


def _colinear() -> NavigationGraph:
    graph = NavigationGraph()
    graph.add_nodes([(0.0, 0.0, 0.0), (5.0, 0.0, 0.0), (10.0, 0.0, 0.0)])
    graph.add_edge(0, 1)
    graph.add_edge(0, 2)
    graph.add_edge(1, 2)
    return graph


def _lattice(size: int) -> NavigationGraph:
    """Square lattice with 4-neighbour edges and a few diagonals."""

    graph = NavigationGraph()
    for x in range(size):
        for z in range(size):
            graph.add_node((float(x), 0.0, float(z)))
    for x in range(size):
        for z in range(size):
            node = x * size + z
            if x + 1 < size:
                graph.add_edge(node, node + size)
            if z + 1 < size:
                graph.add_edge(node, node + 1)
            if x + 1 < size and z + 1 < size and (x + z) % 3 == 0:
                graph.add_edge(node, node + size + 1)
    return graph


def test_colinear_prefers_the_direct_edge() -> None:
    graph = _colinear()
    assert [e.weight for e in graph.edges] == [5.0, 10.0, 5.0]

    result = astar(graph, 0, 2)
    assert result.path == [0, 2]
    assert result.cost == pytest.approx(10.0)
    assert result.reason is None
    assert result.found


def test_colinear_points_through_the_graph_builder() -> None:
    points = [
        VisibilityPoint(id=i, position=(x, 0.0, 0.0), radius=0.25)
        for i, x in enumerate((0.0, 5.0, 10.0))
    ]
    graph = build_graph(points, lambda _origin, _direction, _max_distance: False)
    assert graph.edge_between(0, 1).weight == pytest.approx(5.0)
    assert graph.edge_between(1, 2).weight == pytest.approx(5.0)
    assert graph.edge_between(0, 2).weight == pytest.approx(10.0)

    result = astar(graph, 0, 2)
    assert result.path == [0, 2]
    assert result.cost == pytest.approx(10.0)


def test_dijkstra_keeps_the_first_equal_cost_path() -> None:
    result = dijkstra(_colinear(), 0, 2)
    assert result.path == [0, 2]
    assert result.cost == pytest.approx(10.0)


def test_start_equals_target() -> None:
    result = astar(_colinear(), 1, 1)
    assert result.path == [1]
    assert result.cost == 0.0
    assert result.expanded == 0


def test_unknown_endpoint() -> None:
    graph = _colinear()
    for start, target in ((0, 99), (99, 0)):
        result = astar(graph, start, target)
        assert result.path is None
        assert result.reason == "invalid-endpoint"
        assert result.expanded == 0


def test_disconnected_target_is_unreachable() -> None:
    graph = _colinear()
    island = graph.add_node((50.0, 0.0, 0.0))
    result = astar(graph, 0, island.id)
    assert result.path is None
    assert result.reason == "unreachable"
    assert result.expanded == 3


def test_max_expansions_limit() -> None:
    graph = _lattice(6)
    result = astar(graph, 0, 35, options=SearchOptions(max_expansions=2))
    assert result.path is None
    assert result.reason == "max-expansions"


def test_cost_equals_the_sum_of_edge_weights() -> None:
    graph = _lattice(8)
    result = astar(graph, 0, 63)
    assert result.found
    assert result.path[0] == 0 and result.path[-1] == 63
    assert result.cost == pytest.approx(path_cost(graph, result.path))

    reference = dijkstra(graph, 0, 63)
    assert result.cost == pytest.approx(reference.cost)


def test_search_is_deterministic() -> None:
    graph = _lattice(7)
    first = astar(graph, 3, 45)
    for _ in range(3):
        again = astar(graph, 3, 45)
        assert again.path == first.path
        assert again.expanded == first.expanded


def test_path_cost_rejects_gaps() -> None:
    with pytest.raises(ValueError):
        path_cost(_lattice(3), [0, 8])


def test_result_json() -> None:
    payload = astar(_colinear(), 0, 2).to_json_dict()
    assert payload == {"path": [0, 2], "reason": None, "expanded": 1, "cost": 10.0}
