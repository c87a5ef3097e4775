"""Public API for cavenav.

Exposes the three pipeline stages as plain calls:

- ``generate_cave(options)`` seeds, smooths and frames a grid, meshes it
  and places visibility points, returning a :class:`CaveLayout`;
- ``bake_navigation(layout)`` builds the pruned visibility graph using the
  layout's walls as the occlusion environment;
- ``find_route(graph, start, goal)`` snaps both positions to the nearest
  graph nodes and runs A* between them.

Each call logs one summary metrics line at INFO.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .astar import astar
from .cost import Heuristic
from .graph import NavigationGraph, OcclusionTest, build_graph
from .grid import Grid, NoiseFunction, add_border, initialize, smooth
from .mesher import MeshData, Outline, build_mesh, grid_bounds
from .occlusion import WallOcclusion
from .options import BakeOptions, GenerationOptions, SearchOptions
from .path import PathResult, RouteResult, Vec3
from .visibility import VisibilityPoint, place_points

LOGGER = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]
"""Polled between pipeline stages; returning ``True`` aborts the call."""


class GenerationCancelled(RuntimeError):
    """Raised when the cancellation callback fires during a pipeline call."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Generation cancelled during {stage}")
        self.stage = stage


@dataclass(slots=True)
class CaveLayout:
    """Everything produced by one :func:`generate_cave` call."""

    grid: Grid
    """Smoothed and bordered occupancy grid."""

    floor: MeshData
    """Cap mesh over the wall cells."""

    walls: MeshData
    """Wall quads hanging below every outline."""

    outlines: List[Outline]
    """Closed boundary loops over ``floor`` vertex ids."""

    points: List[VisibilityPoint]
    """Visibility points placed at the convex outline corners."""

    options: GenerationOptions = field(default_factory=GenerationOptions)
    """Options the layout was generated with."""


def _check(cancel: Optional[CancelCheck], stage: str) -> None:
    if cancel is not None and cancel():
        LOGGER.info("Cancellation requested after %s", stage)
        raise GenerationCancelled(stage)


def _elapsed_ms(t0_ns: int) -> int:
    return int((time.perf_counter_ns() - t0_ns) / 1_000_000)


def generate_cave(
    options: Optional[GenerationOptions] = None,
    noise: Optional[NoiseFunction] = None,
    cancel: Optional[CancelCheck] = None,
) -> CaveLayout:
    """Generate a cave layout.

    - Validates the options
    - Seeds the grid, runs every smoothing cycle and adds the border
    - Meshes the grid, traces outlines and extrudes walls
    - Places visibility points ``point_height_ratio * wall_height`` below
      the wall tops

    ``cancel`` is polled after each stage and raises
    :class:`GenerationCancelled` when it returns ``True``.
    """

    opts = options or GenerationOptions()
    opts.validate()
    t0_ns = time.perf_counter_ns()

    grid = initialize(opts.width, opts.height, opts.fill_probability, noise=noise, seed=opts.seed)
    _check(cancel, "initialize")
    for cycle in range(opts.smooth_cycles):
        grid = smooth(grid, opts.smooth_threshold)
        _check(cancel, f"smoothing cycle {cycle + 1}")
    grid = add_border(grid, opts.border_size)

    mesh = build_mesh(grid, opts.cell_size, opts.wall_height)
    _check(cancel, "meshing")

    points = place_points(
        mesh.outlines,
        mesh.floor.vertices,
        radius=opts.corner_offset,
        corner_offset=opts.corner_offset,
        height_offset=opts.point_height_ratio * opts.wall_height,
        bounds=grid_bounds(grid, opts.cell_size),
    )
    _check(cancel, "point placement")

    LOGGER.info(
        "generate_cave metrics: size=%dx%d seed=%s walls=%d vertices=%d triangles=%d outlines=%d points=%d duration_ms=%d",
        grid.width,
        grid.height,
        opts.seed,
        grid.wall_count(),
        len(mesh.floor.vertices),
        mesh.floor.triangle_count,
        len(mesh.outlines),
        len(points),
        _elapsed_ms(t0_ns),
    )
    return CaveLayout(
        grid=grid,
        floor=mesh.floor,
        walls=mesh.walls,
        outlines=mesh.outlines,
        points=points,
        options=opts,
    )


def bake_navigation(
    layout: CaveLayout,
    options: Optional[BakeOptions] = None,
    occlusion: Optional[OcclusionTest] = None,
    cancel: Optional[CancelCheck] = None,
) -> NavigationGraph:
    """Build the navigation graph over ``layout.points``.

    ``occlusion`` defaults to a :class:`WallOcclusion` over the layout's
    outlines. Every edge is swept with ``agent_radius`` as its clearance.
    Raises :class:`cavenav.graph.EmptyPointSetError` when the layout has
    no visibility points.
    """

    opts = options or BakeOptions()
    t0_ns = time.perf_counter_ns()
    if occlusion is None:
        occlusion = WallOcclusion(layout.floor.vertices, layout.outlines, layout.options.wall_height)
    _check(cancel, "occlusion setup")

    graph = build_graph(layout.points, occlusion, clearance=opts.agent_radius)

    LOGGER.info(
        "bake_navigation metrics: points=%d nodes=%d edges=%d agent_radius=%.3f duration_ms=%d",
        len(layout.points),
        len(graph),
        graph.edge_count,
        opts.agent_radius,
        _elapsed_ms(t0_ns),
    )
    return graph


def find_route(
    graph: NavigationGraph,
    start: Vec3,
    goal: Vec3,
    options: Optional[SearchOptions] = None,
    heuristic: Optional[Heuristic] = None,
) -> RouteResult:
    """Compute a route between two world positions.

    Both positions snap to their closest graph node; the node path is then
    framed by the requested positions in ``RouteResult.waypoints``. An
    empty graph yields ``reason="empty-graph"``.
    """

    t0_ns = time.perf_counter_ns()
    start_node = graph.closest_node(start)
    goal_node = graph.closest_node(goal)

    if start_node is None or goal_node is None:
        LOGGER.warning("find_route on an empty graph: start=%s goal=%s", start, goal)
        result = PathResult(path=None, reason="empty-graph", expanded=0, cost=0.0)
        return RouteResult(start=start, goal=goal, start_node=None, goal_node=None, result=result)

    result = astar(graph, start_node.id, goal_node.id, heuristic=heuristic, options=options)
    waypoints: List[Vec3] = []
    if result.path is not None:
        waypoints.append(tuple(start))
        waypoints.extend(graph.node(node_id).position for node_id in result.path)
        waypoints.append(tuple(goal))

    LOGGER.info(
        "find_route metrics: start=%s goal=%s start_node=%d goal_node=%d reason=%s expanded=%d path_len=%d cost=%.3f duration_ms=%d",
        start,
        goal,
        start_node.id,
        goal_node.id,
        result.reason,
        result.expanded,
        len(result.path) if result.path is not None else 0,
        result.cost,
        _elapsed_ms(t0_ns),
    )
    return RouteResult(
        start=start,
        goal=goal,
        start_node=start_node.id,
        goal_node=goal_node.id,
        result=result,
        waypoints=waypoints,
    )


__all__ = [
    "CaveLayout",
    "GenerationCancelled",
    "bake_navigation",
    "find_route",
    "generate_cave",
]
