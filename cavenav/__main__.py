"""Command-line interface for cavenav.

Usage examples:
  python -m cavenav --width 64 --height 48 --seed 7 --json
  python -m cavenav --seed 7 --start -10 0 -5 --goal 12 0 8 --db cave.db
  python -m cavenav --config cave.json --smooth-cycles 3
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .api import CaveLayout, bake_navigation, find_route, generate_cave
from .db import write_layout
from .graph import EmptyPointSetError, NavigationGraph
from .grid import InvalidDimensionsError
from .options import BakeOptions, GenerationOptions, SearchOptions
from .path import RouteResult, Vec3

LOGGER = logging.getLogger(__name__)

_CONFIG_SECTIONS = ("generation", "bake", "search")


def _as_vec3(values: List[float]) -> Vec3:
    return (values[0], values[1], values[2])


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cavenav",
        description="Generate a cave, bake its visibility graph and route through it",
    )

    # Generation
    p.add_argument("--width", type=int, default=None, help="Grid width in cells")
    p.add_argument("--height", type=int, default=None, help="Grid height in cells")
    p.add_argument("--seed", type=int, default=None, help="Noise seed")
    p.add_argument("--fill", dest="fill_probability", type=float, default=None, help="Initial wall probability")
    p.add_argument("--smooth-threshold", type=int, default=None, help="Wall-neighbour threshold (negative disables smoothing)")
    p.add_argument("--smooth-cycles", type=int, default=None, help="Number of smoothing passes")
    p.add_argument("--cell-size", type=float, default=None, help="World size of one grid square")
    p.add_argument("--wall-height", type=float, default=None, help="Height of the extruded walls")
    p.add_argument("--corner-offset", type=float, default=None, help="Distance of visibility points from their corner")

    # Baking
    p.add_argument("--agent-radius", type=float, default=None, help="Clearance swept along every edge")

    # Route
    p.add_argument("--start", nargs=3, type=float, default=None, metavar=("X", "Y", "Z"), help="Route start position")
    p.add_argument("--goal", nargs=3, type=float, default=None, metavar=("X", "Y", "Z"), help="Route goal position")
    p.add_argument("--max-expansions", type=int, default=None, help="Maximum node expansions")
    p.add_argument("--timeout-ms", type=int, default=None, help="Timeout in milliseconds")

    # IO
    p.add_argument("--config", type=str, default=None, help="JSON file with 'generation', 'bake' and 'search' sections")
    p.add_argument("--db", type=str, default=None, help="Write the baked layout to this SQLite file")
    p.add_argument("--json", action="store_true", help="Output result as JSON")
    p.add_argument("--out", "--output", dest="out_path", type=str, default=None, help="Write output to file instead of stdout")

    # Logging
    p.add_argument("--log-level", default="INFO", choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"], help="Logging level")

    return p


def _load_config(path: str) -> Dict[str, Any]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read --config: {path!r}: {exc}") from exc
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in --config {path!r}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"--config {path!r} must contain a JSON object")
    unknown = sorted(set(payload) - set(_CONFIG_SECTIONS))
    if unknown:
        raise ValueError(f"--config {path!r} has unknown sections: {', '.join(unknown)}")
    return payload


def _options_from_args(args: argparse.Namespace) -> Tuple[GenerationOptions, BakeOptions, SearchOptions]:
    config: Dict[str, Any] = _load_config(args.config) if args.config else {}

    gen = GenerationOptions.from_json_dict(config.get("generation", {}))
    bake = BakeOptions.from_json_dict(config.get("bake", {}))
    search = SearchOptions.from_json_dict(config.get("search", {}))

    # CLI flags win over the config file
    for name in (
        "width",
        "height",
        "seed",
        "fill_probability",
        "smooth_threshold",
        "smooth_cycles",
        "cell_size",
        "wall_height",
        "corner_offset",
    ):
        value = getattr(args, name)
        if value is not None:
            setattr(gen, name, value)
    if args.agent_radius is not None:
        bake.agent_radius = args.agent_radius
    if args.max_expansions is not None:
        search.max_expansions = args.max_expansions
    if args.timeout_ms is not None:
        search.timeout_ms = args.timeout_ms

    gen.validate()
    if bake.agent_radius < 0:
        raise ValueError(f"agent_radius must be >= 0; got {bake.agent_radius}")
    if (args.start is None) != (args.goal is None):
        raise ValueError("--start and --goal must be given together")
    return gen, bake, search


def _summary(layout: CaveLayout, graph: NavigationGraph, route: Optional[RouteResult]) -> Dict[str, Any]:
    return {
        "layout": {
            "width": layout.grid.width,
            "height": layout.grid.height,
            "walls": layout.grid.wall_count(),
            "vertices": len(layout.floor.vertices),
            "triangles": layout.floor.triangle_count,
            "wall_triangles": layout.walls.triangle_count,
            "outlines": len(layout.outlines),
            "points": len(layout.points),
            "options": layout.options.to_json_dict(),
        },
        "graph": {
            "nodes": len(graph),
            "edges": graph.edge_count,
        },
        "route": route.to_json_dict() if route is not None else None,
    }


def _format_human(summary: Dict[str, Any]) -> str:
    # Stable, concise human-readable format
    layout = summary["layout"]
    graph = summary["graph"]
    lines = [
        f"grid: {layout['width']}x{layout['height']} walls={layout['walls']}",
        f"mesh: vertices={layout['vertices']} triangles={layout['triangles']} wall_triangles={layout['wall_triangles']}",
        f"outlines: {layout['outlines']}",
        f"points: {layout['points']}",
        f"graph: nodes={graph['nodes']} edges={graph['edges']}",
    ]
    route = summary["route"]
    if route is not None:
        path_len = len(route["path"]) if route["path"] is not None else 0
        lines.extend([
            f"reason: {route['reason']}",
            f"expanded: {route['expanded']}",
            f"path_len: {path_len}",
            f"cost: {route['cost']:.3f}",
        ])
        if route["waypoints"]:
            lines.append("waypoints:")
            for p in route["waypoints"]:
                lines.append(f"  - [{p[0]:.3f}, {p[1]:.3f}, {p[2]:.3f}]")
    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        gen_opts, bake_opts, search_opts = _options_from_args(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        layout = generate_cave(gen_opts)
        graph = bake_navigation(layout, bake_opts)
    except (InvalidDimensionsError, EmptyPointSetError) as exc:
        LOGGER.error("Generation failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    route = None
    if args.start is not None and args.goal is not None:
        route = find_route(graph, _as_vec3(args.start), _as_vec3(args.goal), options=search_opts)

    if args.db:
        write_layout(args.db, layout, graph)

    summary = _summary(layout, graph, route)
    if args.json:
        out_text = json.dumps(summary, indent=2) + "\n"
    else:
        out_text = _format_human(summary)

    if args.out_path:
        out_file = Path(args.out_path)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(out_text, encoding="utf-8")
    else:
        print(out_text, end="")

    # Unreachable routes are reported, not failures
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
