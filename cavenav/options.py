"""Configuration data models for cave generation, baking and search."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

DEFAULT_WIDTH = 64
DEFAULT_HEIGHT = 48
DEFAULT_FILL_PROBABILITY = 0.45
DEFAULT_SMOOTH_THRESHOLD = 4
DEFAULT_SMOOTH_CYCLES = 5
DEFAULT_BORDER_SIZE = 1
DEFAULT_CELL_SIZE = 1.0
DEFAULT_WALL_HEIGHT = 1.0
DEFAULT_CORNER_OFFSET = 0.25
DEFAULT_POINT_HEIGHT_RATIO = 0.75
DEFAULT_AGENT_RADIUS = 0.25

DEFAULT_MAX_EXPANSIONS = 1_000_000
DEFAULT_TIMEOUT_MS = 0


def _coerce(name: str, value: Any, kind: type) -> Any:
    # bool is an int subclass; reject it for numeric fields
    if isinstance(value, bool) and kind is not bool:
        raise ValueError(f"{name} must be {kind.__name__}; got bool")
    if kind is float and isinstance(value, int):
        return float(value)
    if not isinstance(value, kind):
        raise ValueError(f"{name} must be {kind.__name__}; got {type(value).__name__}")
    return value


def _update_from_mapping(target: Any, payload: Mapping[str, Any], *, source: str) -> None:
    if not isinstance(payload, Mapping):
        raise ValueError(f"{source} must be a JSON object; got {type(payload).__name__}")
    known = {f.name: f for f in fields(target)}
    for key, value in payload.items():
        if key not in known:
            raise ValueError(f"{source}.{key} is not a recognised option")
        current = getattr(target, key)
        if value is None and current is None:
            continue
        if key == "seed":
            if value is not None:
                _coerce(f"{source}.{key}", value, int)
            setattr(target, key, value)
            continue
        kind = type(current) if current is not None else int
        setattr(target, key, _coerce(f"{source}.{key}", value, kind))


@dataclass(slots=True)
class GenerationOptions:
    """Parameters controlling grid generation, meshing and point placement.

    Every value is part of the public surface and round-trips through
    :meth:`to_json_dict` / :meth:`from_json_dict`.
    """

    width: int = DEFAULT_WIDTH
    """Grid width in cells before the border is added."""

    height: int = DEFAULT_HEIGHT
    """Grid height in cells before the border is added."""

    fill_probability: float = DEFAULT_FILL_PROBABILITY
    """Probability that a non-edge cell starts as a wall."""

    smooth_threshold: int = DEFAULT_SMOOTH_THRESHOLD
    """Wall-neighbour count at or above which a cell becomes a wall. Negative disables smoothing."""

    smooth_cycles: int = DEFAULT_SMOOTH_CYCLES
    """Number of cellular-automaton passes."""

    border_size: int = DEFAULT_BORDER_SIZE
    """Width of the wall frame added around the smoothed grid."""

    cell_size: float = DEFAULT_CELL_SIZE
    """World-space size of one grid square."""

    wall_height: float = DEFAULT_WALL_HEIGHT
    """Vertical extent of the extruded walls."""

    corner_offset: float = DEFAULT_CORNER_OFFSET
    """Distance visibility points are pulled away from their corner."""

    point_height_ratio: float = DEFAULT_POINT_HEIGHT_RATIO
    """Visibility points sit this fraction of ``wall_height`` below the wall tops."""

    seed: Optional[int] = None
    """Seed for the default noise source; ``None`` draws a fresh one."""

    def validate(self) -> None:
        """Raise ``ValueError`` for values no generation step can honour."""

        if not 0.0 <= self.fill_probability <= 1.0:
            raise ValueError(f"fill_probability must be within [0, 1]; got {self.fill_probability}")
        if self.smooth_cycles < 0:
            raise ValueError(f"smooth_cycles must be >= 0; got {self.smooth_cycles}")
        if self.border_size < 0:
            raise ValueError(f"border_size must be >= 0; got {self.border_size}")
        if self.cell_size <= 0:
            raise ValueError(f"cell_size must be > 0; got {self.cell_size}")
        if self.wall_height <= 0:
            raise ValueError(f"wall_height must be > 0; got {self.wall_height}")
        if self.corner_offset < 0:
            raise ValueError(f"corner_offset must be >= 0; got {self.corner_offset}")

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "width": self.width,
            "height": self.height,
            "fill_probability": self.fill_probability,
            "smooth_threshold": self.smooth_threshold,
            "smooth_cycles": self.smooth_cycles,
            "border_size": self.border_size,
            "cell_size": self.cell_size,
            "wall_height": self.wall_height,
            "corner_offset": self.corner_offset,
            "point_height_ratio": self.point_height_ratio,
            "seed": self.seed,
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "GenerationOptions":
        """Build options from a JSON object, rejecting unknown keys and bad types."""

        opts = cls()
        _update_from_mapping(opts, payload, source="generation")
        return opts


@dataclass(slots=True)
class BakeOptions:
    """Parameters for navigation graph baking."""

    agent_radius: float = DEFAULT_AGENT_RADIUS
    """Clearance assigned to every visibility point before pruning."""

    def to_json_dict(self) -> Dict[str, Any]:
        return {"agent_radius": self.agent_radius}

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "BakeOptions":
        opts = cls()
        _update_from_mapping(opts, payload, source="bake")
        return opts


@dataclass(slots=True)
class SearchOptions:
    """Limits applied to a single path search."""

    max_expansions: int = DEFAULT_MAX_EXPANSIONS
    """Maximum node expansions before returning ``reason="max-expansions"``."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """Wall-clock budget in milliseconds; ``0`` disables the timeout."""

    extras: Dict[str, Any] = field(default_factory=dict)
    """Arbitrary additional flags kept for forward compatibility."""

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "max_expansions": self.max_expansions,
            "timeout_ms": self.timeout_ms,
            "extras": dict(self.extras),
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "SearchOptions":
        opts = cls()
        _update_from_mapping(opts, payload, source="search")
        return opts


__all__ = ["BakeOptions", "GenerationOptions", "SearchOptions"]
