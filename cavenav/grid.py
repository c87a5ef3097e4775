"""Cellular-automaton occupancy grid generation.

The grid is a binary field of ``WALL``/``OPEN`` cells indexed as
``cells[x][y]``. Generation seeds it from a noise source, runs a number of
smoothing passes and finally frames it with a wall border so the contour
mesher always sees a closed outer boundary.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

LOGGER = logging.getLogger(__name__)

OPEN = 0
WALL = 1

NoiseFunction = Callable[[int, int], float]
"""Noise source sampled once per cell; must return a value in ``[0, 1)``."""

_ROW_CHARS = {WALL: "#", OPEN: "."}


class InvalidDimensionsError(ValueError):
    """Raised when a grid is requested with a non-positive width or height."""

    def __init__(self, width: int, height: int) -> None:
        super().__init__(f"Grid dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height


@dataclass(slots=True)
class Grid:
    """Fixed-size binary occupancy grid."""

    cells: List[List[int]]
    """Column-major cell values, ``cells[x][y]``."""

    @property
    def width(self) -> int:
        return len(self.cells)

    @property
    def height(self) -> int:
        return len(self.cells[0]) if self.cells else 0

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def is_wall(self, x: int, y: int) -> bool:
        return self.cells[x][y] == WALL

    def copy(self) -> "Grid":
        return Grid([list(column) for column in self.cells])

    def wall_count(self) -> int:
        return sum(sum(column) for column in self.cells)

    @classmethod
    def filled(cls, width: int, height: int, value: int = OPEN) -> "Grid":
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(width, height)
        return cls([[value] * height for _ in range(width)])

    @classmethod
    def from_rows(cls, rows: Iterable[str]) -> "Grid":
        """Build a grid from text rows, ``#`` for walls and ``.`` for open cells.

        The first row is the top of the map (highest ``y``), matching how
        the rows read on screen.
        """

        rows = list(rows)
        if not rows or not rows[0]:
            raise InvalidDimensionsError(len(rows[0]) if rows else 0, len(rows))
        width = len(rows[0])
        height = len(rows)
        grid = cls.filled(width, height)
        for r, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(f"Row {r} has length {len(row)}, expected {width}")
            y = height - 1 - r
            for x, ch in enumerate(row):
                grid.cells[x][y] = WALL if ch == "#" else OPEN
        return grid

    def to_rows(self) -> List[str]:
        """Inverse of :meth:`from_rows`."""

        return [
            "".join(_ROW_CHARS[self.cells[x][y]] for x in range(self.width))
            for y in range(self.height - 1, -1, -1)
        ]


def _is_on_edge(width: int, height: int, x: int, y: int) -> bool:
    return x == 0 or y == 0 or x == width - 1 or y == height - 1


def default_noise(seed: Optional[int] = None) -> NoiseFunction:
    """Return a uniform ``[0, 1)`` noise source, deterministic for a fixed seed."""

    rng = random.Random(seed)
    return lambda _x, _y: rng.random()


def initialize(
    width: int,
    height: int,
    fill_probability: float,
    noise: Optional[NoiseFunction] = None,
    seed: Optional[int] = None,
) -> Grid:
    """Return a freshly seeded grid.

    Edge cells are always walls. Every other cell becomes a wall when its
    noise sample exceeds ``1 - fill_probability``. ``noise`` overrides the
    default seeded uniform source; ``seed`` is ignored when it is given.
    """

    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(width, height)
    sample = noise if noise is not None else default_noise(seed)
    cutoff = 1.0 - fill_probability

    grid = Grid.filled(width, height)
    for x in range(width):
        column = grid.cells[x]
        for y in range(height):
            # Sample every cell so custom noise sees the full lattice
            value = sample(x, y)
            if _is_on_edge(width, height, x, y) or value > cutoff:
                column[y] = WALL
    return grid


def count_wall_neighbours(grid: Grid, x: int, y: int) -> int:
    """Count walls among the 8 neighbours of ``(x, y)``; outside cells count as walls."""

    count = 0
    for nx in range(x - 1, x + 2):
        for ny in range(y - 1, y + 2):
            if nx == x and ny == y:
                continue
            if not grid.in_bounds(nx, ny):
                count += 1
            elif grid.cells[nx][ny] == WALL:
                count += 1
    return count


def smooth(grid: Grid, threshold: int) -> Grid:
    """Run one cellular-automaton pass and return the new grid.

    All neighbour counts are read from ``grid`` before any cell of the
    result is written. A count equal to ``threshold`` yields a wall. A
    negative threshold disables smoothing and returns an unchanged copy.
    """

    if threshold < 0:
        return grid.copy()

    result = Grid.filled(grid.width, grid.height)
    for x in range(grid.width):
        column = result.cells[x]
        for y in range(grid.height):
            column[y] = WALL if count_wall_neighbours(grid, x, y) >= threshold else OPEN
    return result


def smooth_cycles(grid: Grid, threshold: int, cycles: int) -> Grid:
    """Apply :func:`smooth` ``cycles`` times."""

    for _ in range(cycles):
        grid = smooth(grid, threshold)
    LOGGER.debug("Smoothed %dx%d grid %d times (threshold=%d)", grid.width, grid.height, cycles, threshold)
    return grid


def add_border(grid: Grid, border_size: int = 1) -> Grid:
    """Return ``grid`` padded with ``border_size`` wall rings on every side."""

    if border_size < 0:
        raise ValueError(f"border_size must be >= 0; got {border_size}")
    width = grid.width + 2 * border_size
    height = grid.height + 2 * border_size
    bordered = Grid.filled(width, height, WALL)
    for x in range(grid.width):
        bordered.cells[x + border_size][border_size:border_size + grid.height] = grid.cells[x]
    return bordered


def generate(
    width: int,
    height: int,
    fill_probability: float,
    threshold: int,
    cycles: int,
    border_size: int = 1,
    noise: Optional[NoiseFunction] = None,
    seed: Optional[int] = None,
) -> Grid:
    """Seed, smooth and frame a grid in one call."""

    grid = initialize(width, height, fill_probability, noise=noise, seed=seed)
    grid = smooth_cycles(grid, threshold, cycles)
    return add_border(grid, border_size)


__all__ = [
    "Grid",
    "InvalidDimensionsError",
    "NoiseFunction",
    "OPEN",
    "WALL",
    "add_border",
    "count_wall_neighbours",
    "default_noise",
    "generate",
    "initialize",
    "smooth",
    "smooth_cycles",
]
