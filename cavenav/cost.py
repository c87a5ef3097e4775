"""Distance and heuristic utilities for cavenav path search."""

from __future__ import annotations

import math
from typing import Callable

from .path import Vec3

Heuristic = Callable[[Vec3, Vec3], float]
"""Estimate of the remaining cost between two node positions."""


def squared_distance(a: Vec3, b: Vec3) -> float:
    """Return the squared Euclidean distance between ``a`` and ``b``."""

    dx = a[0] - b[0]
    dy = a[1] - b[1]
    dz = a[2] - b[2]
    return dx * dx + dy * dy + dz * dz


def euclidean_distance(a: Vec3, b: Vec3) -> float:
    """Return the straight-line distance between ``a`` and ``b``.

    Edge weights are plain Euclidean lengths, so this never overestimates
    the remaining cost and keeps A* optimal. The squared distance must not
    be used as a heuristic for the same reason.
    """

    return math.sqrt(squared_distance(a, b))


def zero_heuristic(_a: Vec3, _b: Vec3) -> float:
    """Return ``0``; turns A* into Dijkstra's algorithm."""

    return 0.0


DEFAULT_HEURISTIC: Heuristic = euclidean_distance


__all__ = [
    "DEFAULT_HEURISTIC",
    "Heuristic",
    "euclidean_distance",
    "squared_distance",
    "zero_heuristic",
]
