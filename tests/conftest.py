from __future__ import annotations

import pytest

from cavenav.grid import Grid, add_border

# 7x7 room with a single-cell pillar in the middle; bordered to 9x9 the
# pillar cell sits at world (0, 0, 0).
PILLAR_ROOM = [
    "#######",
    "#.....#",
    "#.....#",
    "#..#..#",
    "#.....#",
    "#.....#",
    "#######",
]

EMPTY_ROOM = [
    "#######",
    "#.....#",
    "#.....#",
    "#.....#",
    "#.....#",
    "#.....#",
    "#######",
]


@pytest.fixture
def pillar_grid() -> Grid:
    return add_border(Grid.from_rows(PILLAR_ROOM))


@pytest.fixture
def empty_room_grid() -> Grid:
    return add_border(Grid.from_rows(EMPTY_ROOM))
