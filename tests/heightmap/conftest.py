"""Pytest configuration for height map tests.

Domain tests build cells, polygons and shapes directly; the fixtures here
provide the in-memory adapters used wherever a port is needed.
"""

from __future__ import annotations

import pytest

from domain.heightmap.value_objects import CellRecord, Polygon, Shape, TerrainType
from infrastructure.heightmap import InMemoryTerrainTypeRepository, SquareGrid


@pytest.fixture
def unit_grid() -> SquareGrid:
    """Grid with 1px cells, so pixel coordinates equal cell indices."""
    return SquareGrid(size=1.0)


@pytest.fixture
def terrain_types() -> InMemoryTerrainTypeRepository:
    """Repository with a solid wall, a second solid type, a zone and a no-height type."""
    return InMemoryTerrainTypeRepository(
        [
            TerrainType(id="wall", name="Wall"),
            TerrainType(id="rock", name="Rock"),
            TerrainType(id="fog", name="Fog", is_solid=False),
            TerrainType(id="tower", name="Tower", uses_height=False),
        ]
    )


def make_cells(
    positions: list[tuple[int, int]], terrain_type_id: str = "wall", height: float = 2
) -> list[CellRecord]:
    """Build cell records sharing one terrain type and height."""
    return [
        CellRecord(position=p, terrain_type_id=terrain_type_id, height=height)
        for p in positions
    ]


def cells_from_pattern(
    pattern: str, terrain_type_id: str = "wall", height: float = 2
) -> list[CellRecord]:
    """Build cell records from an ASCII pattern where 'X' marks a painted cell."""
    rows = [line.strip() for line in pattern.strip().splitlines()]
    return make_cells(
        [(r, c) for r, line in enumerate(rows) for c, ch in enumerate(line) if ch == "X"],
        terrain_type_id,
        height,
    )


def make_rect_shape(
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    height: float = 2,
    terrain_type_id: str = "wall",
    holes: tuple[Polygon, ...] = (),
) -> Shape:
    """Build a rectangular shape with a clockwise outer polygon."""
    return Shape(
        polygon=Polygon.from_coords([(x1, y1), (x2, y1), (x2, y2), (x1, y2)]),
        holes=holes,
        terrain_type_id=terrain_type_id,
        height=height,
    )


def make_rect_hole(x1: float, y1: float, x2: float, y2: float) -> Polygon:
    """Build a counter-clockwise rectangular hole polygon."""
    return Polygon.from_coords([(x2, y1), (x1, y1), (x1, y2), (x2, y2)])
