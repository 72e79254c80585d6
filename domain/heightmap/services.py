"""Height Map Bounded Context - Domain Services.

Holds a computed snapshot of terrain shapes for a cell source and answers
queries against it. NO I/O operations - cells, grid geometry and terrain type
metadata come in through the ports in `domain.heightmap.repositories`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from domain.heightmap.line_of_sight import calculate_line_of_sight, flatten_regions
from domain.heightmap.repositories import CellSource, GridGeometry, TerrainTypeRepository
from domain.heightmap.shapes import compute_shapes
from domain.heightmap.value_objects import (
    CellRecord,
    FlatRegion,
    Shape,
    ShapeRegions,
    SightLine,
    SightPoint,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helper: Highest Terrain
# ---------------------------------------------------------------------------
def highest_terrain_at(
    cells: Iterable[CellRecord],
    positions: Iterable[tuple[int, int]],
    terrain_types: TerrainTypeRepository,
) -> float:
    """Return the tallest solid terrain height over the given cell positions.

    Only terrain types that are solid and use height count; zones and
    infinitely tall terrain are ignored.

    Returns:
        Highest height, or 0.0 when no solid terrain covers the positions
    """
    wanted = set(positions)
    highest = 0.0
    for cell in cells:
        if cell.position not in wanted:
            continue
        terrain_type = terrain_types.get(cell.terrain_type_id)
        if terrain_type is None or not terrain_type.uses_height:
            continue
        if not terrain_type.is_solid:
            continue
        highest = max(highest, cell.height)
    return highest


# ---------------------------------------------------------------------------
# HeightMap
# ---------------------------------------------------------------------------
class HeightMap:
    """Snapshot of the terrain shapes derived from a cell source.

    Shapes are rebuilt wholesale by `reload()` and swapped in with a single
    assignment, so queries always see a complete shape tuple. Callers must
    not run `reload()` concurrently with edits to the cell source.
    """

    def __init__(
        self,
        source: CellSource,
        grid: GridGeometry,
        terrain_types: TerrainTypeRepository,
    ) -> None:
        self._source = source
        self._grid = grid
        self._terrain_types = terrain_types
        self._cells: dict[tuple[int, int], CellRecord] = {}
        self._shapes: tuple[Shape, ...] = ()
        self.reload()

    @property
    def shapes(self) -> tuple[Shape, ...]:
        return self._shapes

    def reload(self) -> None:
        """Re-read the cell source and recompute every shape."""
        cells = list(self._source.cells())
        shapes = tuple(compute_shapes(cells, self._grid))
        self._cells = {cell.position: cell for cell in cells}
        self._shapes = shapes
        logger.debug("HeightMap reloaded: %d cells, %d shapes", len(cells), len(shapes))

    def get(self, row: int, col: int) -> CellRecord | None:
        return self._cells.get((row, col))

    def line_of_sight(
        self,
        p1: SightPoint,
        p2: SightPoint,
        include_no_height_terrain: bool = False,
    ) -> list[ShapeRegions]:
        """Intersect the sight line p1 -> p2 with every shape."""
        return calculate_line_of_sight(
            self._shapes,
            SightLine(start=p1, end=p2),
            self._terrain_types,
            include_no_height_terrain,
        )

    def flattened_line_of_sight(
        self,
        p1: SightPoint,
        p2: SightPoint,
        include_no_height_terrain: bool = False,
    ) -> list[FlatRegion]:
        return flatten_regions(self.line_of_sight(p1, p2, include_no_height_terrain))

    def highest_terrain_at(self, positions: Iterable[tuple[int, int]]) -> float:
        return highest_terrain_at(self._cells.values(), positions, self._terrain_types)
