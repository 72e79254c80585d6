"""In-memory adapters for CellSource and TerrainTypeRepository.

Hold immutable snapshots handed over by the host; nothing is persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from domain.heightmap.errors import DuplicateCellError
from domain.heightmap.value_objects import CellRecord, TerrainType

# Module-level logger (reused across all calls)
logger = logging.getLogger(__name__)


class InMemoryCellSource:
    """Cell snapshot kept in position order (top to bottom, left to right).

    Raises:
        DuplicateCellError: If two records share a position
    """

    def __init__(self, records: Iterable[CellRecord] = ()) -> None:
        cells: dict[tuple[int, int], CellRecord] = {}
        for record in records:
            if record.position in cells:
                raise DuplicateCellError(record.position)
            cells[record.position] = record
        self._cells = tuple(sorted(cells.values(), key=lambda c: c.position))
        logger.debug("Cell snapshot holds %d cells", len(self._cells))

    @classmethod
    def from_rows(
        cls, rows: Iterable[tuple[int, int, str, float]]
    ) -> "InMemoryCellSource":
        """Build from (row, col, terrain_type_id, height) tuples."""
        return cls(
            CellRecord(position=(row, col), terrain_type_id=terrain_type_id, height=height)
            for row, col, terrain_type_id, height in rows
        )

    def cells(self) -> tuple[CellRecord, ...]:
        return self._cells


class InMemoryTerrainTypeRepository:
    """Terrain type lookup by id."""

    def __init__(self, terrain_types: Iterable[TerrainType] = ()) -> None:
        self._types = {t.id: t for t in terrain_types}

    def get(self, terrain_type_id: str) -> TerrainType | None:
        return self._types.get(terrain_type_id)
