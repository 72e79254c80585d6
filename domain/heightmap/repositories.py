"""Domain Ports for the Height Map.

Defines interfaces (Protocols) for the collaborators that feed shape
computation and line of sight. Implementations live in infrastructure
(e.g., the square grid adapter). No concrete I/O here.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .value_objects import CellRecord, Polygon, TerrainType


class CellSource(Protocol):
    """Port for the raw per-cell terrain assignments.

    Implementations must not yield two records for the same position.
    """

    def cells(self) -> Iterable[CellRecord]:
        """Return a snapshot of every painted cell."""
        ...


class GridGeometry(Protocol):
    """Port converting grid cell coordinates into pixel-space footprints."""

    def cell_polygon(self, row: int, col: int) -> Polygon:
        """Return the cell's footprint as a clockwise polygon (y-down)."""
        ...


class TerrainTypeRepository(Protocol):
    """Port for terrain type metadata lookup."""

    def get(self, terrain_type_id: str) -> TerrainType | None:
        """Return the terrain type, or None if it no longer exists."""
        ...
