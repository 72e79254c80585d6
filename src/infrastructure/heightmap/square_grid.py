"""Square grid adapter for GridGeometry.

Converts (row, col) cell coordinates into pixel-space footprints. Cell (0, 0)
has its top-left corner at the origin; rows grow downward along y and columns
grow rightward along x.
"""

from __future__ import annotations

import math

from domain.heightmap.value_objects import Point, Polygon


class SquareGrid:
    """Infrastructure adapter for square grids.

    Parameters
    ----------
    size: float
        Side length of one cell in pixels. Must be positive.
    """

    def __init__(self, size: float = 100.0) -> None:
        if size <= 0:
            raise ValueError(f"Grid size must be positive, got {size}")
        self.size = size

    def cell_polygon(self, row: int, col: int) -> Polygon:
        """Return the cell footprint, clockwise from the top-left corner."""
        x = col * self.size
        y = row * self.size
        return Polygon(
            vertices=(
                Point(x=x, y=y),
                Point(x=x + self.size, y=y),
                Point(x=x + self.size, y=y + self.size),
                Point(x=x, y=y + self.size),
            )
        )

    def cell_at(self, x: float, y: float) -> tuple[int, int]:
        """Return the (row, col) of the cell containing a pixel position."""
        return (math.floor(y / self.size), math.floor(x / self.size))

    def cell_center(self, row: int, col: int) -> Point:
        return Point(x=(col + 0.5) * self.size, y=(row + 0.5) * self.size)
