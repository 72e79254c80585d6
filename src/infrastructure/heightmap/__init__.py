"""Infrastructure adapters for the height map bounded context.

This module provides the concrete implementations of the height map ports:
square grid geometry and in-memory cell / terrain type snapshots.
"""

from .memory import InMemoryCellSource, InMemoryTerrainTypeRepository
from .square_grid import SquareGrid

__all__ = ["InMemoryCellSource", "InMemoryTerrainTypeRepository", "SquareGrid"]
