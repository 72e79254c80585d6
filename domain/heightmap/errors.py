"""Height Map Bounded Context - Error Hierarchy.

Custom exceptions for shape computation. All of them indicate input geometry
that is inconsistent with itself; retrying with the same input reproduces the
same failure, so callers should not retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.heightmap.value_objects import Polygon


class HeightMapError(Exception):
    """Base error for height map operations."""


class InvalidEdgeGraphError(HeightMapError):
    """Edge graph could not be traced into closed loops (non-manifold input)."""


class HoleParentNotFoundError(HeightMapError):
    """A hole polygon could not be assigned to exactly one solid polygon.

    Attributes:
        hole: The hole polygon that has no resolvable parent
        reason: Which resolution step failed
    """

    def __init__(self, hole: "Polygon", reason: str) -> None:
        self.hole = hole
        self.reason = reason
        super().__init__(f"Could not find a parent polygon for this hole: {reason}")


class DuplicateCellError(HeightMapError):
    """Cell source yielded the same coordinate more than once."""

    def __init__(self, position: tuple[int, int]) -> None:
        self.position = position
        super().__init__(f"Duplicate cell at position {position}")
