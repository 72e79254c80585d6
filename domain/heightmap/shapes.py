"""Height Map Bounded Context - Polygon Merger.

Turns per-cell footprint polygons into the minimal set of shapes (outer
polygon plus holes) for each (terrain type, height) pair.

Pipeline for one group of cells:
1) Pool every edge of every cell polygon
2) Remove edges shared by two cells (same endpoints, either direction)
3) Trace the remaining edges into closed loops
4) Split loops by orientation: clockwise loops are solid, the rest are holes
5) Assign each hole to the solid polygon it sits in
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Iterable, Sequence

from domain.heightmap.errors import (
    DuplicateCellError,
    HoleParentNotFoundError,
    InvalidEdgeGraphError,
)
from domain.heightmap.repositories import GridGeometry
from domain.heightmap.value_objects import CellRecord, Point, Polygon, Segment, Shape

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
# Downward shift of the hole scan, as a fraction of a cell's height. Keeps the
# scan line off grid-aligned horizontal edges and vertices.
HOLE_SCAN_FRACTION = 0.05


# ---------------------------------------------------------------------------
# Helper: Edge Pool
# ---------------------------------------------------------------------------
def _remove_shared_edges(edges: Sequence[Segment]) -> list[Segment]:
    """Drop every pair of edges that connect the same two endpoints.

    An edge shared by two adjacent cells appears once in each cell, in
    opposite directions. Pairs are matched in input order; the surviving
    edges keep their original order.
    """
    pending: dict[frozenset[Point], int] = {}
    removed: set[int] = set()
    for i, edge in enumerate(edges):
        key = frozenset((edge.p1, edge.p2))
        match = pending.pop(key, None)
        if match is None:
            pending[key] = i
        else:
            removed.update((match, i))
    return [edge for i, edge in enumerate(edges) if i not in removed]


def _trace_loops(edges: Sequence[Segment]) -> list[list[Segment]]:
    """Follow edges end-to-start until each chain returns to its first point.

    Where more than one unused edge starts at the chain's endpoint (two
    regions touching at a single vertex), the most clockwise continuation is
    taken so each loop follows one consistent boundary.

    Raises:
        InvalidEdgeGraphError: If a chain reaches a point with no outgoing edge
    """
    outgoing: dict[Point, list[int]] = defaultdict(list)
    for i, edge in enumerate(edges):
        outgoing[edge.p1].append(i)

    consumed = [False] * len(edges)
    loops: list[list[Segment]] = []

    for first in range(len(edges)):
        if consumed[first]:
            continue
        consumed[first] = True
        chain = [edges[first]]

        while chain[-1].p2 != chain[0].p1:
            last = chain[-1]
            candidates = [i for i in outgoing[last.p2] if not consumed[i]]
            if not candidates:
                raise InvalidEdgeGraphError("Invalid graph detected. Missing edge.")
            if len(candidates) == 1:
                chosen = candidates[0]
            else:
                chosen = min(candidates, key=lambda i: last.angle_between(edges[i]))
            consumed[chosen] = True
            chain.append(edges[chosen])

        loops.append(chain)

    return loops


def _loop_to_polygon(loop: Sequence[Segment]) -> Polygon:
    """Build a polygon from a traced loop, dropping collinear vertices."""
    n = len(loop)
    vertices = [
        loop[i].p1
        for i in range(n)
        if not loop[i - 1].has_same_direction(loop[i])
    ]
    return Polygon(vertices=tuple(vertices))


# ---------------------------------------------------------------------------
# Helper: Hole Parents
# ---------------------------------------------------------------------------
def _find_hole_parent(
    hole: Polygon, solids: Sequence[Polygon], scan_offset: float
) -> int:
    """Return the index of the solid polygon that `hole` is a hole of.

    When several solids contain the hole (nested islands), a horizontal ray is
    cast leftward from just below the hole's topmost vertex; the nearest solid
    edge it crosses belongs to the parent.

    Raises:
        HoleParentNotFoundError: If no solid contains the hole, or the scan
            ray crosses no candidate edge
    """
    containing = [i for i, solid in enumerate(solids) if solid.contains_polygon(hole)]

    if not containing:
        logger.error(
            "No containing polygon for hole with %d vertices at %s (%d solids)",
            len(hole.vertices),
            hole.bounding_box,
            len(solids),
        )
        raise HoleParentNotFoundError(hole, "no containing polygons found")

    if len(containing) == 1:
        return containing[0]

    top_y = hole.bounding_box.min_y
    top_vertex = next(v for v in hole.vertices if v.y == top_y)
    scan_point = top_vertex.offset(dy=scan_offset)

    best_index: int | None = None
    best_x = float("-inf")
    for i in containing:
        for edge in solids[i].edges:
            if not min(edge.p1.y, edge.p2.y) < scan_point.y < max(edge.p1.y, edge.p2.y):
                continue
            crossing_x = edge.intersects_y_at(scan_point.y)
            if crossing_x is not None and best_x < crossing_x < scan_point.x:
                best_x = crossing_x
                best_index = i

    if best_index is None:
        logger.error(
            "Scan ray from (%.3f, %.3f) crossed none of %d containing polygons",
            scan_point.x,
            scan_point.y,
            len(containing),
        )
        raise HoleParentNotFoundError(hole, "no edges intersected horizontal ray")

    return best_index


# ---------------------------------------------------------------------------
# Polygon Merger
# ---------------------------------------------------------------------------
def merge_polygons(
    polygons: Sequence[Polygon],
    terrain_type_id: str,
    height: float,
    hole_scan_offset: float | None = None,
) -> list[Shape]:
    """Combine adjacent cell polygons into as few shapes as possible.

    Args:
        polygons: Cell footprints sharing one terrain type and height
        terrain_type_id: Terrain type stamped on every resulting shape
        height: Height stamped on every resulting shape
        hole_scan_offset: Downward shift used when resolving nested hole
            parents. If None, derived from the smallest input polygon height

    Returns:
        One Shape per solid outer boundary, in trace order

    Raises:
        InvalidEdgeGraphError: If the edge graph is not a set of closed loops
        HoleParentNotFoundError: If a hole cannot be assigned to a solid
    """
    if not polygons:
        return []

    if hole_scan_offset is None:
        cell_height = min(p.bounding_box.height for p in polygons)
        hole_scan_offset = cell_height * HOLE_SCAN_FRACTION

    all_edges = [edge for polygon in polygons for edge in polygon.edges]
    boundary_edges = _remove_shared_edges(all_edges)
    loops = [_loop_to_polygon(loop) for loop in _trace_loops(boundary_edges)]

    solids = [p for p in loops if p.is_clockwise]
    holes = [p for p in loops if not p.is_clockwise]

    holes_by_solid: list[list[Polygon]] = [[] for _ in solids]
    for hole in holes:
        holes_by_solid[_find_hole_parent(hole, solids, hole_scan_offset)].append(hole)

    logger.debug(
        "Merged %d cells of %s@%s into %d shapes (%d holes)",
        len(polygons),
        terrain_type_id,
        height,
        len(solids),
        len(holes),
    )

    return [
        Shape(
            polygon=solid,
            holes=tuple(solid_holes),
            terrain_type_id=terrain_type_id,
            height=height,
        )
        for solid, solid_holes in zip(solids, holes_by_solid)
    ]


# ---------------------------------------------------------------------------
# Main Service: compute_shapes
# ---------------------------------------------------------------------------
def compute_shapes(
    cells: Iterable[CellRecord],
    grid: GridGeometry,
    hole_scan_offset: float | None = None,
) -> list[Shape]:
    """Derive all terrain shapes from a snapshot of cell records.

    Cells are ordered top to bottom, left to right and grouped by
    (terrain type, height); each group is merged independently.

    Args:
        cells: Cell records (no duplicate positions)
        grid: Converts a cell position to its footprint polygon
        hole_scan_offset: Passed through to merge_polygons

    Returns:
        Shapes for every group, in group order

    Raises:
        DuplicateCellError: If two records share a position
        InvalidEdgeGraphError: See merge_polygons
        HoleParentNotFoundError: See merge_polygons
    """
    started = time.perf_counter()

    ordered = sorted(cells, key=lambda c: c.position)
    groups: dict[tuple[str, float], list[CellRecord]] = {}
    seen: set[tuple[int, int]] = set()
    for cell in ordered:
        if cell.position in seen:
            raise DuplicateCellError(cell.position)
        seen.add(cell.position)
        groups.setdefault((cell.terrain_type_id, cell.height), []).append(cell)

    shapes: list[Shape] = []
    for (terrain_type_id, height), group in groups.items():
        polygons = [grid.cell_polygon(*cell.position) for cell in group]
        shapes.extend(
            merge_polygons(polygons, terrain_type_id, height, hole_scan_offset)
        )

    logger.debug(
        "Shape calculation took %.3fms (%d cells, %d shapes)",
        (time.perf_counter() - started) * 1000.0,
        len(ordered),
        len(shapes),
    )
    return shapes
