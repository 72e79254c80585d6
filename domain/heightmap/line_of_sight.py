"""Height Map Bounded Context - Line of Sight.

Pure domain logic answering whether a 3D sight line between two points is
blocked, skimmed or clear, and by which terrain.

Each shape is treated as a prism: its footprint (outer polygon minus holes)
extruded up to the shape's height, or infinitely tall when the terrain type
does not use height. The solver walks the ray/edge intersections of one shape
in order of the ray parameter t and keeps three flags:

    in_footprint  the ray is inside the footprint in plan
    on_edge       the ray runs exactly along a boundary edge in plan
    below_roof    the ray is at or below the shape's height

The ray is inside the prism while in the footprint and below the roof, and
skims it while on an edge and below the roof. Every change of state closes a
region. The flattener then merges the regions of all shapes into one ordered
timeline.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from domain.heightmap.errors import InvalidEdgeGraphError
from domain.heightmap.repositories import TerrainTypeRepository
from domain.heightmap.value_objects import (
    EPSILON,
    FlatRegion,
    Polygon,
    Region,
    RegionBoundary,
    Segment,
    Shape,
    ShapeRegions,
    SightLine,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
# Decimal places used to group intersections that share a ray parameter
T_PRECISION = 9


class LineOfSightIntersection(BaseModel):
    """Crossing between a sight line and one boundary edge of a shape.

    A roof crossing (the ray passing through the flat top of the prism) has no
    `u`, `edge` or `hole`.
    """

    x: float
    y: float
    t: float
    u: float | None = None
    edge: Segment | None = None
    hole: Polygon | None = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Helper: Region Scan
# ---------------------------------------------------------------------------
class _RegionScan:
    """Inside/skim state machine for one shape and one sight line.

    Footprint state (inside / skimming an edge in plan) changes at edge
    events; the roof event only changes whether the ray is below the top.
    """

    def __init__(self, shape: Shape, line: SightLine, uses_height: bool) -> None:
        self.shape = shape
        self.line = line
        self.ray = line.segment
        self.inverse_ray = self.ray.inverse()

        start, end = line.start, line.end
        # Starting exactly at roof height counts as below it unless rising
        self.below_roof = (
            not uses_height
            or start.h < shape.height
            or (start.h == shape.height and end.h <= start.h)
        )
        self.in_footprint = shape.polygon.contains_point(
            start.x, start.y, contains_on_edge=False
        ) and not any(h.contains_point(start.x, start.y) for h in shape.holes)
        self.on_edge = any(
            edge.is_parallel_to(self.ray) and edge.contains_point(start.x, start.y)
            for _, edge in shape.edges()
        )
        # A flat ray exactly at the shape's height only ever runs along its top
        self.skims_top = uses_height and start.h == end.h and start.h == shape.height

        self.last = RegionBoundary(x=start.x, y=start.y, h=start.h, t=0.0)
        self.regions: list[Region] = []

    @property
    def is_inside(self) -> bool:
        return self.in_footprint and self.below_roof

    @property
    def is_skimming(self) -> bool:
        return self.on_edge and self.below_roof

    def push_region(
        self, x: float, y: float, t: float, allow_zero_length: bool = False
    ) -> None:
        """Close the current region at t (if inside or skimming) and move on."""
        if not allow_zero_length and abs(t - self.last.t) <= EPSILON:
            return
        position = RegionBoundary(x=x, y=y, h=self.line.height_at(t), t=t)
        if self.is_inside or self.is_skimming:
            self.regions.append(
                Region(
                    start=self.last,
                    end=position,
                    skimmed=self.is_skimming or (self.is_inside and self.skims_top),
                )
            )
        self.last = position

    def handle_roof_crossing(self, hit: LineOfSightIntersection) -> None:
        self.push_region(hit.x, hit.y, hit.t)
        # Past the roof height the ray is below it only if it is descending
        self.below_roof = self.line.end.h < self.line.start.h

    def _adjacent_edge(self, hit: LineOfSightIntersection, edge: Segment) -> Segment:
        owner = hit.hole if hit.hole is not None else self.shape.polygon
        if hit.u is not None and hit.u < EPSILON:
            adjacent = owner.previous_edge(edge)
        else:
            adjacent = owner.next_edge(edge)
        if adjacent is None:
            raise InvalidEdgeGraphError(
                f"Edge {edge} is not part of the polygon it was intersected on"
            )
        return adjacent

    def handle_edge_crossing(self, hit: LineOfSightIntersection) -> None:
        edge = hit.edge
        if edge is None or hit.u is None:
            self.handle_roof_crossing(hit)
            return
        self.push_region(hit.x, hit.y, hit.t)

        if hit.u < EPSILON:
            # Hit the start vertex. The previous edge produced no intersection,
            # so it is parallel to the ray.
            previous = self._adjacent_edge(hit, edge)
            self.on_edge = previous.has_same_direction(self.inverse_ray)
            self.in_footprint = not self.on_edge and previous.angle_between(
                self.ray
            ) < previous.angle_between(edge)

        elif hit.u > 1 - EPSILON:
            following = self._adjacent_edge(hit, edge)
            self.on_edge = following.has_same_direction(self.ray)
            self.in_footprint = not self.on_edge and edge.angle_between(
                self.ray
            ) < edge.angle_between(following)

        else:
            self.in_footprint = not self.in_footprint

    def handle_vertex(
        self, first: LineOfSightIntersection, second: LineOfSightIntersection
    ) -> None:
        """Two edges hit at the same t: the ray met the vertex joining them."""
        edge1, edge2 = first.edge, second.edge
        if edge1 is not None and edge2 is not None and edge1.p1 == edge2.p2:
            edge1, edge2 = edge2, edge1

        if edge1 is None or edge2 is None or edge1.p2 != edge2.p1:
            # Unrelated events that happen to share t
            self.handle_edge_crossing(first)
            self.handle_edge_crossing(second)
            return

        # The ray crosses the boundary only if exactly one of its two
        # directions points into the interior wedge at the vertex.
        wedge = edge1.angle_between(edge2)
        ray_inside = edge1.angle_between(self.ray) < wedge
        inverse_inside = edge1.angle_between(self.inverse_ray) < wedge
        if ray_inside != inverse_inside:
            self.handle_edge_crossing(first)
        else:
            self.push_region(first.x, first.y, first.t, allow_zero_length=True)


# ---------------------------------------------------------------------------
# Line-of-Sight Solver
# ---------------------------------------------------------------------------
def shape_intersections(
    shape: Shape, line: SightLine, uses_height: bool
) -> list[Region]:
    """Determine where a sight line is inside or skimming one shape.

    Args:
        shape: Shape to test against
        line: Sight line from start to end
        uses_height: False treats the shape as infinitely tall

    Returns:
        Regions ordered by t (possibly empty)
    """
    start, end = line.start, line.end

    # A ray above the shape at both ends never gets low enough to touch it
    if uses_height and shape.height < start.h and shape.height < end.h:
        return []

    ray = line.segment
    edge_hits: list[LineOfSightIntersection] = []
    for hole, edge in shape.edges():
        hit = ray.intersects_at(edge)
        if hit is None:
            continue
        edge_hits.append(
            LineOfSightIntersection(
                x=hit.x, y=hit.y, t=hit.t, u=hit.u, edge=edge, hole=hole
            )
        )

    groups: dict[float, list[LineOfSightIntersection]] = {}
    for hit in edge_hits:
        groups.setdefault(round(hit.t, T_PRECISION), []).append(hit)
    ordered = sorted(groups.items(), key=lambda item: item[0])

    # The ray passing the roof height never joins an edge group; on equal t it
    # sorts after it. At t = 0 the starting state already accounts for it.
    if uses_height and start.h != end.h:
        t = line.t_at_height(shape.height)
        if t is not None and EPSILON < t <= 1:
            point = line.point_at(t)
            roof = LineOfSightIntersection(x=point.x, y=point.y, t=t)
            ordered.append((round(t, T_PRECISION), [roof]))
            ordered.sort(key=lambda item: item[0])

    scan = _RegionScan(shape, line, uses_height)
    for _, hits in ordered:
        if len(hits) == 1:
            scan.handle_edge_crossing(hits[0])
        elif len(hits) == 2:
            scan.handle_vertex(hits[0], hits[1])
        else:
            logger.warning(
                "Line of sight ray met shape %s@%s with %d intersections at "
                "t=%.6f; this case is not supported and the result may be "
                "inaccurate",
                shape.terrain_type_id,
                shape.height,
                len(hits),
                hits[0].t,
            )

    scan.push_region(end.x, end.y, 1.0)
    return scan.regions


# ---------------------------------------------------------------------------
# Region Flattener
# ---------------------------------------------------------------------------
def flatten_regions(shape_regions: Sequence[ShapeRegions]) -> list[FlatRegion]:
    """Flatten per-shape regions of one sight line into a single timeline.

    Every region start/end is a boundary. Between consecutive boundaries the
    shapes with a region covering the span are "active"; with one active shape
    its region is copied, with several (the ray runs between adjacent shapes)
    the span is only a skim if the ray is at or above one of them.

    Returns:
        Non-overlapping regions ordered by t
    """
    boundaries: dict[float, RegionBoundary] = {}
    for entry in shape_regions:
        for region in entry.regions:
            boundaries.setdefault(region.start.t, region.start)
            boundaries.setdefault(region.end.t, region.end)

    flat: list[FlatRegion] = []
    last: RegionBoundary | None = None  # first boundary never has active regions

    for boundary in sorted(boundaries.values(), key=lambda b: b.t):
        active: list[tuple[Shape, Region]] = []
        for entry in shape_regions:
            for region in entry.regions:
                if region.start.t < boundary.t <= region.end.t:
                    active.append((entry.shape, region))
                    break

        if active and last is not None:
            if len(active) == 1:
                skimmed = active[0][1].skimmed
            else:
                skimmed = any(boundary.h >= shape.height for shape, _ in active)
            flat.append(
                FlatRegion(
                    start=last,
                    end=boundary,
                    skimmed=skimmed,
                    # No meaningful winner between overlapping shapes
                    terrain_type_id=active[0][0].terrain_type_id,
                    height=max(shape.height for shape, _ in active),
                )
            )

        last = boundary

    return flat


# ---------------------------------------------------------------------------
# Main Services
# ---------------------------------------------------------------------------
def calculate_line_of_sight(
    shapes: Iterable[Shape],
    line: SightLine,
    terrain_types: TerrainTypeRepository,
    include_no_height_terrain: bool = False,
) -> list[ShapeRegions]:
    """Intersect a sight line with every shape.

    Shapes whose terrain type no longer exists are ignored, as are terrain
    types without height unless `include_no_height_terrain` is set (they are
    then treated as infinitely tall).

    Returns:
        Only the shapes that were intersected, with their regions
    """
    results: list[ShapeRegions] = []
    for shape in shapes:
        terrain_type = terrain_types.get(shape.terrain_type_id)
        if terrain_type is None:
            continue
        if not terrain_type.uses_height and not include_no_height_terrain:
            continue

        regions = shape_intersections(shape, line, terrain_type.uses_height)
        if regions:
            results.append(ShapeRegions(shape=shape, regions=tuple(regions)))

    logger.debug(
        "Line of sight (%.1f, %.1f, %.1f) -> (%.1f, %.1f, %.1f) hit %d shapes",
        line.start.x,
        line.start.y,
        line.start.h,
        line.end.x,
        line.end.y,
        line.end.h,
        len(results),
    )
    return results


def query_line_of_sight(
    line: SightLine,
    shapes: Iterable[Shape],
    terrain_types: TerrainTypeRepository,
    include_shapes_without_height: bool = False,
) -> list[FlatRegion]:
    """Compute the flattened visibility timeline of a sight line.

    An empty result means a clear line of sight.

    Example:
        >>> line = SightLine(
        ...     start=SightPoint(x=0, y=5, h=0), end=SightPoint(x=10, y=5, h=4)
        ... )
        >>> regions = query_line_of_sight(line, shapes, terrain_types)
        >>> blocked = any(not r.skimmed for r in regions)
    """
    return flatten_regions(
        calculate_line_of_sight(
            shapes, line, terrain_types, include_shapes_without_height
        )
    )
