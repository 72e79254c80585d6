"""Height Map Bounded Context - Value Objects.

Immutable geometry primitives and the records that flow through shape
computation and line of sight. All validation occurs at construction time via
Pydantic; derived polygon properties are computed once when the polygon is
built.

Coordinate convention: planar pixel space with y increasing downward. An
angle of 0 points along +x and increasing angles rotate visually clockwise.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Any

import numpy as np
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# Numeric Constants
# ---------------------------------------------------------------------------
# Tolerance for derived (non grid-aligned) floating point comparisons
EPSILON = 1e-9

_TAU = 2 * math.pi


# ---------------------------------------------------------------------------
# Point
# ---------------------------------------------------------------------------
class Point(BaseModel):
    """Planar position (Value Object).

    Equality is exact and points are hashable, so they can key the edge graph
    built while merging grid-aligned cell polygons.
    """

    x: float
    y: float

    model_config = ConfigDict(frozen=True)

    def offset(self, dx: float = 0.0, dy: float = 0.0) -> "Point":
        return Point(x=self.x + dx, y=self.y + dy)


class BoundingBox(BaseModel):
    """Axis-aligned extent of a polygon (Value Object)."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        if self.min_x > self.max_x:
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} > max_x={self.max_x}"
            )
        if self.min_y > self.max_y:
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} > max_y={self.max_y}"
            )
        return self

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, x: float, y: float) -> bool:
        return (
            self.min_x - EPSILON <= x <= self.max_x + EPSILON
            and self.min_y - EPSILON <= y <= self.max_y + EPSILON
        )


class SegmentIntersection(BaseModel):
    """Crossing of two segments.

    `t` is the parameter along the first segment and `u` along the second,
    both clamped into [0, 1].
    """

    x: float
    y: float
    t: float = Field(ge=0, le=1)
    u: float = Field(ge=0, le=1)

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Segment
# ---------------------------------------------------------------------------
class Segment(BaseModel):
    """Directed edge from p1 to p2 (Value Object).

    Invariants:
        SG-1: p1 != p2 (zero-length segments have no direction)
    """

    p1: Point
    p2: Point

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_length(self) -> "Segment":
        if self.p1 == self.p2:
            raise ValueError(f"Segment endpoints must differ, got {self.p1}")
        return self

    @classmethod
    def from_coords(cls, x1: float, y1: float, x2: float, y2: float) -> "Segment":
        return cls(p1=Point(x=x1, y=y1), p2=Point(x=x2, y=y2))

    @property
    def dx(self) -> float:
        return self.p2.x - self.p1.x

    @property
    def dy(self) -> float:
        return self.p2.y - self.p1.y

    @property
    def length(self) -> float:
        return math.hypot(self.dx, self.dy)

    @property
    def angle(self) -> float:
        """Direction in radians, in (-pi, pi]."""
        return math.atan2(self.dy, self.dx)

    def inverse(self) -> "Segment":
        return Segment(p1=self.p2, p2=self.p1)

    def lerp(self, t: float) -> Point:
        return Point(x=self.p1.x + self.dx * t, y=self.p1.y + self.dy * t)

    def is_parallel_to(self, other: "Segment") -> bool:
        cross = self.dx * other.dy - self.dy * other.dx
        return abs(cross) <= EPSILON * self.length * other.length

    def has_same_direction(self, other: "Segment") -> bool:
        """True if both segments are parallel and point the same way."""
        dot = self.dx * other.dx + self.dy * other.dy
        return dot > 0 and self.is_parallel_to(other)

    def contains_point(self, x: float, y: float) -> bool:
        """Check whether (x, y) lies on this segment (endpoints included)."""
        px = x - self.p1.x
        py = y - self.p1.y
        length_sq = self.dx * self.dx + self.dy * self.dy
        cross = self.dx * py - self.dy * px
        if abs(cross) > EPSILON * math.sqrt(length_sq):
            return False
        along = (px * self.dx + py * self.dy) / length_sq
        return -EPSILON <= along <= 1 + EPSILON

    def intersects_at(self, other: "Segment") -> SegmentIntersection | None:
        """Intersect two segments using the parametric line formula.

        Solves p1 + t*r = q1 + u*s. Returns None when the segments are
        parallel or when the crossing lies outside either segment.

        Args:
            other: Segment to intersect with

        Returns:
            SegmentIntersection with `t` along self and `u` along other
        """
        rx, ry = self.dx, self.dy
        sx, sy = other.dx, other.dy
        denom = rx * sy - ry * sx
        if denom == 0 or self.is_parallel_to(other):
            return None

        qx = other.p1.x - self.p1.x
        qy = other.p1.y - self.p1.y
        t = (qx * sy - qy * sx) / denom
        u = (qx * ry - qy * rx) / denom

        if t < -EPSILON or t > 1 + EPSILON or u < -EPSILON or u > 1 + EPSILON:
            return None

        t = min(max(t, 0.0), 1.0)
        u = min(max(u, 0.0), 1.0)
        return SegmentIntersection(
            x=self.p1.x + rx * t, y=self.p1.y + ry * t, t=t, u=u
        )

    def angle_between(self, other: "Segment") -> float:
        """Turn angle from this segment into `other`, in [0, 2pi).

        Measured visually counter-clockwise from the reverse of this segment's
        direction to `other`'s direction, as if `other` started where this
        segment ends. A straight continuation is pi, a right-hand (clockwise)
        turn is less than pi. For a clockwise boundary, directions with a
        smaller angle than the next edge point into the interior.
        """
        turn = (self.angle + math.pi - other.angle) % _TAU
        # A tiny negative difference wraps to exactly 2pi in floating point
        return 0.0 if turn >= _TAU else turn

    def intersects_y_at(self, y: float) -> float | None:
        """X coordinate where the infinite extension of this segment meets y.

        Returns None for horizontal segments.
        """
        if self.dy == 0:
            return None
        return self.p1.x + (y - self.p1.y) * self.dx / self.dy


# ---------------------------------------------------------------------------
# Polygon
# ---------------------------------------------------------------------------
class Polygon(BaseModel):
    """Closed, simple loop of vertices (Value Object).

    Edges run from each vertex to the next, wrapping from the last vertex back
    to the first. Edges, bounding box and orientation are derived once at
    construction.

    Invariants:
        PG-1: len(vertices) >= 3
        PG-2: consecutive vertices differ (every edge has a direction)
        PG-3: edges[-1].p2 == edges[0].p1 (closed loop)
    """

    vertices: tuple[Point, ...]

    model_config = ConfigDict(frozen=True)

    _edges: tuple[Segment, ...] = PrivateAttr(default=())
    _edge_index: dict[Segment, int] = PrivateAttr(default_factory=dict)
    _bounding_box: BoundingBox = PrivateAttr()
    _signed_area: float = PrivateAttr(default=0.0)

    @field_validator("vertices")
    @classmethod
    def validate_vertices(cls, vertices: tuple[Point, ...]) -> tuple[Point, ...]:
        if len(vertices) < 3:
            raise ValueError(f"Polygon must have >= 3 vertices, got {len(vertices)}")
        for i, vertex in enumerate(vertices):
            if vertex == vertices[(i + 1) % len(vertices)]:
                raise ValueError(f"Polygon has repeated consecutive vertex {vertex}")
        return vertices

    def model_post_init(self, __context: Any) -> None:
        n = len(self.vertices)
        edges = tuple(
            Segment(p1=self.vertices[i], p2=self.vertices[(i + 1) % n])
            for i in range(n)
        )
        self._edges = edges
        self._edge_index = {edge: i for i, edge in enumerate(edges)}

        xs = np.fromiter((v.x for v in self.vertices), dtype=np.float64, count=n)
        ys = np.fromiter((v.y for v in self.vertices), dtype=np.float64, count=n)
        self._bounding_box = BoundingBox(
            min_x=float(xs.min()),
            min_y=float(ys.min()),
            max_x=float(xs.max()),
            max_y=float(ys.max()),
        )
        # Shoelace formula; positive means clockwise in y-down coordinates
        self._signed_area = 0.5 * float(
            np.dot(xs, np.roll(ys, -1)) - np.dot(np.roll(xs, -1), ys)
        )

    @classmethod
    def from_coords(cls, coords: list[tuple[float, float]]) -> "Polygon":
        return cls(vertices=tuple(Point(x=x, y=y) for x, y in coords))

    @property
    def edges(self) -> tuple[Segment, ...]:
        return self._edges

    @property
    def bounding_box(self) -> BoundingBox:
        return self._bounding_box

    @property
    def signed_area(self) -> float:
        return self._signed_area

    @property
    def area(self) -> float:
        return abs(self._signed_area)

    @property
    def is_clockwise(self) -> bool:
        return self._signed_area > 0

    def previous_edge(self, edge: Segment) -> Segment | None:
        """Return the edge ending where `edge` starts, or None if not ours."""
        i = self._edge_index.get(edge)
        if i is None:
            return None
        return self._edges[i - 1]

    def next_edge(self, edge: Segment) -> Segment | None:
        """Return the edge starting where `edge` ends, or None if not ours."""
        i = self._edge_index.get(edge)
        if i is None:
            return None
        return self._edges[(i + 1) % len(self._edges)]

    def contains_point(
        self, x: float, y: float, contains_on_edge: bool = True
    ) -> bool:
        """Crossing-number point-in-polygon test.

        Args:
            x: Point x coordinate
            y: Point y coordinate
            contains_on_edge: Result for points lying exactly on an edge

        Returns:
            True if the point is inside (or on the boundary, per policy)
        """
        if not self.bounding_box.contains(x, y):
            return False
        if any(edge.contains_point(x, y) for edge in self._edges):
            return contains_on_edge

        inside = False
        for edge in self._edges:
            a, b = edge.p1, edge.p2
            if (a.y > y) != (b.y > y):
                crossing_x = (b.x - a.x) * (y - a.y) / (b.y - a.y) + a.x
                if x < crossing_x:
                    inside = not inside
        return inside

    def contains_polygon(self, other: "Polygon") -> bool:
        """Check whether every vertex of `other` is inside or on this polygon."""
        return all(self.contains_point(v.x, v.y) for v in other.vertices)


# ---------------------------------------------------------------------------
# Cells and terrain types
# ---------------------------------------------------------------------------
class CellRecord(BaseModel):
    """Terrain assigned to one grid cell (Value Object).

    Invariants:
        CR-1: height >= 0
        CR-2: terrain_type_id is not empty
    """

    position: tuple[int, int]  # (row, col)
    terrain_type_id: str = Field(min_length=1)
    height: float = Field(default=1.0, ge=0)

    model_config = ConfigDict(frozen=True)


class TerrainType(BaseModel):
    """Terrain type metadata (Value Object).

    `uses_height` False means the terrain is treated as infinitely tall.
    `is_solid` False marks an informational zone rather than an obstacle.
    """

    id: str = Field(min_length=1)
    name: str = ""
    uses_height: bool = True
    is_solid: bool = True

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------
class Shape(BaseModel):
    """Merged terrain region: one outer polygon plus nested holes.

    Produced by the polygon merger and never patched afterwards; a changed
    cell set yields a new list of shapes.
    """

    polygon: Polygon
    holes: tuple[Polygon, ...] = ()
    terrain_type_id: str
    height: float

    model_config = ConfigDict(frozen=True)

    @property
    def area(self) -> float:
        return self.polygon.area - sum(hole.area for hole in self.holes)

    def contains_point(self, x: float, y: float) -> bool:
        """Inside (or on) the outer polygon and not inside any hole."""
        return self.polygon.contains_point(x, y) and not any(
            hole.contains_point(x, y) for hole in self.holes
        )

    def edges(self) -> Iterator[tuple[Polygon | None, Segment]]:
        """Yield (hole, edge) for every boundary edge; hole is None for outer."""
        for edge in self.polygon.edges:
            yield None, edge
        for hole in self.holes:
            for edge in hole.edges:
                yield hole, edge


# ---------------------------------------------------------------------------
# Line of sight
# ---------------------------------------------------------------------------
class SightPoint(BaseModel):
    """Ray endpoint: planar position plus vertical height."""

    x: float
    y: float
    h: float

    model_config = ConfigDict(frozen=True)


class SightLine(BaseModel):
    """3D query ray between two sight points (Value Object).

    Height is linearly interpolated along the ray parameter t in [0, 1].

    Invariants:
        SL-1: start and end differ in planar position
    """

    start: SightPoint
    end: SightPoint

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_endpoints(self) -> "SightLine":
        if self.start.x == self.end.x and self.start.y == self.end.y:
            raise ValueError("Sight line endpoints must differ in planar position")
        return self

    @property
    def segment(self) -> Segment:
        return Segment.from_coords(self.start.x, self.start.y, self.end.x, self.end.y)

    def height_at(self, t: float) -> float:
        return (self.end.h - self.start.h) * t + self.start.h

    def t_at_height(self, h: float) -> float | None:
        """Ray parameter where the ray reaches height `h` (None if flat)."""
        if self.start.h == self.end.h:
            return None
        return (h - self.start.h) / (self.end.h - self.start.h)

    def point_at(self, t: float) -> Point:
        return self.segment.lerp(t)


class RegionBoundary(BaseModel):
    """Position on a sight line where a region starts or ends."""

    x: float
    y: float
    h: float
    t: float = Field(ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class Region(BaseModel):
    """Contiguous t-interval of a sight line that is inside or skims a shape.

    Invariants:
        RG-1: start.t <= end.t
    """

    start: RegionBoundary
    end: RegionBoundary
    skimmed: bool = False

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_order(self) -> "Region":
        if self.start.t > self.end.t:
            raise ValueError(
                f"Region start t ({self.start.t}) must not exceed end t ({self.end.t})"
            )
        return self


class ShapeRegions(BaseModel):
    """Regions of one sight line against one shape."""

    shape: Shape
    regions: tuple[Region, ...]

    model_config = ConfigDict(frozen=True)


class FlatRegion(Region):
    """Region of the flattened timeline, tagged with the blocking terrain."""

    terrain_type_id: str
    height: float
