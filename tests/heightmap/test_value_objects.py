"""Tests for height map geometry primitives and value objects."""

from __future__ import annotations

import math

import pytest

from domain.heightmap.value_objects import (
    BoundingBox,
    Point,
    Polygon,
    Region,
    RegionBoundary,
    Segment,
    SightLine,
    SightPoint,
)
from tests.heightmap.conftest import make_rect_hole, make_rect_shape

UNIT_SQUARE = [(0, 0), (1, 0), (1, 1), (0, 1)]
L_SHAPE = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]


# ===========================================================================
# Point
# ===========================================================================
def test_point_equality_and_hash_are_by_value():
    assert Point(x=1, y=2) == Point(x=1.0, y=2.0)
    assert len({Point(x=1, y=2), Point(x=1.0, y=2.0)}) == 1


def test_point_offset_returns_new_point():
    p = Point(x=1, y=2)
    assert p.offset(dy=0.5) == Point(x=1, y=2.5)
    assert p == Point(x=1, y=2)


def test_point_is_immutable():
    p = Point(x=1, y=2)
    with pytest.raises(Exception):  # ValidationError for frozen instance
        p.x = 3


# ===========================================================================
# Segment
# ===========================================================================
def test_segment_rejects_zero_length():
    with pytest.raises(ValueError, match="endpoints must differ"):
        Segment.from_coords(1, 1, 1, 1)


def test_segment_intersects_at_crossing():
    hit = Segment.from_coords(0, 0, 2, 2).intersects_at(Segment.from_coords(0, 2, 2, 0))

    assert hit is not None
    assert (hit.x, hit.y) == pytest.approx((1.0, 1.0))
    assert hit.t == pytest.approx(0.5)
    assert hit.u == pytest.approx(0.5)


def test_segment_intersects_at_parallel_is_none():
    a = Segment.from_coords(0, 0, 2, 0)
    assert a.intersects_at(Segment.from_coords(0, 1, 2, 1)) is None
    # Collinear overlap is also treated as parallel
    assert a.intersects_at(Segment.from_coords(1, 0, 3, 0)) is None


def test_segment_intersects_at_outside_range_is_none():
    a = Segment.from_coords(0, 0, 1, 0)
    assert a.intersects_at(Segment.from_coords(2, -1, 2, 1)) is None


def test_segment_intersects_at_endpoint():
    hit = Segment.from_coords(0, 0, 2, 0).intersects_at(Segment.from_coords(2, 0, 2, 2))

    assert hit is not None
    assert hit.t == pytest.approx(1.0)
    assert hit.u == pytest.approx(0.0)


def test_segment_angle_between_turns():
    east = Segment.from_coords(0, 0, 1, 0)

    # y grows downward: heading east then south is a clockwise (right) turn
    assert east.angle_between(Segment.from_coords(1, 0, 1, 1)) == pytest.approx(math.pi / 2)
    assert east.angle_between(Segment.from_coords(1, 0, 2, 0)) == pytest.approx(math.pi)
    north = Segment.from_coords(1, 0, 1, -1)
    assert east.angle_between(north) == pytest.approx(3 * math.pi / 2)


def test_segment_angle_between_is_in_range():
    a = Segment.from_coords(0, 0, -1, -3)
    for other in (
        Segment.from_coords(0, 0, 5, 1),
        Segment.from_coords(0, 0, -2, 7),
        Segment.from_coords(0, 0, 1, 3),
    ):
        assert 0 <= a.angle_between(other) < 2 * math.pi


def test_segment_angle_between_opposite_direction_stays_in_range():
    # Reversing (0,0)->(-1,-3) is a full U-turn; rounding must not yield 2pi
    turn = Segment.from_coords(0, 0, -1, -3).angle_between(Segment.from_coords(0, 0, 1, 3))

    assert 0 <= turn < 2 * math.pi
    assert turn == pytest.approx(0.0, abs=1e-9)


def test_segment_parallel_and_direction():
    a = Segment.from_coords(0, 0, 2, 2)

    assert a.is_parallel_to(Segment.from_coords(5, 0, 6, 1))
    assert a.is_parallel_to(a.inverse())
    assert a.has_same_direction(Segment.from_coords(5, 0, 6, 1))
    assert not a.has_same_direction(a.inverse())
    assert not a.is_parallel_to(Segment.from_coords(0, 0, 1, 0))


def test_segment_contains_point():
    s = Segment.from_coords(0, 0, 2, 2)

    assert s.contains_point(1, 1)
    assert s.contains_point(0, 0)
    assert s.contains_point(2, 2)
    assert not s.contains_point(1, 1.1)
    assert not s.contains_point(3, 3)


def test_segment_intersects_y_at():
    assert Segment.from_coords(0, 0, 2, 4).intersects_y_at(2) == pytest.approx(1.0)
    # Infinite extension: y outside the segment still yields an x
    assert Segment.from_coords(0, 0, 2, 4).intersects_y_at(8) == pytest.approx(4.0)
    assert Segment.from_coords(0, 0, 2, 0).intersects_y_at(0) is None


def test_segment_lerp():
    assert Segment.from_coords(0, 0, 10, 4).lerp(0.25) == Point(x=2.5, y=1.0)


# ===========================================================================
# BoundingBox
# ===========================================================================
def test_bounding_box_rejects_inverted_bounds():
    with pytest.raises(ValueError, match="Invalid x ordering"):
        BoundingBox(min_x=2, min_y=0, max_x=1, max_y=1)


# ===========================================================================
# Polygon
# ===========================================================================
def test_polygon_requires_three_vertices():
    with pytest.raises(ValueError, match=">= 3 vertices"):
        Polygon.from_coords([(0, 0), (1, 0)])


def test_polygon_rejects_repeated_consecutive_vertex():
    with pytest.raises(ValueError, match="repeated consecutive vertex"):
        Polygon.from_coords([(0, 0), (1, 0), (1, 0), (0, 1)])


def test_polygon_edges_form_closed_loop():
    poly = Polygon.from_coords(L_SHAPE)

    assert len(poly.edges) == 6
    assert poly.edges[-1].p2 == poly.edges[0].p1
    for a, b in zip(poly.edges, poly.edges[1:]):
        assert a.p2 == b.p1


def test_polygon_orientation_and_area():
    clockwise = Polygon.from_coords(UNIT_SQUARE)
    counter_clockwise = Polygon.from_coords(list(reversed(UNIT_SQUARE)))

    assert clockwise.is_clockwise
    assert clockwise.signed_area == pytest.approx(1.0)
    assert not counter_clockwise.is_clockwise
    assert counter_clockwise.signed_area == pytest.approx(-1.0)
    assert counter_clockwise.area == pytest.approx(1.0)
    assert Polygon.from_coords(L_SHAPE).area == pytest.approx(3.0)


def test_polygon_bounding_box():
    box = Polygon.from_coords([(1, 5), (4, 2), (3, 7)]).bounding_box

    assert (box.min_x, box.min_y, box.max_x, box.max_y) == (1, 2, 4, 7)
    assert box.height == 5


def test_polygon_contains_point():
    square = Polygon.from_coords(UNIT_SQUARE)

    assert square.contains_point(0.5, 0.5)
    assert not square.contains_point(2, 2)
    assert not square.contains_point(-0.5, 0.5)


def test_polygon_contains_point_on_edge_policy():
    square = Polygon.from_coords(UNIT_SQUARE)

    assert square.contains_point(1, 0.5)
    assert not square.contains_point(1, 0.5, contains_on_edge=False)
    assert square.contains_point(0, 0)
    assert not square.contains_point(0, 0, contains_on_edge=False)


def test_polygon_contains_point_concave():
    poly = Polygon.from_coords(L_SHAPE)

    assert poly.contains_point(0.5, 1.5)
    assert not poly.contains_point(1.5, 1.5)


def test_polygon_contains_polygon():
    big = Polygon.from_coords([(0, 0), (4, 0), (4, 4), (0, 4)])
    small = Polygon.from_coords([(1, 1), (2, 1), (2, 2), (1, 2)])
    touching = Polygon.from_coords([(0, 0), (1, 0), (1, 1), (0, 1)])

    assert big.contains_polygon(small)
    assert big.contains_polygon(touching)
    assert not small.contains_polygon(big)


def test_polygon_previous_and_next_edge():
    poly = Polygon.from_coords(UNIT_SQUARE)
    first, second, _, last = poly.edges

    assert poly.next_edge(first) == second
    assert poly.previous_edge(first) == last
    assert poly.next_edge(last) == first
    assert poly.previous_edge(Segment.from_coords(5, 5, 6, 6)) is None
    assert poly.next_edge(first.inverse()) is None


def test_polygon_is_immutable():
    poly = Polygon.from_coords(UNIT_SQUARE)
    with pytest.raises(Exception):
        poly.vertices = ()


# ===========================================================================
# Shape
# ===========================================================================
def test_shape_contains_point_excludes_holes():
    shape = make_rect_shape(0, 0, 10, 10, holes=(make_rect_hole(4, 4, 6, 6),))

    assert shape.contains_point(1, 1)
    assert not shape.contains_point(5, 5)
    assert not shape.contains_point(11, 5)
    assert shape.area == pytest.approx(96.0)


def test_shape_edges_tag_hole_edges():
    hole = make_rect_hole(4, 4, 6, 6)
    shape = make_rect_shape(0, 0, 10, 10, holes=(hole,))

    tagged = list(shape.edges())

    assert len(tagged) == 8
    assert [h for h, _ in tagged[:4]] == [None] * 4
    assert all(h == hole for h, _ in tagged[4:])


# ===========================================================================
# SightLine and regions
# ===========================================================================
def test_sight_line_height_interpolation():
    line = SightLine(start=SightPoint(x=0, y=0, h=0), end=SightPoint(x=10, y=0, h=4))

    assert line.height_at(0.5) == pytest.approx(2.0)
    assert line.t_at_height(1) == pytest.approx(0.25)
    assert line.point_at(0.5) == Point(x=5, y=0)


def test_sight_line_flat_has_no_height_crossing():
    line = SightLine(start=SightPoint(x=0, y=0, h=3), end=SightPoint(x=10, y=0, h=3))
    assert line.t_at_height(3) is None


def test_sight_line_rejects_same_planar_position():
    with pytest.raises(ValueError, match="must differ"):
        SightLine(start=SightPoint(x=1, y=1, h=0), end=SightPoint(x=1, y=1, h=5))


def test_region_rejects_reversed_bounds():
    with pytest.raises(ValueError, match="must not exceed"):
        Region(
            start=RegionBoundary(x=5, y=0, h=0, t=0.5),
            end=RegionBoundary(x=1, y=0, h=0, t=0.1),
        )
