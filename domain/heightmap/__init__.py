"""Height Map Bounded Context.

Responsible for terrain shapes and line of sight over a painted grid:
- Value Objects: Point, Segment, Polygon, Shape, SightLine, Region
- Services: compute_shapes (polygon merger), query_line_of_sight
"""
