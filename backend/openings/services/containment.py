"""
Centroid containment test for candidate openings.

A candidate is accepted when the plain average of its vertices falls
inside the host boundary.  This does not prove that the whole candidate
is inside the host; candidates come from intersections with the host's
own prism and therefore already sit within or right at its boundary, so
the centroid test is enough to discard stray loops.

The host boundary and the test point are expressed in a 2D basis built
from the host's first three vertices and tested with even-odd ray
casting, vectorised with numpy.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

import numpy as np

from .contours import Polygon
from .planes import Edge, Point3, cross, length, loop_start_points, normalize, sub, to_plane_uv


def centroid(polygon: Union[Polygon, Sequence[Point3]]) -> Point3:
    """Unweighted mean of the polygon's distinct vertices."""
    pts = polygon.vertices if isinstance(polygon, Polygon) else list(polygon)
    if not pts:
        raise ValueError("cannot take the centroid of an empty polygon")
    arr = np.asarray(pts, dtype=float)
    mean = arr.mean(axis=0)
    return (float(mean[0]), float(mean[1]), float(mean[2]))


def point_in_loop(loop: Union[Polygon, Iterable[Edge]], point: Point3) -> bool:
    """Return True if ``point`` lies inside the closed ``loop``.

    Points exactly on the boundary may fall either way.  Loops with fewer
    than three vertices, or whose first three vertices are colinear,
    contain nothing.
    """
    pts = loop_start_points(loop.edges if isinstance(loop, Polygon) else loop)
    if len(pts) < 3:
        return False
    n = cross(sub(pts[1], pts[0]), sub(pts[2], pts[0]))
    if length(n) == 0.0 or length(sub(pts[1], pts[0])) == 0.0:
        return False
    n = normalize(n)
    u = normalize(sub(pts[1], pts[0]))
    w = cross(n, u)

    poly = np.array([to_plane_uv(p, pts[0], u, w) for p in pts], dtype=float)
    px, py = to_plane_uv(point, pts[0], u, w)

    xi, yi = poly[:, 0], poly[:, 1]
    # Previous vertex for each i, matching the (i, j = i - 1) edge walk.
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    straddles = (yi > py) != (yj > py)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
    crossings = straddles & (px < x_cross)
    return bool(np.count_nonzero(crossings) % 2 == 1)
