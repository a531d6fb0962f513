"""
Plane primitives, vector helpers and plane fitting.

Points and vectors are plain 3-tuples of floats so that the contour code
stays independent of any CAD kernel types.  A ``Plane`` is an origin on
the plane plus a unit normal.  ``fit_plane`` derives the plane of a host
boundary from the first pair of non-parallel directions found among its
vertices, and ``project_edges_to_plane`` snaps candidate edges back onto
the plane of a host boundary to remove drift introduced by solid
boolean operations.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

Point3 = Tuple[float, float, float]

# Cross-product magnitude below which two directions are treated as parallel
# when fitting a plane.
PLANE_FIT_TOL = 1e-6


@dataclass(frozen=True)
class Edge:
    """A bounded straight segment between two points."""

    start: Point3
    end: Point3

    @property
    def length(self) -> float:
        return distance(self.start, self.end)

    def reversed(self) -> "Edge":
        return Edge(self.end, self.start)


@dataclass(frozen=True)
class Plane:
    """A plane through ``origin`` with unit ``normal``."""

    origin: Point3
    normal: Point3


def dot(a: Point3, b: Point3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def sub(a: Point3, b: Point3) -> Point3:
    """Subtract two 3D vectors (a - b)."""
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def add(a: Point3, b: Point3) -> Point3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def scale(a: Point3, s: float) -> Point3:
    return (a[0] * s, a[1] * s, a[2] * s)


def cross(a: Point3, b: Point3) -> Point3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Point3) -> float:
    return math.sqrt(dot(a, a))


def normalize(a: Point3) -> Point3:
    """Return ``a`` scaled to unit length.

    Raises:
        ValueError: If ``a`` has zero length.
    """
    n = length(a)
    if n == 0.0:
        raise ValueError("cannot normalise a zero-length vector")
    return (a[0] / n, a[1] / n, a[2] / n)


def distance(a: Point3, b: Point3) -> float:
    return length(sub(a, b))


def points_close(a: Point3, b: Point3, tol: float) -> bool:
    """Tolerance based point equality used everywhere instead of ``==``."""
    return distance(a, b) <= tol


def as_point(p: Sequence[float]) -> Point3:
    return (float(p[0]), float(p[1]), float(p[2]))


def loop_start_points(boundary: Iterable[Union[Edge, Point3]]) -> List[Point3]:
    """Return the start point of every edge (points pass through unchanged)."""
    pts: List[Point3] = []
    for item in boundary:
        if isinstance(item, Edge):
            pts.append(item.start)
        else:
            pts.append(as_point(item))
    return pts


def fit_plane(boundary: Iterable[Union[Edge, Point3]]) -> Optional[Plane]:
    """Fit a plane to an ordered closed boundary.

    Scans vertex pairs ``(i, i+1)`` and chords ``(i, j)`` with ``j > i+1``
    and returns the plane through ``p[i]`` whose normal is the first cross
    product longer than :data:`PLANE_FIT_TOL`.  The first satisfying pair
    wins, so the result depends on vertex order.

    Args:
        boundary: Edges (start points are used) or points of the loop.

    Returns:
        The fitted plane, or ``None`` if fewer than three points were
        supplied or every direction is parallel.
    """
    pts = loop_start_points(boundary)
    if len(pts) < 3:
        return None
    for i in range(len(pts) - 2):
        v1 = sub(pts[i + 1], pts[i])
        for j in range(i + 2, len(pts)):
            v2 = sub(pts[j], pts[i])
            n = cross(v1, v2)
            if length(n) > PLANE_FIT_TOL:
                return Plane(origin=pts[i], normal=normalize(n))
    return None


def plane_from_three_points(points: Sequence[Point3]) -> Optional[Plane]:
    """Plane through ``points[0]`` with normal ``(p1 - p0) x (p2 - p0)``."""
    if len(points) < 3:
        return None
    n = cross(sub(points[1], points[0]), sub(points[2], points[0]))
    if length(n) <= PLANE_FIT_TOL:
        return None
    return Plane(origin=points[0], normal=normalize(n))


def project_point_to_plane(p: Point3, plane: Plane) -> Point3:
    """Orthogonally project ``p`` onto ``plane``."""
    d = dot(sub(p, plane.origin), plane.normal)
    return sub(p, scale(plane.normal, d))


def signed_distance_to_plane(p: Point3, plane: Plane) -> float:
    return dot(sub(p, plane.origin), plane.normal)


def plane_basis(plane: Plane, direction: Point3) -> Tuple[Point3, Point3]:
    """Return an in-plane orthonormal basis ``(u, w)`` with ``w = n x u``.

    ``u`` is ``direction`` with its normal component removed.
    """
    n = plane.normal
    u = normalize(sub(direction, scale(n, dot(n, direction))))
    w = normalize(cross(n, u))
    return u, w


def to_plane_uv(p: Point3, origin: Point3, u: Point3, w: Point3) -> Tuple[float, float]:
    d = sub(p, origin)
    return (dot(d, u), dot(d, w))


def project_edges_to_plane(
    edges: Sequence[Edge],
    target_boundary: Sequence[Edge],
) -> Optional[List[Edge]]:
    """Re-project ``edges`` onto the plane of ``target_boundary``.

    The target plane passes through the first vertex of the boundary with
    normal ``(p1 - p0) x (p2 - p0)``.  Every edge is projected endpoint by
    endpoint; the edge count and order are preserved and nothing is
    deduplicated.

    Returns:
        The projected edges, or ``None`` when the target boundary has
        fewer than three vertices or they are colinear.
    """
    plane = plane_from_three_points(loop_start_points(target_boundary))
    if plane is None:
        return None
    return [
        Edge(project_point_to_plane(e.start, plane), project_point_to_plane(e.end, plane))
        for e in edges
    ]
