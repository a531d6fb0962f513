"""
Closed polygon cleanup: normalisation, orientation and closure.

Boundaries arriving from a host model or from the faces of a boolean
result are rarely clean.  Consecutive edges repeat their shared vertex,
tiny edges appear where the kernel split a curve, and straight sides are
often broken into several colinear pieces.  The helpers in this module
turn such raw boundaries into minimal closed ``Polygon`` values that lie
exactly on a given plane:

* ``build_clean_loop`` projects, deduplicates, collapses colinear runs
  and re-closes a raw edge loop while keeping its original winding.
* ``close_and_clean`` does the same for a vertex list and additionally
  normalises the winding to counter-clockwise about the plane normal.
* ``chain_edges`` orders an unordered set of edges into a connected
  loop before cleaning.

A loop that cannot keep three distinct vertices is rejected by returning
``None``; callers treat that as "no polygon" rather than as an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import debug_enabled
from .planes import (
    Edge,
    Plane,
    Point3,
    cross,
    distance,
    dot,
    length,
    normalize,
    plane_basis,
    points_close,
    project_point_to_plane,
    scale,
    sub,
    to_plane_uv,
)

logger = logging.getLogger(__name__)

# Two unit directions are considered the same line when the magnitude of
# their cross product is at most COLINEAR_SIN_TOL and their dot product
# exceeds COLINEAR_COS_MIN (same heading, not a reversal).
COLINEAR_SIN_TOL = 1e-6
COLINEAR_COS_MIN = 0.9999

# Basis direction used when no edge has an in-plane component
WORLD_X: Point3 = (1.0, 0.0, 0.0)


@dataclass(frozen=True)
class Polygon:
    """A closed loop of straight edges.

    The end of each edge coincides with the start of the next one and the
    last edge ends at the first edge's start.  ``vertices`` lists each
    distinct corner once; ``closed_points`` repeats the first corner at
    the end.
    """

    edges: Tuple[Edge, ...]

    @classmethod
    def from_points(cls, points: Sequence[Point3]) -> "Polygon":
        """Build a polygon through ``points`` (closing edge added implicitly)."""
        pts = [tuple(float(c) for c in p) for p in points]
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        edges = tuple(Edge(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts)))
        return cls(edges)

    @property
    def vertices(self) -> Tuple[Point3, ...]:
        return tuple(e.start for e in self.edges)

    @property
    def closed_points(self) -> Tuple[Point3, ...]:
        verts = self.vertices
        return verts + verts[:1]

    def __len__(self) -> int:
        return len(self.edges)

    def __iter__(self):
        return iter(self.edges)


def _close(points: List[Point3], tol: float) -> None:
    if points and not points_close(points[0], points[-1], tol):
        points.append(points[0])


def _is_straight_through(a: Point3, b: Point3, c: Point3, tol: float) -> bool:
    """True when ``b`` lies on the straight run from ``a`` to ``c``."""
    ab = sub(b, a)
    bc = sub(c, b)
    ab_len = length(ab)
    bc_len = length(bc)
    if ab_len <= tol or bc_len <= tol:
        return False
    ab = scale(ab, 1.0 / ab_len)
    bc = scale(bc, 1.0 / bc_len)
    return length(cross(ab, bc)) <= COLINEAR_SIN_TOL and dot(ab, bc) > COLINEAR_COS_MIN


def collapse_tiny_and_colinear(points: Sequence[Point3], tol: float) -> List[Point3]:
    """Drop near-duplicate and colinear vertices from a closed point list.

    The returned list is closed (first point repeated at the end) unless
    fewer than three points survive deduplication.  Colinear vertices are
    removed in a single forward scan, then the seam vertex is checked
    against its neighbours across the closure.

    Args:
        points: Vertex list, closed or not.
        tol: Distance below which two consecutive points are merged.

    Returns:
        The reduced point list.
    """
    if len(points) < 3:
        return list(points)
    out: List[Point3] = []
    for p in points:
        if not out or distance(out[-1], p) > tol:
            out.append(p)
    if len(out) < 3:
        return out
    _close(out, tol)

    i = 0
    while len(out) > 3 and i < len(out) - 2:
        if _is_straight_through(out[i], out[i + 1], out[i + 2], tol):
            del out[i + 1]
        else:
            i += 1

    # The first vertex may itself sit in the middle of a straight side.
    while len(out) > 4 and _is_straight_through(out[-2], out[0], out[1], tol):
        out = out[1:-1]
        out.append(out[0])

    _close(out, tol)
    return out


def _edges_from_points(points: Sequence[Point3], tol: float) -> Optional[Polygon]:
    edges: List[Edge] = []
    for a, b in zip(points, points[1:]):
        if distance(a, b) > tol:
            edges.append(Edge(a, b))
    if not edges:
        return None
    start = edges[0].start
    end = edges[-1].end
    if not points_close(start, end, tol):
        edges.append(Edge(end, start))
    if len(edges) < 3:
        return None
    return Polygon(tuple(edges))


def build_clean_loop(raw_edges: Iterable[Edge], plane: Plane, tol: float) -> Optional[Polygon]:
    """Project and clean a raw closed boundary onto ``plane``.

    Shared endpoints between consecutive edges and zero-length edges are
    dropped, the list is closed, tiny and colinear vertices are collapsed
    and edges are rebuilt.  The input winding is preserved.

    Returns:
        The cleaned polygon, or ``None`` if fewer than three distinct
        vertices remain.
    """
    verts: List[Point3] = []
    for edge in raw_edges:
        p0 = project_point_to_plane(edge.start, plane)
        p1 = project_point_to_plane(edge.end, plane)
        if not verts or not points_close(verts[-1], p0, tol):
            verts.append(p0)
        if not points_close(p0, p1, tol):
            verts.append(p1)
    if len(verts) < 3:
        return None
    _close(verts, tol)

    verts = collapse_tiny_and_colinear(verts, tol)
    if len(verts) < 4:
        if debug_enabled():
            logger.debug("build_clean_loop: loop collapsed to %d points", len(verts))
        return None
    return _edges_from_points(verts, tol)


def _in_plane_direction(points: Sequence[Point3], plane: Plane, tol: float) -> Optional[Point3]:
    n = plane.normal
    for a, b in zip(points, points[1:]):
        d = sub(b, a)
        cand = sub(d, scale(n, dot(n, d)))
        if length(cand) > tol:
            return normalize(cand)
    return None


def signed_area(points: Sequence[Point3], plane: Plane, tol: float = 1e-9) -> float:
    """Signed area of a closed point list, positive when counter-clockwise.

    The orientation is judged looking against ``plane.normal`` (the
    normal points at the viewer).  ``points`` may or may not repeat the
    first vertex.
    """
    pts = list(points)
    if len(pts) < 3:
        return 0.0
    if not points_close(pts[0], pts[-1], tol):
        pts.append(pts[0])
    u_dir = _in_plane_direction(pts, plane, tol)
    if u_dir is None:
        return 0.0
    u, w = plane_basis(plane, u_dir)
    uv = [to_plane_uv(p, plane.origin, u, w) for p in pts]
    area2 = 0.0
    for (ax, ay), (bx, by) in zip(uv, uv[1:]):
        area2 += ax * by - bx * ay
    return 0.5 * area2


def close_and_clean(vertices: Iterable[Point3], plane: Plane, tol: float) -> Optional[Polygon]:
    """Project, clean and wind a vertex loop counter-clockwise on ``plane``.

    Args:
        vertices: Loop vertices, typically the start points of a
            candidate's edges.
        plane: Target plane; its normal defines counter-clockwise.
        tol: Point coincidence tolerance.

    Returns:
        A counter-clockwise polygon, or ``None`` for degenerate input.
    """
    v: List[Point3] = []
    for p in vertices:
        q = project_point_to_plane(p, plane)
        if not v or not points_close(v[-1], q, tol):
            v.append(q)
    if len(v) < 3:
        return None
    _close(v, tol)

    v = collapse_tiny_and_colinear(v, tol)
    if len(v) < 4:
        return None

    u_dir = _in_plane_direction(v, plane, tol)
    if u_dir is None:
        u_dir = WORLD_X
    try:
        u, w = plane_basis(plane, u_dir)
    except ValueError:
        # World X is normal to the plane; no basis to judge winding in.
        return None
    area2 = 0.0
    for a, b in zip(v, v[1:]):
        ax, ay = to_plane_uv(a, plane.origin, u, w)
        bx, by = to_plane_uv(b, plane.origin, u, w)
        area2 += ax * by - bx * ay
    if area2 < 0.0:
        v.reverse()
    return _edges_from_points(v, tol)


def chain_edges(edges: Sequence[Edge], tol: float) -> List[Edge]:
    """Order loose edges into a connected chain.

    Kernel face boundaries do not guarantee that edges are listed in
    traversal order or that each edge points along the traversal.  This
    walks from the first edge, each time picking an unused edge touching
    the current end and flipping it when needed.  Walking stops at a gap;
    whatever was chained so far is returned.
    """
    remaining = list(edges)
    if not remaining:
        return []
    chain = [remaining.pop(0)]
    while remaining:
        tail = chain[-1].end
        for idx, candidate in enumerate(remaining):
            if points_close(candidate.start, tail, tol):
                chain.append(remaining.pop(idx))
                break
            if points_close(candidate.end, tail, tol):
                chain.append(remaining.pop(idx).reversed())
                break
        else:
            if debug_enabled():
                logger.debug("chain_edges: %d edges left unconnected", len(remaining))
            break
    return chain
