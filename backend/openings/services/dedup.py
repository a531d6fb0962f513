"""
Tolerance-aware deduplication of closed polygons.

Several cutters, or the top and bottom faces of one intersection, often
yield the same opening outline with a different starting vertex.  Two
polygons are the same opening when they have the same vertex count and
some cyclic shift lines their vertices up within the tolerance.  Mirror
images (opposite winding) are not matched; polygons reaching this stage
have already been wound counter-clockwise.

``loop_hash`` is intentionally coarse: it sums rounded coordinates so
that every rotation of a polygon lands in the same bucket, leaving the
exact decision to ``loops_equivalent``.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List

from .contours import Polygon
from .planes import points_close

logger = logging.getLogger(__name__)


def loops_equivalent(a: Polygon, b: Polygon, tol: float) -> bool:
    """Return True when ``b`` is a cyclic rotation of ``a`` within ``tol``."""
    va = a.vertices
    vb = b.vertices
    if len(va) != len(vb):
        return False
    n = len(vb)
    for shift in range(n):
        if all(points_close(va[i], vb[(i + shift) % n], tol) for i in range(n)):
            return True
    return False


def loop_hash(polygon: Polygon, tol: float) -> int:
    """Rotation invariant bucket key built from rounded coordinate sums."""
    sx = sy = sz = 0.0
    for x, y, z in polygon.vertices:
        sx += round(x / tol)
        sy += round(y / tol)
        sz += round(z / tol)
    return hash(sx) ^ hash(sy) ^ hash(sz)


class UniqueLoopSet:
    """Insertion-ordered set of geometrically distinct polygons."""

    def __init__(self, tol: float) -> None:
        if tol <= 0.0:
            raise ValueError("tolerance must be positive")
        self.tol = tol
        self._buckets: Dict[int, List[Polygon]] = {}
        self._ordered: List[Polygon] = []

    def add(self, polygon: Polygon) -> bool:
        """Insert ``polygon``; return False (and do nothing) for a duplicate."""
        bucket = self._buckets.setdefault(loop_hash(polygon, self.tol), [])
        for existing in bucket:
            if loops_equivalent(existing, polygon, self.tol):
                return False
        bucket.append(polygon)
        self._ordered.append(polygon)
        return True

    def __contains__(self, polygon: object) -> bool:
        if not isinstance(polygon, Polygon):
            return False
        bucket = self._buckets.get(loop_hash(polygon, self.tol), [])
        return any(loops_equivalent(existing, polygon, self.tol) for existing in bucket)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(list(self._ordered))

    def __len__(self) -> int:
        return len(self._ordered)
