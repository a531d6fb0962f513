"""
Shared fixtures for the openings test suite.

``BoxKernel`` is an in-memory stand-in for the CAD kernel that only
understands axis-aligned boxes.  It is exact enough to exercise the
whole pipeline without OpenCascade: extruding a polygon produces the
box spanned by its bounding rectangle, and intersecting two boxes gives
their overlap.  ``RecordingStore`` replaces the database-backed opening
store and keeps created openings in a list.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import pytest

# Make the backend package importable when running tests directly via pytest
sys.path.append(str(Path(__file__).resolve().parents[1]))

from openings.services.contours import Polygon  # noqa: E402
from openings.services.kernel import CuttingElement, PlanarFace  # noqa: E402
from openings.services.planes import Edge  # noqa: E402


@dataclass(frozen=True)
class Box:
    lo: Tuple[float, float, float]
    hi: Tuple[float, float, float]


def _axis_of(direction) -> Tuple[int, float]:
    nonzero = [i for i in range(3) if abs(direction[i]) > 1e-12]
    if len(nonzero) != 1:
        raise ValueError("BoxKernel only extrudes along a principal axis")
    axis = nonzero[0]
    return axis, 1.0 if direction[axis] > 0 else -1.0


def _rect_loop(axis: int, level: float, lo, hi) -> Tuple[Edge, ...]:
    a, b = [i for i in range(3) if i != axis]
    corners = []
    for ca, cb in ((lo[a], lo[b]), (hi[a], lo[b]), (hi[a], hi[b]), (lo[a], hi[b])):
        p = [0.0, 0.0, 0.0]
        p[axis] = level
        p[a] = ca
        p[b] = cb
        corners.append(tuple(p))
    return tuple(Edge(corners[i], corners[(i + 1) % 4]) for i in range(4))


class BoxKernel:
    """Geometry kernel double working on axis-aligned boxes."""

    def __init__(self) -> None:
        self.failing_extrude_directions: set = set()
        self.raise_on_intersect = False
        self.extrude_calls: List[Tuple[float, float, float]] = []

    def make_box(self, min_corner, max_corner) -> Box:
        if any(max_corner[i] <= min_corner[i] for i in range(3)):
            raise ValueError("box corners must span a positive volume")
        return Box(tuple(min_corner), tuple(max_corner))

    def make_prism(self, points, direction, depth) -> Box:
        return self.extrude(Polygon.from_points(points), direction, depth)

    def extrude(self, polygon: Polygon, direction, distance: float) -> Box:
        direction = tuple(float(c) for c in direction)
        self.extrude_calls.append(direction)
        if direction in self.failing_extrude_directions:
            raise RuntimeError("extrusion failed")
        axis, sign = _axis_of(direction)
        verts = polygon.vertices
        lo = [min(p[i] for p in verts) for i in range(3)]
        hi = [max(p[i] for p in verts) for i in range(3)]
        base = lo[axis]
        if sign > 0:
            lo[axis], hi[axis] = base, base + distance
        else:
            lo[axis], hi[axis] = base - distance, base
        return Box(tuple(lo), tuple(hi))

    def intersect(self, a: Box, b: Box) -> Optional[Box]:
        if self.raise_on_intersect:
            raise RuntimeError("boolean operation failed")
        lo = tuple(max(a.lo[i], b.lo[i]) for i in range(3))
        hi = tuple(min(a.hi[i], b.hi[i]) for i in range(3))
        if any(hi[i] - lo[i] <= 0.0 for i in range(3)):
            return None
        return Box(lo, hi)

    def planar_faces(self, box: Box) -> List[PlanarFace]:
        faces = []
        for axis in range(3):
            for sign, level in ((-1.0, box.lo[axis]), (1.0, box.hi[axis])):
                normal = [0.0, 0.0, 0.0]
                normal[axis] = sign
                faces.append(
                    PlanarFace(
                        normal=tuple(normal),
                        loops=(_rect_loop(axis, level, box.lo, box.hi),),
                    )
                )
        return faces

    def element_geometry(self, element: CuttingElement):
        return list(element.solids), [list(inst) for inst in element.instances]

    def volume(self, box: Box) -> float:
        return (
            (box.hi[0] - box.lo[0])
            * (box.hi[1] - box.lo[1])
            * (box.hi[2] - box.lo[2])
        )


class RecordingStore:
    """Opening store double keeping everything in memory."""

    def __init__(self, refuse: bool = False) -> None:
        self.refuse = refuse
        self.created: List[Tuple[str, str, Polygon]] = []
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self) -> Iterator["RecordingStore"]:
        try:
            yield self
        except Exception:
            self.rollbacks += 1
            raise
        self.commits += 1

    def create_opening(self, host_surface_id: str, polygon: Polygon) -> Optional[str]:
        if self.refuse:
            return None
        opening_id = f"op{len(self.created) + 1}"
        self.created.append((opening_id, host_surface_id, polygon))
        return opening_id


UNIT_SQUARE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]


@pytest.fixture
def box_kernel() -> BoxKernel:
    return BoxKernel()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def unit_square() -> List[Tuple[float, float, float]]:
    return list(UNIT_SQUARE)


@pytest.fixture
def refusing_store() -> RecordingStore:
    return RecordingStore(refuse=True)
