"""
CadQuery implementation of the geometry kernel.

CadQuery wraps the OpenCascade kernel and provides the two solid
operations the opening pipeline delegates: linear extrusion of a planar
polygon and boolean intersection.  Face introspection walks the planar
faces of a shape and reports each wire as a list of straight edges,
ordered with :func:`chain_edges` because OpenCascade's edge exploration
order is not guaranteed to follow the wire.

CadQuery is an optional import at module load time; constructing a
``CadQueryKernel`` without it raises :class:`KernelUnavailable`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .contours import Polygon, chain_edges
from .kernel import CuttingElement, KernelUnavailable, PlanarFace
from .planes import Edge, Point3, normalize

logger = logging.getLogger(__name__)

# Detect whether CadQuery is available.  Importing it pulls in the OCP
# bindings, which are not installable on every platform.
try:
    import cadquery as cq
    CADQUERY_AVAILABLE = True
except Exception as exc:  # noqa: BLE001 - any import failure disables the kernel
    cq = None  # type: ignore[assignment]
    CADQUERY_AVAILABLE = False
    logger.warning("CadQuery not available, the CAD kernel is disabled. Reason: %r", exc)

# Tolerance used when chaining face edges into loops.
EDGE_CHAIN_TOL = 1e-7


def _vec_to_point(v: Any) -> Point3:
    return (float(v.x), float(v.y), float(v.z))


def _unwrap(obj: Any) -> List[Any]:
    """Return the CadQuery shapes held by a shape or a ``Workplane``."""
    if hasattr(obj, "vals"):
        return [s for s in obj.vals() if hasattr(s, "Solids")]
    return [obj]


class CadQueryKernel:
    """Geometry kernel backed by CadQuery / OpenCascade."""

    def __init__(self) -> None:
        if not CADQUERY_AVAILABLE:
            raise KernelUnavailable("CadQuery is not installed")

    # -- solid construction -------------------------------------------------

    def extrude(self, polygon: Polygon, direction: Point3, distance: float) -> Any:
        if distance <= 0.0:
            raise ValueError("extrusion distance must be positive")
        d = normalize(direction)
        wire = cq.Wire.makePolygon([cq.Vector(*p) for p in polygon.closed_points])
        vec = cq.Vector(d[0] * distance, d[1] * distance, d[2] * distance)
        solid = cq.Solid.extrudeLinear(wire, [], vec)
        if not solid.isValid():
            raise ValueError("extrusion produced an invalid solid")
        return solid

    def make_box(self, min_corner: Point3, max_corner: Point3) -> Any:
        """Axis-aligned box between two opposite corners."""
        dx, dy, dz = (max_corner[i] - min_corner[i] for i in range(3))
        if min(dx, dy, dz) <= 0.0:
            raise ValueError("box corners must span a positive volume")
        return cq.Solid.makeBox(dx, dy, dz, pnt=cq.Vector(*min_corner))

    def make_prism(self, points: Sequence[Point3], direction: Point3, depth: float) -> Any:
        """Extrude the planar profile ``points`` along ``direction``."""
        return self.extrude(Polygon.from_points(points), direction, depth)

    # -- booleans and introspection ------------------------------------------

    def intersect(self, solid_a: Any, solid_b: Any) -> Optional[Any]:
        result = solid_a.intersect(solid_b)
        if result is None or not result.Solids():
            return None
        if result.Volume() <= 0.0:
            return None
        return result

    def planar_faces(self, solid: Any) -> Iterable[PlanarFace]:
        faces: List[PlanarFace] = []
        for face in solid.Faces():
            if face.geomType() != "PLANE":
                continue
            normal = normalize(_vec_to_point(face.normalAt()))
            wires = [face.outerWire(), *face.innerWires()]
            loops = tuple(tuple(self._wire_edges(w)) for w in wires)
            faces.append(PlanarFace(normal=normal, loops=loops))
        return faces

    def _wire_edges(self, wire: Any) -> List[Edge]:
        edges = [
            Edge(_vec_to_point(e.startPoint()), _vec_to_point(e.endPoint()))
            for e in wire.Edges()
        ]
        return chain_edges(edges, EDGE_CHAIN_TOL)

    def element_geometry(self, element: CuttingElement) -> Tuple[List[Any], List[List[Any]]]:
        direct: List[Any] = []
        for obj in element.solids:
            for shape in _unwrap(obj):
                direct.extend(shape.Solids())
        instances: List[List[Any]] = []
        for instance in element.instances:
            solids: List[Any] = []
            for obj in instance:
                for shape in _unwrap(obj):
                    solids.extend(shape.Solids())
            instances.append(solids)
        return direct, instances

    def volume(self, solid: Any) -> float:
        return float(solid.Volume())
