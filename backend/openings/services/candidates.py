"""
Candidate opening loops from cutter/prism intersections.

For one host surface the generator extrudes the cleaned boundary into a
thin prism, intersects every cutter solid with it and keeps the faces of
each intersection that lie parallel to the host plane.  Those faces are
the cross-sections of the cutters at the panel; their boundary loops,
cleaned against the host plane, are the candidate openings.

Every kernel call goes through :func:`guarded`, so a failing cutter or
face contributes nothing instead of aborting the surface.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

from .config import OpeningsConfig, debug_enabled
from .contours import Polygon, build_clean_loop
from .diagnostics import DiagnosticLog
from .kernel import CuttingElement, GeometryKernel, KernelResult, guarded
from .planes import Plane, Point3, dot, normalize, scale

logger = logging.getLogger(__name__)


def build_prism(
    kernel: GeometryKernel,
    loop: Polygon,
    plane: Plane,
    thickness: float,
    config: OpeningsConfig,
) -> KernelResult[Any]:
    """Extrude ``loop`` along the plane normal, retrying along the reverse.

    The extrusion distance is ``max(thickness, config.min_thickness)``.
    """
    dist = max(thickness, config.min_thickness)
    forward = guarded("extrude(+normal)", kernel.extrude, loop, plane.normal, dist)
    if forward.ok:
        return forward
    backward = guarded("extrude(-normal)", kernel.extrude, loop, scale(plane.normal, -1.0), dist)
    if backward.ok:
        return backward
    return KernelResult.failure(f"{forward.reason}; {backward.reason}")


def element_solids(
    kernel: GeometryKernel,
    element: CuttingElement,
    config: OpeningsConfig,
) -> List[Any]:
    """Solids of ``element`` and its nested instances with non-negligible volume."""
    resolved = guarded("element_geometry", kernel.element_geometry, element)
    if not resolved.ok:
        logger.warning("Cutter %s: %s", element.element_id, resolved.reason)
        return []
    direct, instances = resolved.value
    pool: List[Any] = list(direct)
    for instance in instances:
        pool.extend(instance)

    solids: List[Any] = []
    for solid in pool:
        vol = guarded("volume", kernel.volume, solid)
        if vol.ok and vol.value > config.min_solid_volume:
            solids.append(solid)
    return solids


def is_parallel(normal_a: Point3, normal_b: Point3, tol: float) -> bool:
    """True when two directions are parallel or anti-parallel within ``tol``."""
    d = abs(dot(normalize(normal_a), normalize(normal_b)))
    return abs(d - 1.0) <= tol


def extract_planar_opening_loops(
    kernel: GeometryKernel,
    solid: Any,
    plane: Plane,
    tol: float,
    config: OpeningsConfig,
) -> List[Polygon]:
    """Cleaned boundary loops of the faces of ``solid`` parallel to ``plane``.

    Outer loops and holes are returned alike; each becomes its own
    candidate.
    """
    faces = guarded("planar_faces", lambda s: list(kernel.planar_faces(s)), solid)
    if not faces.ok:
        logger.debug("extract_planar_opening_loops: %s", faces.reason)
        return []

    loops: List[Polygon] = []
    for face in faces.value:
        try:
            parallel = is_parallel(face.normal, plane.normal, config.normal_parallel_tol)
        except ValueError:
            continue
        if not parallel:
            continue
        for raw in face.loops:
            cleaned = build_clean_loop(raw, plane, tol)
            if cleaned is not None:
                loops.append(cleaned)
            elif debug_enabled():
                logger.debug("extract_planar_opening_loops: dropped degenerate face loop")
    return loops


def collect_candidates(
    kernel: GeometryKernel,
    surface_id: str,
    prism: Any,
    plane: Plane,
    cutters: Sequence[CuttingElement],
    tol: float,
    config: OpeningsConfig,
    log: DiagnosticLog,
) -> List[Polygon]:
    """Intersect every cutter solid with ``prism`` and gather candidate loops."""
    candidates: List[Polygon] = []
    for cutter in cutters:
        for cutter_solid in element_solids(kernel, cutter, config):
            clipped = guarded("intersect", kernel.intersect, cutter_solid, prism)
            if not clipped.ok:
                log.write(
                    "Panel %s x Cutter %s: intersection skipped - %s",
                    surface_id,
                    cutter.element_id,
                    clipped.reason,
                )
                continue
            candidates.extend(
                extract_planar_opening_loops(kernel, clipped.value, plane, tol, config)
            )
    return candidates
