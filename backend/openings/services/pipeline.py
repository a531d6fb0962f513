"""
Opening pipeline: per-surface processing and batch orchestration.

``process_surface`` runs the whole contour pipeline for one host surface:
fit its plane, clean its boundary, build the thin prism, collect
candidate loops from every cutter, re-project and wind each candidate,
drop duplicates, gate on centroid containment and hand the survivors to
the persistence collaborator.

``run_openings`` processes a batch of surfaces inside one store
transaction.  A failure in one surface is logged and recorded in its
report; the remaining surfaces still run and whatever openings were
produced are committed.
"""

from __future__ import annotations

import enum
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .candidates import build_prism, collect_candidates
from .config import OpeningsConfig
from .containment import centroid, point_in_loop
from .contours import Polygon, build_clean_loop, close_and_clean
from .dedup import UniqueLoopSet
from .diagnostics import DiagnosticLog
from .kernel import CuttingElement, GeometryKernel, TargetSurface
from .planes import fit_plane, project_edges_to_plane

logger = logging.getLogger(__name__)


class OpeningWriter(Protocol):
    """Persistence collaborator receiving accepted openings."""

    def transaction(self) -> AbstractContextManager: ...

    def create_opening(self, host_surface_id: str, polygon: Polygon) -> Optional[str]: ...


class RunStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class SurfaceReport:
    """What happened to one host surface during a run."""

    surface_id: str
    status: str = "processed"
    reason: str = ""
    candidates: int = 0
    duplicates: int = 0
    rejected: int = 0
    openings: List[Tuple[str, Polygon]] = field(default_factory=list)

    def skip(self, reason: str) -> "SurfaceReport":
        self.status = "skipped"
        self.reason = reason
        return self


@dataclass
class RunReport:
    status: RunStatus
    surfaces: List[SurfaceReport] = field(default_factory=list)
    message: str = ""

    @property
    def opening_count(self) -> int:
        return sum(len(s.openings) for s in self.surfaces)


def process_surface(
    kernel: GeometryKernel,
    surface: TargetSurface,
    cutters: Sequence[CuttingElement],
    store: OpeningWriter,
    config: OpeningsConfig,
    log: DiagnosticLog,
) -> SurfaceReport:
    """Derive, validate and persist the openings of a single surface."""
    sid = surface.surface_id
    report = SurfaceReport(surface_id=sid)
    log.write("=== Processing panel %s ===", sid)

    if not surface.boundary:
        log.write("Panel %s: empty contour - skipped", sid)
        return report.skip("empty contour")

    plane = fit_plane(surface.boundary)
    if plane is None:
        log.write("Panel %s: could not determine plane - skipped", sid)
        return report.skip("no plane")

    tol = config.tolerance
    clean_boundary = build_clean_loop(surface.boundary, plane, tol)
    if clean_boundary is None:
        log.write("Panel %s: could not clean contour - skipped", sid)
        return report.skip("degenerate contour")

    prism = build_prism(kernel, clean_boundary, plane, config.plane_thickness, config)
    if not prism.ok:
        log.write("Panel %s: could not build prism - skipped (%s)", sid, prism.reason)
        return report.skip("prism failed")

    candidates = collect_candidates(
        kernel, sid, prism.value, plane, cutters, tol, config, log
    )
    report.candidates = len(candidates)
    if not candidates:
        log.write("Panel %s: no opening contours found", sid)
        return report.skip("no candidates")

    unique = UniqueLoopSet(tol)
    for candidate in candidates:
        adjusted = project_edges_to_plane(candidate.edges, clean_boundary.edges)
        if adjusted is None:
            continue
        final = close_and_clean([e.start for e in adjusted], plane, tol)
        if final is None:
            continue
        if not unique.add(final):
            report.duplicates += 1
            log.write("Panel %s: duplicate loop - skipped", sid)

    for polygon in unique:
        try:
            if not point_in_loop(clean_boundary, centroid(polygon)):
                report.rejected += 1
                log.write("Panel %s: loop outside panel boundary - skipped", sid)
                continue
            opening_id = store.create_opening(sid, polygon)
        except Exception as exc:  # noqa: BLE001 - one opening must not sink the panel
            logger.exception("Panel %s: opening creation failed", sid)
            log.write("Panel %s: error creating opening - %s", sid, exc)
            continue
        if opening_id is None:
            log.write("Panel %s: failed to create opening", sid)
            continue
        log.write("Panel %s: created opening %s", sid, opening_id)
        report.openings.append((opening_id, polygon))
    return report


def run_openings(
    kernel: GeometryKernel,
    surfaces: Sequence[TargetSurface],
    cutters: Sequence[CuttingElement],
    store: OpeningWriter,
    config: Optional[OpeningsConfig] = None,
    log: Optional[DiagnosticLog] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> RunReport:
    """Create openings in every surface from every cutter.

    An empty list of surfaces or cutters cancels the run before anything
    is written.  ``should_cancel`` is polled before each surface; once it
    returns True the remaining surfaces are left untouched and the
    openings made so far are committed.
    """
    config = config or OpeningsConfig()
    log = log or DiagnosticLog()

    if not surfaces:
        return RunReport(RunStatus.CANCELLED, message="no panels selected")
    if not cutters:
        return RunReport(RunStatus.CANCELLED, message="no cutting elements selected")

    log.write("=== Create openings from cutters START ===")
    report = RunReport(RunStatus.SUCCEEDED)
    with store.transaction():
        for surface in surfaces:
            if should_cancel is not None and should_cancel():
                log.write("Run cancelled before panel %s", surface.surface_id)
                report.status = RunStatus.CANCELLED
                report.message = "cancelled"
                break
            try:
                surface_report = process_surface(kernel, surface, cutters, store, config, log)
            except Exception as exc:  # noqa: BLE001 - isolate failures per surface
                logger.exception("Panel %s: processing failed", surface.surface_id)
                log.write("Panel %s: processing error - %s", surface.surface_id, exc)
                surface_report = SurfaceReport(
                    surface_id=surface.surface_id, status="failed", reason=str(exc)
                )
            report.surfaces.append(surface_report)
    log.write("=== Create openings from cutters END ===")
    return report
