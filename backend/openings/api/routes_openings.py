"""
API routes for deriving openings from cutting elements.

``POST /openings`` is the input provider for the pipeline: it turns the
selected panels into ``TargetSurface`` values, builds the cutter solids
with the geometry kernel and runs the batch.  ``GET
/surfaces/{surface_id}/openings`` lists the openings stored for a panel.

The kernel, store, configuration and diagnostic sink are FastAPI
dependencies so tests can swap them through ``dependency_overrides``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from functools import lru_cache
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException

from .models import (
    CutterInput,
    OpeningInfo,
    OpeningsRequest,
    OpeningsResponse,
    PointModel,
    SolidGroup,
    SurfaceResult,
)
from ..services.config import OpeningsConfig
from ..services.cq_kernel import CadQueryKernel
from ..services.diagnostics import DiagnosticLog, configure_file_sink
from ..services.kernel import (
    CuttingElement,
    KernelUnavailable,
    SelectionCancelled,
    TargetSurface,
)
from ..services.openings_store import OpeningStore
from ..services.pipeline import RunStatus, run_openings

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_config() -> OpeningsConfig:
    return OpeningsConfig.from_env()


def get_kernel() -> Any:
    try:
        return CadQueryKernel()
    except KernelUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@lru_cache(maxsize=1)
def get_store() -> OpeningStore:
    return OpeningStore()


def get_diagnostics(config: OpeningsConfig = Depends(get_config)) -> DiagnosticLog:
    return configure_file_sink(config.log_path)


def _build_group(kernel: Any, group: SolidGroup) -> List[Any]:
    solids: List[Any] = []
    for box in group.boxes:
        solids.append(kernel.make_box(box.min.as_tuple(), box.max.as_tuple()))
    for prism in group.prisms:
        solids.append(
            kernel.make_prism(
                [p.as_tuple() for p in prism.points],
                prism.direction.as_tuple(),
                prism.depth,
            )
        )
    return solids


def _check_selection(request: OpeningsRequest) -> None:
    if not request.surfaces:
        raise SelectionCancelled("no panels selected")
    if not request.cutters:
        raise SelectionCancelled("no cutting elements selected")


def _build_cutter(kernel: Any, cutter: CutterInput) -> CuttingElement:
    return CuttingElement(
        element_id=cutter.cutterId,
        solids=tuple(_build_group(kernel, cutter)),
        instances=tuple(tuple(_build_group(kernel, inst)) for inst in cutter.instances),
    )


@router.post("/openings", response_model=OpeningsResponse)
def create_openings(
    request: OpeningsRequest,
    kernel: Any = Depends(get_kernel),
    store: OpeningStore = Depends(get_store),
    config: OpeningsConfig = Depends(get_config),
    log: DiagnosticLog = Depends(get_diagnostics),
) -> OpeningsResponse:
    """Derive and store openings for the selected panels.

    Raises:
        HTTPException: 400 when no panels or no cutters were selected,
            422 when a cutter solid cannot be built.
    """
    try:
        _check_selection(request)
    except SelectionCancelled as exc:
        raise HTTPException(status_code=400, detail=f"cancelled: {exc}")

    surfaces = [
        TargetSurface.from_points(s.surfaceId, [p.as_tuple() for p in s.boundary])
        for s in request.surfaces
    ]
    try:
        cutters = [_build_cutter(kernel, c) for c in request.cutters]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid cutter geometry: {exc}")

    if request.thickness is not None:
        config = replace(config, plane_thickness=request.thickness)

    report = run_openings(kernel, surfaces, cutters, store, config=config, log=log)
    if report.status is RunStatus.CANCELLED and not report.surfaces:
        raise HTTPException(status_code=400, detail=f"cancelled: {report.message}")

    results: List[SurfaceResult] = []
    for s in report.surfaces:
        results.append(
            SurfaceResult(
                surfaceId=s.surface_id,
                status=s.status,
                reason=s.reason,
                candidates=s.candidates,
                duplicates=s.duplicates,
                rejected=s.rejected,
                openings=[
                    OpeningInfo(
                        openingId=oid,
                        surfaceId=s.surface_id,
                        points=[PointModel(x=p[0], y=p[1], z=p[2]) for p in poly.vertices],
                    )
                    for oid, poly in s.openings
                ],
            )
        )
    return OpeningsResponse(
        status=report.status.value,
        message=report.message,
        surfaces=results,
        openingCount=report.opening_count,
    )


@router.get("/surfaces/{surface_id}/openings", response_model=list[OpeningInfo])
def list_surface_openings(
    surface_id: str,
    store: OpeningStore = Depends(get_store),
) -> list[OpeningInfo]:
    """Return the openings stored for ``surface_id`` (possibly empty)."""
    return [
        OpeningInfo(
            openingId=r.opening_id,
            surfaceId=r.host_surface_id,
            points=[PointModel(x=v[0], y=v[1], z=v[2]) for v in r.vertices],
        )
        for r in store.list_openings(surface_id)
    ]
