"""
Pydantic data models for the openings API.

These models define the shapes of requests and responses used by the
backend.  A request selects the host surfaces (analytical panels given
by their outer boundary) and the cutting elements (boxes and extruded
profiles, optionally grouped into nested instances) for one run.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PointModel(BaseModel):
    """Single 3D point."""

    x: float
    y: float
    z: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


class BoxSolid(BaseModel):
    """Axis-aligned box given by two opposite corners."""

    min: PointModel = Field(..., description="Corner with the smallest coordinates")
    max: PointModel = Field(..., description="Corner with the largest coordinates")


class PrismSolid(BaseModel):
    """Planar profile extruded along a direction."""

    points: List[PointModel] = Field(..., min_length=3, description="Closed profile vertices")
    direction: PointModel = Field(..., description="Extrusion direction (need not be unit)")
    depth: float = Field(..., gt=0.0, description="Extrusion length in model units")


class SolidGroup(BaseModel):
    """A set of solids; used both for an element and for a nested instance."""

    boxes: List[BoxSolid] = Field(default_factory=list)
    prisms: List[PrismSolid] = Field(default_factory=list)


class SurfaceInput(BaseModel):
    """A host surface selected for openings."""

    surfaceId: str = Field(..., description="Identifier of the host panel")
    boundary: List[PointModel] = Field(..., description="Ordered outer boundary vertices")


class CutterInput(SolidGroup):
    """A cutting element and its (optionally nested) solids."""

    cutterId: str = Field(..., description="Identifier of the cutting element")
    instances: List[SolidGroup] = Field(
        default_factory=list,
        description="Nested instance geometry, resolved one level deep",
    )


class OpeningsRequest(BaseModel):
    """Request body for deriving openings."""

    surfaces: List[SurfaceInput] = Field(default_factory=list)
    cutters: List[CutterInput] = Field(default_factory=list)
    thickness: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Prism thickness override; the configured minimum still applies",
    )


class OpeningInfo(BaseModel):
    """An opening created in a host surface."""

    openingId: str
    surfaceId: str
    points: List[PointModel] = Field(..., description="Counter-clockwise opening vertices")


class SurfaceResult(BaseModel):
    surfaceId: str
    status: str = Field(..., description="processed, skipped or failed")
    reason: str = ""
    candidates: int = 0
    duplicates: int = 0
    rejected: int = 0
    openings: List[OpeningInfo] = Field(default_factory=list)


class OpeningsResponse(BaseModel):
    """Response returned after a run."""

    status: str = Field(..., description="succeeded, cancelled or failed")
    message: str = ""
    surfaces: List[SurfaceResult] = Field(default_factory=list)
    openingCount: int = 0
