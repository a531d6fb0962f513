"""
Contract between the opening pipeline and a solid-modelling kernel.

The pipeline never performs solid booleans or extrusions itself.  It asks
a ``GeometryKernel`` to build the host prism, intersect cutter solids
with it and describe the planar faces of the result.  Solids are opaque
to the pipeline; it only passes them back to the kernel.

Kernel calls may raise or return ``None``.  ``guarded`` folds both into a
``KernelResult`` so the pipeline can branch on ``result.ok`` and decide
explicitly whether a failure skips a cutter, a face or a whole surface.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, Tuple, TypeVar

from .contours import Polygon
from .planes import Edge, Point3

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OpeningsError(Exception):
    """Base class for errors raised by the openings package."""


class KernelUnavailable(OpeningsError):
    """Raised when the solid-modelling backend cannot be imported."""


class SelectionCancelled(OpeningsError):
    """Raised by an input provider when nothing was selected."""


@dataclass(frozen=True)
class PlanarFace:
    """A planar face of a solid: unit normal plus its boundary loops."""

    normal: Point3
    loops: Tuple[Tuple[Edge, ...], ...]


@dataclass(frozen=True)
class TargetSurface:
    """A planar host element whose outer boundary receives openings."""

    surface_id: str
    boundary: Tuple[Edge, ...]

    @classmethod
    def from_points(cls, surface_id: str, points: Sequence[Point3]) -> "TargetSurface":
        return cls(surface_id, Polygon.from_points(points).edges)


@dataclass(frozen=True)
class CuttingElement:
    """An element whose solids define opening shapes.

    Attributes:
        element_id: Identifier used in diagnostics.
        solids: Kernel solids owned directly by the element.
        instances: Nested instance geometries, each a tuple of solids.
            Only this one level of nesting is resolved.
    """

    element_id: str
    solids: Tuple[Any, ...] = ()
    instances: Tuple[Tuple[Any, ...], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class KernelResult(Generic[T]):
    """Outcome of a delegated kernel operation."""

    ok: bool
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def success(cls, value: T) -> "KernelResult[T]":
        return cls(True, value, "")

    @classmethod
    def failure(cls, reason: str) -> "KernelResult[T]":
        return cls(False, None, reason)


class GeometryKernel(Protocol):
    """Operations the opening pipeline delegates to a solid modeller."""

    def intersect(self, solid_a: Any, solid_b: Any) -> Optional[Any]:
        """Boolean intersection; ``None`` when the solids do not overlap."""

    def extrude(self, polygon: Polygon, direction: Point3, distance: float) -> Any:
        """Extrude a planar polygon into a prism; raises on failure."""

    def planar_faces(self, solid: Any) -> Iterable[PlanarFace]:
        """Planar faces of ``solid`` with unit outward normals."""

    def element_geometry(self, element: CuttingElement) -> Tuple[Sequence[Any], Sequence[Sequence[Any]]]:
        """Direct solids and one level of nested instance solids."""

    def volume(self, solid: Any) -> float:
        """Volume of ``solid`` in cubic model units."""


def guarded(operation: str, fn: Callable[..., Optional[T]], *args: Any) -> KernelResult[T]:
    """Call a kernel function, turning exceptions and ``None`` into failures."""
    try:
        value = fn(*args)
    except Exception as exc:  # noqa: BLE001 - any kernel failure is contained
        logger.debug("%s failed: %r", operation, exc)
        return KernelResult.failure(f"{operation} failed: {exc}")
    if value is None:
        return KernelResult.failure(f"{operation} returned no result")
    return KernelResult.success(value)
