"""
Tunable constants for the opening pipeline.

All numeric thresholds used while deriving openings live in a single
frozen ``OpeningsConfig`` instance.  The defaults match the values the
pipeline was calibrated with (lengths in model units, typically feet).
Each field can be overridden through an ``OPENINGS_*`` environment
variable, which keeps deployments configurable without code changes in
the same way debug switches are toggled elsewhere in the backend.
"""

from __future__ import annotations

import logging
import math
import os
import tempfile
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)

# Environment variable prefix for configuration overrides
ENV_PREFIX = "OPENINGS_"

# Fields that divide or bucket by their value and must stay strictly positive
POSITIVE_FIELDS = frozenset({"geometry_tol", "short_curve_tol", "normal_parallel_tol"})


def _default_log_path() -> str:
    return str(Path(tempfile.gettempdir()) / "AnalyticalOpeningsLog.txt")


@dataclass(frozen=True)
class OpeningsConfig:
    """Thresholds controlling prism construction, matching and cleanup.

    Attributes:
        plane_thickness: Requested thickness of the thin prism extruded
            from the host boundary.
        min_thickness: Floor applied to ``plane_thickness``.
        normal_parallel_tol: Maximum deviation of ``|n_face . n_plane|``
            from 1 for a face to count as parallel to the host plane.
        geometry_tol: Geometric length tolerance used by plane fitting and
            as the lower bound of :attr:`tolerance`.
        short_curve_tol: Shortest edge length the host modeller accepts.
        min_solid_volume: Solids at or below this volume are ignored.
        log_path: Location of the plain-text diagnostic log.
    """

    plane_thickness: float = 0.01
    min_thickness: float = 0.01
    normal_parallel_tol: float = 1e-3
    geometry_tol: float = 1e-6
    short_curve_tol: float = 1e-6
    min_solid_volume: float = 1e-9
    log_path: str = field(default_factory=_default_log_path)

    @property
    def tolerance(self) -> float:
        """Point coincidence tolerance used by cleaning and comparison."""
        return max(self.short_curve_tol, self.geometry_tol)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "OpeningsConfig":
        """Build a config from defaults overridden by ``OPENINGS_*`` variables.

        Values that cannot be parsed are ignored with a warning so that a
        typo in the environment never prevents the service from starting.
        """
        env = os.environ if environ is None else environ
        base = cls()
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            if f.name == "log_path":
                overrides[f.name] = raw.strip()
                continue
            try:
                value = float(raw)
            except ValueError:
                value = math.nan
            if not math.isfinite(value):
                logger.warning(
                    "Ignoring invalid value %r for %s%s", raw, ENV_PREFIX, f.name.upper()
                )
                continue
            if f.name in POSITIVE_FIELDS and value == 0.0:
                logger.warning(
                    "Ignoring zero value %r for %s%s", raw, ENV_PREFIX, f.name.upper()
                )
                continue
            if value < 0.0:
                logger.warning(
                    "Ignoring negative value %r for %s%s", raw, ENV_PREFIX, f.name.upper()
                )
                continue
            overrides[f.name] = value
        return replace(base, **overrides) if overrides else base


def debug_enabled() -> bool:
    """Return True when verbose geometry logging was requested."""
    return bool(os.getenv("OPENINGS_DEBUG"))
