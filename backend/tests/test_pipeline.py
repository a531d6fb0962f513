"""
End-to-end tests of the opening pipeline using the box kernel double.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from openings.services.config import OpeningsConfig
from openings.services.containment import centroid
from openings.services.contours import Polygon
from openings.services.dedup import loops_equivalent
from openings.services.diagnostics import DiagnosticLog
from openings.services.kernel import CuttingElement, TargetSurface
from openings.services.pipeline import RunStatus, process_surface, run_openings

TOL = 1e-6
INNER_SQUARE = [(0.25, 0.25, 0.0), (0.75, 0.25, 0.0), (0.75, 0.75, 0.0), (0.25, 0.75, 0.0)]


class ListLog(DiagnosticLog):
    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []

    def write(self, message: str, *args: object) -> None:
        self.lines.append(message % args if args else message)


def shaft(kernel, element_id: str, lo=(0.25, 0.25), hi=(0.75, 0.75)) -> CuttingElement:
    return CuttingElement(
        element_id, solids=(kernel.make_box((lo[0], lo[1], -1.0), (hi[0], hi[1], 1.0)),)
    )


def test_single_cutter_yields_one_opening(box_kernel, store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    log = ListLog()
    report = run_openings(box_kernel, [surface], [shaft(box_kernel, "c1")], store, log=log)

    assert report.status is RunStatus.SUCCEEDED
    assert store.commits == 1
    assert len(store.created) == 1
    opening_id, host_id, polygon = store.created[0]
    assert host_id == "panel-1"
    assert loops_equivalent(polygon, Polygon.from_points(INNER_SQUARE), TOL)
    assert centroid(polygon) == pytest.approx((0.5, 0.5, 0.0))

    surface_report = report.surfaces[0]
    assert surface_report.status == "processed"
    # Top and bottom faces of the intersection collapse onto the same loop
    assert surface_report.candidates == 2
    assert surface_report.duplicates == 1
    assert surface_report.openings == [(opening_id, polygon)]
    assert log.lines[0].startswith("=== Create openings")
    assert any("created opening op1" in line for line in log.lines)


def test_duplicate_cutters_produce_one_opening(box_kernel, store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    cutters = [shaft(box_kernel, "c1"), shaft(box_kernel, "c2")]
    report = run_openings(box_kernel, [surface], cutters, store, log=ListLog())
    assert report.opening_count == 1
    assert len(store.created) == 1
    assert report.surfaces[0].duplicates == 3


def test_distinct_cutters_produce_distinct_openings(box_kernel, store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    cutters = [
        shaft(box_kernel, "c1", lo=(0.1, 0.1), hi=(0.3, 0.3)),
        shaft(box_kernel, "c2", lo=(0.6, 0.6), hi=(0.9, 0.9)),
    ]
    report = run_openings(box_kernel, [surface], cutters, store, log=ListLog())
    assert report.opening_count == 2


def test_polygons_are_counter_clockwise_about_host_normal(box_kernel, store) -> None:
    """A clockwise host boundary still yields a consistently wound opening."""
    clockwise = [(0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 1.0, 0.0), (1.0, 0.0, 0.0)]
    surface = TargetSurface.from_points("panel-cw", clockwise)
    report = run_openings(box_kernel, [surface], [shaft(box_kernel, "c1")], store, log=ListLog())
    assert report.opening_count == 1
    # The fitted normal is -z for this boundary, so the opening runs clockwise in xy
    polygon = report.surfaces[0].openings[0][1]
    assert loops_equivalent(polygon, Polygon.from_points(list(reversed(INNER_SQUARE))), TOL)


def test_candidate_outside_concave_host_is_rejected(box_kernel, store) -> None:
    """The box double extrudes the bounding box, so the notch still yields a candidate."""
    l_shape = [(0, 0, 0), (2, 0, 0), (2, 1, 0), (1, 1, 0), (1, 2, 0), (0, 2, 0)]
    surface = TargetSurface.from_points("panel-L", l_shape)
    cutters = [shaft(box_kernel, "notch", lo=(1.25, 1.25), hi=(1.75, 1.75))]
    log = ListLog()
    report = run_openings(box_kernel, [surface], cutters, store, log=log)
    assert report.opening_count == 0
    assert report.surfaces[0].rejected == 1
    assert any("outside panel boundary" in line for line in log.lines)


def test_cutter_missing_surface_skips_it(box_kernel, store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    report = run_openings(
        box_kernel, [surface], [shaft(box_kernel, "far", lo=(3, 3), hi=(4, 4))], store, log=ListLog()
    )
    assert report.surfaces[0].status == "skipped"
    assert report.surfaces[0].reason == "no candidates"
    assert store.created == []


@pytest.mark.parametrize(
    "boundary, reason",
    [
        ([], "empty contour"),
        ([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0)], "no plane"),
    ],
)
def test_degenerate_surfaces_are_skipped(box_kernel, store, boundary, reason) -> None:
    surface = TargetSurface.from_points("bad", boundary)
    report = process_surface(
        box_kernel, surface, [shaft(box_kernel, "c1")], store, OpeningsConfig(), ListLog()
    )
    assert report.status == "skipped"
    assert report.reason == reason


def test_prism_failure_skips_surface(box_kernel, store, unit_square) -> None:
    box_kernel.failing_extrude_directions.update({(0.0, 0.0, 1.0), (0.0, 0.0, -1.0)})
    surface = TargetSurface.from_points("panel-1", unit_square)
    report = process_surface(
        box_kernel, surface, [shaft(box_kernel, "c1")], store, OpeningsConfig(), ListLog()
    )
    assert report.reason == "prism failed"


def test_empty_selection_cancels_without_touching_store(box_kernel, store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    no_panels = run_openings(box_kernel, [], [shaft(box_kernel, "c1")], store)
    no_cutters = run_openings(box_kernel, [surface], [], store)
    assert no_panels.status is RunStatus.CANCELLED
    assert no_cutters.status is RunStatus.CANCELLED
    assert store.commits == 0
    assert store.created == []


def test_failing_surface_does_not_stop_batch(box_kernel, store, unit_square, monkeypatch) -> None:
    import openings.services.pipeline as pipeline

    real_fit = pipeline.fit_plane

    def flaky_fit(boundary):
        if boundary[0].start == (5.0, 5.0, 0.0):
            raise RuntimeError("boom")
        return real_fit(boundary)

    monkeypatch.setattr(pipeline, "fit_plane", flaky_fit)
    broken = TargetSurface.from_points("broken", [(x + 5.0, y + 5.0, z) for x, y, z in unit_square])
    good = TargetSurface.from_points("good", unit_square)
    log = ListLog()
    report = run_openings(box_kernel, [broken, good], [shaft(box_kernel, "c1")], store, log=log)

    assert report.status is RunStatus.SUCCEEDED
    assert [s.status for s in report.surfaces] == ["failed", "processed"]
    assert report.surfaces[0].reason == "boom"
    assert len(store.created) == 1
    assert store.commits == 1
    assert any("broken: processing error" in line for line in log.lines)


def test_store_refusal_is_logged_and_not_reported(box_kernel, refusing_store, unit_square) -> None:
    surface = TargetSurface.from_points("panel-1", unit_square)
    log = ListLog()
    report = run_openings(box_kernel, [surface], [shaft(box_kernel, "c1")], refusing_store, log=log)
    assert report.opening_count == 0
    assert any("failed to create opening" in line for line in log.lines)


def test_cancellation_between_surfaces(box_kernel, store, unit_square) -> None:
    surfaces = [
        TargetSurface.from_points("first", unit_square),
        TargetSurface.from_points("second", unit_square),
    ]
    calls = []

    def should_cancel() -> bool:
        calls.append(True)
        return len(calls) > 1

    report = run_openings(
        box_kernel, surfaces, [shaft(box_kernel, "c1")], store, log=ListLog(), should_cancel=should_cancel
    )
    assert report.status is RunStatus.CANCELLED
    assert [s.surface_id for s in report.surfaces] == ["first"]
    # Openings made before the cancellation are still committed
    assert store.commits == 1
    assert len(store.created) == 1


def test_nested_instance_geometry_cuts(box_kernel, store, unit_square) -> None:
    nested = box_kernel.make_box((0.25, 0.25, -1.0), (0.75, 0.75, 1.0))
    cutter = CuttingElement("family", solids=(), instances=((nested,),))
    surface = TargetSurface.from_points("panel-1", unit_square)
    report = run_openings(box_kernel, [surface], [cutter], store, log=ListLog())
    assert report.opening_count == 1


def test_zero_tolerances_from_environment_still_run(box_kernel, store, unit_square) -> None:
    config = OpeningsConfig.from_env(
        {"OPENINGS_GEOMETRY_TOL": "0", "OPENINGS_SHORT_CURVE_TOL": "0"}
    )
    surface = TargetSurface.from_points("panel-1", unit_square)
    report = run_openings(
        box_kernel, [surface], [shaft(box_kernel, "c1")], store, config=config, log=ListLog()
    )
    assert [s.status for s in report.surfaces] == ["processed"]
    assert report.opening_count == 1
