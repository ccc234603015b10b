"""Tests for the fog overlay renderer.

These tests run headless by setting QT_QPA_PLATFORM=offscreen before
importing any Qt modules. Timers are mostly driven by calling their
handlers directly with a fake clock.
"""

from __future__ import annotations

import os
from unittest.mock import patch

# Must be set before any Qt import
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtCore import QPoint, QSize, Qt
from PyQt6.QtTest import QTest
from PyQt6.QtWidgets import QApplication

# QApplication must exist before any QWidget is created
_app = QApplication.instance() or QApplication([])

from fogtrail.config import Config
from fogtrail.exploration import ExplorationMethod
from fogtrail.fog_state import FogState
from fogtrail.geometry import GeoPoint
from fogtrail.hex_grid import cell_to_boundary, cell_to_center, coord_to_cell, disk_within
from fogtrail.records import ExploredCellRecord
from fogtrail.ui.fog_renderer import FogRenderer
from fogtrail.ui.map_widget import MapWidget

TIMES_SQUARE = GeoPoint(40.7589, -73.9851)
CELL = coord_to_cell(TIMES_SQUARE)

SETTLED_ALPHA = round(255 * 0.85)
SOLID_ALPHA = round(255 * 0.9)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _record(cell_id: str, boundary: tuple[GeoPoint, ...] | None = None) -> ExploredCellRecord:
    if boundary is None:
        boundary = tuple(cell_to_boundary(cell_id))
    return ExploredCellRecord(cell_id, None, ExplorationMethod.WALKING, boundary)


def _make(
    zoom: int = 16,
    records: list[ExploredCellRecord] | None = None,
    config: Config | None = None,
) -> tuple[MapWidget, FogRenderer, FakeClock]:
    map_view = MapWidget(TIMES_SQUARE, zoom)
    map_view.resize(800, 600)
    clock = FakeClock()
    renderer = FogRenderer(map_view, config or Config(), clock=clock)
    renderer.set_snapshot([_record(CELL)] if records is None else records)
    renderer.attach()
    return map_view, renderer, clock


def _alpha_at(map_view: MapWidget, point: GeoPoint) -> int:
    image = map_view.overlays[0].image
    return image.pixelColor(map_view.project(point).toPoint()).alpha()


def _corner_alpha(map_view: MapWidget) -> int:
    return map_view.overlays[0].image.pixelColor(QPoint(5, 5)).alpha()


def _fire_settle(renderer: FogRenderer) -> None:
    renderer._settle_timer.stop()
    renderer._on_settle_timeout()


def _settle(map_view: MapWidget, renderer: FogRenderer, clock: FakeClock) -> None:
    """Run a full move -> settle -> fade cycle on the fake clock."""
    map_view.move_started.emit()
    map_view.move_finished.emit()
    _fire_settle(renderer)
    clock.now += 1.0
    renderer._on_frame()


# ------------------------------------------------------------------
# Attach / initial paint
# ------------------------------------------------------------------

def test_attach_paints_settled_fog_with_hole() -> None:
    map_view, renderer, _ = _make()

    assert renderer.state is FogState.SETTLED
    assert len(map_view.overlays) == 1
    frame = renderer.last_frame
    assert frame is not None
    assert not frame.opaque
    assert frame.holes == (CELL,)

    # Times Square cell is punched out, the rest stays fogged
    assert _alpha_at(map_view, cell_to_center(CELL)) == 0
    assert _corner_alpha(map_view) == SETTLED_ALPHA


def test_surface_matches_viewport() -> None:
    map_view, _, _ = _make()
    surface = map_view.overlays[0]
    assert surface.image.size() == QSize(800, 600)
    assert surface.origin == map_view.pane_offset()


def test_low_zoom_paints_solid_fog() -> None:
    map_view, renderer, _ = _make(zoom=10)

    frame = renderer.last_frame
    assert frame is not None
    assert frame.opaque
    assert frame.holes == ()
    assert _alpha_at(map_view, cell_to_center(CELL)) == SOLID_ALPHA


# ------------------------------------------------------------------
# Movement / fade cycle
# ------------------------------------------------------------------

def test_move_start_repaints_opaque() -> None:
    map_view, renderer, _ = _make()

    map_view.move_started.emit()

    assert renderer.state is FogState.MOVING
    assert renderer.last_frame.opaque
    assert renderer.last_frame.holes == ()
    assert _alpha_at(map_view, cell_to_center(CELL)) == SOLID_ALPHA


def test_move_end_arms_settle_timer() -> None:
    map_view, renderer, _ = _make()

    map_view.move_started.emit()
    map_view.move_finished.emit()

    assert renderer.state is FogState.MOVING
    assert renderer.settle_pending

    # A new move before the timer fires cancels it
    map_view.move_started.emit()
    assert not renderer.settle_pending
    assert renderer.state is FogState.MOVING


def test_settle_fades_in_then_settles() -> None:
    map_view, renderer, clock = _make()

    map_view.move_started.emit()
    map_view.move_finished.emit()
    _fire_settle(renderer)

    assert renderer.state is FogState.FADING
    assert renderer.fade_active
    assert renderer.frame_pending

    clock.now = 0.4
    renderer._on_frame()
    assert renderer.state is FogState.FADING
    assert renderer.last_frame.alpha == pytest.approx(0.875)
    assert 0 < _alpha_at(map_view, cell_to_center(CELL)) < SETTLED_ALPHA

    clock.now = 0.8
    renderer._on_frame()
    assert renderer.state is FogState.SETTLED
    assert not renderer.fade_active
    assert not renderer.frame_pending
    assert renderer.last_frame.alpha == 1.0
    assert _alpha_at(map_view, cell_to_center(CELL)) == 0


def test_final_frame_holes_match_visible_query() -> None:
    cells = sorted(disk_within(CELL, 3))
    far_away = coord_to_cell(GeoPoint(51.5074, -0.1278))
    map_view, renderer, clock = _make(records=[_record(c) for c in cells] + [_record(far_away)])

    _settle(map_view, renderer, clock)

    config = Config()
    lod = config.lod_policy()
    view = map_view.view_bounds().pad(config.view_padding)
    expected = [r.cell_id for r in lod.simplify(renderer.index.query_bounds(view), map_view.zoom())]

    assert renderer.state is FogState.SETTLED
    assert list(renderer.last_frame.holes) == expected
    assert far_away not in renderer.last_frame.holes


def test_move_start_mid_fade_cancels_fade() -> None:
    map_view, renderer, clock = _make()
    map_view.move_started.emit()
    map_view.move_finished.emit()
    _fire_settle(renderer)
    clock.now = 0.2
    renderer._on_frame()
    assert renderer.state is FogState.FADING

    map_view.move_started.emit()

    assert renderer.state is FogState.MOVING
    assert not renderer.fade_active
    assert not renderer.frame_pending
    assert renderer.last_frame.opaque


def test_zoom_events_drive_the_same_cycle() -> None:
    map_view, renderer, _ = _make()

    map_view.zoom_started.emit()
    assert renderer.state is FogState.MOVING
    map_view.zoom_finished.emit()
    assert renderer.settle_pending


def test_last_zoom_recorded_on_settle() -> None:
    map_view, renderer, _ = _make()
    map_view.zoom_in()
    _fire_settle(renderer)
    assert renderer.last_zoom == 17


def test_real_timers_reach_settled() -> None:
    config = Config(settle_delay_ms=10, fade_duration_ms=50)
    map_view = MapWidget(TIMES_SQUARE, 16)
    map_view.resize(800, 600)
    renderer = FogRenderer(map_view, config)
    renderer.set_snapshot([_record(CELL)])
    renderer.attach()

    map_view.pan_left()
    assert renderer.state is FogState.MOVING

    QTest.qWait(500)
    assert renderer.state is FogState.SETTLED
    assert renderer.last_frame.alpha == 1.0


def test_view_changes_coalesce_into_one_frame() -> None:
    map_view, renderer, _ = _make()
    frames = []
    renderer.frame_rendered.connect(frames.append)

    for _ in range(5):
        map_view.view_changed.emit()

    assert frames == []
    assert renderer.frame_pending

    QTest.qWait(100)
    assert len(frames) == 1


# ------------------------------------------------------------------
# Minimum zoom
# ------------------------------------------------------------------

def test_below_min_zoom_never_queries_index() -> None:
    map_view, renderer, clock = _make(zoom=10)

    with patch.object(renderer.index, "query_bounds") as query:
        renderer.request_repaint()
        renderer._on_frame()
        _settle(map_view, renderer, clock)
        query.assert_not_called()

    assert renderer.state is FogState.SETTLED
    assert renderer.last_frame.opaque
    assert _alpha_at(map_view, cell_to_center(CELL)) == SOLID_ALPHA


# ------------------------------------------------------------------
# Snapshot replacement
# ------------------------------------------------------------------

def test_set_snapshot_replaces_index() -> None:
    map_view, renderer, _ = _make()
    neighbor = sorted(disk_within(CELL, 1) - {CELL})[0]

    renderer.set_snapshot([_record(neighbor)])
    renderer._on_frame()

    assert CELL not in renderer.index
    assert renderer.last_frame.holes == (neighbor,)
    assert _alpha_at(map_view, cell_to_center(CELL)) == SETTLED_ALPHA


# ------------------------------------------------------------------
# Failure handling
# ------------------------------------------------------------------

def test_short_boundary_is_skipped() -> None:
    neighbor = sorted(disk_within(CELL, 1) - {CELL})[0]
    broken = _record(neighbor, (TIMES_SQUARE, TIMES_SQUARE))
    map_view, renderer, _ = _make(records=[_record(CELL), broken])

    assert renderer.last_frame.holes == (CELL,)
    assert _alpha_at(map_view, cell_to_center(CELL)) == 0


def test_compositing_error_falls_back_to_solid_fog() -> None:
    map_view, renderer, _ = _make()

    with patch.object(map_view, "project", side_effect=RuntimeError("boom")):
        renderer._on_frame()

    assert renderer.last_frame.opaque
    assert map_view.overlays[0].image.pixelColor(QPoint(400, 300)).alpha() == SOLID_ALPHA


def test_unavailable_surface_skips_frame() -> None:
    map_view, renderer, _ = _make()
    before = renderer.last_frame

    with patch.object(map_view, "viewport_size", return_value=QSize(0, 0)):
        renderer._on_frame()

    assert renderer.last_frame is before
    assert renderer.state is FogState.SETTLED

    # Next event repaints normally
    renderer._on_frame()
    assert renderer.last_frame is not before


def test_failed_attach_releases_everything() -> None:
    map_view = MapWidget(TIMES_SQUARE, 16)
    map_view.resize(800, 600)
    renderer = FogRenderer(map_view, Config())

    with patch.object(renderer, "_render", side_effect=RuntimeError("no gpu")):
        with pytest.raises(RuntimeError):
            renderer.attach()

    assert renderer.state is FogState.DETACHED
    assert map_view.overlays == []
    map_view.move_started.emit()
    assert renderer.state is FogState.DETACHED


# ------------------------------------------------------------------
# Release
# ------------------------------------------------------------------

def test_release_mid_fade_leaves_nothing_pending() -> None:
    map_view, renderer, clock = _make()
    handle = renderer.attach()
    map_view.move_started.emit()
    map_view.move_finished.emit()
    _fire_settle(renderer)
    assert renderer.frame_pending

    frames = []
    renderer.frame_rendered.connect(frames.append)
    handle.release()

    assert handle.released
    assert renderer.state is FogState.DETACHED
    assert not renderer.frame_pending
    assert not renderer.settle_pending
    assert map_view.overlays == []

    # Stale callbacks and map events draw nothing
    clock.now = 0.5
    renderer._on_frame()
    renderer._on_settle_timeout()
    map_view.move_started.emit()
    map_view.move_finished.emit()
    QTest.qWait(50)
    assert frames == []
    assert not renderer.settle_pending


def test_release_is_idempotent_and_scoped() -> None:
    map_view = MapWidget(TIMES_SQUARE, 16)
    map_view.resize(800, 600)
    renderer = FogRenderer(map_view, Config())

    with renderer.attach() as handle:
        assert len(map_view.overlays) == 1
        assert renderer.attach() is handle

    assert handle.released
    assert map_view.overlays == []
    handle.release()
    renderer.release()
    assert renderer.state is FogState.DETACHED

    with pytest.raises(RuntimeError):
        renderer.attach()


def test_plain_click_keeps_holes() -> None:
    map_view, renderer, _ = _make()

    QTest.mouseClick(map_view, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(400, 300))

    assert renderer.state is FogState.SETTLED
    assert not renderer.settle_pending
    assert not renderer.last_frame.opaque
    assert renderer.last_frame.holes == (CELL,)
