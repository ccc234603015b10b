"""Fog-of-war overlay: an opaque layer with holes for explored cells.

The renderer owns one overlay surface on the map. While the view moves it
paints undifferentiated fog; once motion has settled it fades explored cells
in over ``fade_duration_ms`` with an ease-out curve. All of it runs on the
GUI thread, driven by map signals and two single-shot timers: the settle
debounce and the frame callback that coalesces repaints.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from PyQt6.QtCore import QObject, QPointF, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QColor, QImage, QPainter, QPainterPath, QPolygonF

from fogtrail.config import Config
from fogtrail.fog_state import FadeAnimation, FogEvent, FogState, transition
from fogtrail.records import ExploredCellRecord
from fogtrail.spatial_index import SpatialIndex
from fogtrail.ui.map_widget import MapWidget, OverlaySurface

log = logging.getLogger(__name__)


class RenderSurfaceUnavailable(RuntimeError):
    """The overlay surface could not be drawn on."""


@dataclass(frozen=True)
class FrameReport:
    """What the last repaint put on the surface."""

    state: FogState
    opaque: bool
    alpha: float
    holes: tuple[str, ...] = ()


def _rgba(values: tuple[int, int, int, float]) -> QColor:
    r, g, b, a = values
    return QColor(r, g, b, round(255 * a))


class OverlayHandle:
    """Scoped ownership of an attached fog overlay.

    ``release()`` may be called any number of times; the handle also works
    as a context manager.
    """

    def __init__(self, renderer: FogRenderer) -> None:
        self._renderer = renderer

    @property
    def released(self) -> bool:
        return self._renderer.state is FogState.DETACHED

    def release(self) -> None:
        self._renderer.release()

    def __enter__(self) -> OverlayHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class FogRenderer(QObject):
    """Owns the fog surface on a :class:`MapWidget` and its render state."""

    state_changed = pyqtSignal(object)  # FogState
    frame_rendered = pyqtSignal(object)  # FrameReport

    def __init__(
        self,
        map_view: MapWidget,
        config: Config,
        parent: QObject | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(parent)
        self._map = map_view
        self._config = config
        self._lod = config.lod_policy()
        self._clock = clock

        self._index = SpatialIndex()
        self._state = FogState.IDLE
        self._surface: OverlaySurface | None = None
        self._handle: OverlayHandle | None = None
        self._fade: FadeAnimation | None = None
        self._last_zoom = map_view.zoom()
        self._last_frame: FrameReport | None = None
        self._connected = False

        self._settle_timer = QTimer(self)
        self._settle_timer.setSingleShot(True)
        self._settle_timer.setInterval(config.settle_delay_ms)
        self._settle_timer.timeout.connect(self._on_settle_timeout)

        # At most one pending repaint; restarting the timer replaces it
        self._frame_timer = QTimer(self)
        self._frame_timer.setSingleShot(True)
        self._frame_timer.setInterval(config.frame_interval_ms)
        self._frame_timer.timeout.connect(self._on_frame)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> FogState:
        return self._state

    @property
    def index(self) -> SpatialIndex:
        return self._index

    @property
    def last_frame(self) -> FrameReport | None:
        return self._last_frame

    @property
    def last_zoom(self) -> int:
        return self._last_zoom

    @property
    def fade_active(self) -> bool:
        return self._fade is not None

    @property
    def settle_pending(self) -> bool:
        return self._settle_timer.isActive()

    @property
    def frame_pending(self) -> bool:
        return self._frame_timer.isActive()

    def attach(self) -> OverlayHandle:
        """Put the fog surface on the map and start following its events."""
        if self._state is FogState.DETACHED:
            raise RuntimeError("Fog renderer has been released")
        if self._handle is not None:
            return self._handle

        try:
            self._surface = OverlaySurface()
            self._map.add_overlay(self._surface)
            self._connect()
            self._last_zoom = self._map.zoom()
            self._dispatch(FogEvent.REFRESH)
            self._render()
        except Exception:
            self.release()
            raise

        self._handle = OverlayHandle(self)
        return self._handle

    def release(self) -> None:
        """Cancel pending callbacks and take the surface off the map."""
        if self._state is FogState.DETACHED:
            return
        self._settle_timer.stop()
        self._frame_timer.stop()
        self._fade = None
        self._disconnect()
        if self._surface is not None:
            self._map.remove_overlay(self._surface)
            self._surface = None
        self._dispatch(FogEvent.DETACH)

    def set_snapshot(self, records: Iterable[ExploredCellRecord]) -> None:
        """Replace the explored cells wholesale."""
        self._index = SpatialIndex(records)
        self.request_repaint()

    def set_visible(self, visible: bool) -> None:
        if self._surface is not None:
            self._surface.visible = visible
            self._map.update()

    def request_repaint(self) -> None:
        """Schedule a repaint on the next frame, replacing any pending one."""
        if self._state is FogState.DETACHED:
            return
        self._frame_timer.start()

    # ------------------------------------------------------------------
    # Map events
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        self._map.move_started.connect(self._on_move_start)
        self._map.zoom_started.connect(self._on_move_start)
        self._map.move_finished.connect(self._on_move_end)
        self._map.zoom_finished.connect(self._on_move_end)
        self._map.view_changed.connect(self.request_repaint)
        self._connected = True

    def _disconnect(self) -> None:
        if not self._connected:
            return
        self._map.move_started.disconnect(self._on_move_start)
        self._map.zoom_started.disconnect(self._on_move_start)
        self._map.move_finished.disconnect(self._on_move_end)
        self._map.zoom_finished.disconnect(self._on_move_end)
        self._map.view_changed.disconnect(self.request_repaint)
        self._connected = False

    def _on_move_start(self) -> None:
        if self._state is FogState.DETACHED:
            return
        self._settle_timer.stop()
        if self._state is FogState.MOVING:
            return

        # Abandon any partial fade; cells never show through during motion
        self._fade = None
        self._frame_timer.stop()
        self._dispatch(FogEvent.MOVE_START)
        log.debug("Movement detected - showing solid fog")
        self._render()

    def _on_move_end(self) -> None:
        if self._state is FogState.DETACHED:
            return
        self._dispatch(FogEvent.MOVE_END)
        self._settle_timer.start()

    def _on_settle_timeout(self) -> None:
        if self._state is FogState.DETACHED:
            return
        log.debug("Movement settled - starting fade animation")
        self._last_zoom = self._map.zoom()
        self._dispatch(FogEvent.SETTLE_ELAPSED)
        self._fade = FadeAnimation(self._clock(), self._config.fade_duration_ms / 1000)
        self._frame_timer.start()

    def _on_frame(self) -> None:
        if self._state is FogState.DETACHED:
            return
        if self._state is FogState.FADING and self._fade is not None:
            now = self._clock()
            self._render(self._fade.progress(now))
            if self._fade.finished(now):
                self._fade = None
                self._dispatch(FogEvent.FADE_COMPLETE)
            else:
                self._frame_timer.start()
            return
        self._render()

    def _dispatch(self, event: FogEvent) -> None:
        new_state = transition(self._state, event)
        if new_state is not self._state:
            log.debug("Fog %s -> %s on %s", self._state.value, new_state.value, event.value)
            self._state = new_state
            self.state_changed.emit(new_state)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _render(self, alpha: float = 1.0) -> None:
        if self._surface is None or self._state is FogState.DETACHED:
            return
        try:
            self._fit_surface(self._surface)
            report = self._paint(self._surface, alpha)
        except RenderSurfaceUnavailable as exc:
            log.warning("Skipping fog frame: %s", exc)
            return

        self._last_frame = report
        self.frame_rendered.emit(report)
        self._map.update()

    def _fit_surface(self, surface: OverlaySurface) -> None:
        """Match the surface to the viewport pixel size and pane offset."""
        size = self._map.viewport_size()
        if size.isEmpty():
            raise RenderSurfaceUnavailable("viewport has no area")
        if surface.image.size() != size:
            surface.image = QImage(size, QImage.Format.Format_ARGB32_Premultiplied)
        surface.origin = self._map.pane_offset()

    def _paint(self, surface: OverlaySurface, alpha: float) -> FrameReport:
        image = surface.image
        if image.isNull():
            raise RenderSurfaceUnavailable("surface has no pixels")

        painter = QPainter()
        if not painter.begin(image):
            raise RenderSurfaceUnavailable("could not begin painting")
        try:
            zoom = self._map.zoom()
            if self._lod.below_render_threshold(zoom) or self._state is FogState.MOVING:
                self._fill(painter, image, _rgba(self._config.moving_fog_rgba))
                return FrameReport(self._state, opaque=True, alpha=0.0)

            self._fill(painter, image, _rgba(self._config.settled_fog_rgba))
            try:
                holes = self._punch_holes(painter, surface, zoom, alpha)
            except Exception:
                # Showing nothing explored beats showing corrupted holes
                log.exception("Hole compositing failed, falling back to solid fog")
                self._fill(painter, image, _rgba(self._config.moving_fog_rgba))
                return FrameReport(self._state, opaque=True, alpha=0.0)
            return FrameReport(self._state, opaque=False, alpha=alpha, holes=holes)
        finally:
            painter.end()

    def _fill(self, painter: QPainter, image: QImage, color: QColor) -> None:
        painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_Source)
        painter.fillRect(image.rect(), color)
        painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_SourceOver)

    def _visible_cells(self, zoom: int) -> list[ExploredCellRecord]:
        view = self._map.view_bounds().pad(self._config.view_padding)
        return self._lod.simplify(self._index.query_bounds(view), zoom)

    def _punch_holes(
        self, painter: QPainter, surface: OverlaySurface, zoom: int, alpha: float
    ) -> tuple[str, ...]:
        origin = QPointF(surface.origin)
        path = QPainterPath()
        path.setFillRule(Qt.FillRule.WindingFill)
        holes: list[str] = []

        for cell in self._visible_cells(zoom):
            if len(cell.boundary) < 3:
                continue
            polygon = QPolygonF([self._map.project(p) - origin for p in cell.boundary])
            path.addPolygon(polygon)
            path.closeSubpath()
            holes.append(cell.cell_id)

        # One fill for all holes, so overlapping cells don't erase twice
        if holes and alpha > 0:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_DestinationOut)
            painter.fillPath(path, QColor(0, 0, 0, round(255 * alpha)))
            painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_SourceOver)

        log.debug("Rendered %d holes at alpha %.2f", len(holes), alpha)
        return tuple(holes)
