"""Slippy map widget: Web Mercator view with pan, zoom and overlay surfaces."""

from __future__ import annotations

import math
import time

from PyQt6.QtCore import QPoint, QPointF, QSize, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QImage, QPainter, QPen, QWheelEvent
from PyQt6.QtWidgets import QWidget

from fogtrail.geometry import (
    MAX_MERCATOR_LAT,
    TILE_SIZE,
    GeoPoint,
    LatLngBounds,
    ViewportState,
    latlng_to_world,
    world_to_latlng,
)

MIN_ZOOM = 2
MAX_ZOOM = 19
_PAN_STEP = 80.0


class OverlaySurface:
    """A pixel surface laid over the map, owned by whoever created it."""

    def __init__(self) -> None:
        self.image = QImage()
        self.origin = QPoint(0, 0)
        self.visible = True


class MapWidget(QWidget):
    """Integer-zoom Web Mercator map with drag pan, wheel zoom and a user marker.

    Emits start/finish signals around every pan and zoom so overlays can
    switch to a cheap rendering mode while the view is unstable.
    """

    move_started = pyqtSignal()
    move_finished = pyqtSignal()
    zoom_started = pyqtSignal()
    zoom_finished = pyqtSignal()
    view_changed = pyqtSignal()
    location_picked = pyqtSignal(object)  # GeoPoint

    def __init__(
        self,
        center: GeoPoint = GeoPoint(40.7589, -73.9851),
        zoom: int = 16,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)

        # View state: integer zoom plus the view center in world pixels
        self._zoom = max(MIN_ZOOM, min(MAX_ZOOM, zoom))
        self._center = QPointF(*latlng_to_world(center, self._zoom))
        self._drag_start: QPointF | None = None
        self._dragging = False
        self._center_at_drag_start = QPointF(self._center)

        self._user_location: GeoPoint | None = None
        self._overlays: list[OverlaySurface] = []

        # Pulse animation
        self._pulse_timer = QTimer(self)
        self._pulse_timer.timeout.connect(self.update)
        self._pulse_timer.start(50)

        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def zoom(self) -> int:
        return self._zoom

    def center(self) -> GeoPoint:
        return world_to_latlng(self._center.x(), self._center.y(), self._zoom)

    def viewport_size(self) -> QSize:
        return self.size()

    def pane_offset(self) -> QPoint:
        """Where overlay surfaces are placed, in widget coordinates."""
        return self.contentsRect().topLeft()

    def project(self, point: GeoPoint) -> QPointF:
        """Geographic point to widget pixel position."""
        wx, wy = latlng_to_world(point, self._zoom)
        return QPointF(
            wx - self._center.x() + self.width() / 2,
            wy - self._center.y() + self.height() / 2,
        )

    def unproject(self, pos: QPointF) -> GeoPoint:
        """Widget pixel position to geographic point."""
        return world_to_latlng(
            pos.x() + self._center.x() - self.width() / 2,
            pos.y() + self._center.y() - self.height() / 2,
            self._zoom,
        )

    def view_bounds(self) -> LatLngBounds:
        nw = self.unproject(QPointF(0, 0))
        se = self.unproject(QPointF(self.width(), self.height()))
        return LatLngBounds(
            south=max(-MAX_MERCATOR_LAT, se.latitude),
            west=max(-180.0, nw.longitude),
            north=min(MAX_MERCATOR_LAT, nw.latitude),
            east=min(180.0, se.longitude),
        )

    def viewport_state(self) -> ViewportState:
        return ViewportState(bounds=self.view_bounds(), zoom=self._zoom)

    # ------------------------------------------------------------------
    # Overlay hosting
    # ------------------------------------------------------------------

    def add_overlay(self, surface: OverlaySurface) -> None:
        if surface not in self._overlays:
            self._overlays.append(surface)
        self.update()

    def remove_overlay(self, surface: OverlaySurface) -> None:
        if surface in self._overlays:
            self._overlays.remove(surface)
        self.update()

    @property
    def overlays(self) -> list[OverlaySurface]:
        return list(self._overlays)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_user_location(self, point: GeoPoint | None) -> None:
        """Update the user marker position."""
        self._user_location = point
        self.update()

    def set_view(self, center: GeoPoint, zoom: int | None = None) -> None:
        """Jump to ``center`` (and ``zoom``), emitting a full move cycle."""
        new_zoom = self._zoom if zoom is None else max(MIN_ZOOM, min(MAX_ZOOM, zoom))
        zooming = new_zoom != self._zoom
        self.move_started.emit()
        if zooming:
            self.zoom_started.emit()
        self._zoom = new_zoom
        self._center = QPointF(*latlng_to_world(center, self._zoom))
        self._view_changed()
        if zooming:
            self.zoom_finished.emit()
        self.move_finished.emit()

    def center_on(self, point: GeoPoint) -> None:
        self.set_view(point)

    def center_on_user(self) -> None:
        if self._user_location is None:
            return
        self.center_on(self._user_location)

    def zoom_in(self) -> None:
        self._zoom_about(QPointF(self.width() / 2, self.height() / 2), 1)

    def zoom_out(self) -> None:
        self._zoom_about(QPointF(self.width() / 2, self.height() / 2), -1)

    def pan_left(self) -> None:
        self._pan_by(-_PAN_STEP, 0)

    def pan_right(self) -> None:
        self._pan_by(_PAN_STEP, 0)

    def pan_up(self) -> None:
        self._pan_by(0, -_PAN_STEP)

    def pan_down(self) -> None:
        self._pan_by(0, _PAN_STEP)

    def get_view_state(self) -> dict:
        """Return the current center/zoom for persistence."""
        c = self.center()
        return {"lat": c.latitude, "lng": c.longitude, "zoom": self._zoom}

    def restore_view_state(self, state: dict) -> None:
        """Restore center/zoom from saved state."""
        if "lat" in state and "lng" in state:
            self.set_view(GeoPoint(state["lat"], state["lng"]), state.get("zoom"))

    # ------------------------------------------------------------------
    # View helpers
    # ------------------------------------------------------------------

    def _view_changed(self) -> None:
        self.view_changed.emit()
        self.update()

    def _pan_by(self, dx: float, dy: float) -> None:
        self.move_started.emit()
        self._center += QPointF(dx, dy)
        self._view_changed()
        self.move_finished.emit()

    def _zoom_about(self, anchor: QPointF, step: int) -> None:
        new_zoom = max(MIN_ZOOM, min(MAX_ZOOM, self._zoom + step))
        if new_zoom == self._zoom:
            return
        self.move_started.emit()
        self.zoom_started.emit()

        # Keep the geographic point under the anchor fixed
        anchor_geo = self.unproject(anchor)
        self._zoom = new_zoom
        ax, ay = latlng_to_world(anchor_geo, self._zoom)
        self._center = QPointF(
            ax - anchor.x() + self.width() / 2,
            ay - anchor.y() + self.height() / 2,
        )
        self._view_changed()

        self.zoom_finished.emit()
        self.move_finished.emit()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def wheelEvent(self, event: QWheelEvent) -> None:  # noqa: N802
        step = 1 if event.angleDelta().y() > 0 else -1
        self._zoom_about(event.position(), step)

    def mousePressEvent(self, event) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            self._drag_start = event.position()
            self._center_at_drag_start = QPointF(self._center)
            self._dragging = False
        elif event.button() == Qt.MouseButton.RightButton:
            # Manual "I'm here" for machines without a location source
            self.location_picked.emit(self.unproject(event.position()))

    def mouseMoveEvent(self, event) -> None:  # noqa: N802
        if self._drag_start is not None:
            delta = event.position() - self._drag_start
            if delta.isNull():
                return
            if not self._dragging:
                self._dragging = True
                self.setCursor(Qt.CursorShape.ClosedHandCursor)
                self.move_started.emit()
            self._center = self._center_at_drag_start - delta
            self._view_changed()

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton and self._drag_start is not None:
            self._drag_start = None
            if self._dragging:
                self._dragging = False
                self.setCursor(Qt.CursorShape.ArrowCursor)
                self.move_finished.emit()

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paintEvent(self, event) -> None:  # noqa: N802
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        # Background
        painter.fillRect(self.rect(), QColor(32, 38, 46))

        self._draw_tile_grid(painter)

        for surface in self._overlays:
            if surface.visible and not surface.image.isNull():
                painter.drawImage(surface.origin, surface.image)

        # Marker stays above the fog
        self._draw_user_marker(painter)

        painter.end()

    def _draw_tile_grid(self, painter: QPainter) -> None:
        """Faint lines on tile edges so panning is visible without imagery."""
        painter.setPen(QPen(QColor(55, 64, 76), 1))
        left = self._center.x() - self.width() / 2
        top = self._center.y() - self.height() / 2

        x = math.floor(left / TILE_SIZE) * TILE_SIZE - left
        while x < self.width():
            painter.drawLine(QPointF(x, 0), QPointF(x, self.height()))
            x += TILE_SIZE
        y = math.floor(top / TILE_SIZE) * TILE_SIZE - top
        while y < self.height():
            painter.drawLine(QPointF(0, y), QPointF(self.width(), y))
            y += TILE_SIZE

    def _draw_user_marker(self, painter: QPainter) -> None:
        if self._user_location is None:
            return

        sp = self.project(self._user_location)

        # Pulsing effect
        t = time.time()
        pulse = 0.5 + 0.5 * math.sin(t * 4)
        radius = 7 + 3 * pulse

        # Outer glow
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(60, 140, 255, int(100 * pulse))))
        painter.drawEllipse(sp, radius * 2, radius * 2)

        # Inner dot
        painter.setBrush(QBrush(QColor(40, 110, 240)))
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.drawEllipse(sp, radius, radius)
