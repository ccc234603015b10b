"""Main application window: the map, its fog overlay, and exploration stats."""

from __future__ import annotations

import time

from PyQt6.QtCore import Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QKeySequence, QShortcut
from PyQt6.QtWidgets import (
    QCheckBox,
    QLabel,
    QMainWindow,
    QPushButton,
    QStatusBar,
    QToolBar,
    QWidget,
)

from fogtrail.config import Config
from fogtrail.exploration import ExplorationStats
from fogtrail.fog_state import FogState
from fogtrail.geometry import GeoPoint
from fogtrail.records import ExplorationSnapshot
from fogtrail.ui.fog_renderer import FogRenderer, OverlayHandle
from fogtrail.ui.map_widget import MapWidget


class MapWindow(QMainWindow):
    """Top-level window for the fogtrail exploration map."""

    refresh_requested = pyqtSignal()

    def __init__(self, config: Config, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.config = config

        self.setWindowTitle("Fogtrail - Exploration Map")
        self.resize(900, 700)

        # Central map widget with the fog attached
        self.map_widget = MapWidget(config.default_center, config.default_zoom, parent=self)
        self.setCentralWidget(self.map_widget)
        self.fog = FogRenderer(self.map_widget, config, parent=self)
        self._fog_handle: OverlayHandle = self.fog.attach()
        self._explored: set[str] = set()

        toolbar = QToolBar("Map", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self._refresh_btn = QPushButton("Refresh")
        self._refresh_btn.clicked.connect(self.refresh_requested)
        toolbar.addWidget(self._refresh_btn)

        toolbar.addSeparator()

        self._center_btn = QPushButton("Center on Me")
        self._center_btn.clicked.connect(self.map_widget.center_on_user)
        toolbar.addWidget(self._center_btn)

        toolbar.addSeparator()

        self._fog_checkbox = QCheckBox("Fog")
        self._fog_checkbox.setChecked(True)
        self._fog_checkbox.toggled.connect(self.fog.set_visible)
        toolbar.addWidget(self._fog_checkbox)

        # Status bar
        self._status_bar = QStatusBar(self)
        self.setStatusBar(self._status_bar)

        self._status_label = QLabel("")
        self._cells_label = QLabel("Cells: 0")
        self._distance_label = QLabel("Distance: -")
        self._area_label = QLabel("Area: -")
        self._fog_label = QLabel("")
        self._last_sync_label = QLabel("")

        self._status_bar.addWidget(self._status_label, stretch=1)
        self._status_bar.addPermanentWidget(self._fog_label)
        self._status_bar.addPermanentWidget(self._cells_label)
        self._status_bar.addPermanentWidget(self._distance_label)
        self._status_bar.addPermanentWidget(self._area_label)
        self._status_bar.addPermanentWidget(self._last_sync_label)

        self._last_sync_time: float | None = None
        self.fog.state_changed.connect(self._on_fog_state)
        self._on_fog_state(self.fog.state)

        # Timer to refresh the "last synced" display
        self._staleness_timer = QTimer(self)
        self._staleness_timer.timeout.connect(self._update_staleness)
        self._staleness_timer.start(1000)

        # Keyboard shortcuts
        QShortcut(QKeySequence(Qt.Key.Key_Home), self, self.map_widget.center_on_user)
        QShortcut(QKeySequence(Qt.Key.Key_Plus), self, self.map_widget.zoom_in)
        QShortcut(QKeySequence(Qt.Key.Key_Equal), self, self.map_widget.zoom_in)
        QShortcut(QKeySequence(Qt.Key.Key_Minus), self, self.map_widget.zoom_out)
        QShortcut(QKeySequence(Qt.Key.Key_Left), self, self.map_widget.pan_left)
        QShortcut(QKeySequence(Qt.Key.Key_Right), self, self.map_widget.pan_right)
        QShortcut(QKeySequence(Qt.Key.Key_Up), self, self.map_widget.pan_up)
        QShortcut(QKeySequence(Qt.Key.Key_Down), self, self.map_widget.pan_down)

        self.set_status("Waiting for first sync...")

    # ------------------------------------------------------------------
    # Exploration data
    # ------------------------------------------------------------------

    @property
    def explored_cells(self) -> set[str]:
        return self._explored

    def apply_snapshot(self, snapshot: ExplorationSnapshot) -> None:
        """Hand a freshly fetched snapshot to the fog and the stats display."""
        self._explored = snapshot.cell_ids
        self.fog.set_snapshot(snapshot.records)
        self.set_stats(snapshot.stats)
        self._last_sync_time = time.time()
        self._update_staleness()

    def set_stats(self, stats: ExplorationStats) -> None:
        self._cells_label.setText(f"Cells: {stats.unique_cells}")
        self._distance_label.setText(
            f"Distance: {stats.estimated_distance_km:.2f} km"
            f" ({stats.estimated_distance_miles:.2f} mi)"
        )
        self._area_label.setText(f"Area: {stats.total_area_sq_km:.4f} km²")

    def set_user_location(self, point: GeoPoint | None) -> None:
        self.map_widget.set_user_location(point)

    # ------------------------------------------------------------------
    # Status bar updates
    # ------------------------------------------------------------------

    def set_status(self, text: str) -> None:
        self._status_label.setText(text)

    def show_reported_cell(self, cell_id: str) -> None:
        self.set_status(f"Reported cell {cell_id}")

    def _on_fog_state(self, state: FogState) -> None:
        self._fog_label.setText(f"Fog: {state.value}")

    def _update_staleness(self) -> None:
        if self._last_sync_time is None:
            self._last_sync_label.setText("")
            return
        elapsed = time.time() - self._last_sync_time
        if elapsed < 60:
            self._last_sync_label.setText(f"Synced: {elapsed:.0f}s ago")
        else:
            mins = int(elapsed // 60)
            self._last_sync_label.setText(f"Synced: {mins}m ago")

    # ------------------------------------------------------------------
    # Fog toggle
    # ------------------------------------------------------------------

    def set_fog_visible(self, visible: bool) -> None:
        self._fog_checkbox.setChecked(visible)

    def is_fog_visible(self) -> bool:
        return self._fog_checkbox.isChecked()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def closeEvent(self, event) -> None:  # noqa: N802
        self._fog_handle.release()
        super().closeEvent(event)

    def get_geometry_dict(self) -> dict:
        geo = self.geometry()
        return {"x": geo.x(), "y": geo.y(), "width": geo.width(), "height": geo.height()}

    def restore_geometry_dict(self, d: dict) -> None:
        if all(k in d for k in ("x", "y", "width", "height")):
            self.setGeometry(d["x"], d["y"], d["width"], d["height"])
