"""Entry point - sets up the QApplication, sync worker, and map window."""

from __future__ import annotations

import logging
import signal
import sys

from PyQt6.QtWidgets import QApplication

from fogtrail.config import Config
from fogtrail.discovery_notifier import DiscoveryNotifier
from fogtrail.geometry import GeoPoint
from fogtrail.hex_grid import InvalidCoordinate, coord_to_cell
from fogtrail.records import ExplorationSnapshot
from fogtrail.settings import load_settings, save_settings
from fogtrail.sync_worker import SyncWorker
from fogtrail.ui.map_window import MapWindow

log = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = Config()
    app = QApplication(sys.argv)

    # Allow Ctrl+C to close the app
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    # Load persisted settings
    saved = load_settings(config)

    window = MapWindow(config)

    # Restore window geometry
    if "window_geometry" in saved:
        window.restore_geometry_dict(saved["window_geometry"])
    # Restore map view state
    if "map_view" in saved:
        window.map_widget.restore_view_state(saved["map_view"])
    if saved.get("fog_visible") is False:
        window.set_fog_visible(False)

    window.show()

    worker = SyncWorker(config)
    notifier = DiscoveryNotifier()

    # ------------------------------------------------------------------
    # Sync signals (queued onto the GUI thread)
    # ------------------------------------------------------------------

    def on_snapshot(snapshot: ExplorationSnapshot) -> None:
        window.apply_snapshot(snapshot)
        log.info("Snapshot: %d explored cells", len(snapshot.records))

    def on_location_picked(point: GeoPoint) -> None:
        window.set_user_location(point)
        worker.set_location(point)
        try:
            cell_id = coord_to_cell(point, config.h3_resolution)
        except InvalidCoordinate:
            log.warning("Ignoring out-of-range location %s", point)
            return
        if notifier.update(cell_id, window.explored_cells):
            window.set_status(f"New cell discovered: {cell_id}")

    def on_shutdown() -> None:
        save_settings(
            config,
            window_geometry=window.get_geometry_dict(),
            map_view=window.map_widget.get_view_state(),
            fog_visible=window.is_fog_visible(),
        )
        worker.stop()

    worker.snapshot_fetched.connect(on_snapshot)
    worker.status_changed.connect(window.set_status)
    worker.cell_reported.connect(window.show_reported_cell)
    window.map_widget.location_picked.connect(on_location_picked)
    window.refresh_requested.connect(worker.request_sync)

    app.aboutToQuit.connect(on_shutdown)
    worker.start()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
