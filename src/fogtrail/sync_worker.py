"""Background QThread that keeps the explored-cell snapshot fresh."""

from __future__ import annotations

import logging
import threading
import time

from PyQt6.QtCore import QThread, pyqtSignal

from fogtrail.config import Config
from fogtrail.exploration import is_within_service_area
from fogtrail.exploration_api import fetch_snapshot, report_location
from fogtrail.geometry import GeoPoint

log = logging.getLogger(__name__)


class SyncWorker(QThread):
    """Runs report -> fetch against the exploration backend on an interval."""

    snapshot_fetched = pyqtSignal(object)  # ExplorationSnapshot
    status_changed = pyqtSignal(str)
    cell_reported = pyqtSignal(str)

    def __init__(self, config: Config, parent=None) -> None:
        super().__init__(parent)
        self._config = config
        self._interval_ms = config.sync_interval_ms
        self._running = False
        self._lock = threading.Lock()
        self._location: GeoPoint | None = None
        self._speed_mph = config.report_speed_mph
        self._last_report: float | None = None
        self._sync_requested = False

    def set_location(self, point: GeoPoint | None, speed_mph: float | None = None) -> None:
        """Set the location reported on the next tick (thread-safe)."""
        with self._lock:
            self._location = point
            if speed_mph is not None:
                self._speed_mph = speed_mph

    def request_sync(self) -> None:
        """Cut the current wait short and sync on the next 100ms step."""
        self._sync_requested = True

    def stop(self) -> None:
        """Signal the worker to stop and wait for it to finish."""
        self._running = False
        self.wait()

    def run(self) -> None:
        self._running = True
        log.info("Sync worker started")

        while self._running:
            # Requests arriving during the tick still cut the next wait short
            self._sync_requested = False
            try:
                self._tick()
            except Exception:
                log.exception("Sync tick failed")
                self.status_changed.emit("Sync error")

            # Sleep in 100ms increments for responsive shutdown
            elapsed = 0
            while self._running and not self._sync_requested and elapsed < self._interval_ms:
                time.sleep(min(0.1, (self._interval_ms - elapsed) / 1000))
                elapsed += 100

        log.info("Sync worker stopped")

    def _tick(self) -> None:
        if not self._config.user_id:
            self.status_changed.emit("No user configured")
            return

        with self._lock:
            location = self._location
            speed = self._speed_mph

        if location is not None and not is_within_service_area(location):
            log.debug("Not reporting %s, outside the service area", location)
            location = None

        if location is not None:
            now = time.monotonic()
            time_spent = 0.0 if self._last_report is None else now - self._last_report
            self._last_report = now
            cell_id = report_location(
                self._config.api_base_url,
                self._config.user_id,
                location,
                speed,
                time_spent,
            )
            if cell_id:
                self.cell_reported.emit(cell_id)

        snapshot = fetch_snapshot(self._config.api_base_url, self._config.user_id)
        self.snapshot_fetched.emit(snapshot)
        self.status_changed.emit(f"Synced {len(snapshot.records)} cells")
