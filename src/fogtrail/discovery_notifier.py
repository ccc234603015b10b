"""Notifies the user when they step into a cell they have never explored."""

from __future__ import annotations

import logging
from typing import Container

from PyQt6.QtWidgets import QApplication

from fogtrail.hex_grid import is_valid_cell

log = logging.getLogger(__name__)


class DiscoveryNotifier:
    """Tracks the user's current cell and emits an audio cue on discovery."""

    def __init__(self) -> None:
        self._current_cell: str | None = None
        self._discovered = 0

    def update(self, cell_id: str | None, explored: Container[str]) -> str | None:
        """Update with the cell the user is now in.

        Returns:
            The cell id if the user just entered an unexplored cell, otherwise None.
        """
        if not is_valid_cell(cell_id) or cell_id == self._current_cell:
            return None

        self._current_cell = cell_id
        if cell_id in explored:
            return None

        self._discovered += 1
        log.info("Discovered new cell %s", cell_id)
        app = QApplication.instance()
        if app is not None:
            app.beep()
        return cell_id

    @property
    def current_cell(self) -> str | None:
        return self._current_cell

    @property
    def discovered_count(self) -> int:
        return self._discovered
