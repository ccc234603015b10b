"""In-memory index of a user's explored cells for viewport queries."""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np

from fogtrail.geometry import LatLngBounds
from fogtrail.hex_grid import is_valid_cell
from fogtrail.records import ExploredCellRecord

log = logging.getLogger(__name__)


class SpatialIndex:
    """Explored cells keyed by cell id, with precomputed bounds.

    Built once from a snapshot and never mutated; a new snapshot means a new
    index. Queries are a vectorized scan over an (n, 4) bounds array, which
    stays well under a millisecond for the few thousand cells a user fetch
    returns, so it is cheap enough to run on every animation frame.
    """

    def __init__(self, records: Iterable[ExploredCellRecord] = ()) -> None:
        self._records: dict[str, ExploredCellRecord] = {}
        skipped = 0
        for record in records:
            if not is_valid_cell(record.cell_id) or not record.boundary:
                skipped += 1
                continue
            # Later duplicates replace earlier ones
            self._records[record.cell_id] = record

        self._order: list[str] = list(self._records)
        self._rows: dict[str, int] = {cell_id: i for i, cell_id in enumerate(self._order)}
        bounds = np.empty((len(self._order), 4), dtype=np.float64)
        for i, cell_id in enumerate(self._order):
            boundary = self._records[cell_id].boundary
            lats = [p.latitude for p in boundary]
            lngs = [p.longitude for p in boundary]
            bounds[i] = (min(lats), min(lngs), max(lats), max(lngs))
        self._bounds = bounds
        self._extent: LatLngBounds | None = None
        if self._order:
            self._extent = LatLngBounds(
                float(bounds[:, 0].min()),
                float(bounds[:, 1].min()),
                float(bounds[:, 2].max()),
                float(bounds[:, 3].max()),
            )

        if skipped:
            log.debug("Skipped %d unusable records", skipped)
        log.info("Built spatial index for %d cells", len(self._order))

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._records

    @property
    def cell_ids(self) -> list[str]:
        return list(self._order)

    def get(self, cell_id: str) -> ExploredCellRecord | None:
        return self._records.get(cell_id)

    @property
    def extent(self) -> LatLngBounds | None:
        """Bounds covering every indexed cell, or None when empty."""
        return self._extent

    def bounds_of(self, cell_id: str) -> LatLngBounds | None:
        row = self._rows.get(cell_id)
        if row is None:
            return None
        s, w, n, e = self._bounds[row]
        return LatLngBounds(float(s), float(w), float(n), float(e))

    def query_bounds(self, view: LatLngBounds) -> list[ExploredCellRecord]:
        """Records whose bounds intersect ``view``, in snapshot order."""
        if self._extent is None or not self._extent.intersects(view):
            return []
        b = self._bounds
        hits = (
            (b[:, 2] >= view.south)
            & (b[:, 0] <= view.north)
            & (b[:, 3] >= view.west)
            & (b[:, 1] <= view.east)
        )
        return [self._records[self._order[i]] for i in np.flatnonzero(hits)]
