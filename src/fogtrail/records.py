"""Explored-cell snapshot records as delivered by the exploration backend.

The backend sends a GeoJSON FeatureCollection; each feature is one explored
cell with its boundary ring in ``[lat, lng]`` order, closed by repeating
the first vertex.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from fogtrail.exploration import ExplorationMethod, ExplorationStats
from fogtrail.geometry import GeoPoint
from fogtrail.hex_grid import is_valid_cell

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExploredCellRecord:
    """One explored cell, immutable for a render cycle."""

    cell_id: str
    first_visited_at: datetime | None
    exploration_method: ExplorationMethod
    boundary: tuple[GeoPoint, ...] = ()

    @classmethod
    def from_feature(cls, feature: dict) -> ExploredCellRecord | None:
        """Parse one GeoJSON feature, or return None if its cell id is unusable."""
        props = feature.get("properties") or {}
        cell_id = props.get("hexIndex")
        if not is_valid_cell(cell_id):
            log.debug("Skipping feature with invalid cell id %r", cell_id)
            return None

        return cls(
            cell_id=cell_id,
            first_visited_at=_parse_timestamp(props.get("firstVisited")),
            exploration_method=_parse_method(props.get("explorationMethod")),
            boundary=_parse_ring(feature.get("geometry"), cell_id),
        )


@dataclass
class ExplorationSnapshot:
    """Everything fetched for a user in one request."""

    records: list[ExploredCellRecord] = field(default_factory=list)
    stats: ExplorationStats = field(default_factory=ExplorationStats)

    @classmethod
    def empty(cls) -> ExplorationSnapshot:
        return cls()

    @property
    def cell_ids(self) -> set[str]:
        return {r.cell_id for r in self.records}


def parse_feature_collection(collection: dict | None) -> list[ExploredCellRecord]:
    """Parse every usable feature of a FeatureCollection."""
    if not collection:
        return []
    records = []
    for feature in collection.get("features") or []:
        if not isinstance(feature, dict):
            continue
        record = ExploredCellRecord.from_feature(feature)
        if record is not None:
            records.append(record)
    return records


def _parse_ring(geometry: object, cell_id: str) -> tuple[GeoPoint, ...]:
    # Anything malformed yields an empty ring; the renderer skips those cells.
    try:
        ring = geometry["coordinates"][0]  # type: ignore[index]
        points = tuple(GeoPoint(float(c[0]), float(c[1])) for c in ring)
    except (KeyError, IndexError, TypeError, ValueError):
        log.debug("Malformed boundary for %s", cell_id)
        return ()
    # The ring repeats its first vertex to close
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    if len(points) < 3 or not all(p.is_valid for p in points):
        log.debug("Unusable boundary for %s (%d points)", cell_id, len(points))
        return ()
    return points


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_method(value: object) -> ExplorationMethod:
    try:
        return ExplorationMethod(value)
    except ValueError:
        return ExplorationMethod.WALKING
