"""
Spatial indexing using the H3 hexagonal grid system.

Resolution 9 = ~174m hexagon edge length (~0.1 km² area), fine enough that
a walk down one block reveals its own cell.

Queries on an invalid cell return an empty or zero result instead of
raising. Only coordinate conversion raises.
"""
from __future__ import annotations

import logging

import h3

from fogtrail.geometry import GeoPoint, LatLngBounds

log = logging.getLogger(__name__)

# H3 resolution level
# 8 = ~460m edge (~0.74km² area)
# 9 = ~174m edge (~0.10km² area) ← exploration detail
# 10 = ~66m edge (~0.015km² area)
H3_RESOLUTION = 9

# Lattice density for bounding-box enumeration
BBOX_SAMPLES = 20
VIEWPORT_SAMPLES = 50

_ORIGIN = GeoPoint(0.0, 0.0)


class InvalidCoordinate(ValueError):
    """Latitude or longitude outside the valid range."""

    def __init__(self, lat: float, lng: float) -> None:
        super().__init__(f"Invalid coordinates: lat={lat}, lng={lng}")
        self.lat = lat
        self.lng = lng


def _in_range(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180


def coord_to_cell(point: GeoPoint, resolution: int = H3_RESOLUTION) -> str:
    """
    Convert a point to the H3 cell containing it.

    Args:
        point: Latitude/longitude in degrees
        resolution: H3 resolution (0-15)

    Returns:
        H3 cell ID (e.g., "892a100d2c3ffff")

    Raises:
        InvalidCoordinate: if the point is out of range
    """
    lat, lng = point.latitude, point.longitude
    if not _in_range(lat, lng):
        raise InvalidCoordinate(lat, lng)
    try:
        return h3.latlng_to_cell(lat, lng, resolution)
    except (h3.H3BaseException, ValueError, TypeError) as exc:
        raise InvalidCoordinate(lat, lng) from exc


def is_valid_cell(cell_id: object) -> bool:
    """Whether ``cell_id`` is a well-formed H3 cell token."""
    if not cell_id or not isinstance(cell_id, str):
        return False
    try:
        return bool(h3.is_valid_cell(cell_id))
    except (h3.H3BaseException, ValueError, TypeError):
        return False


def cell_to_boundary(cell_id: str) -> list[GeoPoint]:
    """
    Boundary polygon of a cell, counter-clockwise, not repeating the first vertex.

    Returns an empty list for an invalid cell; callers treat that as
    "unrenderable".
    """
    if not is_valid_cell(cell_id):
        return []
    try:
        return [GeoPoint(lat, lng) for lat, lng in h3.cell_to_boundary(cell_id)]
    except (h3.H3BaseException, ValueError) as exc:
        log.debug("Boundary lookup failed for %s: %s", cell_id, exc)
        return []


def cell_to_center(cell_id: str) -> GeoPoint:
    """Center of a cell, or (0, 0) for an invalid cell."""
    if not is_valid_cell(cell_id):
        return _ORIGIN
    try:
        lat, lng = h3.cell_to_latlng(cell_id)
    except (h3.H3BaseException, ValueError) as exc:
        log.debug("Center lookup failed for %s: %s", cell_id, exc)
        return _ORIGIN
    return GeoPoint(lat, lng)


def disk_within(cell_id: str, distance: int) -> set[str]:
    """
    All cells within ``distance`` grid steps, the center included.

    Examples:
        distance=0: 1 cell (just the center)
        distance=1: 7 cells (center + 6 neighbors)
        distance=2: 19 cells
    """
    if not is_valid_cell(cell_id) or distance < 0:
        return set()
    try:
        return set(h3.grid_disk(cell_id, distance))
    except (h3.H3BaseException, ValueError) as exc:
        log.debug("Disk query failed for %s k=%d: %s", cell_id, distance, exc)
        return set()


def ring_at(cell_id: str, distance: int) -> set[str]:
    """Cells at exactly ``distance`` grid steps: disk(k) minus disk(k-1)."""
    if not is_valid_cell(cell_id) or distance < 0:
        return set()
    if distance == 0:
        return {cell_id}
    return disk_within(cell_id, distance) - disk_within(cell_id, distance - 1)


def grid_distance(cell_a: str, cell_b: str) -> int:
    """Grid steps between two cells; 0 if either is invalid or H3 can't tell."""
    if not is_valid_cell(cell_a) or not is_valid_cell(cell_b):
        return 0
    try:
        return h3.grid_distance(cell_a, cell_b)
    except (h3.H3BaseException, ValueError) as exc:
        log.debug("Grid distance failed for %s/%s: %s", cell_a, cell_b, exc)
        return 0


def cells_in_bounding_box(
    min_lat: float,
    max_lat: float,
    min_lng: float,
    max_lng: float,
    resolution: int = H3_RESOLUTION,
    samples: int = BBOX_SAMPLES,
) -> set[str]:
    """
    Approximate the cells covering a box by sampling a lattice of points.

    The lattice has ``samples + 1`` points per axis, edges included. Thin
    slivers of cells poking in at the edges may be missed; in exchange the
    cost is bounded by the sample count, not the box area.

    Returns:
        Set of cell IDs, empty for a degenerate or out-of-range box
    """
    if (
        not _in_range(min_lat, min_lng)
        or not _in_range(max_lat, max_lng)
        or min_lat >= max_lat
        or min_lng >= max_lng
        or samples < 1
    ):
        return set()

    lat_step = (max_lat - min_lat) / samples
    lng_step = (max_lng - min_lng) / samples
    cells: set[str] = set()
    for i in range(samples + 1):
        lat = min_lat + i * lat_step
        for j in range(samples + 1):
            lng = min_lng + j * lng_step
            try:
                cells.add(h3.latlng_to_cell(lat, lng, resolution))
            except (h3.H3BaseException, ValueError):
                continue
    return cells


def cells_in_bounds(
    bounds: LatLngBounds,
    resolution: int = H3_RESOLUTION,
    samples: int = VIEWPORT_SAMPLES,
) -> set[str]:
    """Viewport flavour of :func:`cells_in_bounding_box`."""
    return cells_in_bounding_box(
        bounds.south, bounds.north, bounds.west, bounds.east, resolution, samples
    )
