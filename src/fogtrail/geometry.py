"""Geographic value types and Web Mercator projection helpers.

Pixel coordinates are "world pixels" at a given integer zoom: the whole
Mercator square is ``TILE_SIZE * 2**zoom`` pixels wide, origin at the
north-west corner.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

TILE_SIZE = 256

# Web Mercator cannot represent the poles
MAX_MERCATOR_LAT = 85.05112878


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees."""

    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(frozen=True)
class LatLngBounds:
    """Axis-aligned lat/lng rectangle."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[GeoPoint]) -> LatLngBounds | None:
        """Smallest bounds containing every point, or None when there are none."""
        lats: list[float] = []
        lngs: list[float] = []
        for p in points:
            lats.append(p.latitude)
            lngs.append(p.longitude)
        if not lats:
            return None
        return cls(min(lats), min(lngs), max(lats), max(lngs))

    @property
    def is_valid(self) -> bool:
        return (
            -90.0 <= self.south < self.north <= 90.0
            and -180.0 <= self.west < self.east <= 180.0
        )

    def intersects(self, other: LatLngBounds) -> bool:
        # Edges touching count as an intersection
        return (
            other.north >= self.south
            and other.south <= self.north
            and other.east >= self.west
            and other.west <= self.east
        )

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.south <= point.latitude <= self.north
            and self.west <= point.longitude <= self.east
        )

    def pad(self, ratio: float) -> LatLngBounds:
        """Grow each side by ``ratio`` times the span on that axis."""
        dlat = (self.north - self.south) * ratio
        dlng = (self.east - self.west) * ratio
        return LatLngBounds(
            self.south - dlat,
            self.west - dlng,
            self.north + dlat,
            self.east + dlng,
        )


@dataclass(frozen=True)
class ViewportState:
    """What the map currently shows."""

    bounds: LatLngBounds
    zoom: int


def world_size(zoom: int) -> float:
    return TILE_SIZE * (2 ** zoom)


def latlng_to_world(point: GeoPoint, zoom: int) -> tuple[float, float]:
    """Project a point to absolute world pixels at the given zoom."""
    size = world_size(zoom)
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, point.latitude))
    x = (point.longitude + 180.0) / 360.0 * size
    lat_rad = math.radians(lat)
    y = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * size
    return x, y


def world_to_latlng(x: float, y: float, zoom: int) -> GeoPoint:
    """Inverse of :func:`latlng_to_world`."""
    size = world_size(zoom)
    lng = x / size * 360.0 - 180.0
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * y / size)))
    return GeoPoint(math.degrees(lat_rad), lng)
