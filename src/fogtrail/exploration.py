"""Translate raw telemetry into exploration semantics.

Distance and area estimates are linear in the visit/cell counts: every visit
is credited one average cell diameter and every unique cell one average cell
area. That is a known precision trade-off, not a path integral; it
over-counts lingering in one cell and under-counts long straight drives.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fogtrail.geometry import GeoPoint, LatLngBounds

# Average resolution-9 cell figures
CELL_DIAMETER_M = 9.3
CELL_AREA_SQ_M = 259.0

# Speed classification thresholds (mph); each bound belongs to the slower mode
WALKING_MAX_MPH = 3.0
BIKING_MAX_MPH = 15.0

# Samples faster than this are rejected before they reach the backend
MAX_SPEED_MPH = 200.0

METERS_PER_MILE = 1609.344

# Initial deployment area (New York City)
SERVICE_AREA = LatLngBounds(south=40.4774, west=-74.2591, north=40.9176, east=-73.7004)


class ExplorationMethod(str, Enum):
    WALKING = "walking"
    BIKING = "biking"
    DRIVING = "driving"


def classify_method(speed_mph: float) -> ExplorationMethod:
    """Walking up to 3 mph, biking up to 15 mph, driving above."""
    if speed_mph <= WALKING_MAX_MPH:
        return ExplorationMethod.WALKING
    if speed_mph <= BIKING_MAX_MPH:
        return ExplorationMethod.BIKING
    return ExplorationMethod.DRIVING


def estimate_distance(visit_count: int) -> float:
    """Meters travelled, estimated from the number of cell visits."""
    return visit_count * CELL_DIAMETER_M


def estimate_area(unique_cell_count: int) -> float:
    """Square meters explored, estimated from the number of unique cells."""
    return unique_cell_count * CELL_AREA_SQ_M


def validate_speed(speed_mph: float) -> float:
    if not 0 <= speed_mph <= MAX_SPEED_MPH:
        raise ValueError(f"Speed must be between 0 and {MAX_SPEED_MPH:g} mph, got {speed_mph}")
    return speed_mph


def is_within_service_area(point: GeoPoint) -> bool:
    return SERVICE_AREA.contains(point)


@dataclass(frozen=True)
class ExplorationStats:
    """Aggregate exploration figures for one user."""

    total_visits: int = 0
    unique_cells: int = 0
    estimated_distance_m: float = 0.0
    total_area_sq_m: float = 0.0

    @classmethod
    def from_counts(cls, total_visits: int, unique_cells: int) -> ExplorationStats:
        return cls(
            total_visits=total_visits,
            unique_cells=unique_cells,
            estimated_distance_m=estimate_distance(total_visits),
            total_area_sq_m=estimate_area(unique_cells),
        )

    @property
    def estimated_distance_km(self) -> float:
        return self.estimated_distance_m / 1000

    @property
    def estimated_distance_miles(self) -> float:
        return self.estimated_distance_m / METERS_PER_MILE

    @property
    def total_area_sq_km(self) -> float:
        return self.total_area_sq_m / 1_000_000
