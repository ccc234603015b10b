"""Exploration backend client.

Fetches a user's explored-cell snapshot and reports location samples. The
backend identifies the user by the ``X-User-ID`` header and takes sample
coordinates in ``X-Latitude`` / ``X-Longitude``.
"""

from __future__ import annotations

import json
import logging
import urllib.request

from fogtrail.exploration import ExplorationStats, validate_speed
from fogtrail.geometry import GeoPoint
from fogtrail.hex_grid import InvalidCoordinate
from fogtrail.records import ExplorationSnapshot, parse_feature_collection

log = logging.getLogger(__name__)

_TIMEOUT_S = 10


def _request_json(url: str, headers: dict[str, str], body: dict | None = None) -> dict:
    """GET (or POST when ``body`` is given) and decode a JSON object."""
    data = None
    method = "GET"
    headers = {"Accept": "application/json", **headers}
    if body is not None:
        data = json.dumps(body).encode()
        method = "POST"
        headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    with urllib.request.urlopen(req, timeout=_TIMEOUT_S) as resp:
        return json.loads(resp.read())


def fetch_snapshot(base_url: str, user_id: str) -> ExplorationSnapshot:
    """Fetch the explored cells and aggregate stats for a user.

    Returns:
        The snapshot, or an empty one if the request fails.
    """
    try:
        data = _request_json(f"{base_url}/locations/explored", {"X-User-ID": user_id})
    except Exception:
        log.warning("Failed to fetch explored cells", exc_info=True)
        return ExplorationSnapshot.empty()

    if not isinstance(data, dict) or not data.get("success", False):
        log.warning("Exploration API returned an error: %s", _error_of(data))
        return ExplorationSnapshot.empty()

    records = parse_feature_collection(data.get("hexagons"))
    stats = data.get("stats") or {}
    # Derive whatever figures the backend left out
    estimated = ExplorationStats.from_counts(
        int(stats.get("totalVisits", 0)),
        int(stats.get("uniqueHexes", len(records))),
    )
    snapshot = ExplorationSnapshot(
        records=records,
        stats=ExplorationStats(
            total_visits=estimated.total_visits,
            unique_cells=estimated.unique_cells,
            estimated_distance_m=float(
                stats.get("estimatedDistanceMeters", estimated.estimated_distance_m)
            ),
            total_area_sq_m=float(stats.get("totalAreaSqMeters", estimated.total_area_sq_m)),
        ),
    )
    log.debug("Fetched %d explored cells", len(records))
    return snapshot


def report_location(
    base_url: str,
    user_id: str,
    point: GeoPoint,
    speed_mph: float,
    time_spent_s: float = 0.0,
) -> str | None:
    """Report one location sample.

    Returns:
        The cell id the backend recorded, or None if the request failed.

    Raises:
        InvalidCoordinate: if the point is out of range
        ValueError: if the speed is out of range
    """
    if not point.is_valid:
        raise InvalidCoordinate(point.latitude, point.longitude)
    validate_speed(speed_mph)

    headers = {
        "X-User-ID": user_id,
        "X-Latitude": str(point.latitude),
        "X-Longitude": str(point.longitude),
    }
    try:
        data = _request_json(
            f"{base_url}/locations",
            headers,
            {"speed": speed_mph, "timeSpent": time_spent_s},
        )
    except Exception:
        log.warning("Failed to report location", exc_info=True)
        return None

    if not isinstance(data, dict) or not data.get("success", False):
        log.warning("Location report rejected: %s", _error_of(data))
        return None
    return data.get("hexIndex")


def _error_of(data: object) -> str:
    if isinstance(data, dict):
        return str(data.get("error", "unknown error"))
    return "unexpected response"
