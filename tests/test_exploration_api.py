"""Tests for the exploration backend client."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from fogtrail.exploration_api import fetch_snapshot, report_location
from fogtrail.geometry import GeoPoint
from fogtrail.hex_grid import InvalidCoordinate, cell_to_boundary, coord_to_cell

BASE = "http://localhost:3001/api"
TIMES_SQUARE = GeoPoint(40.7589, -73.9851)
CELL = coord_to_cell(TIMES_SQUARE)


def _hexagons() -> dict:
    ring = [[p.latitude, p.longitude] for p in cell_to_boundary(CELL)]
    ring.append(ring[0])
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Polygon", "coordinates": [ring]},
                "properties": {"hexIndex": CELL, "explorationMethod": "walking"},
            }
        ],
    }


def test_fetch_snapshot_handles_network_failure() -> None:
    """Should return an empty snapshot on network failure."""
    with patch("fogtrail.exploration_api._request_json", side_effect=Exception("network")):
        snapshot = fetch_snapshot(BASE, "u1")
    assert snapshot.records == []
    assert snapshot.stats.unique_cells == 0


def test_fetch_snapshot_handles_error_response() -> None:
    response = {"success": False, "error": "User ID is required"}
    with patch("fogtrail.exploration_api._request_json", return_value=response):
        assert fetch_snapshot(BASE, "").records == []


def test_fetch_snapshot_parses_cells_and_stats() -> None:
    response = {
        "success": True,
        "hexagons": _hexagons(),
        "stats": {
            "totalVisits": 10,
            "uniqueHexes": 1,
            "estimatedDistanceMeters": 93.0,
            "totalAreaSqMeters": 259.0,
        },
    }
    with patch("fogtrail.exploration_api._request_json", return_value=response) as request:
        snapshot = fetch_snapshot(BASE, "u1")

    url, headers = request.call_args.args
    assert url == f"{BASE}/locations/explored"
    assert headers == {"X-User-ID": "u1"}

    assert snapshot.cell_ids == {CELL}
    assert snapshot.records[0].boundary[0] == cell_to_boundary(CELL)[0]
    assert snapshot.stats.total_visits == 10
    assert snapshot.stats.estimated_distance_m == 93.0
    assert snapshot.stats.total_area_sq_m == 259.0


def test_fetch_snapshot_derives_missing_stats() -> None:
    response = {"success": True, "hexagons": _hexagons()}
    with patch("fogtrail.exploration_api._request_json", return_value=response):
        snapshot = fetch_snapshot(BASE, "u1")
    assert snapshot.stats.unique_cells == 1
    assert snapshot.stats.total_area_sq_m == 259.0
    assert snapshot.stats.estimated_distance_m == 0.0


def test_report_location_sends_headers_and_body() -> None:
    response = {"success": True, "hexIndex": CELL}
    with patch("fogtrail.exploration_api._request_json", return_value=response) as request:
        result = report_location(BASE, "u1", TIMES_SQUARE, 2.5, 30.0)

    assert result == CELL
    url, headers, body = request.call_args.args
    assert url == f"{BASE}/locations"
    assert headers["X-User-ID"] == "u1"
    assert headers["X-Latitude"] == "40.7589"
    assert headers["X-Longitude"] == "-73.9851"
    assert body == {"speed": 2.5, "timeSpent": 30.0}


def test_report_location_rejected() -> None:
    response = {"success": False, "error": "Location outside service area"}
    with patch("fogtrail.exploration_api._request_json", return_value=response):
        assert report_location(BASE, "u1", TIMES_SQUARE, 2.5) is None


def test_report_location_network_failure() -> None:
    with patch("fogtrail.exploration_api._request_json", side_effect=OSError("down")):
        assert report_location(BASE, "u1", TIMES_SQUARE, 2.5) is None


def test_report_location_validates_before_sending() -> None:
    with patch("fogtrail.exploration_api._request_json") as request:
        with pytest.raises(InvalidCoordinate):
            report_location(BASE, "u1", GeoPoint(91.0, 0.0), 2.5)
        with pytest.raises(ValueError):
            report_location(BASE, "u1", TIMES_SQUARE, 500.0)
        request.assert_not_called()
