"""Tests for quake_insight.usgs USGS API client."""

from datetime import date
from unittest.mock import patch

import httpx
import pytest

from quake_insight.catalog import SeismicEvent
from quake_insight.errors import InvalidEventError
from quake_insight.usgs import (
    USGS_QUERY_URL,
    build_params,
    fetch_catalog,
    parse_feature,
    parse_features,
)

SAMPLE_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "id": "us7000abc1",
            "properties": {"mag": 6.3, "time": 1770903271114, "place": "10 km NW of Tokyo, Japan"},
            "geometry": {"type": "Point", "coordinates": [139.6503, 35.6762, 25.0]},
        },
        {
            "id": "us7000abc2",
            "properties": {"mag": 6.7, "time": 1770711300000, "place": "Santiago, Chile"},
            "geometry": {"type": "Point", "coordinates": [-70.6693, -33.4489, 50.0]},
        },
        {
            "id": "us7000bad1",
            "properties": {"mag": None, "time": 1770711300000},
            "geometry": {"type": "Point", "coordinates": [-70.0, -33.0, 10.0]},
        },
    ],
}


def _mock_response(payload=None, status_code: int = 200, text: str | None = None) -> httpx.Response:
    """Create a mock httpx.Response."""
    request = httpx.Request("GET", USGS_QUERY_URL)
    if text is not None:
        return httpx.Response(status_code=status_code, text=text, request=request)
    return httpx.Response(status_code=status_code, json=payload, request=request)


class TestBuildParams:
    def test_required_params(self):
        params = build_params(date(2026, 2, 9), date(2026, 2, 13))
        assert params == {
            "format": "geojson",
            "starttime": "2026-02-09",
            "endtime": "2026-02-13",
            "limit": 500,
            "eventtype": "earthquake",
        }

    def test_optional_params_included_when_set(self):
        params = build_params(
            date(2026, 2, 9), date(2026, 2, 13),
            min_mag=4.5, min_lat=30.0, max_lat=40.0, min_lon=130.0, max_lon=145.0,
            min_depth=0.0, max_depth=70.0, limit=100,
        )
        assert params["minmagnitude"] == 4.5
        assert params["minlatitude"] == 30.0
        assert params["maxlongitude"] == 145.0
        assert params["mindepth"] == 0.0
        assert params["maxdepth"] == 70.0
        assert params["limit"] == 100

    def test_event_type_can_be_dropped(self):
        params = build_params(date(2026, 2, 9), date(2026, 2, 13), event_type=None)
        assert "eventtype" not in params


class TestParseFeature:
    def test_parses_fields(self):
        event = parse_feature(SAMPLE_GEOJSON["features"][0])
        assert event == SeismicEvent(
            time=1770903271114, latitude=35.6762, longitude=139.6503, depth=25.0, magnitude=6.3,
        )

    def test_missing_depth_is_zero(self):
        feature = {
            "properties": {"mag": 4.0, "time": 1},
            "geometry": {"coordinates": [10.0, 20.0, None]},
        }
        assert parse_feature(feature).depth == 0.0

    def test_missing_magnitude(self):
        with pytest.raises(InvalidEventError):
            parse_feature(SAMPLE_GEOJSON["features"][2])

    def test_missing_geometry(self):
        with pytest.raises(InvalidEventError):
            parse_feature({"id": "x", "properties": {"mag": 4.0, "time": 1}, "geometry": None})

    def test_out_of_range_latitude(self):
        feature = {
            "properties": {"mag": 4.0, "time": 1},
            "geometry": {"coordinates": [10.0, 95.0, 5.0]},
        }
        with pytest.raises(InvalidEventError):
            parse_feature(feature)

    def test_non_numeric_value(self):
        feature = {
            "properties": {"mag": "big", "time": 1},
            "geometry": {"coordinates": [10.0, 20.0, 5.0]},
        }
        with pytest.raises(InvalidEventError):
            parse_feature(feature)


class TestParseFeatures:
    def test_skips_invalid(self):
        events = parse_features(SAMPLE_GEOJSON)
        assert [e.magnitude for e in events] == [6.3, 6.7]

    def test_missing_features_array(self):
        with pytest.raises(ValueError, match="features"):
            parse_features({"type": "FeatureCollection"})


class TestFetchCatalog:
    @patch("quake_insight.usgs.httpx.get")
    def test_parses_response(self, mock_get):
        mock_get.return_value = _mock_response(SAMPLE_GEOJSON)

        events = fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13))

        assert len(events) == 2
        assert events[0].latitude == 35.6762
        assert events[1].longitude == -70.6693

    @patch("quake_insight.usgs.httpx.get")
    def test_request_params(self, mock_get):
        mock_get.return_value = _mock_response(SAMPLE_GEOJSON)

        fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13), min_mag=5.0, limit=50)

        args, kwargs = mock_get.call_args
        assert args == (USGS_QUERY_URL,)
        assert kwargs["params"]["minmagnitude"] == 5.0
        assert kwargs["params"]["limit"] == 50
        assert "User-Agent" in kwargs["headers"]

    @patch("quake_insight.usgs.time.sleep")
    @patch("quake_insight.usgs.httpx.get")
    def test_retries_server_error(self, mock_get, mock_sleep):
        mock_get.side_effect = [
            _mock_response(status_code=503, text="Service Unavailable"),
            _mock_response(SAMPLE_GEOJSON),
        ]

        events = fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13))

        assert len(events) == 2
        assert mock_get.call_count == 2
        mock_sleep.assert_called_once_with(2)

    @patch("quake_insight.usgs.time.sleep")
    @patch("quake_insight.usgs.httpx.get")
    def test_gives_up_after_attempts(self, mock_get, mock_sleep):
        mock_get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(httpx.ConnectError):
            fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13), attempts=3)

        assert mock_get.call_count == 3
        assert [c.args for c in mock_sleep.call_args_list] == [(2,), (4,)]

    @patch("quake_insight.usgs.time.sleep")
    @patch("quake_insight.usgs.httpx.get")
    def test_http_error_status(self, mock_get, mock_sleep):
        mock_get.return_value = _mock_response(status_code=400, text="Bad Request")

        with pytest.raises(httpx.HTTPStatusError):
            fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13), attempts=1)

        mock_sleep.assert_not_called()

    @patch("quake_insight.usgs.httpx.get")
    def test_empty_result(self, mock_get):
        mock_get.return_value = _mock_response({"type": "FeatureCollection", "features": []})

        assert fetch_catalog(start=date(2026, 2, 9), end=date(2026, 2, 13)) == []
