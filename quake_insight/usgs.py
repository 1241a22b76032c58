"""USGS Earthquake Hazards Program API client.

Fetches a GeoJSON event catalog and converts it into validated
``SeismicEvent`` objects. Features with missing or out-of-range values are
skipped so the analysis code only ever sees clean events.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any

import httpx

from .catalog import SeismicEvent
from .errors import InvalidEventError

logger = logging.getLogger(__name__)

USGS_QUERY_URL = "https://earthquake.usgs.gov/fdsnws/event/1/query"
USER_AGENT = "quake-insight/0.1 (seismic catalog analysis)"
DEFAULT_LIMIT = 500
DEFAULT_TIMEOUT = 30.0
MAX_ATTEMPTS = 3


def build_params(
    start: date,
    end: date,
    min_mag: float | None = None,
    min_lat: float | None = None,
    max_lat: float | None = None,
    min_lon: float | None = None,
    max_lon: float | None = None,
    min_depth: float | None = None,
    max_depth: float | None = None,
    event_type: str | None = "earthquake",
    limit: int = DEFAULT_LIMIT,
) -> dict[str, str | float | int]:
    """Query parameters for the FDSN event service; unset filters are omitted."""
    params: dict[str, str | float | int] = {
        "format": "geojson",
        "starttime": start.isoformat(),
        "endtime": end.isoformat(),
        "limit": limit,
    }
    optional = {
        "minmagnitude": min_mag,
        "minlatitude": min_lat,
        "maxlatitude": max_lat,
        "minlongitude": min_lon,
        "maxlongitude": max_lon,
        "mindepth": min_depth,
        "maxdepth": max_depth,
        "eventtype": event_type,
    }
    for key, value in optional.items():
        if value is not None:
            params[key] = value
    return params


def parse_feature(feature: dict[str, Any]) -> SeismicEvent:
    """Convert one GeoJSON feature to an event.

    Raises:
        InvalidEventError: if the feature lacks a time, magnitude or coordinates,
            or any value is out of range
    """
    props = feature.get("properties") or {}
    coords = (feature.get("geometry") or {}).get("coordinates") or []
    if len(coords) < 3:
        raise InvalidEventError(f"feature {feature.get('id')!r} has no hypocentre")
    if props.get("time") is None or props.get("mag") is None:
        raise InvalidEventError(f"feature {feature.get('id')!r} lacks time or magnitude")
    try:
        return SeismicEvent(
            time=int(props["time"]),
            latitude=float(coords[1]),
            longitude=float(coords[0]),
            depth=float(coords[2]) if coords[2] is not None else 0.0,
            magnitude=float(props["mag"]),
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidEventError):
            raise
        raise InvalidEventError(f"feature {feature.get('id')!r}: {exc}") from exc


def parse_features(geojson: dict[str, Any]) -> list[SeismicEvent]:
    """Parse a FeatureCollection, skipping invalid features.

    Raises:
        ValueError: if the payload has no ``features`` array
    """
    features = geojson.get("features")
    if not isinstance(features, list):
        raise ValueError("Invalid data format from USGS API: missing features array")

    events = []
    skipped = 0
    for feature in features:
        try:
            events.append(parse_feature(feature))
        except InvalidEventError as exc:
            skipped += 1
            logger.debug("Skipping feature: %s", exc)
    if skipped:
        logger.warning("Skipped %d invalid USGS feature(s)", skipped)
    return events


def _get_with_retries(params: dict, timeout: float, attempts: int) -> httpx.Response:
    last_error: httpx.HTTPError | None = None
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            logger.info("Fetching USGS data (attempt %d): %s", attempt, params)
            response = httpx.get(
                USGS_QUERY_URL,
                params=params,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                timeout=timeout,
            )
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            last_error = exc
            logger.warning("USGS request failed (attempt %d): %s", attempt, exc)
            if attempt < attempts:
                time.sleep(2 ** attempt)
    raise last_error


def fetch_catalog(
    start: date,
    end: date,
    min_mag: float | None = None,
    min_lat: float | None = None,
    max_lat: float | None = None,
    min_lon: float | None = None,
    max_lon: float | None = None,
    min_depth: float | None = None,
    max_depth: float | None = None,
    limit: int = DEFAULT_LIMIT,
    timeout: float = DEFAULT_TIMEOUT,
    attempts: int = MAX_ATTEMPTS,
) -> list[SeismicEvent]:
    """Fetch earthquake events from the USGS API.

    Transport and HTTP-status errors are retried with exponential backoff
    (2 s, 4 s, ...); the last error is re-raised once ``attempts`` are used up.

    Returns:
        Validated events in the order the service returned them.
    """
    params = build_params(
        start, end,
        min_mag=min_mag,
        min_lat=min_lat, max_lat=max_lat,
        min_lon=min_lon, max_lon=max_lon,
        min_depth=min_depth, max_depth=max_depth,
        limit=limit,
    )
    response = _get_with_retries(params, timeout, attempts)
    return parse_features(response.json())
