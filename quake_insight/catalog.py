"""Seismic event model and catalog loading.

A catalog is a plain ``list[SeismicEvent]``. Events are validated when
they are constructed, so anything that reaches the analysis code has
finite, in-range fields. Loaders skip (and log) rows that fail
validation instead of aborting the whole catalog.
"""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from .errors import InvalidEventError

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000

# Events outside this magnitude range are rejected
MIN_MAGNITUDE = -3.0
MAX_MAGNITUDE = 10.0

NATIVE_COLUMNS = ["time", "latitude", "longitude", "depth", "magnitude"]
NSC_COLUMNS = {"Date", "Time", "Latitude", "Longitude", "Depth", "Magnitude"}

_NSC_DATE_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S.%f",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S.%f",
    "%d/%m/%Y %H:%M:%S",
)


@dataclass(frozen=True)
class SeismicEvent:
    """Immutable earthquake record.

    Attributes:
        time: Origin time, epoch milliseconds (UTC)
        latitude: Epicentre latitude in degrees, [-90, 90]
        longitude: Epicentre longitude in degrees, [-180, 180]
        depth: Hypocentre depth in km, >= 0
        magnitude: Event magnitude, [MIN_MAGNITUDE, MAX_MAGNITUDE]
    """
    time: int
    latitude: float
    longitude: float
    depth: float
    magnitude: float

    def __post_init__(self) -> None:
        for name in ("latitude", "longitude", "depth", "magnitude"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise InvalidEventError(f"{name} must be finite, got {value!r}")
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidEventError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidEventError(f"longitude out of range: {self.longitude}")
        if self.depth < 0.0:
            raise InvalidEventError(f"depth must be >= 0, got {self.depth}")
        if not MIN_MAGNITUDE <= self.magnitude <= MAX_MAGNITUDE:
            raise InvalidEventError(f"magnitude out of range: {self.magnitude}")

    @property
    def coordinates(self) -> tuple[float, float]:
        """Return (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "depth": self.depth,
            "magnitude": self.magnitude,
        }


def sort_by_time(events: Iterable[SeismicEvent]) -> list[SeismicEvent]:
    """Return a new list in ascending time order (stable for equal times)."""
    return sorted(events, key=lambda e: e.time)


def is_time_sorted(events: Sequence[SeismicEvent]) -> bool:
    return all(events[i].time <= events[i + 1].time for i in range(len(events) - 1))


def largest_event(events: Sequence[SeismicEvent]) -> SeismicEvent:
    """Highest-magnitude event; the earliest position wins ties."""
    return max(events, key=lambda e: e.magnitude)


def parse_event_time(value: str | int | float) -> int:
    """Convert epoch milliseconds or an ISO 8601 string to epoch milliseconds.

    Naive ISO timestamps are taken to be UTC.
    """
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise InvalidEventError(f"time must be finite, got {value!r}")
        return int(value)
    if not isinstance(value, str):
        raise InvalidEventError(f"time must be a number or string, got {value!r}")
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return _datetime_to_ms(datetime.fromisoformat(text.replace("Z", "+00:00")))
    if not math.isfinite(number):
        raise InvalidEventError(f"time must be finite, got {text!r}")
    return int(number)


def _datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return round(dt.timestamp() * 1000)


def _parse_nsc_time(date_text: str, time_text: str) -> int:
    combined = f"{date_text.strip()} {time_text.strip()}"
    try:
        return _datetime_to_ms(datetime.fromisoformat(combined))
    except ValueError:
        pass
    for fmt in _NSC_DATE_FORMATS:
        try:
            return _datetime_to_ms(datetime.strptime(combined, fmt))
        except ValueError:
            continue
    raise InvalidEventError(f"unrecognised NSC date/time: {combined!r}")


def event_from_record(record: Mapping[str, Any]) -> SeismicEvent:
    """Build an event from a mapping with the native field names.

    Raises:
        InvalidEventError: if a field is missing, unparseable or out of range
    """
    try:
        return SeismicEvent(
            time=parse_event_time(record["time"]),
            latitude=float(record["latitude"]),
            longitude=float(record["longitude"]),
            depth=float(record["depth"]),
            magnitude=float(record["magnitude"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        if isinstance(exc, InvalidEventError):
            raise
        raise InvalidEventError(f"malformed event record: {exc}") from exc


def events_from_records(records: Iterable[Mapping[str, Any]]) -> list[SeismicEvent]:
    """Convert records to events, skipping invalid ones."""
    events = []
    skipped = 0
    for record in records:
        try:
            events.append(event_from_record(record))
        except InvalidEventError as exc:
            skipped += 1
            logger.debug("Skipping record: %s", exc)
    if skipped:
        logger.warning("Skipped %d invalid event record(s)", skipped)
    return events


def _nsc_row_to_record(row: Mapping[str, str | None]) -> dict[str, Any]:
    date_text, time_text = row.get("Date"), row.get("Time")
    if date_text is None or time_text is None:
        raise InvalidEventError("NSC row is missing its Date or Time field")
    return {
        "time": _parse_nsc_time(date_text, time_text),
        "latitude": row["Latitude"],
        "longitude": row["Longitude"],
        "depth": row["Depth"],
        "magnitude": row["Magnitude"],
    }


def load_catalog_csv(path: str) -> list[SeismicEvent]:
    """Read a catalog CSV in the native or NSC column layout.

    Native layout columns: time, latitude, longitude, depth, magnitude
    (time as epoch milliseconds or ISO 8601). NSC layout columns: Date,
    Time, Latitude, Longitude, Depth, Magnitude.

    Raises:
        ValueError: if the header matches neither layout
    """
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = set(reader.fieldnames or [])
        rows = list(reader)

    if NSC_COLUMNS <= fieldnames:
        records: list[Mapping[str, Any]] = []
        skipped = 0
        for row in rows:
            try:
                records.append(_nsc_row_to_record(row))
            except InvalidEventError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d NSC row(s) with unreadable date/time", skipped)
        return events_from_records(records)

    missing = set(NATIVE_COLUMNS) - fieldnames
    if missing:
        raise ValueError(
            f"input CSV missing required columns: {', '.join(sorted(missing))}"
        )
    return events_from_records(rows)


def write_catalog_csv(events: Iterable[SeismicEvent], path: str) -> int:
    """Write events in the native layout; returns the number of rows written."""
    count = 0
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=NATIVE_COLUMNS)
        writer.writeheader()
        for event in events:
            writer.writerow(event.to_dict())
            count += 1
    return count
