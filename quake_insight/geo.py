"""Distance helpers shared by the clustering, declustering and metrics code.

The engine works in flat (latitude, longitude) degree space: distances
between events are Euclidean in degrees and converted to kilometres with
a fixed 111 km per degree. The great-circle distance is only used where a
physical distance from a mainshock is reported.
"""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


def degree_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Euclidean distance in (latitude, longitude) degree space."""
    return math.hypot(lat1 - lat2, lon1 - lon2)


def degrees_to_km(degrees: float) -> float:
    return degrees * KM_PER_DEGREE


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km between two points using the Haversine formula."""
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)
    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
