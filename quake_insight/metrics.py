"""Derived summary statistics for clustering and declustering results.

All distances are flat-Earth: Euclidean degree distance times 111 km.
Every ratio and mean is guarded so that results never contain NaN or
infinity.
"""

from __future__ import annotations

import math
import statistics
from typing import Iterable, Sequence

import numpy as np
from sklearn import metrics as sklearn_metrics

from .catalog import MS_PER_DAY, SeismicEvent
from .clustering import Cluster
from .decluster import MainshockAftershockPartition
from .fitting import estimate_b_value
from .geo import degree_distance, degrees_to_km

INF = math.inf

# (label, lower bound inclusive, upper bound exclusive)
MAGNITUDE_RANGES: list[tuple[str, float, float]] = [
    ("2.0-2.9", 2.0, 3.0),
    ("3.0-3.9", 3.0, 4.0),
    ("4.0-4.9", 4.0, 5.0),
    ("5.0-5.9", 5.0, 6.0),
    ("6.0+", 6.0, INF),
]

DEPTH_RANGES_KM: list[tuple[str, float, float]] = [
    ("0-5 km", 0.0, 5.0),
    ("5-10 km", 5.0, 10.0),
    ("10-20 km", 10.0, 20.0),
    ("20-40 km", 20.0, 40.0),
    ("40+ km", 40.0, INF),
]

NND_RANGES_KM: list[tuple[str, float, float]] = [
    ("0-5 km", 0.0, 5.0),
    ("5-10 km", 5.0, 10.0),
    ("10-20 km", 10.0, 20.0),
    ("20-50 km", 20.0, 50.0),
    ("50+ km", 50.0, INF),
]


def mean(values: Iterable[float], default: float = 0.0) -> float:
    """Arithmetic mean, or ``default`` for an empty input."""
    vals = list(values)
    return math.fsum(vals) / len(vals) if vals else default


def _in_range(value: float, lower: float, upper: float) -> bool:
    return lower <= value < upper


def histogram(values: Iterable[float], ranges: Sequence[tuple[str, float, float]]) -> list[int]:
    """Count values falling in each half-open range; out-of-range values are dropped."""
    vals = list(values)
    return [sum(1 for v in vals if _in_range(v, lo, hi)) for _, lo, hi in ranges]


def _event_distance(a: SeismicEvent, b: SeismicEvent) -> float:
    return degree_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def _distance_to_centroid(event: SeismicEvent, cluster: Cluster) -> float:
    return degree_distance(event.latitude, event.longitude, cluster.centroid_lat, cluster.centroid_lng)


# ---------------------------------------------------------------------------
# Clustering metrics
# ---------------------------------------------------------------------------

def cluster_magnitude_distribution(clusters: Sequence[Cluster]) -> list[dict]:
    rows = []
    for label, lo, hi in MAGNITUDE_RANGES:
        row: dict = {"magnitude": label}
        for c in clusters:
            row[f"cluster{c.id}"] = sum(1 for e in c.events if _in_range(e.magnitude, lo, hi))
        rows.append(row)
    return rows


def cluster_size_distribution(clusters: Sequence[Cluster]) -> list[dict]:
    return [{"name": f"Cluster {c.id}", "size": c.size} for c in clusters]


def inter_cluster_distances(clusters: Sequence[Cluster]) -> list[dict]:
    """Centroid-to-centroid distance in km for every unordered cluster pair."""
    rows = []
    for i, first in enumerate(clusters):
        for second in clusters[i + 1:]:
            dist = degree_distance(
                first.centroid_lat, first.centroid_lng,
                second.centroid_lat, second.centroid_lng,
            )
            rows.append({
                "cluster1": first.id,
                "cluster2": second.id,
                "distanceKm": degrees_to_km(dist),
            })
    return rows


def cluster_spread(clusters: Sequence[Cluster]) -> list[dict]:
    """Mean member-to-centroid distance in km per cluster."""
    return [
        {
            "name": f"Cluster {c.id}",
            "spread": degrees_to_km(mean(_distance_to_centroid(e, c) for e in c.events)),
        }
        for c in clusters
    ]


def _labelled_coordinates(clusters: Sequence[Cluster]) -> tuple[np.ndarray, np.ndarray]:
    coords = np.array([e.coordinates for c in clusters for e in c.events], dtype=float)
    labels = np.array([c.id for c in clusters for _ in c.events])
    return coords, labels


def _scoreable(clusters: Sequence[Cluster]) -> bool:
    """sklearn needs 2 <= number of clusters <= number of events - 1."""
    return 2 <= len(clusters) < sum(c.size for c in clusters)


def silhouette_score(clusters: Sequence[Cluster]) -> float:
    """Mean silhouette coefficient over all clustered events, in degree space.

    Members of singleton clusters score 0. Returns 0.0 when there are
    fewer than two clusters or every cluster is a singleton.
    """
    if not _scoreable(clusters):
        return 0.0
    coords, labels = _labelled_coordinates(clusters)
    return float(sklearn_metrics.silhouette_score(coords, labels))


def davies_bouldin_index(clusters: Sequence[Cluster]) -> float:
    """Davies-Bouldin index: mean over clusters of the worst (S_i + S_j) / d_ij.

    Pairs with coincident centroids contribute nothing. Returns 0.0 when
    there are fewer than two clusters or every cluster is a singleton.
    Lower is better.
    """
    if not _scoreable(clusters):
        return 0.0
    coords, labels = _labelled_coordinates(clusters)
    return float(sklearn_metrics.davies_bouldin_score(coords, labels))


def inertia(clusters: Sequence[Cluster]) -> float:
    """Sum of squared member-to-centroid degree distances."""
    return math.fsum(_distance_to_centroid(e, c) ** 2 for c in clusters for e in c.events)


def clustering_validity(clusters: Sequence[Cluster]) -> dict[str, float]:
    return {
        "silhouetteScore": silhouette_score(clusters),
        "daviesBouldinIndex": davies_bouldin_index(clusters),
        "inertia": inertia(clusters),
    }


# ---------------------------------------------------------------------------
# Catalog / declustering metrics
# ---------------------------------------------------------------------------

def nearest_neighbor_distances_km(events: Sequence[SeismicEvent]) -> list[float]:
    """Brute-force nearest-neighbour distance per event, in km.

    Events without any other event in the catalog are left out.
    """
    distances = []
    for i, event in enumerate(events):
        nearest = INF
        for j, other in enumerate(events):
            if i != j:
                nearest = min(nearest, _event_distance(event, other))
        if nearest < INF:
            distances.append(degrees_to_km(nearest))
    return distances


def nnd_distribution(events: Sequence[SeismicEvent]) -> list[dict]:
    counts = histogram(nearest_neighbor_distances_km(events), NND_RANGES_KM)
    return [
        {"distance": label, "count": count}
        for (label, _, _), count in zip(NND_RANGES_KM, counts)
    ]


def before_after_distribution(
    key: str,
    ranges: Sequence[tuple[str, float, float]],
    before: Iterable[float],
    after: Iterable[float],
) -> list[dict]:
    before_counts = histogram(before, ranges)
    after_counts = histogram(after, ranges)
    return [
        {key: label, "before": b, "after": a}
        for (label, _, _), b, a in zip(ranges, before_counts, after_counts)
    ]


def mean_time_gap_days(events: Sequence[SeismicEvent]) -> float:
    """Mean spacing in days between consecutive events of a time-sorted catalog."""
    if len(events) < 2:
        return 0.0
    return (events[-1].time - events[0].time) / ((len(events) - 1) * MS_PER_DAY)


def catalog_summary(
    events: Sequence[SeismicEvent],
    mainshocks: int,
    aftershocks: int,
) -> dict:
    """Before/after statistics block of a declustering result."""
    b_value = estimate_b_value(events).b_value if events else 0.0
    return {
        "totalEvents": len(events),
        "mainshocks": mainshocks,
        "aftershocks": aftershocks,
        "avgMagnitude": mean(e.magnitude for e in events),
        "avgDepth": mean(e.depth for e in events),
        "bValue": b_value,
        "meanTimeGapDays": mean_time_gap_days(events),
    }


def cumulative_events(
    before: Sequence[SeismicEvent],
    after: Sequence[SeismicEvent],
    steps: int = 7,
) -> list[dict]:
    """Cumulative counts at ``steps`` equally spaced times across the catalog span."""
    start = before[0].time
    span = before[-1].time - start
    rows = []
    for i in range(steps):
        cutoff = start + (i + 1) * span / steps
        rows.append({
            "day": i + 1,
            "before": sum(1 for e in before if e.time <= cutoff),
            "after": sum(1 for e in after if e.time <= cutoff),
        })
    return rows


def poisson_dispersion(events: Sequence[SeismicEvent]) -> float:
    """Coefficient of variation of inter-event times (1.0 for a Poisson process).

    Returns 0.0 when it is undefined (fewer than two gaps or zero mean gap).
    """
    gaps = [b.time - a.time for a, b in zip(events, events[1:])]
    if len(gaps) < 2:
        return 0.0
    mean_gap = mean(gaps)
    if mean_gap == 0:
        return 0.0
    return statistics.pstdev(gaps) / mean_gap


def cluster_purity(partition: MainshockAftershockPartition) -> float:
    """Fraction of aftershocks no larger than the mainshock that claimed them."""
    dependents = partition.aftershock_indices
    if not dependents:
        return 1.0
    events = partition.events
    pure = sum(
        1 for i in dependents
        if partition.parents[i] is None
        or events[i].magnitude <= events[partition.parents[i]].magnitude
    )
    return pure / len(dependents)


def declustering_validity(partition: MainshockAftershockPartition) -> dict[str, float]:
    mainshocks = partition.mainshocks
    return {
        "goodnessOfFit": estimate_b_value(mainshocks).r_squared,
        "poissonDispersion": poisson_dispersion(mainshocks),
        "clusterPurity": cluster_purity(partition),
    }
