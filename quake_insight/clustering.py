"""Spatial clustering of earthquake epicentres.

Three algorithms share one entry point, :func:`cluster`:

DBSCAN
    Density-based clustering in flat (latitude, longitude) degree space.
    A point with at least ``min_pts`` neighbours within ``eps`` degrees
    (itself included) is a core point. Clusters grow breadth-first through
    core points; non-core points reached from a core point become border
    members. Points never reached are noise.

k-means
    ``k`` centroids seeded from distinct event coordinates, refined by
    alternating nearest-centroid assignment and mean update until no
    centroid moves more than ``tolerance`` degrees on either axis or
    ``max_iterations`` is reached.

fuzzy
    Same hard assignment as k-means under its own label. No membership
    weights are computed.
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

import numpy as np
from scipy.spatial import cKDTree

from .catalog import SeismicEvent
from .errors import InsufficientDataError, UnsupportedAlgorithmError
from .geo import degree_distance

logger = logging.getLogger(__name__)

DEFAULT_EPS = 0.5
DEFAULT_MIN_PTS = 3
DEFAULT_K = 4
DEFAULT_MAX_ITERATIONS = 10
CENTROID_TOLERANCE = 0.0001

NOISE = -1


class ClusteringAlgorithm(str, Enum):
    DBSCAN = "dbscan"
    KMEANS = "kmeans"
    FUZZY = "fuzzy"

    @classmethod
    def parse(cls, name: str | ClusteringAlgorithm) -> ClusteringAlgorithm:
        """Resolve an enum value, member name or dashboard label.

        Raises:
            UnsupportedAlgorithmError: for any other name
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        resolved = _CLUSTERING_ALIASES.get(key)
        if resolved is None:
            raise UnsupportedAlgorithmError(f"Unsupported clustering algorithm: {name}")
        return resolved


_CLUSTERING_ALIASES = {
    "dbscan": ClusteringAlgorithm.DBSCAN,
    "kmeans": ClusteringAlgorithm.KMEANS,
    "k-means": ClusteringAlgorithm.KMEANS,
    "fuzzy": ClusteringAlgorithm.FUZZY,
    "fuzzy c-means": ClusteringAlgorithm.FUZZY,
}


@dataclass(frozen=True)
class ClusterParams:
    """Tuning knobs for :func:`cluster`.

    Attributes:
        eps: DBSCAN neighbourhood radius in degrees
        min_pts: DBSCAN core-point threshold (neighbourhood includes the point)
        k: number of centroids for k-means / fuzzy
        max_iterations: k-means iteration cap
        tolerance: k-means convergence threshold in degrees
        seed: k-means seed, used when no ``rng`` is passed to :func:`cluster`
    """
    eps: float = DEFAULT_EPS
    min_pts: int = DEFAULT_MIN_PTS
    k: int = DEFAULT_K
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = CENTROID_TOLERANCE
    seed: int | None = None


@dataclass(frozen=True)
class Cluster:
    """A non-empty group of events with a derived centroid."""
    id: int
    events: tuple[SeismicEvent, ...]

    @property
    def size(self) -> int:
        return len(self.events)

    @property
    def centroid_lat(self) -> float:
        return sum(e.latitude for e in self.events) / len(self.events)

    @property
    def centroid_lng(self) -> float:
        return sum(e.longitude for e in self.events) / len(self.events)

    @property
    def avg_magnitude(self) -> float:
        return sum(e.magnitude for e in self.events) / len(self.events)

    @property
    def avg_depth(self) -> float:
        return sum(e.depth for e in self.events) / len(self.events)


@dataclass(frozen=True)
class ClusteringResult:
    algorithm: ClusteringAlgorithm
    clusters: tuple[Cluster, ...]
    noise: tuple[SeismicEvent, ...] = field(default_factory=tuple)


def eps_neighborhoods(events: Sequence[SeismicEvent], eps: float) -> list[list[int]]:
    """Indices of all events within ``eps`` degrees of each event (itself included).

    Each list is sorted ascending, so the DBSCAN expansion order depends
    only on catalog order.
    """
    if not events:
        return []
    coords = np.array([e.coordinates for e in events], dtype=float)
    tree = cKDTree(coords)
    return [sorted(found) for found in tree.query_ball_point(coords, eps)]


def dbscan(
    events: Sequence[SeismicEvent],
    eps: float = DEFAULT_EPS,
    min_pts: int = DEFAULT_MIN_PTS,
) -> tuple[list[list[int]], list[int], list[bool]]:
    """Density-based clustering over event indices.

    Args:
        events:  Events to cluster (any order).
        eps:     Neighbourhood radius in degrees (must be > 0).
        min_pts: Minimum neighbourhood size, the point itself included.

    Returns:
        (clusters, noise, is_core): clusters as sorted index lists in the
        order they were discovered, noise as a sorted index list, and a
        per-event flag telling whether the event is a core point.
    """
    if eps <= 0:
        raise ValueError(f"eps must be positive, got {eps}")
    if min_pts < 1:
        raise ValueError(f"min_pts must be >= 1, got {min_pts}")

    n = len(events)
    neighborhoods = eps_neighborhoods(events, eps)
    labels: list[int | None] = [None] * n
    is_core = [False] * n
    clusters: list[list[int]] = []

    for i in range(n):
        if labels[i] is not None:
            continue
        neighbors = neighborhoods[i]
        if len(neighbors) < min_pts:
            labels[i] = NOISE  # provisional; a later expansion may claim it
            continue

        cluster_id = len(clusters)
        members = [i]
        labels[i] = cluster_id
        is_core[i] = True
        queue = deque(j for j in neighbors if j != i)

        while queue:
            j = queue.popleft()
            if labels[j] == NOISE:
                labels[j] = cluster_id
                members.append(j)
                continue
            if labels[j] is not None:
                continue
            labels[j] = cluster_id
            members.append(j)
            j_neighbors = neighborhoods[j]
            if len(j_neighbors) >= min_pts:
                is_core[j] = True
                queue.extend(
                    m for m in j_neighbors if labels[m] is None or labels[m] == NOISE
                )

        clusters.append(sorted(members))

    noise = [i for i in range(n) if labels[i] == NOISE]
    logger.debug(
        "DBSCAN eps=%s min_pts=%s: %d clusters, %d noise", eps, min_pts,
        len(clusters), len(noise),
    )
    return clusters, noise, is_core


def _nearest_centroid(event: SeismicEvent, centroids: list[tuple[float, float]]) -> int:
    best = 0
    best_dist = math.inf
    for c, (lat, lng) in enumerate(centroids):
        dist = degree_distance(event.latitude, event.longitude, lat, lng)
        if dist < best_dist:
            best_dist = dist
            best = c
    return best


def kmeans(
    events: Sequence[SeismicEvent],
    k: int = DEFAULT_K,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = CENTROID_TOLERANCE,
    rng: random.Random | None = None,
) -> tuple[list[list[int]], list[tuple[float, float]]]:
    """Lloyd's k-means over event coordinates.

    Returns:
        (assignments, centroids): one index list per centroid (possibly
        empty) and the final centroid coordinates.

    Raises:
        InsufficientDataError: if there are fewer distinct coordinates than ``k``
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    rng = rng if rng is not None else random.Random()

    distinct = sorted({e.coordinates for e in events})
    if len(distinct) < k:
        raise InsufficientDataError(
            f"k-means with k={k} needs at least {k} distinct locations, "
            f"catalog has {len(distinct)}"
        )
    centroids = rng.sample(distinct, k)
    assignments: list[list[int]] = [[] for _ in range(k)]

    for iteration in range(max_iterations):
        assignments = [[] for _ in range(k)]
        for i, event in enumerate(events):
            assignments[_nearest_centroid(event, centroids)].append(i)

        changed = False
        for c, members in enumerate(assignments):
            if not members:
                continue  # empty cluster keeps its previous centroid
            new_lat = sum(events[i].latitude for i in members) / len(members)
            new_lng = sum(events[i].longitude for i in members) / len(members)
            old_lat, old_lng = centroids[c]
            if abs(old_lat - new_lat) > tolerance or abs(old_lng - new_lng) > tolerance:
                changed = True
            centroids[c] = (new_lat, new_lng)

        if not changed:
            logger.debug("k-means converged after %d iteration(s)", iteration + 1)
            break

    return assignments, centroids


def _build_result(
    algorithm: ClusteringAlgorithm,
    events: Sequence[SeismicEvent],
    groups: list[list[int]],
    noise: list[int],
) -> ClusteringResult:
    clusters = []
    for members in groups:
        if not members:
            continue
        clusters.append(
            Cluster(id=len(clusters) + 1, events=tuple(events[i] for i in members))
        )
    return ClusteringResult(
        algorithm=algorithm,
        clusters=tuple(clusters),
        noise=tuple(events[i] for i in noise),
    )


def _run_dbscan(events, params, rng):
    groups, noise, _core = dbscan(events, params.eps, params.min_pts)
    return _build_result(ClusteringAlgorithm.DBSCAN, events, groups, noise)


def _run_kmeans(events, params, rng):
    groups, _centroids = kmeans(
        events, params.k, params.max_iterations, params.tolerance, rng
    )
    return _build_result(ClusteringAlgorithm.KMEANS, events, groups, [])


def _run_fuzzy(events, params, rng):
    groups, _centroids = kmeans(
        events, params.k, params.max_iterations, params.tolerance, rng
    )
    return _build_result(ClusteringAlgorithm.FUZZY, events, groups, [])


_DISPATCH: dict[
    ClusteringAlgorithm,
    Callable[[Sequence[SeismicEvent], ClusterParams, random.Random], ClusteringResult],
] = {
    ClusteringAlgorithm.DBSCAN: _run_dbscan,
    ClusteringAlgorithm.KMEANS: _run_kmeans,
    ClusteringAlgorithm.FUZZY: _run_fuzzy,
}


def cluster(
    events: Sequence[SeismicEvent],
    algorithm: ClusteringAlgorithm | str,
    params: ClusterParams | None = None,
    rng: random.Random | None = None,
) -> ClusteringResult:
    """Cluster a catalog with the named algorithm.

    Args:
        events:    Catalog to cluster.
        algorithm: A :class:`ClusteringAlgorithm` or a name it can parse.
        params:    Algorithm parameters (defaults: eps=0.5, min_pts=3, k=4).
        rng:       Random source for k-means seeding; overrides ``params.seed``.

    Raises:
        InsufficientDataError: for an empty catalog, or k-means with too few points
        UnsupportedAlgorithmError: for an unknown algorithm name
    """
    algorithm = ClusteringAlgorithm.parse(algorithm)
    params = params if params is not None else ClusterParams()
    if not events:
        raise InsufficientDataError("No data available for clustering analysis")
    if rng is None:
        rng = random.Random(params.seed)
    return _DISPATCH[algorithm](events, params, rng)
