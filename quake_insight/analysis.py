"""Assemble plain result records for clustering, declustering, EDA and
magnitude prediction requests.

Each ``run_*`` function takes a validated catalog, runs the relevant
algorithms and returns a JSON-serialisable dict with camelCase keys, ready
for a rendering or export layer.
"""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Any, Sequence

from .catalog import MS_PER_DAY, SeismicEvent, largest_event, sort_by_time
from .clustering import ClusterParams, ClusteringAlgorithm, cluster
from .decluster import (
    DeclusterAlgorithm,
    DeclusterParams,
    MainshockAftershockPartition,
    decluster,
    gruenthal_window,
    nnd_window,
    reasenberg_space_window,
)
from .errors import InsufficientDataError, UnsupportedAlgorithmError
from .fitting import (
    fit_gutenberg_richter,
    fit_omori,
    fit_omori_nonlinear,
    gutenberg_richter_bins,
    omori_bins,
)
from .geo import degrees_to_km, haversine_km
from .metrics import (
    DEPTH_RANGES_KM,
    MAGNITUDE_RANGES,
    before_after_distribution,
    catalog_summary,
    cluster_magnitude_distribution,
    cluster_size_distribution,
    cluster_spread,
    clustering_validity,
    cumulative_events,
    declustering_validity,
    inter_cluster_distances,
    mean,
    nnd_distribution,
)
from .prediction import BOUND_FACTOR, predict_magnitude, residual_stats

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000
HIGHLIGHT_RADIUS_KM = 100.0


class EdaAnalysis(str, Enum):
    GUTENBERG_RICHTER = "gutenberg-richter"
    OMORI = "omori"
    CUMULATIVE = "cumulative"
    LAMBDA = "lambda"
    MAINSHOCK_HIGHLIGHT = "mainshock-highlight"

    @classmethod
    def parse(cls, name: str | EdaAnalysis) -> EdaAnalysis:
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        resolved = _EDA_ALIASES.get(key)
        if resolved is None:
            raise UnsupportedAlgorithmError(f"Unsupported EDA subtype: {name}")
        return resolved


_EDA_ALIASES = {
    "gutenberg-richter": EdaAnalysis.GUTENBERG_RICHTER,
    "gutenberg richter law": EdaAnalysis.GUTENBERG_RICHTER,
    "omori": EdaAnalysis.OMORI,
    "omori law": EdaAnalysis.OMORI,
    "cumulative": EdaAnalysis.CUMULATIVE,
    "cumulative plot": EdaAnalysis.CUMULATIVE,
    "lambda": EdaAnalysis.LAMBDA,
    "lambda plot": EdaAnalysis.LAMBDA,
    "mainshock-highlight": EdaAnalysis.MAINSHOCK_HIGHLIGHT,
    "mainshock highlight": EdaAnalysis.MAINSHOCK_HIGHLIGHT,
}


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------

def run_clustering(
    events: Sequence[SeismicEvent],
    algorithm: ClusteringAlgorithm | str,
    params: ClusterParams | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Cluster a catalog and summarise the clusters."""
    result = cluster(events, algorithm, params, rng)
    clusters = result.clusters
    logger.info(
        "%s clustering: %d events -> %d clusters, %d noise",
        result.algorithm.value, len(events), len(clusters), len(result.noise),
    )
    return {
        "algorithm": result.algorithm.value,
        "clusters": [
            {
                "id": c.id,
                "size": c.size,
                "avgMagnitude": c.avg_magnitude,
                "avgDepth": c.avg_depth,
                "centroidLat": c.centroid_lat,
                "centroidLng": c.centroid_lng,
            }
            for c in clusters
        ],
        "noiseEvents": len(result.noise),
        "validityMetrics": clustering_validity(clusters),
        "interClusterDistances": inter_cluster_distances(clusters),
        "clusterSizeDistribution": cluster_size_distribution(clusters),
        "magnitudeDistribution": cluster_magnitude_distribution(clusters),
        "clusterSpread": cluster_spread(clusters),
    }


# ---------------------------------------------------------------------------
# Declustering
# ---------------------------------------------------------------------------

def _sequences(partition: MainshockAftershockPartition) -> int:
    """Number of mainshocks that claimed at least one aftershock."""
    return len({p for p in partition.parents if p is not None})


def _window_summary(partition: MainshockAftershockPartition, window_fn) -> dict[str, Any]:
    windows = [window_fn(e.magnitude) for e in partition.mainshocks]
    return {
        "meanSpaceWindowKm": mean(degrees_to_km(space) for space, _ in windows),
        "meanTimeWindowDays": mean(time for _, time in windows),
        "sequences": _sequences(partition),
    }


def _algorithm_specific(
    partition: MainshockAftershockPartition,
    params: DeclusterParams,
) -> dict[str, Any]:
    algorithm = partition.algorithm
    events = partition.events

    if algorithm is DeclusterAlgorithm.DBSCAN:
        density = partition.density
        foreshocks = sum(
            1 for i in partition.aftershock_indices
            if events[i].time < events[partition.parents[i]].time
        )
        return {
            "clusters": density.clusters,
            "noisePoints": density.noise_points,
            "corePoints": density.core_points,
            "borderPoints": density.border_points,
            "foreshocks": foreshocks,
            "eps": params.eps,
            "minPts": params.min_pts,
        }
    if algorithm is DeclusterAlgorithm.NND:
        return _window_summary(partition, nnd_window)
    if algorithm is DeclusterAlgorithm.GRUENTHAL:
        return _window_summary(partition, gruenthal_window)

    # Reasenberg: a parent smaller than one of its dependents was a foreshock.
    foreshock_parents = {
        partition.parents[i] for i in partition.aftershock_indices
        if events[i].magnitude > events[partition.parents[i]].magnitude
    }
    return {
        "pValue": params.omori_p,
        "cValue": params.omori_c,
        "rateThreshold": params.rate_threshold,
        "meanSpaceWindowKm": mean(
            degrees_to_km(reasenberg_space_window(e.magnitude)) for e in partition.mainshocks
        ),
        "sequences": _sequences(partition),
        "aftershocksIdentified": len(partition.aftershock_indices),
        "foreshocksIdentified": len(foreshock_parents),
    }


def run_declustering(
    events: Sequence[SeismicEvent],
    algorithm: DeclusterAlgorithm | str,
    params: DeclusterParams | None = None,
) -> dict[str, Any]:
    """Sort a catalog by time, decluster it and summarise before/after.

    Raises:
        InsufficientDataError: for an empty catalog
        UnsupportedAlgorithmError: for an unknown algorithm name
    """
    params = params if params is not None else DeclusterParams()
    sorted_events = sort_by_time(events)
    partition = decluster(sorted_events, algorithm, params)
    mainshocks = partition.mainshocks
    aftershocks = partition.aftershocks
    logger.info(
        "%s declustering: %d events -> %d mainshocks, %d aftershocks",
        partition.algorithm.value, len(sorted_events), len(mainshocks), len(aftershocks),
    )

    return {
        "algorithm": partition.algorithm.value,
        "beforeDeclustering": catalog_summary(sorted_events, len(mainshocks), len(aftershocks)),
        "afterDeclustering": catalog_summary(mainshocks, len(mainshocks), 0),
        "validityMetrics": declustering_validity(partition),
        "magnitudeDistribution": before_after_distribution(
            "magnitude", MAGNITUDE_RANGES,
            (e.magnitude for e in sorted_events), (e.magnitude for e in mainshocks),
        ),
        "cumulativeEvents": cumulative_events(sorted_events, mainshocks),
        "depthDistribution": before_after_distribution(
            "depth", DEPTH_RANGES_KM,
            (e.depth for e in sorted_events), (e.depth for e in mainshocks),
        ),
        "nndDistribution": nnd_distribution(sorted_events),
        "algorithmSpecific": _algorithm_specific(partition, params),
        "mainshocks": [e.to_dict() for e in mainshocks],
        "aftershocks": [e.to_dict() for e in aftershocks],
    }


# ---------------------------------------------------------------------------
# Exploratory analyses
# ---------------------------------------------------------------------------

def _eda_gutenberg_richter(events: Sequence[SeismicEvent], nonlinear: bool) -> dict[str, Any]:
    bins = gutenberg_richter_bins(e.magnitude for e in events)
    fit = fit_gutenberg_richter((b.magnitude, b.log_n) for b in bins)
    return {
        "data": [{"magnitude": b.magnitude, "count": b.count, "logN": b.log_n} for b in bins],
        "bValue": fit.b_value,
        "aValue": fit.a_value,
    }


def _eda_omori(events: Sequence[SeismicEvent], nonlinear: bool) -> dict[str, Any]:
    mainshock = largest_event(events)
    bins = omori_bins(events, mainshock)
    params = fit_omori_nonlinear(bins) if nonlinear else fit_omori(bins)
    return {
        "data": [
            {"day": b.day, "count": b.count, "logDay": b.log_day, "logCount": b.log_count}
            for b in bins
        ],
        "mainshock": mainshock.to_dict(),
        "omoriParams": params.to_dict(),
    }


def _eda_cumulative(events: Sequence[SeismicEvent], nonlinear: bool) -> dict[str, Any]:
    sorted_events = sort_by_time(events)
    main_idx = max(range(len(sorted_events)), key=lambda i: sorted_events[i].magnitude)
    return {
        "data": [
            {"time": e.time, "cumulativeCount": i + 1, "isMainshock": i == main_idx}
            for i, e in enumerate(sorted_events)
        ],
        "mainshock": sorted_events[main_idx].to_dict(),
    }


def _eda_lambda(events: Sequence[SeismicEvent], nonlinear: bool) -> dict[str, Any]:
    sorted_events = sort_by_time(events)
    data = []
    for prev, event in zip(sorted_events, sorted_events[1:]):
        interval = event.time - prev.time
        if interval <= 0:
            continue  # coincident origin times have no finite rate
        data.append({"time": event.time, "lambda": MS_PER_HOUR / interval})
    return {"data": data}


def _eda_mainshock_highlight(events: Sequence[SeismicEvent], nonlinear: bool) -> dict[str, Any]:
    mainshock = largest_event(events)
    data = []
    for event in events:
        dist = haversine_km(
            event.latitude, event.longitude, mainshock.latitude, mainshock.longitude
        )
        row = event.to_dict()
        row.update({
            "distanceFromMainshockKm": dist,
            "isMainshock": event is mainshock,
            "isAftershock": event.time > mainshock.time and dist < HIGHLIGHT_RADIUS_KM,
            "isForeshock": event.time < mainshock.time and dist < HIGHLIGHT_RADIUS_KM,
            "timeSinceMainshockDays": (event.time - mainshock.time) / MS_PER_DAY,
        })
        data.append(row)
    return {"data": data, "mainshock": mainshock.to_dict()}


_EDA_DISPATCH = {
    EdaAnalysis.GUTENBERG_RICHTER: _eda_gutenberg_richter,
    EdaAnalysis.OMORI: _eda_omori,
    EdaAnalysis.CUMULATIVE: _eda_cumulative,
    EdaAnalysis.LAMBDA: _eda_lambda,
    EdaAnalysis.MAINSHOCK_HIGHLIGHT: _eda_mainshock_highlight,
}


def run_eda(
    events: Sequence[SeismicEvent],
    analysis: EdaAnalysis | str,
    nonlinear: bool = False,
) -> dict[str, Any]:
    """Run one exploratory analysis.

    Args:
        events:    Catalog (any order).
        analysis:  An :class:`EdaAnalysis` or a name it can parse.
        nonlinear: For ``omori``, fit (K, c, p) jointly instead of the baseline.

    Raises:
        InsufficientDataError: for an empty catalog
        UnsupportedAlgorithmError: for an unknown analysis name
    """
    analysis = EdaAnalysis.parse(analysis)
    if not events:
        raise InsufficientDataError("No earthquake data available for analysis")
    result = {"analysis": analysis.value}
    result.update(_EDA_DISPATCH[analysis](events, nonlinear))
    return result


# ---------------------------------------------------------------------------
# Magnitude prediction
# ---------------------------------------------------------------------------

def run_prediction(events: Sequence[SeismicEvent]) -> dict[str, Any]:
    """Chronological 70/30 linear-regression magnitude prediction.

    Raises:
        InsufficientDataError: if the catalog is too small to split
    """
    result = predict_magnitude(events)
    errors = result.errors
    half_width = BOUND_FACTOR * result.scores.rmse
    return {
        "algorithm": "linear",
        "trainingEvents": result.training_size,
        "testingEvents": len(result.testing),
        "coefficients": dict(result.coefficients, intercept=result.intercept),
        "metrics": {
            "mae": result.scores.mae,
            "rmse": result.scores.rmse,
            "r2": result.scores.r2,
            "mape": result.scores.mape,
        },
        "residualStats": residual_stats(errors),
        "predictions": [
            {
                "id": i + 1,
                "time": event.time,
                "actual": event.magnitude,
                "predicted": predicted,
                "error": error,
                "lowerBound": predicted - half_width,
                "upperBound": predicted + half_width,
                "depth": event.depth,
                "latitude": event.latitude,
                "longitude": event.longitude,
            }
            for i, (event, predicted, error) in enumerate(
                zip(result.testing, result.predicted, errors)
            )
        ],
    }
