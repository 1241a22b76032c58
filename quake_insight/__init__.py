"""Quake-insight seismic catalog analysis engine."""

from .analysis import run_clustering, run_declustering, run_eda, run_prediction
from .catalog import SeismicEvent, load_catalog_csv, sort_by_time
from .clustering import ClusterParams, ClusteringAlgorithm, cluster
from .decluster import (
    DeclusterAlgorithm,
    DeclusterParams,
    MainshockAftershockPartition,
    decluster,
)
from .errors import (
    DegenerateFitWarning,
    InsufficientDataError,
    UnsupportedAlgorithmError,
)
from .fitting import estimate_b_value, fit_omori, fit_omori_nonlinear
from .prediction import MagnitudePrediction, predict_magnitude

__all__ = [
    "SeismicEvent",
    "load_catalog_csv",
    "sort_by_time",
    "cluster",
    "ClusterParams",
    "ClusteringAlgorithm",
    "decluster",
    "DeclusterParams",
    "DeclusterAlgorithm",
    "MainshockAftershockPartition",
    "estimate_b_value",
    "fit_omori",
    "fit_omori_nonlinear",
    "predict_magnitude",
    "MagnitudePrediction",
    "run_clustering",
    "run_declustering",
    "run_eda",
    "run_prediction",
    "InsufficientDataError",
    "UnsupportedAlgorithmError",
    "DegenerateFitWarning",
]
