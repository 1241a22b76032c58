"""Exceptions and warnings raised by the analysis engine."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures of an analysis request."""


class InsufficientDataError(AnalysisError):
    """The catalog is empty or too small for the requested algorithm."""


class UnsupportedAlgorithmError(AnalysisError, ValueError):
    """An algorithm or analysis name is not recognised."""


class CatalogOrderError(AnalysisError, ValueError):
    """A catalog that must be in ascending time order is not."""


class InvalidEventError(ValueError):
    """An event has non-finite or out-of-range fields."""


class DegenerateFitWarning(RuntimeWarning):
    """A regression collapsed and a fallback value was returned instead."""
