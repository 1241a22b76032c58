"""Linear-regression magnitude prediction.

The catalog is ordered by time and split chronologically: the first 70 %
of events train an ordinary least-squares model of magnitude on depth,
latitude, longitude and UTC hour of day; the remaining events are
predicted and scored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

import numpy as np
from sklearn.linear_model import LinearRegression
from sklearn.metrics import (
    mean_absolute_error,
    mean_absolute_percentage_error,
    mean_squared_error,
    r2_score,
)

from .catalog import SeismicEvent, sort_by_time
from .errors import InsufficientDataError

logger = logging.getLogger(__name__)

TRAIN_FRACTION = 0.7
FEATURES = ("depth", "latitude", "longitude", "hour")
# Half-width of the reported band, in units of RMSE
BOUND_FACTOR = 1.96 / 2


@dataclass(frozen=True)
class PredictionScores:
    mae: float
    rmse: float
    r2: float
    mape: float


@dataclass(frozen=True)
class MagnitudePrediction:
    """Fitted model, held-out events and their predictions."""
    coefficients: dict[str, float]
    intercept: float
    training_size: int
    testing: tuple[SeismicEvent, ...]
    predicted: tuple[float, ...]
    scores: PredictionScores

    @property
    def errors(self) -> list[float]:
        """Predicted minus actual magnitude per held-out event."""
        return [p - e.magnitude for p, e in zip(self.predicted, self.testing)]


def utc_hour(time_ms: int) -> int:
    return datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc).hour


def feature_matrix(events: Sequence[SeismicEvent]) -> np.ndarray:
    return np.array(
        [[e.depth, e.latitude, e.longitude, utc_hour(e.time)] for e in events],
        dtype=float,
    )


def predict_magnitude(
    events: Sequence[SeismicEvent],
    train_fraction: float = TRAIN_FRACTION,
) -> MagnitudePrediction:
    """Fit on the earliest events and predict the rest.

    Raises:
        InsufficientDataError: if the split leaves fewer than two training
            events or no test events
    """
    ordered = sort_by_time(events)
    split = int(len(ordered) * train_fraction)
    training, testing = ordered[:split], ordered[split:]
    if len(training) < 2 or not testing:
        raise InsufficientDataError(
            f"Magnitude prediction needs at least 2 training and 1 test event, "
            f"got {len(training)} and {len(testing)}"
        )

    model = LinearRegression()
    model.fit(feature_matrix(training), [e.magnitude for e in training])
    predicted = model.predict(feature_matrix(testing))
    actual = np.array([e.magnitude for e in testing], dtype=float)

    # r2 is undefined for a single held-out event
    r2 = float(r2_score(actual, predicted)) if len(testing) >= 2 else 0.0
    scores = PredictionScores(
        mae=float(mean_absolute_error(actual, predicted)),
        rmse=float(np.sqrt(mean_squared_error(actual, predicted))),
        r2=r2,
        mape=float(mean_absolute_percentage_error(actual, predicted)) * 100,
    )
    logger.debug(
        "Magnitude prediction: %d train, %d test, RMSE %.3f",
        len(training), len(testing), scores.rmse,
    )
    return MagnitudePrediction(
        coefficients={name: float(c) for name, c in zip(FEATURES, model.coef_)},
        intercept=float(model.intercept_),
        training_size=len(training),
        testing=tuple(testing),
        predicted=tuple(float(p) for p in predicted),
        scores=scores,
    )


def residual_stats(errors: Sequence[float]) -> dict[str, float]:
    values = np.asarray(errors, dtype=float)
    return {
        "mean": float(values.mean()),
        "std": float(values.std()),
        "min": float(values.min()),
        "max": float(values.max()),
    }
