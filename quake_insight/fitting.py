"""Gutenberg-Richter and Omori-law parameter estimation.

Gutenberg-Richter
-----------------
    log10(N) = a - b * M

N is the number of events with magnitude >= M. Magnitudes are binned at
0.1 and ``b`` is the negated slope of an ordinary least-squares line
through the (M, log10 N) points.

Omori
-----
    n(t) = K / (t + c)^p

Aftershocks are counted in whole-day bins after the mainshock. The
baseline estimator regresses log10(count) on log10(day + 1), takes ``K``
as the first bin's count and fixes ``c = 0.5``. Evaluated at bin
mid-points (t = day + 0.5) that is exactly ``t + c = day + 1``.
:func:`fit_omori_nonlinear` fits all three parameters jointly.

Degenerate inputs never raise: a :class:`DegenerateFitWarning` is issued
and a documented fallback is returned.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
from scipy import stats
from scipy.optimize import OptimizeWarning, curve_fit

from .catalog import MS_PER_DAY, SeismicEvent
from .errors import DegenerateFitWarning

MAG_BIN = 0.1
DEFAULT_B_VALUE = 1.0
DEFAULT_OMORI_P = 1.0
DEFAULT_OMORI_C = 0.5
DEFAULT_OMORI_K = 10.0
MIN_OMORI_BINS = 3


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float
    r_squared: float


@dataclass(frozen=True)
class MagnitudeBin:
    magnitude: float
    count: int
    log_n: float


@dataclass(frozen=True)
class GutenbergRichterFit:
    a_value: float
    b_value: float
    r_squared: float


@dataclass(frozen=True)
class OmoriBin:
    day: int
    count: float

    @property
    def log_day(self) -> float:
        return math.log10(self.day + 1)

    @property
    def log_count(self) -> float:
        return math.log10(self.count)


@dataclass(frozen=True)
class OmoriParams:
    p: float
    c: float
    k: float

    def to_dict(self) -> dict[str, float]:
        return {"p": self.p, "c": self.c, "K": self.k}


def linear_fit(xs: Sequence[float], ys: Sequence[float]) -> LinearFit | None:
    """Ordinary least squares ``y = intercept + slope * x`` via :func:`scipy.stats.linregress`.

    Returns None when fewer than two points are given or all x are equal.
    A constant ``ys`` fits exactly, so its ``r_squared`` is 1.0.
    """
    if len(xs) < 2 or len(xs) != len(ys):
        return None
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if np.ptp(x) <= 1e-12 * max(1.0, float(np.abs(x).max())):
        return None

    res = stats.linregress(x, y)
    r_squared = 1.0 if np.ptp(y) == 0 else float(res.rvalue) ** 2
    return LinearFit(
        slope=float(res.slope), intercept=float(res.intercept), r_squared=r_squared
    )


def bin_magnitude(magnitude: float) -> float:
    """Floor a magnitude to its 0.1 bin, tolerant of binary rounding (2.3 -> 2.3)."""
    return round(math.floor(magnitude / MAG_BIN + 1e-9) * MAG_BIN, 1)


def gutenberg_richter_bins(magnitudes: Iterable[float]) -> list[MagnitudeBin]:
    """Per-bin counts with the cumulative count at or above each bin."""
    counts: dict[float, int] = {}
    for m in magnitudes:
        key = bin_magnitude(m)
        counts[key] = counts.get(key, 0) + 1

    remaining = sum(counts.values())
    bins = []
    for mag in sorted(counts):
        bins.append(MagnitudeBin(magnitude=mag, count=counts[mag], log_n=math.log10(remaining)))
        remaining -= counts[mag]
    return bins


def fit_gutenberg_richter(points: Iterable[tuple[float, float]]) -> GutenbergRichterFit:
    """Fit ``log N = a - b M`` to (magnitude, log N) points.

    With fewer than two distinct magnitudes the fit is undefined; a
    :class:`DegenerateFitWarning` is issued and ``b = 1.0`` is returned.
    """
    pts = list(points)
    fit = linear_fit([m for m, _ in pts], [log_n for _, log_n in pts])
    if fit is None:
        warnings.warn(
            f"Gutenberg-Richter fit needs 2 distinct magnitude bins, got {len(pts)}; "
            f"using b = {DEFAULT_B_VALUE}",
            DegenerateFitWarning,
            stacklevel=2,
        )
        a_value = pts[0][1] + DEFAULT_B_VALUE * pts[0][0] if pts else 0.0
        return GutenbergRichterFit(a_value=a_value, b_value=DEFAULT_B_VALUE, r_squared=0.0)
    return GutenbergRichterFit(a_value=fit.intercept, b_value=-fit.slope, r_squared=fit.r_squared)


def estimate_b_value(events: Iterable[SeismicEvent]) -> GutenbergRichterFit:
    """Bin a catalog's magnitudes and fit the Gutenberg-Richter relation."""
    bins = gutenberg_richter_bins(e.magnitude for e in events)
    return fit_gutenberg_richter((b.magnitude, b.log_n) for b in bins)


def omori_bins(events: Iterable[SeismicEvent], mainshock: SeismicEvent) -> list[OmoriBin]:
    """Count events strictly after ``mainshock`` per whole day since it."""
    counts: dict[int, int] = {}
    for event in events:
        if event.time <= mainshock.time:
            continue
        day = (event.time - mainshock.time) // MS_PER_DAY
        counts[day] = counts.get(day, 0) + 1
    return [OmoriBin(day=day, count=counts[day]) for day in sorted(counts)]


def fit_omori(bins: Sequence[OmoriBin]) -> OmoriParams:
    """Baseline Omori estimate: log-log slope for ``p``, first count for ``K``.

    ``c`` is fixed at 0.5. With fewer than three bins ``p`` falls back to
    1.0 (and ``K`` to 10 when there are no bins at all).
    """
    k = float(bins[0].count) if bins else DEFAULT_OMORI_K
    fit = None
    if len(bins) >= MIN_OMORI_BINS:
        fit = linear_fit([b.log_day for b in bins], [b.log_count for b in bins])
    if fit is None:
        warnings.warn(
            f"Omori fit needs {MIN_OMORI_BINS} day bins, got {len(bins)}; "
            f"using p = {DEFAULT_OMORI_P}",
            DegenerateFitWarning,
            stacklevel=2,
        )
        return OmoriParams(p=DEFAULT_OMORI_P, c=DEFAULT_OMORI_C, k=k)
    return OmoriParams(p=-fit.slope, c=DEFAULT_OMORI_C, k=k)


def _omori_rate(t, k, c, p):
    return k / np.power(t + c, p)


def fit_omori_nonlinear(bins: Sequence[OmoriBin]) -> OmoriParams:
    """Jointly fit ``(K, c, p)`` by nonlinear least squares at bin mid-points.

    Starts from the baseline estimate and falls back to it (with a
    :class:`DegenerateFitWarning`) if the optimiser fails.
    """
    baseline = fit_omori(bins)
    if len(bins) < MIN_OMORI_BINS:
        return baseline

    t = np.array([b.day + 0.5 for b in bins], dtype=float)
    counts = np.array([b.count for b in bins], dtype=float)
    p0 = (baseline.k, baseline.c, min(max(baseline.p, 0.05), 5.0))
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            popt, _pcov = curve_fit(
                _omori_rate, t, counts, p0=p0,
                bounds=([1e-9, 1e-6, 0.01], [np.inf, 100.0, 10.0]),
                maxfev=10_000,
            )
    except (RuntimeError, ValueError) as exc:
        warnings.warn(
            f"Nonlinear Omori fit failed ({exc}); using baseline estimate",
            DegenerateFitWarning,
            stacklevel=2,
        )
        return baseline

    k, c, p = (float(v) for v in popt)
    if not all(math.isfinite(v) for v in (k, c, p)):
        warnings.warn(
            "Nonlinear Omori fit returned non-finite parameters; using baseline estimate",
            DegenerateFitWarning,
            stacklevel=2,
        )
        return baseline
    return OmoriParams(p=p, c=c, k=k)
