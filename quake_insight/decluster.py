"""Mainshock/aftershock declustering.

Separates a time-ordered catalog into mainshocks and aftershocks with one
of four strategies:

dbscan
    Density clustering first; in each cluster the largest event is the
    mainshock and every other member an aftershock. Noise events are
    mainshocks.
nnd
    Magnitude-scaled windows: time ``10^(M - 5.5)`` days, space
    ``10^(0.1 M - 0.5)`` degrees.
gruenthal
    Gruenthal windows: time ``10^(2.8 + 0.024 M)`` days, space
    ``10^(-1.77 + 0.38 M)`` degrees.
reasenberg
    Space window ``10^(-1.85 + 0.4 M)`` degrees combined with an Omori rate
    test ``1 / (dt + c)^p > threshold`` (p = 1.0, c = 0.05 days,
    threshold = 0.1).

The three window strategies walk the catalog once in time order. An event
not yet flagged as an aftershock becomes a mainshock and claims every
later, still unclassified event that passes the admission test. An
aftershock is never reconsidered, so it can never turn into a mainshock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from .catalog import MS_PER_DAY, SeismicEvent, is_time_sorted
from .clustering import DEFAULT_EPS, DEFAULT_MIN_PTS, dbscan
from .errors import CatalogOrderError, InsufficientDataError, UnsupportedAlgorithmError
from .geo import degree_distance

logger = logging.getLogger(__name__)

REASENBERG_P = 1.0
REASENBERG_C = 0.05
REASENBERG_RATE_THRESHOLD = 0.1


class DeclusterAlgorithm(str, Enum):
    DBSCAN = "dbscan"
    NND = "nnd"
    GRUENTHAL = "gruenthal"
    REASENBERG = "reasenberg"

    @classmethod
    def parse(cls, name: str | DeclusterAlgorithm) -> DeclusterAlgorithm:
        """Resolve an enum value or dashboard label.

        Raises:
            UnsupportedAlgorithmError: for any other name
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        resolved = _DECLUSTER_ALIASES.get(key)
        if resolved is None:
            raise UnsupportedAlgorithmError(f"Unsupported declustering algorithm: {name}")
        return resolved


_DECLUSTER_ALIASES = {
    "dbscan": DeclusterAlgorithm.DBSCAN,
    "nnd": DeclusterAlgorithm.NND,
    "nnd algorithm": DeclusterAlgorithm.NND,
    "gruenthal": DeclusterAlgorithm.GRUENTHAL,
    "gruenthal declustering algorithm": DeclusterAlgorithm.GRUENTHAL,
    "reasenberg": DeclusterAlgorithm.REASENBERG,
    "reasenberg algorithm": DeclusterAlgorithm.REASENBERG,
}


class Role(Enum):
    UNCLASSIFIED = 0
    MAINSHOCK = 1
    AFTERSHOCK = 2


@dataclass(frozen=True)
class DeclusterParams:
    """Tuning knobs for :func:`decluster`.

    Attributes:
        eps:            DBSCAN radius in degrees (dbscan strategy)
        min_pts:        DBSCAN core-point threshold (dbscan strategy)
        omori_p:        Omori decay exponent (reasenberg strategy)
        omori_c:        Omori time offset in days (reasenberg strategy)
        rate_threshold: minimum Omori rate for admission (reasenberg strategy)
    """
    eps: float = DEFAULT_EPS
    min_pts: int = DEFAULT_MIN_PTS
    omori_p: float = REASENBERG_P
    omori_c: float = REASENBERG_C
    rate_threshold: float = REASENBERG_RATE_THRESHOLD


@dataclass(frozen=True)
class DensitySummary:
    """Counts from the DBSCAN pass behind a ``dbscan`` declustering."""
    clusters: int
    noise_points: int
    core_points: int
    border_points: int


@dataclass(frozen=True)
class MainshockAftershockPartition:
    """Result of declustering one catalog.

    ``roles[i]`` is the role of ``events[i]``; ``parents[i]`` is the index
    of the mainshock that claimed aftershock ``i`` (None for mainshocks).
    ``density`` is only set by the dbscan strategy.
    """
    algorithm: DeclusterAlgorithm
    events: tuple[SeismicEvent, ...]
    roles: tuple[Role, ...]
    parents: tuple[int | None, ...]
    density: DensitySummary | None = None

    @property
    def mainshocks(self) -> list[SeismicEvent]:
        return [e for e, r in zip(self.events, self.roles) if r is Role.MAINSHOCK]

    @property
    def aftershocks(self) -> list[SeismicEvent]:
        return [e for e, r in zip(self.events, self.roles) if r is Role.AFTERSHOCK]

    @property
    def mainshock_indices(self) -> list[int]:
        return [i for i, r in enumerate(self.roles) if r is Role.MAINSHOCK]

    @property
    def aftershock_indices(self) -> list[int]:
        return [i for i, r in enumerate(self.roles) if r is Role.AFTERSHOCK]


def nnd_window(magnitude: float) -> tuple[float, float]:
    """Return (space_degrees, time_days) for the NND strategy."""
    return 10 ** (0.1 * magnitude - 0.5), 10 ** (magnitude - 5.5)


def gruenthal_window(magnitude: float) -> tuple[float, float]:
    """Return (space_degrees, time_days) for the Gruenthal strategy."""
    return 10 ** (-1.77 + 0.38 * magnitude), 10 ** (2.8 + 0.024 * magnitude)


def reasenberg_space_window(magnitude: float) -> float:
    """Space window in degrees for the Reasenberg strategy."""
    return 10 ** (-1.85 + 0.4 * magnitude)


def omori_rate(dt_days: float, p: float = REASENBERG_P, c: float = REASENBERG_C) -> float:
    """Relative Omori aftershock rate ``1 / (dt + c)^p``."""
    return 1.0 / (dt_days + c) ** p


def _days_between(earlier: SeismicEvent, later: SeismicEvent) -> float:
    return (later.time - earlier.time) / MS_PER_DAY


def _distance(a: SeismicEvent, b: SeismicEvent) -> float:
    return degree_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def _window_admission(
    window_fn: Callable[[float], tuple[float, float]],
) -> Callable[[SeismicEvent, SeismicEvent], bool]:
    """Admission test for a (space_degrees, time_days) window function."""

    def admits(mainshock: SeismicEvent, later: SeismicEvent) -> bool:
        space_window, time_window = window_fn(mainshock.magnitude)
        if _days_between(mainshock, later) > time_window:
            return False
        return _distance(mainshock, later) <= space_window

    return admits


def _reasenberg_admission(
    params: DeclusterParams,
) -> Callable[[SeismicEvent, SeismicEvent], bool]:
    def admits(mainshock: SeismicEvent, later: SeismicEvent) -> bool:
        if _distance(mainshock, later) > reasenberg_space_window(mainshock.magnitude):
            return False
        rate = omori_rate(_days_between(mainshock, later), params.omori_p, params.omori_c)
        return rate > params.rate_threshold

    return admits


def _sequential_core(
    events: Sequence[SeismicEvent],
    admits: Callable[[SeismicEvent, SeismicEvent], bool],
) -> tuple[list[Role], list[int | None]]:
    """Single forward pass shared by the window strategies.

    Args:
        events: Catalog in ascending time order.
        admits: Callable(mainshock, later_event) -> bool.

    Returns:
        (roles, parents) indexed by catalog position.
    """
    n = len(events)
    roles = [Role.UNCLASSIFIED] * n
    parents: list[int | None] = [None] * n

    for i in range(n):
        if roles[i] is Role.AFTERSHOCK:
            continue
        roles[i] = Role.MAINSHOCK
        mainshock = events[i]

        for j in range(i + 1, n):
            if roles[j] is not Role.UNCLASSIFIED:
                continue
            if admits(mainshock, events[j]):
                roles[j] = Role.AFTERSHOCK
                parents[j] = i

    return roles, parents


def _dbscan_core(
    events: Sequence[SeismicEvent],
    params: DeclusterParams,
) -> tuple[list[Role], list[int | None], DensitySummary]:
    n = len(events)
    roles = [Role.UNCLASSIFIED] * n
    parents: list[int | None] = [None] * n
    clusters, noise, is_core = dbscan(events, params.eps, params.min_pts)

    for i in noise:
        roles[i] = Role.MAINSHOCK
    for members in clusters:
        # members are in catalog (time) order, so max() keeps the earliest on ties
        main = max(members, key=lambda i: events[i].magnitude)
        roles[main] = Role.MAINSHOCK
        for i in members:
            if i != main:
                roles[i] = Role.AFTERSHOCK
                parents[i] = main

    clustered = sum(len(members) for members in clusters)
    density = DensitySummary(
        clusters=len(clusters),
        noise_points=len(noise),
        core_points=sum(is_core),
        border_points=clustered - sum(is_core),
    )
    return roles, parents, density


def _ensure_mainshock(
    events: Sequence[SeismicEvent],
    roles: list[Role],
    parents: list[int | None],
) -> None:
    """Force the largest event to be a mainshock if there is none."""
    if Role.MAINSHOCK in roles:
        return
    main = max(range(len(events)), key=lambda i: events[i].magnitude)
    logger.warning(
        "No mainshocks identified; promoting the largest event (M%.1f)",
        events[main].magnitude,
    )
    roles[main] = Role.MAINSHOCK
    parents[main] = None


_STRATEGIES: dict[
    DeclusterAlgorithm,
    Callable[
        [Sequence[SeismicEvent], DeclusterParams],
        tuple[list[Role], list[int | None], DensitySummary | None],
    ],
] = {
    DeclusterAlgorithm.DBSCAN: _dbscan_core,
    DeclusterAlgorithm.NND: lambda events, _params: (
        *_sequential_core(events, _window_admission(nnd_window)), None
    ),
    DeclusterAlgorithm.GRUENTHAL: lambda events, _params: (
        *_sequential_core(events, _window_admission(gruenthal_window)), None
    ),
    DeclusterAlgorithm.REASENBERG: lambda events, params: (
        *_sequential_core(events, _reasenberg_admission(params)), None
    ),
}


def decluster(
    events: Sequence[SeismicEvent],
    algorithm: DeclusterAlgorithm | str,
    params: DeclusterParams | None = None,
) -> MainshockAftershockPartition:
    """Partition a time-sorted catalog into mainshocks and aftershocks.

    Every event ends up in exactly one of the two roles, and a non-empty
    catalog always yields at least one mainshock.

    Args:
        events:    Catalog sorted by ascending time (see ``sort_by_time``).
        algorithm: A :class:`DeclusterAlgorithm` or a name it can parse.
        params:    Strategy parameters; defaults match the published windows.

    Raises:
        InsufficientDataError: for an empty catalog
        UnsupportedAlgorithmError: for an unknown algorithm name
        CatalogOrderError: if ``events`` is not in ascending time order
    """
    algorithm = DeclusterAlgorithm.parse(algorithm)
    params = params if params is not None else DeclusterParams()
    if not events:
        raise InsufficientDataError("No data available for declustering analysis")
    if not is_time_sorted(events):
        raise CatalogOrderError("Declustering requires a catalog sorted by ascending time")

    roles, parents, density = _STRATEGIES[algorithm](events, params)
    _ensure_mainshock(events, roles, parents)

    logger.debug(
        "%s declustering: %d events -> %d mainshocks",
        algorithm.value, len(events), roles.count(Role.MAINSHOCK),
    )
    return MainshockAftershockPartition(
        algorithm=algorithm,
        events=tuple(events),
        roles=tuple(roles),
        parents=tuple(parents),
        density=density,
    )
