"""Duration/distance matrices from a routing provider with a haversine fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import httpx

from ...config import settings
from ..geospatial import haversine_matrices

logger = logging.getLogger(__name__)

# Stand-in for unreachable pairs so the sequencer never prefers them.
UNREACHABLE_PENALTY = 999999999.0


class DistanceProvider(Protocol):
    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict: ...

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict: ...


@dataclass(slots=True)
class TravelMatrix:
    durations: list[list[float]]
    distances: list[list[float]]
    source: str


def _prepare(rows: Sequence[Sequence[float | None]] | None) -> list[list[float]]:
    if rows is None:
        raise ValueError("Routing table response missing durations or distances.")
    return [[float(value) if value is not None else UNREACHABLE_PENALTY for value in row] for row in rows]


def _unreachable_share(durations: Sequence[Sequence[float | None]]) -> float:
    size = len(durations)
    if size < 2:
        return 0.0
    missing = sum(1 for i in range(size) for j in range(size) if i != j and durations[i][j] is None)
    return missing / (size * (size - 1))


def build_travel_matrix(
    coordinates: Sequence[tuple[float, float]],
    provider: DistanceProvider | None,
    *,
    speed_kmh: float | None = None,
) -> TravelMatrix:
    """Fetch a matrix from ``provider``, estimating with haversine when it fails.

    Durations are seconds and distances meters, matching OSRM's table service.
    """
    speed = speed_kmh if speed_kmh is not None else settings.fallback_speed_kmh
    if len(coordinates) < 2:
        return TravelMatrix(durations=[[0.0]], distances=[[0.0]], source="trivial")

    if provider is not None:
        try:
            table = provider.table(coordinates)
            durations = table.get("durations")
            if durations is not None and _unreachable_share(durations) > 0.5:
                logger.warning(
                    f"Routing provider left most pairs unreachable for {len(coordinates)} points. "
                    "Using haversine fallback."
                )
            else:
                return TravelMatrix(
                    durations=_prepare(durations),
                    distances=_prepare(table.get("distances")),
                    source="osrm",
                )
        except (ConnectionError, ValueError, httpx.HTTPError) as e:
            logger.warning(f"Routing table request failed: {e}. Using haversine fallback.")

    estimate = haversine_matrices(coordinates, speed_kmh=speed)
    return TravelMatrix(durations=estimate["durations"], distances=estimate["distances"], source="haversine")
