"""Vehicle count heuristics based on how spread out the pickups are."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from sklearn.metrics import pairwise_distances

from ...models.domain import PickupPoint

# Median pairwise spread thresholds in degrees (~1km and ~3km).
TIGHT_SPREAD_DEGREES = 0.01
MODERATE_SPREAD_DEGREES = 0.03


def median_pairwise_distance(points: Sequence[PickupPoint]) -> float:
    if len(points) < 2:
        return 0.0
    coordinates = np.array([point.as_tuple() for point in points], dtype=float)
    matrix = pairwise_distances(coordinates, metric="euclidean")
    upper = np.sort(matrix[np.triu_indices(len(points), k=1)])
    return float(upper[len(upper) // 2])


def recommend_vehicle_count(points: Sequence[PickupPoint], max_vehicles: int) -> int:
    """Suggest how many vehicles to use, never more than ``max_vehicles``.

    Tight groups share vehicles (about four riders each), moderately spread
    groups about three, and widely spread points get one vehicle per pair.
    The value is a hint for the clustering engine, not a hard constraint.
    """
    if max_vehicles < 1:
        raise ValueError("max_vehicles must be >= 1")

    count = len(points)
    if count <= 1:
        return 1

    spread = median_pairwise_distance(points)
    if spread < TIGHT_SPREAD_DEGREES:
        recommended = count // 4
    elif spread < MODERATE_SPREAD_DEGREES:
        recommended = count // 3
    else:
        recommended = math.ceil(count / 2)
    return max(1, min(max_vehicles, recommended))
