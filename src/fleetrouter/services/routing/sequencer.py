"""Visit-order optimisation for a single vehicle ending at a fixed destination.

The duration matrix covers the vehicle's pickups followed by the destination,
so for ``n`` pickups the destination is index ``n``. Small groups are solved
exactly by enumerating every permutation; larger ones start from a nearest
neighbour tour and are improved with 2-opt segment reversals.
"""

from __future__ import annotations

import itertools
import math
from typing import Sequence

from ...config import settings
from .models import SequenceResult

Matrix = Sequence[Sequence[float]]


def _validate_matrix(duration_matrix: Matrix) -> int:
    size = len(duration_matrix)
    if size < 1:
        raise ValueError("Duration matrix must include at least the destination.")
    for row in duration_matrix:
        if len(row) != size:
            raise ValueError(f"Duration matrix must be square, got a row of {len(row)} for size {size}.")
    return size - 1


def route_cost(order: Sequence[int], duration_matrix: Matrix) -> float:
    """Sum of consecutive leg durations along ``order``."""
    return float(sum(duration_matrix[order[i]][order[i + 1]] for i in range(len(order) - 1)))


def exhaustive_order(duration_matrix: Matrix) -> list[int]:
    stop_count = _validate_matrix(duration_matrix)
    destination = stop_count
    if stop_count == 0:
        return [destination]

    best_order: tuple[int, ...] = ()
    best_cost = math.inf
    for permutation in itertools.permutations(range(stop_count)):
        cost = route_cost((*permutation, destination), duration_matrix)
        if cost < best_cost:
            best_cost = cost
            best_order = permutation
    return [*best_order, destination]


def nearest_neighbor_order(duration_matrix: Matrix) -> list[int]:
    """Greedy tour from pickup 0 through every pickup, then the destination."""
    stop_count = _validate_matrix(duration_matrix)
    destination = stop_count
    if stop_count == 0:
        return [destination]

    order = [0]
    visited = {0}
    while len(order) < stop_count:
        last = order[-1]
        nearest = min(
            (index for index in range(stop_count) if index not in visited),
            key=lambda index: duration_matrix[last][index],
        )
        order.append(nearest)
        visited.add(nearest)
    order.append(destination)
    return order


def _reverse_segment(order: list[int], i: int, j: int) -> list[int]:
    return order[:i] + order[i : j + 1][::-1] + order[j + 1 :]


def two_opt(order: Sequence[int], duration_matrix: Matrix) -> list[int]:
    """Apply the first improving segment reversal until none is left.

    The final position (the destination) is never part of a reversal and
    adjacent pairs are skipped.
    """
    best_order = list(order)
    best_cost = route_cost(best_order, duration_matrix)
    length = len(best_order)

    improved = True
    while improved:
        improved = False
        for i in range(length - 2):
            for j in range(i + 1, length - 1):
                if j - i == 1:
                    continue
                candidate = _reverse_segment(best_order, i, j)
                candidate_cost = route_cost(candidate, duration_matrix)
                if candidate_cost < best_cost:
                    best_order = candidate
                    best_cost = candidate_cost
                    improved = True
                    break
            if improved:
                break
    return best_order


def sequence_stops(
    duration_matrix: Matrix,
    *,
    exhaustive_limit: int | None = None,
) -> SequenceResult:
    """Return the cheapest visiting order found for the pickups in ``duration_matrix``."""
    stop_count = _validate_matrix(duration_matrix)
    limit = exhaustive_limit if exhaustive_limit is not None else settings.exhaustive_search_limit

    if stop_count <= limit:
        order = exhaustive_order(duration_matrix)
        method = "exhaustive"
    else:
        order = two_opt(nearest_neighbor_order(duration_matrix), duration_matrix)
        method = "nearest_neighbor_2opt"
    return SequenceResult(order=order, total_cost=route_cost(order, duration_matrix), method=method)
