import itertools
import random

import pytest

from fleetrouter.services.routing.sequencer import (
    exhaustive_order,
    nearest_neighbor_order,
    route_cost,
    sequence_stops,
    two_opt,
)


def _random_matrix(size: int, seed: int) -> list[list[float]]:
    rng = random.Random(seed)
    points = [(rng.uniform(0, 100), rng.uniform(0, 100)) for _ in range(size)]
    return [
        [abs(ax - bx) + abs(ay - by) for bx, by in points]
        for ax, ay in points
    ]


def test_exhaustive_search_beats_every_permutation():
    matrix = _random_matrix(7, seed=5)  # 6 pickups + destination
    result = sequence_stops(matrix)

    assert result.method == "exhaustive"
    assert result.order[-1] == 6
    assert sorted(result.order[:-1]) == list(range(6))
    for permutation in itertools.permutations(range(6)):
        assert result.total_cost <= route_cost((*permutation, 6), matrix)


def test_three_stops_picks_cheapest_of_six_orders():
    # pickups 0,1,2 then destination 3
    matrix = [
        [0, 5, 9, 4],
        [5, 0, 2, 8],
        [9, 2, 0, 3],
        [4, 8, 3, 0],
    ]
    costs = {
        permutation: route_cost((*permutation, 3), matrix)
        for permutation in itertools.permutations(range(3))
    }
    assert len(costs) == 6

    result = sequence_stops(matrix)
    assert result.total_cost == min(costs.values())
    assert result.order == [0, 1, 2, 3]


def test_first_minimum_wins_ties():
    matrix = [
        [0, 1, 1],
        [1, 0, 1],
        [1, 1, 0],
    ]
    assert exhaustive_order(matrix) == [0, 1, 2]


def test_large_groups_use_two_opt_and_never_worsen_nearest_neighbor():
    matrix = _random_matrix(13, seed=42)  # 12 pickups + destination
    greedy = nearest_neighbor_order(matrix)
    improved = two_opt(greedy, matrix)
    result = sequence_stops(matrix)

    assert result.method == "nearest_neighbor_2opt"
    assert greedy[0] == 0
    assert improved[-1] == 12
    assert sorted(improved) == list(range(13))
    assert route_cost(improved, matrix) <= route_cost(greedy, matrix)
    assert result.order == improved


def test_exhaustive_limit_can_be_lowered():
    matrix = _random_matrix(5, seed=1)
    assert sequence_stops(matrix, exhaustive_limit=2).method == "nearest_neighbor_2opt"


def test_zero_and_one_stop():
    empty = sequence_stops([[0]])
    assert empty.order == [0]
    assert empty.total_cost == 0

    single = sequence_stops([[0, 120], [130, 0]])
    assert single.order == [0, 1]
    assert single.total_cost == 120


def test_non_square_matrix_is_rejected():
    with pytest.raises(ValueError):
        sequence_stops([[0, 1], [1]])
