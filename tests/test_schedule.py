from datetime import time

import pytest

from fleetrouter.models.domain import PickupPoint
from fleetrouter.services.routing.schedule import format_hhmm, propagate_schedule, shift_time


def _points(count: int) -> list[PickupPoint]:
    return [PickupPoint(point_id=f"E{i}", latitude=17.4 + i * 0.01, longitude=78.4) for i in range(count)]


def _chain_matrix(leg_minutes: list[float]) -> list[list[float]]:
    """Matrix in seconds where stop i reaches stop i + 1 in leg_minutes[i]."""
    size = len(leg_minutes) + 1
    matrix = [[0.0] * size for _ in range(size)]
    for i, minutes in enumerate(leg_minutes):
        matrix[i][i + 1] = minutes * 60.0
    return matrix


def test_backward_schedule_from_arrival():
    stops = propagate_schedule([0, 1, 2, 3], _chain_matrix([10, 15, 5]), _points(3), time(18, 0))

    assert [format_hhmm(stop.pickup_time) for stop in stops] == ["17:30", "17:40", "17:55"]
    assert [format_hhmm(stop.ready_time) for stop in stops] == ["17:25", "17:35", "17:50"]
    assert [stop.order for stop in stops] == [1, 2, 3]
    assert [stop.minutes_before_arrival for stop in stops] == [30, 20, 5]
    assert [stop.point.point_id for stop in stops] == ["E0", "E1", "E2"]


def test_visiting_order_is_respected():
    matrix = _chain_matrix([10, 15, 5])
    # visit E1 first: 1 -> 0 -> 2 -> destination
    matrix[1][0] = 6 * 60.0
    matrix[0][2] = 4 * 60.0
    matrix[2][3] = 5 * 60.0
    stops = propagate_schedule([1, 0, 2, 3], matrix, _points(3), time(9, 0))

    assert [stop.point.point_id for stop in stops] == ["E1", "E0", "E2"]
    assert [format_hhmm(stop.pickup_time) for stop in stops] == ["08:45", "08:51", "08:55"]


def test_fractional_minutes_are_floored():
    stops = propagate_schedule([0, 1], [[0, 90.0], [0, 0]], _points(1), time(8, 0))

    assert stops[0].minutes_before_arrival == 1
    assert format_hhmm(stops[0].pickup_time) == "07:59"


def test_short_leg_still_departs_before_arrival():
    stops = propagate_schedule([0, 1], [[0, 30.0], [30.0, 0]], _points(1), time(18, 0))

    assert stops[0].minutes_before_arrival == 1
    assert format_hhmm(stops[0].pickup_time) == "17:59"
    assert stops[0].pickup_time < time(18, 0)


def test_colocated_stop_keeps_zero_offset():
    stops = propagate_schedule([0, 1], [[0, 0.0], [0.0, 0]], _points(1), time(18, 0))

    assert stops[0].minutes_before_arrival == 0
    assert format_hhmm(stops[0].pickup_time) == "18:00"


def test_schedule_wraps_past_midnight():
    stops = propagate_schedule([0, 1, 2], _chain_matrix([20, 15]), _points(2), time(0, 10))

    assert [format_hhmm(stop.pickup_time) for stop in stops] == ["23:35", "23:55"]
    assert format_hhmm(stops[0].ready_time) == "23:30"


def test_pickups_are_monotonic_and_before_arrival():
    stops = propagate_schedule([0, 1, 2, 3, 4], _chain_matrix([7, 3, 12, 9]), _points(4), time(18, 0))

    offsets = [stop.minutes_before_arrival for stop in stops]
    assert offsets == sorted(offsets, reverse=True)
    assert all(offset > 0 for offset in offsets)
    pickups = [stop.pickup_time for stop in stops]
    assert pickups == sorted(pickups)


def test_custom_ready_buffer():
    stops = propagate_schedule([0, 1], _chain_matrix([10]), _points(1), time(12, 0), ready_buffer_minutes=0)
    assert stops[0].ready_time == stops[0].pickup_time


def test_mismatched_points_raise():
    with pytest.raises(ValueError):
        propagate_schedule([0, 1, 2], _chain_matrix([5, 5]), _points(1), time(12, 0))


def test_shift_time_wraps_both_ways():
    assert shift_time(time(23, 50), 20) == time(0, 10)
    assert shift_time(time(0, 5), -10) == time(23, 55)
