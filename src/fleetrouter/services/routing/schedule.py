"""Backward pickup scheduling from a fixed arrival time."""

from __future__ import annotations

import math
from datetime import time
from typing import Sequence

from ...config import settings
from ...models.domain import PickupPoint
from .models import RouteStop

MINUTES_PER_DAY = 24 * 60


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(total_minutes: int) -> time:
    """Wall-clock time for a minute offset, wrapping around midnight."""
    normalized = total_minutes % MINUTES_PER_DAY
    return time(hour=normalized // 60, minute=normalized % 60)


def shift_time(value: time, minutes: int) -> time:
    return time_from_minutes(minutes_of_day(value) + minutes)


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def propagate_schedule(
    order: Sequence[int],
    duration_matrix: Sequence[Sequence[float]],
    points: Sequence[PickupPoint],
    arrival_time: time,
    ready_buffer_minutes: int | None = None,
) -> list[RouteStop]:
    """Stamp pickup and ready times on each stop of a sequenced route.

    ``order`` ends with the destination index and ``duration_matrix`` holds
    seconds. Legs are accumulated from the destination backwards; each pickup
    is the arrival time minus the whole minutes travelled from that stop, and
    any positive travel time keeps the pickup at least a minute before arrival.
    """
    buffer = ready_buffer_minutes if ready_buffer_minutes is not None else settings.ready_buffer_minutes
    if buffer < 0:
        raise ValueError("ready_buffer_minutes must be >= 0")
    if not order:
        raise ValueError("order must end with the destination index")

    pickup_order = list(order[:-1])
    if len(pickup_order) != len(points):
        raise ValueError(f"order visits {len(pickup_order)} pickups but {len(points)} points were given")

    stops: list[RouteStop] = []
    cumulative_minutes = 0.0
    for position in range(len(order) - 2, -1, -1):
        leg_seconds = duration_matrix[order[position]][order[position + 1]]
        cumulative_minutes += leg_seconds / 60.0
        offset = math.floor(round(cumulative_minutes, 6))
        if cumulative_minutes > 0:
            offset = max(offset, 1)
        pickup = shift_time(arrival_time, -offset)
        stops.append(
            RouteStop(
                point=points[order[position]],
                order=position + 1,
                pickup_time=pickup,
                ready_time=shift_time(pickup, -buffer),
                minutes_before_arrival=offset,
            )
        )
    stops.reverse()
    return stops
