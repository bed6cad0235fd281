"""Time-window rules deciding which drivers can take a route."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from ...config import settings
from ...models.domain import DriverRecord, RouteRecord
from .repository import FleetRepository, normalize_timestamp


def rest_minutes_or_default(rest_minutes: float | None) -> float:
    return settings.default_rest_minutes if rest_minutes is None else rest_minutes


def windows_conflict(
    start: datetime,
    end: datetime,
    rest_minutes: float | None,
    existing: RouteRecord,
) -> bool:
    """True when the new window, padded by rest, overlaps ``existing`` padded by its rest."""
    existing_end_with_rest = existing.end_time + timedelta(minutes=rest_minutes_or_default(existing.rest_minutes))
    end_with_rest = end + timedelta(minutes=rest_minutes_or_default(rest_minutes))
    return start < existing_end_with_rest and end_with_rest > existing.start_time


def is_released(driver: DriverRecord, start: datetime) -> bool:
    """Driver is flagged available or becomes available before ``start``."""
    if driver.is_available:
        return True
    return driver.available_from is not None and driver.available_from <= start


def has_seats(driver: DriverRecord, required_capacity: int) -> bool:
    return driver.capacity is None or driver.capacity >= required_capacity


def find_available_drivers(
    repository: FleetRepository,
    start: datetime,
    end: datetime,
    rest_minutes: float | None = None,
    *,
    required_capacity: int = 0,
) -> list[DriverRecord]:
    start, end = normalize_timestamp(start), normalize_timestamp(end)
    available: list[DriverRecord] = []
    for driver in repository.list_drivers():
        booked = repository.routes_for_driver(driver.driver_id)
        if any(windows_conflict(start, end, rest_minutes, existing) for existing in booked):
            continue
        if is_released(driver, start) and has_seats(driver, required_capacity):
            available.append(driver)
    return available


def least_loaded(drivers: Sequence[DriverRecord]) -> DriverRecord:
    """Driver with the fewest drives; the first one wins ties."""
    if not drivers:
        raise ValueError("No drivers to choose from.")
    return min(drivers, key=lambda driver: driver.drives_count or 0)


def driver_is_available(
    repository: FleetRepository,
    driver_id: str,
    start: datetime,
    end: datetime,
) -> bool:
    start, end = normalize_timestamp(start), normalize_timestamp(end)
    driver = repository.get_driver(driver_id)
    if driver is None:
        return False
    if not is_released(driver, start):
        return False
    booked = repository.routes_for_driver(driver_id)
    return not any(windows_conflict(start, end, None, existing) for existing in booked)
