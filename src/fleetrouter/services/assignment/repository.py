"""In-process store of drivers and route records.

Not thread-safe on its own: every access goes through ``AssignmentScheduler``.
Timestamps are stored as UTC-aware datetimes; naive input is read as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from ...models.domain import DriverRecord, RouteRecord


def normalize_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FleetRepository:
    def __init__(
        self,
        drivers: Iterable[DriverRecord] = (),
        routes: Iterable[RouteRecord] = (),
    ) -> None:
        # Insertion order doubles as the tie-break order between equally loaded drivers.
        self._drivers: dict[str, DriverRecord] = {}
        self._routes: dict[str, RouteRecord] = {}
        for driver in drivers:
            self.add_driver(driver)
        for route in routes:
            self.add_route(route)

    def add_driver(self, driver: DriverRecord) -> DriverRecord:
        if driver.driver_id in self._drivers:
            raise ValueError(f"Driver '{driver.driver_id}' already exists.")
        driver.available_from = normalize_timestamp(driver.available_from)
        self._drivers[driver.driver_id] = driver
        return driver

    def get_driver(self, driver_id: str) -> DriverRecord | None:
        return self._drivers.get(driver_id)

    def list_drivers(self) -> list[DriverRecord]:
        return list(self._drivers.values())

    def add_route(self, route: RouteRecord) -> RouteRecord:
        if route.route_id in self._routes:
            raise ValueError(f"Route '{route.route_id}' already exists.")
        route.start_time = normalize_timestamp(route.start_time)
        route.end_time = normalize_timestamp(route.end_time)
        if route.end_time < route.start_time:
            raise ValueError("Route end_time must not be before start_time.")
        self._routes[route.route_id] = route
        return route

    def get_route(self, route_id: str) -> RouteRecord | None:
        return self._routes.get(route_id)

    def list_routes(self) -> list[RouteRecord]:
        return list(self._routes.values())

    def routes_for_driver(self, driver_id: str) -> list[RouteRecord]:
        return [route for route in self._routes.values() if route.assigned_driver_id == driver_id]
