"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import List, Optional

from ...models.domain import GeoPoint, PickupPoint


@dataclass(frozen=True, slots=True)
class RouteStop:
    point: PickupPoint
    order: int
    pickup_time: time
    ready_time: time
    minutes_before_arrival: int


@dataclass(frozen=True, slots=True)
class SequenceResult:
    order: List[int]
    total_cost: float
    method: str


@dataclass(slots=True)
class VehicleRoute:
    route_id: str
    stops: List[RouteStop]
    destination: GeoPoint
    arrival_time: datetime
    start_time: datetime
    total_duration_min: float
    total_distance_km: float
    rest_minutes: float
    matrix_source: str = "osrm"
    sequencing_method: str = "exhaustive"
    overflow: bool = False
    assigned_driver_id: Optional[str] = None
    geometry: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def end_time(self) -> datetime:
        return self.arrival_time

    @property
    def required_capacity(self) -> int:
        return len(self.stops)
