"""Domain models for riders, drivers and persisted route records."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class GeoPoint:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class PickupPoint:
    """A geocoded rider pickup location. Never mutated after geocoding."""

    point_id: str
    latitude: float
    longitude: float
    label: str = ""

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class DriverRecord:
    """Driver availability state owned by the assignment scheduler."""

    driver_id: str
    is_available: bool = True
    available_from: Optional[datetime] = None
    drives_count: int = 0
    capacity: Optional[int] = None


@dataclass(slots=True)
class RouteRecord:
    """Minimal persisted shape of a planned route as seen by driver assignment."""

    route_id: str
    start_time: datetime
    end_time: datetime
    rest_minutes: Optional[float] = None
    assigned_driver_id: Optional[str] = None
    required_capacity: int = 0
