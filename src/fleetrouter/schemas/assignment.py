"""Driver and assignment schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DriverCreate(BaseModel):
    driver_id: str
    is_available: bool = True
    available_from: Optional[datetime] = None
    drives_count: int = Field(default=0, ge=0)
    capacity: Optional[int] = Field(default=None, ge=1, description="Seats; unknown capacity accepts any route.")


class DriverModel(DriverCreate):
    pass


class RouteRecordCreate(BaseModel):
    route_id: str
    start_time: datetime
    end_time: datetime
    rest_minutes: Optional[float] = Field(default=None, ge=0)
    required_capacity: int = Field(default=0, ge=0)


class RouteRecordModel(RouteRecordCreate):
    assigned_driver_id: Optional[str] = None


class AssignmentRequest(BaseModel):
    route_id: str


class AssignmentResultModel(BaseModel):
    success: bool
    message: str
    driver_id: Optional[str] = None


class AvailabilityResponse(BaseModel):
    driver_id: str
    start_time: datetime
    end_time: datetime
    available: bool
