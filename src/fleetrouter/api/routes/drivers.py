"""Driver registry endpoints."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from ...models.domain import DriverRecord
from ...schemas.assignment import AvailabilityResponse, DriverCreate, DriverModel, RouteRecordModel
from ...services.assignment.repository import normalize_timestamp
from ...services.assignment.scheduler import get_scheduler

router = APIRouter(prefix="/drivers", tags=["drivers"])


def _driver_or_404(driver_id: str) -> DriverRecord:
    driver = get_scheduler().get_driver(driver_id)
    if driver is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Driver '{driver_id}' not found.")
    return driver


@router.get("", response_model=List[DriverModel])
def list_drivers() -> List[DriverModel]:
    return [DriverModel(**dataclasses.asdict(driver)) for driver in get_scheduler().list_drivers()]


@router.post("", response_model=DriverModel, status_code=status.HTTP_201_CREATED)
def create_driver(payload: DriverCreate) -> DriverModel:
    try:
        driver = get_scheduler().register_driver(DriverRecord(**payload.model_dump()))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DriverModel(**dataclasses.asdict(driver))


@router.get("/{driver_id}", response_model=DriverModel)
def get_driver(driver_id: str) -> DriverModel:
    return DriverModel(**dataclasses.asdict(_driver_or_404(driver_id)))


@router.get("/{driver_id}/routes", response_model=List[RouteRecordModel])
def driver_routes(driver_id: str) -> List[RouteRecordModel]:
    """Routes currently bound to the driver."""
    _driver_or_404(driver_id)
    return [RouteRecordModel(**dataclasses.asdict(route)) for route in get_scheduler().driver_routes(driver_id)]


@router.get("/{driver_id}/availability", response_model=AvailabilityResponse)
def driver_availability(
    driver_id: str,
    start_time: datetime = Query(..., description="Start of the requested window."),
    end_time: datetime = Query(..., description="End of the requested window."),
) -> AvailabilityResponse:
    start_time, end_time = normalize_timestamp(start_time), normalize_timestamp(end_time)
    if end_time < start_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_time must not be before start_time.")
    _driver_or_404(driver_id)
    available = get_scheduler().check_availability(driver_id, start_time, end_time)
    return AvailabilityResponse(driver_id=driver_id, start_time=start_time, end_time=end_time, available=available)
