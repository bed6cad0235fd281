"""Fleet planning request/response schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field


class PickupInput(BaseModel):
    point_id: str = Field(..., description="Employee or stop reference.")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = Field(None, description="Geocoded when coordinates are missing.")
    label: Optional[str] = None


class DestinationInput(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    label: Optional[str] = None


class FleetPlanRequest(BaseModel):
    pickups: List[PickupInput] = Field(default_factory=list)
    destination: Optional[DestinationInput] = None
    arrival_time: time = Field(..., description="Time every vehicle must reach the destination.")
    service_date: Optional[date] = Field(default=None, description="Defaults to today.")
    max_vehicles: int = Field(..., description="Upper bound on vehicles (clusters).")
    capacity: Optional[int] = Field(default=None, description="Seats per vehicle; defaults to configuration.")
    rest_minutes: Optional[float] = Field(default=None, ge=0, description="Driver rest after each trip.")
    seed: Optional[int] = Field(default=None, description="Seed for reproducible clustering.")
    assign_drivers: bool = False
    include_geometry: bool = False
    persist: bool = False
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")


class RouteStopModel(BaseModel):
    point_id: str
    label: str
    latitude: float
    longitude: float
    order: int
    pickup_time: str
    ready_time: str
    minutes_before_arrival: int


class VehicleRouteModel(BaseModel):
    route_id: str
    stops: List[RouteStopModel]
    destination: List[float]
    arrival_time: datetime
    start_time: datetime
    end_time: datetime
    total_duration_min: float
    total_distance_km: float
    rest_minutes: float
    required_capacity: int
    matrix_source: str
    sequencing_method: str
    overflow: bool
    assigned_driver_id: Optional[str] = None
    geometry: Optional[str] = None


class FleetPlanResponse(BaseModel):
    plan_id: str
    routes: List[VehicleRouteModel]
    warnings: List[str]
    metadata: dict


class ClusterRequest(BaseModel):
    pickups: List[PickupInput] = Field(default_factory=list)
    max_vehicles: int
    capacity: Optional[int] = None
    seed: Optional[int] = None


class ClusterModel(BaseModel):
    cluster_id: int
    centroid: List[float]
    size: int
    capacity: int
    overflow: bool
    point_ids: List[str]


class ClusterResponse(BaseModel):
    recommended_vehicle_count: int
    clusters: List[ClusterModel]
    metadata: dict = Field(default_factory=dict)
