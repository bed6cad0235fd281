"""Serializers for fleet plan outputs."""

from __future__ import annotations

import csv
import io

from ..planning.models import FleetPlan
from ..routing.models import VehicleRoute
from ..routing.schedule import format_hhmm


def _route_to_dict(route: VehicleRoute) -> dict:
    return {
        "route_id": route.route_id,
        "destination": list(route.destination.as_tuple()),
        "arrival_time": route.arrival_time.isoformat(),
        "start_time": route.start_time.isoformat(),
        "end_time": route.end_time.isoformat(),
        "total_duration_min": route.total_duration_min,
        "total_distance_km": route.total_distance_km,
        "rest_minutes": route.rest_minutes,
        "required_capacity": route.required_capacity,
        "matrix_source": route.matrix_source,
        "sequencing_method": route.sequencing_method,
        "overflow": route.overflow,
        "assigned_driver_id": route.assigned_driver_id,
        "stops": [
            {
                "point_id": stop.point.point_id,
                "label": stop.point.label,
                "latitude": stop.point.latitude,
                "longitude": stop.point.longitude,
                "order": stop.order,
                "pickup_time": format_hhmm(stop.pickup_time),
                "ready_time": format_hhmm(stop.ready_time),
                "minutes_before_arrival": stop.minutes_before_arrival,
            }
            for stop in route.stops
        ],
    }


def fleet_plan_to_json(plan: FleetPlan) -> dict:
    return {
        "plan_id": plan.plan_id,
        "metadata": plan.metadata,
        "warnings": list(plan.warnings),
        "routes": [_route_to_dict(route) for route in plan.routes],
    }


def fleet_plan_to_csv(plan: FleetPlan) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "route_id",
        "order",
        "point_id",
        "label",
        "latitude",
        "longitude",
        "pickup_time",
        "ready_time",
        "minutes_before_arrival",
        "assigned_driver_id",
        "total_duration_min",
        "total_distance_km",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for route in plan.routes:
        for stop in route.stops:
            writer.writerow(
                {
                    "route_id": route.route_id,
                    "order": stop.order,
                    "point_id": stop.point.point_id,
                    "label": stop.point.label,
                    "latitude": stop.point.latitude,
                    "longitude": stop.point.longitude,
                    "pickup_time": format_hhmm(stop.pickup_time),
                    "ready_time": format_hhmm(stop.ready_time),
                    "minutes_before_arrival": stop.minutes_before_arrival,
                    "assigned_driver_id": route.assigned_driver_id or "",
                    "total_duration_min": route.total_duration_min,
                    "total_distance_km": route.total_distance_km,
                }
            )
    return buffer.getvalue()
