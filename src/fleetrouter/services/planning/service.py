"""Fleet planning orchestration service."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Sequence

import httpx
import numpy as np

from ...config import settings
from ...models.domain import GeoPoint, PickupPoint
from ...persistence.filesystem import FileStorage
from ...schemas.routing import (
    ClusterModel,
    ClusterRequest,
    ClusterResponse,
    DestinationInput,
    FleetPlanRequest,
    FleetPlanResponse,
    PickupInput,
    RouteStopModel,
    VehicleRouteModel,
)
from ..assignment.scheduler import AssignmentScheduler, get_scheduler
from ..clustering.fleet_size import median_pairwise_distance, recommend_vehicle_count
from ..clustering.kmeans import CapacityConstrainedKMeans
from ..clustering.models import Cluster
from ..geocoding.nominatim import NominatimGeocoder
from ..outputs.routing_formatter import fleet_plan_to_csv, fleet_plan_to_json
from ..routing.matrix import DistanceProvider, build_travel_matrix
from ..routing.models import VehicleRoute
from ..routing.osrm_client import OSRMClient
from ..routing.schedule import format_hhmm, propagate_schedule
from ..routing.sequencer import route_cost, sequence_stops
from .models import FleetPlan

logger = logging.getLogger(__name__)


def _has_coordinates(item: PickupInput | DestinationInput) -> bool:
    return item.latitude is not None and item.longitude is not None


def _validate_plan_request(payload: FleetPlanRequest, capacity: int) -> None:
    """Reject malformed requests before any geocoding or routing call is made."""
    destination = payload.destination
    if destination is None:
        raise ValueError("A destination is required.")
    if not _has_coordinates(destination) and not (destination.address or "").strip():
        raise ValueError("Destination needs coordinates or an address.")
    if not payload.pickups:
        raise ValueError("At least one pickup is required.")
    if payload.max_vehicles < 1:
        raise ValueError("max_vehicles must be >= 1.")
    if capacity < 1:
        raise ValueError("capacity must be >= 1.")

    fleet_seats = payload.max_vehicles * capacity
    if len(payload.pickups) > fleet_seats:
        raise ValueError(
            f"{len(payload.pickups)} pickups exceed fleet capacity of {fleet_seats} "
            f"({payload.max_vehicles} vehicles x {capacity} seats)."
        )

    duplicates = [point_id for point_id, count in Counter(p.point_id for p in payload.pickups).items() if count > 1]
    if duplicates:
        raise ValueError(f"Duplicate pickup ids: {', '.join(sorted(duplicates))}.")

    for pickup in payload.pickups:
        if not _has_coordinates(pickup) and not (pickup.address or "").strip():
            raise ValueError(f"Pickup '{pickup.point_id}' needs coordinates or an address.")


def _resolve_destination(destination: DestinationInput, geocoder: NominatimGeocoder | None) -> GeoPoint:
    if _has_coordinates(destination):
        return GeoPoint(latitude=destination.latitude, longitude=destination.longitude)
    geocoder = geocoder or NominatimGeocoder()
    try:
        result = geocoder.geocode(destination.address)
    except (httpx.HTTPError, ValueError, KeyError) as e:
        raise ValueError(f"Could not geocode destination '{destination.address}': {e}") from e
    return GeoPoint(latitude=result.latitude, longitude=result.longitude)


def _resolve_pickups(
    pickups: Sequence[PickupInput],
    geocoder: NominatimGeocoder | None,
    warnings: list[str],
) -> tuple[list[PickupPoint], list[str]]:
    """Return pickup points in request order plus the ids that fell back to default coordinates."""
    missing = [pickup for pickup in pickups if not _has_coordinates(pickup)]
    geocoded = {}
    fallback_ids: list[str] = []
    if missing:
        geocoder = geocoder or NominatimGeocoder()
        logger.info(f"Geocoding {len(missing)} pickups without coordinates")
        results = geocoder.geocode_many([pickup.address for pickup in missing])
        for pickup, result in zip(missing, results):
            geocoded[pickup.point_id] = result
            if result.fallback:
                fallback_ids.append(pickup.point_id)
                warnings.append(
                    f"Pickup '{pickup.point_id}' could not be geocoded; using approximate fallback coordinates."
                )

    points: list[PickupPoint] = []
    for pickup in pickups:
        if _has_coordinates(pickup):
            points.append(
                PickupPoint(
                    point_id=pickup.point_id,
                    latitude=pickup.latitude,
                    longitude=pickup.longitude,
                    label=pickup.label or pickup.address or "",
                )
            )
        else:
            result = geocoded[pickup.point_id]
            points.append(
                PickupPoint(
                    point_id=pickup.point_id,
                    latitude=result.latitude,
                    longitude=result.longitude,
                    label=pickup.label or result.display_name,
                )
            )
    return points, fallback_ids


def _default_provider() -> DistanceProvider | None:
    try:
        return OSRMClient()
    except ValueError as e:
        logger.warning(f"Routing provider unavailable: {e}. Travel times will be estimated.")
        return None


def _fetch_geometry(
    provider: DistanceProvider,
    route: VehicleRoute,
    warnings: list[str],
) -> str | None:
    waypoints = [stop.point.as_tuple() for stop in route.stops] + [route.destination.as_tuple()]
    try:
        data = provider.route(waypoints)
        return data["routes"][0].get("geometry")
    except (ConnectionError, ValueError, KeyError, IndexError, httpx.HTTPError) as e:
        logger.warning(f"Route geometry unavailable for {route.route_id}: {e}")
        warnings.append(f"Route {route.route_id}: geometry unavailable ({e}).")
        return None


def _build_route(
    route_id: str,
    cluster: Cluster,
    destination: GeoPoint,
    arrival: datetime,
    rest_minutes: float,
    provider: DistanceProvider | None,
) -> VehicleRoute:
    coordinates = [point.as_tuple() for point in cluster.points] + [destination.as_tuple()]
    matrix = build_travel_matrix(coordinates, provider)
    sequence = sequence_stops(matrix.durations)
    stops = propagate_schedule(sequence.order, matrix.durations, cluster.points, arrival.time())

    duration_min = round(sequence.total_cost / 60.0, 2)
    distance_km = round(route_cost(sequence.order, matrix.distances) / 1000.0, 3)
    return VehicleRoute(
        route_id=route_id,
        stops=stops,
        destination=destination,
        arrival_time=arrival,
        start_time=arrival - timedelta(minutes=duration_min),
        total_duration_min=duration_min,
        total_distance_km=distance_km,
        rest_minutes=rest_minutes,
        matrix_source=matrix.source,
        sequencing_method=sequence.method,
        overflow=cluster.overflow,
        metadata={"cluster_id": cluster.cluster_id, "centroid": list(cluster.centroid)},
    )


def _route_to_model(route: VehicleRoute) -> VehicleRouteModel:
    return VehicleRouteModel(
        route_id=route.route_id,
        stops=[
            RouteStopModel(
                point_id=stop.point.point_id,
                label=stop.point.label,
                latitude=stop.point.latitude,
                longitude=stop.point.longitude,
                order=stop.order,
                pickup_time=format_hhmm(stop.pickup_time),
                ready_time=format_hhmm(stop.ready_time),
                minutes_before_arrival=stop.minutes_before_arrival,
            )
            for stop in route.stops
        ],
        destination=list(route.destination.as_tuple()),
        arrival_time=route.arrival_time,
        start_time=route.start_time,
        end_time=route.end_time,
        total_duration_min=route.total_duration_min,
        total_distance_km=route.total_distance_km,
        rest_minutes=route.rest_minutes,
        required_capacity=route.required_capacity,
        matrix_source=route.matrix_source,
        sequencing_method=route.sequencing_method,
        overflow=route.overflow,
        assigned_driver_id=route.assigned_driver_id,
        geometry=route.geometry,
    )


def _assign_routes(routes: Sequence[VehicleRoute], scheduler: AssignmentScheduler, warnings: list[str]) -> int:
    assigned = 0
    for route in routes:
        result = scheduler.assign(route)
        if result.success:
            assigned += 1
            continue
        logger.warning(f"Route {route.route_id} left unassigned: {result.message}")
        warnings.append(f"Route {route.route_id} unassigned: {result.message}")
    return assigned


def plan_fleet(
    payload: FleetPlanRequest,
    *,
    provider: DistanceProvider | None = None,
    geocoder: NominatimGeocoder | None = None,
    scheduler: AssignmentScheduler | None = None,
    rng: np.random.Generator | None = None,
    storage: FileStorage | None = None,
) -> FleetPlanResponse:
    """Cluster pickups into vehicles, sequence and schedule each vehicle, then optionally assign drivers.

    Raises ``ValueError`` for malformed requests. Geocoding, routing and
    assignment problems never fail the plan; they are reported in ``warnings``.
    """
    capacity = payload.capacity if payload.capacity is not None else settings.max_per_vehicle
    _validate_plan_request(payload, capacity)

    plan_id = uuid.uuid4().hex[:8]
    warnings: list[str] = []
    destination = _resolve_destination(payload.destination, geocoder)
    points, fallback_ids = _resolve_pickups(payload.pickups, geocoder, warnings)

    if rng is None:
        rng = np.random.default_rng(payload.seed if payload.seed is not None else settings.clustering_seed)
    recommended = recommend_vehicle_count(points, payload.max_vehicles)
    engine = CapacityConstrainedKMeans(capacity=capacity, rng=rng)
    clusters = engine.cluster(points, payload.max_vehicles, target_clusters=recommended)

    if provider is None:
        provider = _default_provider()
    service_date = payload.service_date or date.today()
    arrival = datetime.combine(service_date, payload.arrival_time)
    rest_minutes = payload.rest_minutes if payload.rest_minutes is not None else settings.default_rest_minutes

    routes: list[VehicleRoute] = []
    for cluster in clusters:
        route = _build_route(
            f"{plan_id}-R{cluster.cluster_id}",
            cluster,
            destination,
            arrival,
            rest_minutes,
            provider,
        )
        if route.matrix_source == "haversine":
            warnings.append(
                f"Route {route.route_id}: travel times estimated from straight-line distance "
                f"at {settings.fallback_speed_kmh:g} km/h."
            )
        if route.overflow:
            warnings.append(f"Route {route.route_id} carries {route.required_capacity} riders, above capacity {capacity}.")
        if payload.include_geometry and provider is not None:
            route.geometry = _fetch_geometry(provider, route, warnings)
        routes.append(route)

    metadata = {
        "plan_id": plan_id,
        "service_date": service_date.isoformat(),
        "arrival_time": format_hhmm(payload.arrival_time),
        "pickup_count": len(points),
        "max_vehicles": payload.max_vehicles,
        "capacity": capacity,
        "recommended_vehicle_count": recommended,
        "vehicle_count": len(routes),
        "matrix_sources": {route.route_id: route.matrix_source for route in routes},
        "overflow_routes": [route.route_id for route in routes if route.overflow],
        "fallback_pickups": fallback_ids,
    }
    if payload.run_label:
        metadata["run_label"] = payload.run_label

    if payload.assign_drivers:
        metadata["assigned_routes"] = _assign_routes(routes, scheduler or get_scheduler(), warnings)

    plan = FleetPlan(plan_id=plan_id, routes=routes, clusters=clusters, warnings=warnings, metadata=metadata)
    logger.info(f"Planned {len(routes)} routes for {len(points)} pickups (plan {plan_id})")

    if payload.persist:
        storage = storage or FileStorage()
        run_dir = storage.make_run_directory(prefix=f"plan_{plan_id}")
        metadata["output_dir"] = str(run_dir)
        storage.write_json(run_dir / "summary.json", fleet_plan_to_json(plan))
        storage.write_csv(run_dir / "stops.csv", fleet_plan_to_csv(plan))

    return FleetPlanResponse(
        plan_id=plan_id,
        routes=[_route_to_model(route) for route in routes],
        warnings=warnings,
        metadata=metadata,
    )


def preview_clusters(payload: ClusterRequest, *, rng: np.random.Generator | None = None) -> ClusterResponse:
    """Group already geocoded pickups without routing them."""
    capacity = payload.capacity if payload.capacity is not None else settings.max_per_vehicle
    if payload.max_vehicles < 1:
        raise ValueError("max_vehicles must be >= 1.")
    if capacity < 1:
        raise ValueError("capacity must be >= 1.")
    for pickup in payload.pickups:
        if not _has_coordinates(pickup):
            raise ValueError(f"Pickup '{pickup.point_id}' needs coordinates for clustering.")

    points = [
        PickupPoint(
            point_id=pickup.point_id,
            latitude=pickup.latitude,
            longitude=pickup.longitude,
            label=pickup.label or pickup.address or "",
        )
        for pickup in payload.pickups
    ]
    if rng is None:
        rng = np.random.default_rng(payload.seed if payload.seed is not None else settings.clustering_seed)
    recommended = recommend_vehicle_count(points, payload.max_vehicles)
    clusters = CapacityConstrainedKMeans(capacity=capacity, rng=rng).cluster(
        points, payload.max_vehicles, target_clusters=recommended
    )
    return ClusterResponse(
        recommended_vehicle_count=recommended,
        clusters=[
            ClusterModel(
                cluster_id=cluster.cluster_id,
                centroid=list(cluster.centroid),
                size=cluster.size,
                capacity=cluster.capacity,
                overflow=cluster.overflow,
                point_ids=cluster.point_ids(),
            )
            for cluster in clusters
        ],
        metadata={"median_spread_degrees": median_pairwise_distance(points), "capacity": capacity},
    )
