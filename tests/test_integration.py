from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fleetrouter.main import create_app
from fleetrouter.services.assignment.scheduler import get_scheduler


class DummyOSRM:
    def table(self, coordinates):
        # square matrix sized to coordinates length
        count = len(coordinates)
        durations = [[0 if i == j else 600 for j in range(count)] for i in range(count)]
        distances = [[0 if i == j else 1000 for j in range(count)] for i in range(count)]
        return {"durations": durations, "distances": distances}

    def route(self, coordinates):
        return {"routes": [{"geometry": "_p~iF~ps|U"}]}


@pytest.fixture(autouse=True)
def fresh_scheduler():
    get_scheduler.cache_clear()
    yield
    if get_scheduler.cache_info().currsize:
        get_scheduler().stop(timeout=5)
    get_scheduler.cache_clear()


@pytest.fixture
def api_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from fleetrouter.persistence.filesystem import FileStorage
    from fleetrouter.services.planning import service as planning_service

    monkeypatch.setattr(planning_service, "OSRMClient", lambda: DummyOSRM())
    monkeypatch.setattr(planning_service, "FileStorage", lambda: FileStorage(root=tmp_path))
    return TestClient(create_app())


def _plan_payload(**overrides) -> dict:
    payload = {
        "pickups": [
            {"point_id": "E1", "latitude": 17.400, "longitude": 78.400},
            {"point_id": "E2", "latitude": 17.402, "longitude": 78.401},
            {"point_id": "E3", "latitude": 17.480, "longitude": 78.480},
            {"point_id": "E4", "latitude": 17.482, "longitude": 78.481},
            {"point_id": "E5", "latitude": 17.300, "longitude": 78.300},
        ],
        "destination": {"latitude": 17.4435, "longitude": 78.3772},
        "arrival_time": "09:00",
        "service_date": "2024-05-06",
        "max_vehicles": 2,
        "seed": 5,
    }
    payload.update(overrides)
    return payload


def test_root_and_health(api_client: TestClient):
    assert api_client.get("/").json()["status"] == "running"
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_plan_endpoint_returns_scheduled_routes(api_client: TestClient):
    response = api_client.post("/api/routes/plan", json=_plan_payload(include_geometry=True, persist=True))

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["routes"]) == 2
    assert sorted(route["required_capacity"] for route in payload["routes"]) in ([1, 4], [2, 3])
    for route in payload["routes"]:
        assert route["geometry"] == "_p~iF~ps|U"
        assert route["matrix_source"] == "osrm"
        last = route["stops"][-1]
        # final 600 second leg into the destination
        assert last["pickup_time"] == "08:50"
        assert last["ready_time"] == "08:45"
    assert Path(payload["metadata"]["output_dir"]).joinpath("summary.json").exists()


def test_plan_endpoint_rejects_invalid_input(api_client: TestClient):
    response = api_client.post("/api/routes/plan", json=_plan_payload(destination=None))
    assert response.status_code == 400

    too_many = api_client.post("/api/routes/plan", json=_plan_payload(max_vehicles=1))
    assert too_many.status_code == 400
    assert "exceed fleet capacity" in too_many.json()["detail"]


def test_cluster_preview_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/routes/cluster",
        json={"pickups": _plan_payload()["pickups"], "max_vehicles": 3, "seed": 1},
    )

    assert response.status_code == 200
    payload = response.json()
    assert sum(cluster["size"] for cluster in payload["clusters"]) == 5
    assert payload["recommended_vehicle_count"] <= 3


def test_driver_registry_and_assignment_flow(api_client: TestClient):
    created = api_client.post("/api/drivers", json={"driver_id": "D1", "capacity": 4})
    assert created.status_code == 201
    assert set(created.json()) == {"driver_id", "is_available", "available_from", "drives_count", "capacity"}
    assert api_client.post("/api/drivers", json={"driver_id": "D1"}).status_code == 400
    assert [driver["driver_id"] for driver in api_client.get("/api/drivers").json()] == ["D1"]
    assert api_client.get("/api/drivers/ghost").status_code == 404

    route = {
        "route_id": "R1",
        "start_time": "2024-05-06T08:00:00",
        "end_time": "2024-05-06T09:00:00",
        "required_capacity": 3,
    }
    assert api_client.post("/api/assignments/routes", json=route).status_code == 201
    assert api_client.post("/api/assignments/routes", json=route).status_code == 400

    assigned = api_client.post("/api/assignments", json={"route_id": "R1"})
    assert assigned.status_code == 200
    assert assigned.json() == {"success": True, "message": "Driver D1 assigned successfully", "driver_id": "D1"}

    again = api_client.post("/api/assignments", json={"route_id": "R1"})
    assert again.json()["success"] is False
    assert again.json()["message"] == "Route already has an assigned driver"
    assert api_client.post("/api/assignments", json={"route_id": "missing"}).status_code == 404

    routes = api_client.get("/api/drivers/D1/routes").json()
    assert [route["route_id"] for route in routes] == ["R1"]

    driver = api_client.get("/api/drivers/D1").json()
    assert driver["drives_count"] == 1
    assert driver["is_available"] is False


def test_availability_endpoint(api_client: TestClient):
    api_client.post("/api/drivers", json={"driver_id": "D1"})
    api_client.post(
        "/api/assignments/routes",
        json={"route_id": "R1", "start_time": "2024-05-06T08:00:00", "end_time": "2024-05-06T09:00:00"},
    )
    api_client.post("/api/assignments", json={"route_id": "R1"})

    busy = api_client.get(
        "/api/drivers/D1/availability",
        params={"start_time": "2024-05-06T08:30:00", "end_time": "2024-05-06T09:30:00"},
    )
    free = api_client.get(
        "/api/drivers/D1/availability",
        params={"start_time": "2024-05-06T10:00:00", "end_time": "2024-05-06T11:00:00"},
    )
    backwards = api_client.get(
        "/api/drivers/D1/availability",
        params={"start_time": "2024-05-06T11:00:00", "end_time": "2024-05-06T10:00:00"},
    )

    assert busy.json()["available"] is False
    assert free.json()["available"] is True
    assert backwards.status_code == 400
    assert api_client.get(
        "/api/drivers/ghost/availability",
        params={"start_time": "2024-05-06T10:00:00", "end_time": "2024-05-06T11:00:00"},
    ).status_code == 404


def test_availability_accepts_mixed_timestamp_formats(api_client: TestClient):
    api_client.post("/api/drivers", json={"driver_id": "D1"})
    api_client.post(
        "/api/assignments/routes",
        json={"route_id": "A", "start_time": "2024-05-06T08:00:00", "end_time": "2024-05-06T09:00:00"},
    )
    api_client.post(
        "/api/assignments/routes",
        json={"route_id": "B", "start_time": "2024-05-06T12:00:00Z", "end_time": "2024-05-06T13:00:00Z"},
    )

    assert api_client.post("/api/assignments", json={"route_id": "A"}).json()["success"] is True
    assert api_client.post("/api/assignments", json={"route_id": "B"}).json()["success"] is True

    later = api_client.get(
        "/api/drivers/D1/availability",
        params={"start_time": "2024-05-06T20:00:00Z", "end_time": "2024-05-06T21:00:00Z"},
    )
    assert later.status_code == 200
    assert later.json()["available"] is True

    mixed = api_client.get(
        "/api/drivers/D1/availability",
        params={"start_time": "2024-05-06T08:30:00", "end_time": "2024-05-06T09:30:00Z"},
    )
    assert mixed.status_code == 200
    assert mixed.json()["available"] is False
