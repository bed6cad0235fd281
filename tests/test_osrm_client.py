import httpx
import pytest

from fleetrouter.services.routing import osrm_client
from fleetrouter.services.routing.matrix import UNREACHABLE_PENALTY, build_travel_matrix
from fleetrouter.services.routing.osrm_client import OSRMClient

COORDS = [(17.44, 78.38), (17.45, 78.39), (17.43, 78.40)]


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(osrm_client.time, "sleep", lambda seconds: None)


def _client(handler, **kwargs) -> OSRMClient:
    return OSRMClient(
        base_url="http://osrm.test",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def test_table_sends_lon_lat_pairs():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/table/v1/driving/78.38,17.44;78.39,17.45;78.4,17.43"
        assert request.url.params["annotations"] == "duration,distance"
        return httpx.Response(200, json={"code": "Ok", "durations": [[0, 1, 2]] * 3, "distances": [[0, 3, 4]] * 3})

    data = _client(handler).table(COORDS)

    assert data["durations"][0] == [0, 1, 2]


def test_table_retries_transient_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"code": "Ok", "durations": [[0]], "distances": [[0]]})

    _client(handler, max_retries=2).table(COORDS[:2])
    assert len(calls) == 2


def test_connection_failure_becomes_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ConnectionError):
        _client(handler, max_retries=1).table(COORDS)


def test_table_rejects_too_few_or_too_many_coordinates():
    client = _client(lambda request: httpx.Response(200, json={}), max_coordinates_per_request=2)
    with pytest.raises(ValueError):
        client.table(COORDS[:1])
    with pytest.raises(ValueError):
        client.table(COORDS)


def test_route_requires_routes_in_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["overview"] == "full"
        return httpx.Response(200, json={"code": "Ok", "routes": []})

    with pytest.raises(ValueError):
        _client(handler, max_retries=0).route(COORDS)


class DummyOSRM:
    def __init__(self, durations=None, error=None):
        self.durations = durations
        self.error = error

    def table(self, coordinates):
        if self.error:
            raise self.error
        return {"durations": self.durations, "distances": self.durations}

    def route(self, coordinates):
        raise NotImplementedError


def test_matrix_uses_provider_and_penalises_gaps():
    durations = [[0, 60, None], [60, 0, 30], [90, 30, 0]]
    matrix = build_travel_matrix(COORDS, DummyOSRM(durations))

    assert matrix.source == "osrm"
    assert matrix.durations[0][2] == UNREACHABLE_PENALTY
    assert matrix.durations[1][2] == 30.0


def test_matrix_falls_back_to_haversine_on_failure():
    matrix = build_travel_matrix(COORDS, DummyOSRM(error=ConnectionError("down")), speed_kmh=40)

    assert matrix.source == "haversine"
    assert matrix.durations[0][0] == 0.0
    # 40 km/h -> 90 seconds per kilometre
    assert matrix.durations[0][1] == pytest.approx(matrix.distances[0][1] / 1000.0 * 90.0)


def test_matrix_falls_back_when_mostly_unreachable():
    durations = [[0, None, None], [None, 0, None], [None, 5, 0]]
    assert build_travel_matrix(COORDS, DummyOSRM(durations)).source == "haversine"


def test_matrix_without_provider_is_estimated():
    assert build_travel_matrix(COORDS, None).source == "haversine"
    assert build_travel_matrix(COORDS[:1], None).source == "trivial"
