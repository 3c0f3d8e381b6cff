"""HTTP-level tests for the REST endpoints, without the startup lifespan."""

import httpx
import pytest
from fastapi.testclient import TestClient

from bus_monitor.api import arrivals, diagnostics, directions, routes, stops
from bus_monitor.core.directions import OsrmClient
from bus_monitor.core.errors import UpstreamError
from bus_monitor.core.iett_client import Vehicle
from bus_monitor.core.route_codes import RouteCodeResolver
from bus_monitor.core.snapshot_cache import SnapshotCache
from bus_monitor.core.transit_service import TransitService
from bus_monitor.main import app

from conftest import build_sample_index

KADIKOY_STOP = {"stopLat": 40.9900, "stopLng": 29.0230}


class _NoRoutes:
    async def fetch_route_vehicles(self, route_code):
        return []


def make_service(vehicles=None, schedule_error=None):
    async def fetch_schedule():
        if schedule_error is not None:
            raise schedule_error
        return build_sample_index()

    async def fetch_vehicles():
        return list(vehicles or [])

    return TransitService(
        schedule=SnapshotCache("gtfs-schedule", fetch_schedule, 600),
        live_feed=SnapshotCache("live-feed", fetch_vehicles, 30),
        route_codes=RouteCodeResolver(_NoRoutes(), [], ttl_seconds=300),
    )


@pytest.fixture
def wire(monkeypatch):
    def _wire(service):
        for module in (stops, arrivals, routes, diagnostics):
            monkeypatch.setattr(module, "service", service)
        return TestClient(app)
    return _wire


def test_health():
    assert TestClient(app).get("/api/health").json() == {"status": "ok"}


def test_stops_by_radius(wire):
    client = wire(make_service())
    resp = client.get("/api/stops", params={"lat": 40.99, "lng": 29.023, "radius": 1000})
    assert resp.status_code == 200
    body = resp.json()
    assert [s["id"] for s in body] == ["1", "2", "3"]
    assert body[0]["name"] == "Kadıköy (TUZLA)"
    assert body[0]["lng"] == 29.023


def test_stops_by_bounds(wire):
    client = wire(make_service())
    resp = client.get("/api/stops", params={
        "minLat": 40.984, "minLng": 29.020, "maxLat": 40.991, "maxLng": 29.030,
    })
    assert resp.status_code == 200
    assert sorted(s["id"] for s in resp.json()) == ["1", "2"]


def test_stops_need_a_query(wire):
    client = wire(make_service())
    assert client.get("/api/stops", params={"lat": 40.99}).status_code == 400


def test_stops_unavailable_schedule(wire):
    client = wire(make_service(schedule_error=UpstreamError("portal down")))
    resp = client.get("/api/stops", params={"lat": 40.99, "lng": 29.023, "radius": 500})
    assert resp.status_code == 503


def test_not_ready_returns_503(wire):
    client = wire(None)
    assert client.get("/api/route-shape/34").status_code == 503


def test_arrivals_without_live_data(wire):
    client = wire(make_service(vehicles=[]))
    resp = client.get("/api/arrivals/1", params=KADIKOY_STOP)
    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "LIVE_DATA_UNAVAILABLE"


def test_arrivals_with_live_data(wire):
    bus = Vehicle(
        door_no="A-1234", plate="34 ABC 12", operator="IETT", depot="ANADOLU_GARAJI",
        lat=40.9930, lon=29.0230, speed=15.0,
    )
    parked = Vehicle(
        door_no="Z-1", plate="", operator="", depot="",
        lat=40.9950, lon=29.0230, speed=0.0,
    )
    client = wire(make_service(vehicles=[bus, parked]))

    resp = client.get("/api/arrivals/1", params=KADIKOY_STOP)

    assert resp.status_code == 200
    body = resp.json()
    assert body["stop_id"] == "1"
    assert body["count"] == 1
    assert body["is_realtime"] is True
    assert body["message"] is None
    arrival = body["arrivals"][0]
    assert arrival["door_no"] == "A-1234"
    assert arrival["route_short_name"] == "A-1234"
    assert arrival["has_route_code"] is False
    assert arrival["depot"] == "Anadolu"
    assert [r["route_short_name"] for r in body["stop_routes"]] == ["34", "500T"]


def test_arrivals_nothing_approaching(wire):
    far = Vehicle(
        door_no="A-1", plate="", operator="", depot="", lat=41.2, lon=29.3, speed=40.0,
    )
    client = wire(make_service(vehicles=[far]))
    body = client.get("/api/arrivals/1", params=KADIKOY_STOP).json()
    assert body["count"] == 0
    assert body["arrivals"] == []
    assert body["message"] == "No approaching buses found"


def test_arrivals_require_coordinates(wire):
    client = wire(make_service())
    assert client.get("/api/arrivals/1").status_code == 422


def test_route_shape(wire):
    client = wire(make_service())
    resp = client.get("/api/route-shape/34")
    assert resp.status_code == 200
    body = resp.json()
    assert body["route"]["route_id"] == "R1"
    assert len(body["stops"]) == 4
    assert body["line_geojson"]["geometry"]["type"] == "LineString"


def test_route_shape_not_found(wire):
    client = wire(make_service())
    assert client.get("/api/route-shape/999").status_code == 404


def test_diagnostics_after_requests(wire):
    client = wire(make_service())
    client.get("/api/route-shape/34")
    body = client.get("/api/diagnostics").json()

    caches = {c["name"]: c for c in body["caches"]}
    assert caches["gtfs-schedule"]["has_value"] is True
    assert caches["gtfs-schedule"]["rebuilds"] == 1
    assert caches["live-feed"]["has_value"] is False
    assert body["stops"] == 4
    assert body["routes"] == 2


def test_directions_endpoint(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "routes": []})

    monkeypatch.setattr(directions, "osrm", OsrmClient(transport=httpx.MockTransport(handler)))
    resp = TestClient(app).get("/api/directions", params={
        "startLat": 40.99, "startLng": 29.023, "endLat": 40.985, "endLng": 29.026,
    })
    assert resp.status_code == 404
