"""Tests for the door number -> route code resolver."""

import asyncio

import pytest

from bus_monitor.core.errors import UpstreamError
from bus_monitor.core.iett_client import RouteVehicle
from bus_monitor.core.route_codes import RouteCodeResolver


class FakeIettClient:
    def __init__(self, responses):
        self.responses = responses  # route code -> list[RouteVehicle] or Exception
        self.requested = []

    async def fetch_route_vehicles(self, route_code):
        self.requested.append(route_code)
        result = self.responses.get(route_code, [])
        if isinstance(result, Exception):
            raise result
        return result


def make_resolver(client, codes, ttl=300):
    return RouteCodeResolver(client, codes, ttl_seconds=ttl, request_delay=0)


def test_unknown_door_number_falls_back():
    resolver = make_resolver(FakeIettClient({}), [])
    resolved = resolver.resolve("1234")
    assert resolved.route_code == "1234"
    assert resolved.confident is False
    assert resolved.route_name is None


def test_refresh_learns_route_codes():
    client = FakeIettClient({
        "500T": [RouteVehicle("A-1", "500T", "TUZLA - CEVİZLİBAĞ", "G")],
        "34": [RouteVehicle("B-2", "34", "", "")],
    })
    resolver = make_resolver(client, ["500T", "34"])

    asyncio.run(resolver.refresh())

    assert client.requested == ["500T", "34"]
    a1 = resolver.resolve("A-1")
    assert (a1.route_code, a1.route_name, a1.direction, a1.confident) == (
        "500T", "TUZLA - CEVİZLİBAĞ", "G", True,
    )
    b2 = resolver.resolve("B-2")
    assert b2.route_code == "34"
    assert b2.route_name is None


def test_refresh_merges_with_previous_cycles():
    client = FakeIettClient({"500T": [RouteVehicle("A-1", "500T")]})
    resolver = make_resolver(client, ["500T"], ttl=0)

    asyncio.run(resolver.refresh())
    client.responses = {"500T": [RouteVehicle("C-3", "500T")]}
    asyncio.run(resolver.refresh())

    assert set(resolver.mapping) == {"A-1", "C-3"}


def test_later_cycle_overwrites_entry():
    client = FakeIettClient({"500T": [RouteVehicle("A-1", "500T")]})
    resolver = make_resolver(client, ["500T", "34"], ttl=0)

    asyncio.run(resolver.refresh())
    client.responses = {"34": [RouteVehicle("A-1", "34")]}
    asyncio.run(resolver.refresh())

    assert resolver.resolve("A-1").route_code == "34"


def test_failed_lookups_are_skipped():
    client = FakeIettClient({
        "500T": UpstreamError("timeout"),
        "34": [RouteVehicle("B-2", "34")],
    })
    resolver = make_resolver(client, ["500T", "34"])

    asyncio.run(resolver.refresh())
    assert set(resolver.mapping) == {"B-2"}


def test_all_lookups_failing_keeps_map_unchanged():
    client = FakeIettClient({"500T": [RouteVehicle("A-1", "500T")]})
    resolver = make_resolver(client, ["500T"], ttl=0)
    asyncio.run(resolver.refresh())

    client.responses = {"500T": UpstreamError("down")}
    # A stale map exists, so the cache serves it instead of raising
    asyncio.run(resolver.refresh())
    assert resolver.resolve("A-1").confident


def test_first_refresh_failing_everywhere_raises():
    client = FakeIettClient({"500T": UpstreamError("down")})
    resolver = make_resolver(client, ["500T"])

    with pytest.raises(UpstreamError):
        asyncio.run(resolver.refresh())
    assert resolver.mapping == {}
