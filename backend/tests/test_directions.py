"""Tests for the OSRM directions client and its Turkish formatting."""

import asyncio

import httpx
import pytest

from bus_monitor.core.directions import (
    OsrmClient,
    format_distance,
    format_duration,
    translate_instruction,
)
from bus_monitor.core.errors import NotFoundError, UpstreamError

OSRM_OK = {
    "code": "Ok",
    "routes": [{
        "distance": 850.4,
        "duration": 612.0,
        "geometry": {"type": "LineString", "coordinates": [[29.023, 40.99], [29.026, 40.985]]},
        "legs": [{
            "steps": [
                {
                    "distance": 120.0, "duration": 90.0, "name": "Moda Caddesi",
                    "maneuver": {"type": "depart", "location": [29.023, 40.99]},
                },
                {
                    "distance": 730.4, "duration": 522.0, "name": "",
                    "maneuver": {"type": "turn", "modifier": "left", "location": [29.024, 40.989]},
                },
                {
                    "distance": 0.0, "duration": 0.0, "name": "",
                    "maneuver": {"type": "arrive", "location": [29.026, 40.985]},
                },
            ],
        }],
    }],
}


def run_route(handler, **kwargs):
    async def run():
        client = OsrmClient(transport=httpx.MockTransport(handler))
        try:
            return await client.route(40.99, 29.023, 40.985, 29.026, **kwargs)
        finally:
            await client.close()

    return asyncio.run(run())


def test_format_duration():
    assert format_duration(45) == "45 sn"
    assert format_duration(720) == "12 dk"
    assert format_duration(3900) == "1 sa 5 dk"


def test_format_distance():
    assert format_distance(850) == "850 m"
    assert format_distance(2300) == "2.3 km"


def test_translate_instruction():
    assert translate_instruction("depart", None, "Moda Caddesi") == "Yola çık (Moda Caddesi)"
    assert translate_instruction("turn", "right", None) == "Sağa dön"
    assert translate_instruction("turn", "straight", "") == "Devam et"
    assert translate_instruction("mystery", None, None) == "Devam et"


def test_route_parses_steps():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=OSRM_OK)

    directions = run_route(handler, mode="walking")

    assert seen["path"] == "/route/v1/foot/29.023000,40.990000;29.026000,40.985000"
    assert seen["params"] == {"overview": "full", "geometries": "geojson", "steps": "true"}
    assert directions.distance == 850
    assert directions.duration == 612
    assert directions.distance_text == "850 m"
    assert directions.duration_text == "10 dk"
    assert [s.instruction for s in directions.steps] == [
        "Yola çık (Moda Caddesi)", "Sola dön", "Hedefe vardın",
    ]
    assert directions.steps[1].name == "Yol"
    assert directions.geometry["type"] == "LineString"


def test_no_route_raises_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "routes": []})

    with pytest.raises(NotFoundError):
        run_route(handler)


def test_http_error_raises_upstream():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    with pytest.raises(UpstreamError, match="HTTP 502"):
        run_route(handler)


def test_invalid_json_raises_upstream():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>busy</html>")

    with pytest.raises(UpstreamError):
        run_route(handler)


def test_formatting_rounds_halves_up():
    assert format_duration(150) == "3 dk"
    assert format_duration(30.5) == "31 sn"
    assert format_duration(3600 + 150) == "1 sa 3 dk"
    assert format_distance(850.5) == "851 m"


def test_route_totals_round_halves_up():
    body = {"code": "Ok", "routes": [{**OSRM_OK["routes"][0], "distance": 2.5, "duration": 0.5}]}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    directions = run_route(handler)
    assert directions.distance == 3
    assert directions.duration == 1
    assert directions.duration_text == "1 sn"
