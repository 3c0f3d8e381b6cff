"""Static GTFS schedule: fetch the four CSV resources and cross-reference them."""

import asyncio
import logging
import re
from dataclasses import dataclass, field

import httpx

from bus_monitor.config import settings
from bus_monitor.core.errors import UpstreamError
from bus_monitor.core.tabular import ColumnRule, Table, decode_bytes, parse_float

logger = logging.getLogger(__name__)

UNKNOWN_STOP_NAME = "Bilinmiyor"

_DIRECTION_RE = re.compile(r"direction:\s*(.+)", re.IGNORECASE)

# stops.csv
STOP_ID = ColumnRule("stop_id", ("stop_id",), ("stopid", "id"))
STOP_NAME = ColumnRule("stop_name", ("stop_name",), ("name",))
STOP_LAT = ColumnRule("stop_lat", ("stop_lat",), ("lat",))
STOP_LON = ColumnRule("stop_lon", ("stop_lon",), ("lon", "lng"))
STOP_DESC = ColumnRule("stop_desc", ("stop_desc",), ("desc",))

# routes.csv
ROUTE_ID = ColumnRule("route_id", ("route_id",), ("routeid",))
ROUTE_SHORT_NAME = ColumnRule("route_short_name", ("route_short_name",), ("short",))
ROUTE_LONG_NAME = ColumnRule("route_long_name", ("route_long_name",), ("long",))
ROUTE_COLOR = ColumnRule("route_color", ("route_color",), ("color",))

# trips.csv
TRIP_ID = ColumnRule("trip_id", ("trip_id",), ("tripid",))
TRIP_ROUTE_ID = ColumnRule("route_id", ("route_id",), ("routeid",))
TRIP_HEADSIGN = ColumnRule("trip_headsign", ("trip_headsign",), ("headsign",))
TRIP_DIRECTION = ColumnRule("direction_id", ("direction_id",), ("direction",))

# stop_times.csv
ST_TRIP_ID = ColumnRule("trip_id", ("trip_id",), ("tripid",))
ST_STOP_ID = ColumnRule("stop_id", ("stop_id",), ("stopid",))
ST_ARRIVAL = ColumnRule("arrival_time", ("arrival_time",), ("arrival",))
ST_SEQUENCE = ColumnRule("stop_sequence", ("stop_sequence",), ("sequence",))


@dataclass(frozen=True)
class Stop:
    stop_id: str
    name: str
    lat: float
    lon: float


@dataclass(frozen=True)
class Route:
    route_id: str
    short_name: str
    long_name: str = ""
    color: str = ""


@dataclass(frozen=True)
class Trip:
    trip_id: str
    route_id: str
    headsign: str = ""
    direction_id: str = "0"


@dataclass(frozen=True)
class StopVisit:
    stop_id: str
    sequence: int
    arrival_time: str = ""


@dataclass
class ScheduleIndex:
    """Cross-referenced schedule snapshot. Built once, never mutated."""

    stops: dict[str, Stop] = field(default_factory=dict)
    routes: dict[str, Route] = field(default_factory=dict)
    trips: dict[str, Trip] = field(default_factory=dict)
    route_trips: dict[str, list[str]] = field(default_factory=dict)  # route_id -> [trip_id]
    trip_visits: dict[str, list[StopVisit]] = field(default_factory=dict)  # sorted by sequence
    stop_routes: dict[str, set[str]] = field(default_factory=dict)  # stop_id -> {route_id}

    def routes_for_stop(self, stop_id: str) -> list[Route]:
        """Routes serving a stop, in route-table order."""
        route_ids = self.stop_routes.get(stop_id, set())
        return [r for rid, r in self.routes.items() if rid in route_ids]


def _stop_display_name(name: str, desc: str) -> str:
    """Append the direction annotation from the description, e.g. 'Kadıköy (TUZLA)'."""
    if desc:
        match = _DIRECTION_RE.search(desc)
        if match:
            return f"{name} ({match.group(1).strip()})"
    return name


def _parse_stops(table: Table) -> dict[str, Stop]:
    table.require(STOP_ID, STOP_LAT, STOP_LON)
    stops: dict[str, Stop] = {}
    dropped = 0
    for stop_id, name, lat_raw, lon_raw, desc in table.values(
        STOP_ID, STOP_NAME, STOP_LAT, STOP_LON, STOP_DESC,
    ):
        lat = parse_float(lat_raw)
        lon = parse_float(lon_raw)
        if not stop_id or lat is None or lon is None:
            dropped += 1
            continue
        stops[stop_id] = Stop(
            stop_id=stop_id,
            name=_stop_display_name(name or UNKNOWN_STOP_NAME, desc),
            lat=lat,
            lon=lon,
        )
    if dropped:
        logger.debug("Dropped %d stop rows without id or valid coordinates", dropped)
    return stops


def _parse_routes(table: Table) -> dict[str, Route]:
    table.require(ROUTE_ID, ROUTE_SHORT_NAME)
    routes: dict[str, Route] = {}
    for route_id, short_name, long_name, color in table.values(
        ROUTE_ID, ROUTE_SHORT_NAME, ROUTE_LONG_NAME, ROUTE_COLOR,
    ):
        if route_id and short_name:
            routes[route_id] = Route(route_id, short_name, long_name, color)
    return routes


def _parse_trips(table: Table) -> tuple[dict[str, Trip], dict[str, list[str]]]:
    table.require(TRIP_ID, TRIP_ROUTE_ID)
    trips: dict[str, Trip] = {}
    route_trips: dict[str, list[str]] = {}
    for trip_id, route_id, headsign, direction_id in table.values(
        TRIP_ID, TRIP_ROUTE_ID, TRIP_HEADSIGN, TRIP_DIRECTION,
    ):
        if not trip_id or not route_id:
            continue
        if trip_id not in trips:
            route_trips.setdefault(route_id, []).append(trip_id)
        trips[trip_id] = Trip(trip_id, route_id, headsign, direction_id or "0")
    return trips, route_trips


def _parse_sequence(raw: str) -> int:
    try:
        return int(raw)
    except (ValueError, TypeError):
        return 0


def _parse_stop_times(
    table: Table, trips: dict[str, Trip], stops: dict[str, Stop],
) -> tuple[dict[str, set[str]], dict[str, list[StopVisit]]]:
    table.require(ST_TRIP_ID, ST_STOP_ID)
    stop_routes: dict[str, set[str]] = {}
    trip_visits: dict[str, list[StopVisit]] = {}
    unknown_trip = unknown_stop = 0
    for trip_id, stop_id, arrival_time, sequence in table.values(
        ST_TRIP_ID, ST_STOP_ID, ST_ARRIVAL, ST_SEQUENCE,
    ):
        trip = trips.get(trip_id)
        if trip is None:
            unknown_trip += 1
            continue
        if stop_id not in stops:
            unknown_stop += 1
            continue
        stop_routes.setdefault(stop_id, set()).add(trip.route_id)
        trip_visits.setdefault(trip_id, []).append(
            StopVisit(stop_id, _parse_sequence(sequence), arrival_time)
        )

    # Sort once after ingestion; stop_times.csv is not ordered
    for visits in trip_visits.values():
        visits.sort(key=lambda v: v.sequence)

    if unknown_trip or unknown_stop:
        logger.debug(
            "Skipped stop_times rows: %d unknown trip, %d unknown stop",
            unknown_trip, unknown_stop,
        )
    return stop_routes, trip_visits


def build_schedule_index(
    stops_table: Table, routes_table: Table, trips_table: Table, stop_times_table: Table,
) -> ScheduleIndex:
    """Build a ScheduleIndex from the four decoded tables.

    Order matters: stop-times are joined against trips and stops, so those
    are built first. Raises FeedParseError when a table lacks a key column,
    so a renamed upstream column never yields an empty index.
    """
    stops = _parse_stops(stops_table)
    routes = _parse_routes(routes_table)
    trips, route_trips = _parse_trips(trips_table)
    stop_routes, trip_visits = _parse_stop_times(stop_times_table, trips, stops)

    index = ScheduleIndex(
        stops=stops,
        routes=routes,
        trips=trips,
        route_trips=route_trips,
        trip_visits=trip_visits,
        stop_routes=stop_routes,
    )
    logger.info(
        "Schedule index built: %d stops, %d routes, %d trips, %d trips with visits",
        len(stops), len(routes), len(trips), len(trip_visits),
    )
    return index


class ScheduleFeedClient:
    """Downloads the four GTFS CSV resources from the open-data portal."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._urls = {
            "stops": settings.stops_url,
            "routes": settings.routes_url,
            "trips": settings.trips_url,
            "stop_times": settings.stop_times_url,
        }
        self._client = httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            headers={"Accept": "text/csv"},
            verify=settings.verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _fetch_raw(self, label: str) -> bytes:
        url = self._urls[label]
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"{label}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{label}: {type(e).__name__}: {e}") from e
        logger.debug("Fetched %s (%d bytes)", label, len(resp.content))
        return resp.content

    async def fetch_index(self) -> ScheduleIndex:
        """Fetch all four resources concurrently and build a fresh index.

        Any failed fetch or unparseable table fails the whole rebuild.
        """
        logger.info("Loading GTFS schedule data...")
        stops_raw, routes_raw, trips_raw, stop_times_raw = await asyncio.gather(
            self._fetch_raw("stops"),
            self._fetch_raw("routes"),
            self._fetch_raw("trips"),
            self._fetch_raw("stop_times"),
        )
        # stop_times.csv is tens of MB; keep the event loop free while parsing it
        return await asyncio.to_thread(
            _decode_and_build, stops_raw, routes_raw, trips_raw, stop_times_raw,
        )


def _decode_and_build(
    stops_raw: bytes, routes_raw: bytes, trips_raw: bytes, stop_times_raw: bytes,
) -> ScheduleIndex:
    return build_schedule_index(
        decode_bytes(stops_raw),
        decode_bytes(routes_raw),
        decode_bytes(trips_raw),
        decode_bytes(stop_times_raw),
    )
