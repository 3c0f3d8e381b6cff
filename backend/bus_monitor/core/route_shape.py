"""Rebuild a drawable route path from the schedule's stop sequences."""

import logging

from shapely.geometry import LineString, mapping

from bus_monitor.core.errors import NotFoundError
from bus_monitor.core.schedule_index import Route, ScheduleIndex
from bus_monitor.schemas.route import RouteInfo, RouteShape, RouteShapeStop

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_COLOR = "053e73"


def resolve_route(index: ScheduleIndex, identifier: str) -> Route | None:
    """Exact route id, then exact short name, then case-insensitive short name."""
    route = index.routes.get(identifier)
    if route is not None:
        return route
    for r in index.routes.values():
        if r.short_name == identifier:
            return r
    lowered = identifier.lower()
    for r in index.routes.values():
        if r.short_name.lower() == lowered:
            return r
    return None


def representative_trip(index: ScheduleIndex, route_id: str) -> str | None:
    """Trip with the most stop visits; the first one wins a tie."""
    best_trip = None
    max_visits = 0
    for trip_id in index.route_trips.get(route_id, []):
        count = len(index.trip_visits.get(trip_id, []))
        if count > max_visits:
            max_visits = count
            best_trip = trip_id
    return best_trip


def route_info(route: Route) -> RouteInfo:
    return RouteInfo(
        route_id=route.route_id,
        route_short_name=route.short_name,
        route_long_name=route.long_name,
        route_color=route.color or DEFAULT_ROUTE_COLOR,
    )


def reconstruct_route_shape(index: ScheduleIndex, identifier: str) -> RouteShape:
    """Ordered stops plus a GeoJSON line for a route id or public short name."""
    route = resolve_route(index, identifier)
    if route is None:
        raise NotFoundError(f"Route {identifier!r} not found")
    if not index.route_trips.get(route.route_id):
        raise NotFoundError(f"Route {identifier!r} has no trips")

    trip_id = representative_trip(index, route.route_id)
    stops: list[RouteShapeStop] = []
    for visit in index.trip_visits.get(trip_id, []) if trip_id else []:
        stop = index.stops.get(visit.stop_id)
        if stop is None:
            continue
        stops.append(RouteShapeStop(
            stop_id=stop.stop_id,
            stop_name=stop.name,
            stop_lat=stop.lat,
            stop_lon=stop.lon,
            stop_sequence=visit.sequence,
        ))
    if not stops:
        raise NotFoundError(f"Route {identifier!r} has no known stops")

    # GeoJSON order is (lon, lat); a single stop becomes a zero-length line
    coords = [(s.stop_lon, s.stop_lat) for s in stops]
    if len(coords) == 1:
        coords = coords * 2
    line = LineString(coords)

    info = route_info(route)
    feature = {
        "type": "Feature",
        "properties": {
            "route_id": route.route_id,
            "route_short_name": route.short_name,
            "route_long_name": route.long_name,
        },
        "bbox": list(line.bounds),
        "geometry": mapping(line),
    }
    logger.info(
        "Route %s (%s): trip %s with %d stops",
        route.short_name, route.route_id, trip_id, len(stops),
    )
    return RouteShape(route=info, stops=stops, line_geojson=feature)
