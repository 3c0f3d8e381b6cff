"""Spatial stop queries over the schedule index."""

from bus_monitor.core.geo import haversine
from bus_monitor.core.schedule_index import ScheduleIndex
from bus_monitor.schemas.stop import StopInfo


def nearby_stops(index: ScheduleIndex, lat: float, lon: float, radius_m: float) -> list[StopInfo]:
    """Stops within ``radius_m`` of the point, nearest first."""
    found = []
    for stop in index.stops.values():
        distance = haversine(lat, lon, stop.lat, stop.lon)
        if distance <= radius_m:
            found.append(StopInfo(
                id=stop.stop_id, name=stop.name, lat=stop.lat, lng=stop.lon, distance=distance,
            ))
    found.sort(key=lambda s: s.distance)
    return found


def stops_in_bounds(
    index: ScheduleIndex, min_lat: float, min_lon: float, max_lat: float, max_lon: float,
) -> list[StopInfo]:
    """Stops inside the bounding box, edges included."""
    return [
        StopInfo(id=s.stop_id, name=s.name, lat=s.lat, lng=s.lon)
        for s in index.stops.values()
        if min_lat <= s.lat <= max_lat and min_lon <= s.lon <= max_lon
    ]
