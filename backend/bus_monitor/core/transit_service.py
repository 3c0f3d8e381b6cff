"""Orchestrator: owns the snapshot caches and answers stop, arrival and route queries."""

import asyncio
import logging

from bus_monitor.core.arrivals import ArrivalMatcher
from bus_monitor.core.errors import LiveDataUnavailable, ScheduleUnavailable, TransitError
from bus_monitor.core.iett_client import Vehicle
from bus_monitor.core.route_codes import RouteCodeResolver
from bus_monitor.core.route_shape import reconstruct_route_shape, route_info
from bus_monitor.core.schedule_index import ScheduleIndex
from bus_monitor.core.snapshot_cache import SnapshotCache
from bus_monitor.core.stop_finder import nearby_stops, stops_in_bounds
from bus_monitor.schemas.arrival import StopArrivals
from bus_monitor.schemas.route import RouteShape
from bus_monitor.schemas.stop import StopInfo

logger = logging.getLogger(__name__)

MAX_STOP_ROUTES = 10


class TransitService:
    def __init__(
        self,
        schedule: SnapshotCache[ScheduleIndex],
        live_feed: SnapshotCache[list[Vehicle]],
        route_codes: RouteCodeResolver,
        matcher: ArrivalMatcher | None = None,
    ) -> None:
        self.schedule = schedule
        self.live_feed = live_feed
        self.route_codes = route_codes
        self.matcher = matcher or ArrivalMatcher()

    async def _schedule_index(self) -> ScheduleIndex:
        try:
            return await self.schedule.get()
        except TransitError as e:
            raise ScheduleUnavailable(f"GTFS schedule could not be loaded: {e}") from e

    async def _schedule_or_none(self) -> ScheduleIndex | None:
        try:
            return await self.schedule.get()
        except TransitError as e:
            logger.error("GTFS load failed, answering without stop routes: %s", e)
            return None

    async def _vehicles_or_empty(self) -> list[Vehicle]:
        try:
            return await self.live_feed.get()
        except TransitError as e:
            logger.error("Live feed unavailable: %s", e)
            return []

    async def nearby_stops(self, lat: float, lon: float, radius_m: float) -> list[StopInfo]:
        index = await self._schedule_index()
        stops = nearby_stops(index, lat, lon, radius_m)
        logger.info("%d stops within %.0fm of (%.5f, %.5f)", len(stops), radius_m, lat, lon)
        return stops

    async def stops_in_bounds(
        self, min_lat: float, min_lon: float, max_lat: float, max_lon: float,
    ) -> list[StopInfo]:
        index = await self._schedule_index()
        return stops_in_bounds(index, min_lat, min_lon, max_lat, max_lon)

    async def arrivals(self, stop_id: str, lat: float, lon: float) -> StopArrivals:
        """Approaching buses for a stop, ranked by estimated minutes.

        Raises LiveDataUnavailable when there is no live snapshot at all.
        """
        # Both snapshots are independent; fetch them side by side
        index, vehicles = await asyncio.gather(
            self._schedule_or_none(), self._vehicles_or_empty(),
        )
        if not vehicles:
            raise LiveDataUnavailable("Live vehicle data is unavailable, try again later")

        arrivals = self.matcher.match(lat, lon, vehicles, self.route_codes)
        confident = sum(1 for a in arrivals if a.has_route_code)
        logger.info(
            "Stop %s: %d arrivals (%d with route code)", stop_id, len(arrivals), confident,
        )

        stop_routes = []
        if index is not None:
            stop_routes = [route_info(r) for r in index.routes_for_stop(stop_id)[:MAX_STOP_ROUTES]]

        return StopArrivals(
            stop_id=stop_id,
            arrivals=arrivals,
            stop_routes=stop_routes,
            count=len(arrivals),
            is_realtime=True,
            message=None if arrivals else "No approaching buses found",
        )

    async def route_shape(self, identifier: str) -> RouteShape:
        index = await self._schedule_index()
        return reconstruct_route_shape(index, identifier)

    # Scheduler entry points: failures are logged, never raised

    async def warm_schedule(self) -> None:
        try:
            await self.schedule.get()
        except Exception:
            logger.exception("Error warming schedule cache")

    async def warm_live_feed(self) -> None:
        try:
            await self.live_feed.get()
        except Exception:
            logger.exception("Error warming live feed cache")

    async def refresh_route_codes(self) -> None:
        try:
            await self.route_codes.refresh()
        except Exception:
            logger.exception("Error refreshing route code map")

    def get_diagnostics(self) -> dict:
        index = self.schedule.peek()
        vehicles = self.live_feed.peek()
        caches = []
        for cache in (self.schedule, self.live_feed, self.route_codes.cache):
            caches.append({
                "name": cache.name,
                "has_value": cache.has_value,
                "fresh": cache.is_fresh(),
                "age_seconds": round(cache.age, 1) if cache.age is not None else None,
                "rebuilds": cache.fetch_count,
            })
        return {
            "caches": caches,
            "stops": len(index.stops) if index else 0,
            "routes": len(index.routes) if index else 0,
            "trips": len(index.trips) if index else 0,
            "vehicles": len(vehicles) if vehicles else 0,
            "route_codes_mapped": len(self.route_codes.mapping),
        }
