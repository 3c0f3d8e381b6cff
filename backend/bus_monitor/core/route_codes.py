"""Door number -> public route code mapping, learned by polling busy routes.

Fleet positions only carry the vehicle's door number. The route code riders
recognise comes from a separate per-route query, so the map is filled by
sampling a fixed list of high-traffic routes and merging what each cycle
discovers into what earlier cycles found.
"""

import asyncio
import logging
from dataclasses import dataclass

from bus_monitor.core.errors import TransitError, UpstreamError
from bus_monitor.core.iett_client import IettClient
from bus_monitor.core.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteCodeEntry:
    door_no: str
    route_code: str
    route_name: str = ""
    direction: str = ""


@dataclass(frozen=True)
class ResolvedRoute:
    route_code: str
    route_name: str | None = None
    direction: str | None = None
    confident: bool = False  # False when the door number stood in for the code


class RouteCodeResolver:
    def __init__(
        self,
        client: IettClient,
        route_codes: list[str],
        ttl_seconds: float,
        request_delay: float = 0.2,
    ) -> None:
        self._client = client
        self._route_codes = list(route_codes)
        self._request_delay = request_delay
        self._mapping: dict[str, RouteCodeEntry] = {}
        self.cache: SnapshotCache[dict[str, RouteCodeEntry]] = SnapshotCache(
            "route-codes", self._poll, ttl_seconds,
        )

    @property
    def mapping(self) -> dict[str, RouteCodeEntry]:
        """Current map; never touches the network."""
        return self._mapping

    async def refresh(self) -> dict[str, RouteCodeEntry]:
        """Refresh the map if its TTL has expired."""
        return await self.cache.get()

    async def _poll(self) -> dict[str, RouteCodeEntry]:
        logger.info("Refreshing route code map from %d routes", len(self._route_codes))
        discovered: dict[str, RouteCodeEntry] = {}
        failures = 0
        for code in self._route_codes:
            await asyncio.sleep(self._request_delay)
            try:
                route_vehicles = await self._client.fetch_route_vehicles(code)
            except TransitError as e:
                failures += 1
                logger.debug("Route %s lookup failed: %s", code, e)
                continue
            for rv in route_vehicles:
                discovered[rv.door_no] = RouteCodeEntry(
                    door_no=rv.door_no,
                    route_code=rv.route_code,
                    route_name=rv.route_name,
                    direction=rv.direction,
                )

        if self._route_codes and failures == len(self._route_codes):
            raise UpstreamError("every route code lookup failed")

        # Each cycle only samples part of the network: merge, never replace
        self._mapping = {**self._mapping, **discovered}
        logger.info(
            "Route code map updated: %d new/updated, %d vehicles mapped (%d lookups failed)",
            len(discovered), len(self._mapping), failures,
        )
        return self._mapping

    def resolve(self, door_no: str) -> ResolvedRoute:
        entry = self._mapping.get(door_no)
        if entry is None:
            return ResolvedRoute(route_code=door_no, confident=False)
        return ResolvedRoute(
            route_code=entry.route_code,
            route_name=entry.route_name or None,
            direction=entry.direction or None,
            confident=True,
        )
