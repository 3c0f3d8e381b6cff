"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bus_monitor.api import arrivals, diagnostics, directions, routes, stops
from bus_monitor.config import settings
from bus_monitor.core.arrivals import ArrivalMatcher
from bus_monitor.core.directions import OsrmClient
from bus_monitor.core.iett_client import IettClient
from bus_monitor.core.route_codes import RouteCodeResolver
from bus_monitor.core.schedule_index import ScheduleFeedClient
from bus_monitor.core.scheduler import create_scheduler
from bus_monitor.core.snapshot_cache import SnapshotCache
from bus_monitor.core.transit_service import TransitService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    # Initialize clients and caches
    gtfs = ScheduleFeedClient()
    iett = IettClient()
    osrm = OsrmClient()

    service = TransitService(
        schedule=SnapshotCache("gtfs-schedule", gtfs.fetch_index, settings.schedule_ttl_seconds),
        live_feed=SnapshotCache("live-feed", iett.fetch_vehicles, settings.live_feed_ttl_seconds),
        route_codes=RouteCodeResolver(
            iett,
            settings.popular_route_codes,
            ttl_seconds=settings.route_code_ttl_seconds,
            request_delay=settings.route_code_request_delay_seconds,
        ),
        matcher=ArrivalMatcher(
            search_radius_m=settings.arrival_search_radius_m,
            max_arrivals=settings.max_arrivals,
            assumed_speed_kmh=settings.assumed_bus_speed_kmh,
        ),
    )

    # Wire up API modules
    stops.service = service
    arrivals.service = service
    routes.service = service
    diagnostics.service = service
    directions.osrm = osrm

    # Warm caches in the background so startup doesn't wait on the portal
    warmup = asyncio.gather(service.warm_schedule(), service.warm_live_feed())

    # Start scheduler
    scheduler = create_scheduler(service)
    scheduler.start()
    logger.info("Bus Monitor started - polling IETT every %ds", settings.live_feed_ttl_seconds)

    yield

    # Shutdown
    scheduler.shutdown(wait=False)
    warmup.cancel()
    await gtfs.close()
    await iett.close()
    await osrm.close()
    logger.info("Bus Monitor shut down")


app = FastAPI(
    title="Istanbul Bus Monitor",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stops.router)
app.include_router(arrivals.router)
app.include_router(routes.router)
app.include_router(directions.router)
app.include_router(diagnostics.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
