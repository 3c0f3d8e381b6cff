"""APScheduler setup for cache warm-up jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


def create_scheduler(service) -> AsyncIOScheduler:
    """Create and configure the scheduler with all jobs."""
    from bus_monitor.config import settings

    scheduler = AsyncIOScheduler()

    # Keep the live snapshot warm so requests rarely wait on the SOAP call
    scheduler.add_job(
        service.warm_live_feed,
        "interval",
        seconds=settings.live_feed_ttl_seconds,
        id="warm_live_feed",
        name="Refresh IETT bus positions",
        max_instances=1,
    )

    scheduler.add_job(
        service.warm_schedule,
        "interval",
        seconds=settings.schedule_ttl_seconds,
        id="warm_schedule",
        name="Reload GTFS schedule",
        max_instances=1,
    )

    if settings.route_code_refresh_enabled:
        scheduler.add_job(
            service.refresh_route_codes,
            "interval",
            seconds=settings.route_code_ttl_seconds,
            id="refresh_route_codes",
            name="Poll busy routes for door number -> route code",
            max_instances=1,
        )
    else:
        logger.info("Route code refresh disabled, arrivals will show door numbers")

    return scheduler
