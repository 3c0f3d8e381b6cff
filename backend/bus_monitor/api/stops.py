"""Stop REST API endpoints."""

from fastapi import APIRouter, HTTPException, Query

from bus_monitor.core.errors import ScheduleUnavailable
from bus_monitor.schemas.stop import StopInfo

router = APIRouter(prefix="/api/stops", tags=["stops"])

# Will be set by main.py
service = None


@router.get("", response_model=list[StopInfo])
async def list_stops(
    lat: float | None = None,
    lng: float | None = None,
    radius: float | None = None,
    min_lat: float | None = Query(None, alias="minLat"),
    min_lng: float | None = Query(None, alias="minLng"),
    max_lat: float | None = Query(None, alias="maxLat"),
    max_lng: float | None = Query(None, alias="maxLng"),
):
    """Stops around a point (nearest first) or inside a bounding box."""
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    try:
        if lat is not None and lng is not None and radius is not None:
            return await service.nearby_stops(lat, lng, radius)
        if None not in (min_lat, min_lng, max_lat, max_lng):
            return await service.stops_in_bounds(min_lat, min_lng, max_lat, max_lng)
    except ScheduleUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    raise HTTPException(
        status_code=400,
        detail="Either lat, lng and radius or minLat, minLng, maxLat and maxLng are required",
    )
