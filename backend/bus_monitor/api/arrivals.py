"""Stop arrivals REST API endpoint."""

from fastapi import APIRouter, HTTPException, Query

from bus_monitor.core.errors import LiveDataUnavailable
from bus_monitor.schemas.arrival import StopArrivals

router = APIRouter(prefix="/api/arrivals", tags=["arrivals"])

# Will be set by main.py
service = None


@router.get("/{stop_id}", response_model=StopArrivals)
async def get_arrivals(
    stop_id: str,
    stop_lat: float = Query(..., alias="stopLat"),
    stop_lng: float = Query(..., alias="stopLng"),
):
    """Buses approaching a stop, soonest first."""
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    try:
        return await service.arrivals(stop_id, stop_lat, stop_lng)
    except LiveDataUnavailable as e:
        raise HTTPException(
            status_code=503,
            detail={"code": "LIVE_DATA_UNAVAILABLE", "error": str(e)},
        )
