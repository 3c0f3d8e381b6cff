"""Walking/driving directions REST API endpoint."""

from fastapi import APIRouter, HTTPException, Query

from bus_monitor.core.errors import NotFoundError, UpstreamError
from bus_monitor.schemas.directions import Directions

router = APIRouter(prefix="/api/directions", tags=["directions"])

# Will be set by main.py
osrm = None


@router.get("", response_model=Directions)
async def get_directions(
    start_lat: float = Query(..., alias="startLat"),
    start_lng: float = Query(..., alias="startLng"),
    end_lat: float = Query(..., alias="endLat"),
    end_lng: float = Query(..., alias="endLng"),
    mode: str = "foot",
):
    """Directions between two points from the routing service."""
    if osrm is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    try:
        return await osrm.route(start_lat, start_lng, end_lat, end_lng, mode=mode)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=503, detail=str(e))
