"""Route shape REST API endpoint."""

from fastapi import APIRouter, HTTPException

from bus_monitor.core.errors import NotFoundError, ScheduleUnavailable
from bus_monitor.schemas.route import RouteShape

router = APIRouter(prefix="/api/route-shape", tags=["routes"])

# Will be set by main.py
service = None


@router.get("/{route_id}", response_model=RouteShape)
async def get_route_shape(route_id: str):
    """Ordered stops and line geometry for a route id or public route code."""
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    try:
        return await service.route_shape(route_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScheduleUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
