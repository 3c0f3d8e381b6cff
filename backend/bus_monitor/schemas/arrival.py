from pydantic import BaseModel

from bus_monitor.schemas.route import RouteInfo


class LatLng(BaseModel):
    lat: float
    lng: float


class Arrival(BaseModel):
    route_id: str
    route_short_name: str
    route_long_name: str
    door_no: str
    operator: str
    depot: str
    route_color: str
    minutes_until_arrival: int
    arrival_time: str  # HH:MM, Istanbul time
    destination: str
    is_live: bool = True
    has_route_code: bool = False
    vehicle_id: str
    location: LatLng
    heading: float
    speed: float
    distance: int  # meters
    last_update: str = ""


class StopArrivals(BaseModel):
    stop_id: str
    arrivals: list[Arrival]
    stop_routes: list[RouteInfo] = []
    count: int
    is_realtime: bool = True
    message: str | None = None
