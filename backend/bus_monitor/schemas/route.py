from pydantic import BaseModel


class RouteInfo(BaseModel):
    route_id: str
    route_short_name: str
    route_long_name: str = ""
    route_color: str


class RouteShapeStop(BaseModel):
    stop_id: str
    stop_name: str
    stop_lat: float
    stop_lon: float
    stop_sequence: int


class RouteShape(BaseModel):
    route: RouteInfo
    stops: list[RouteShapeStop]
    line_geojson: dict  # GeoJSON Feature with a LineString geometry, [lon, lat]
