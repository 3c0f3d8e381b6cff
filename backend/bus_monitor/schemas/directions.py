from pydantic import BaseModel


class Maneuver(BaseModel):
    type: str
    modifier: str | None = None
    location: list[float]  # [lon, lat]


class DirectionsStep(BaseModel):
    instruction: str
    distance: float
    duration: float
    name: str
    maneuver: Maneuver


class Directions(BaseModel):
    distance: int  # meters
    duration: int  # seconds
    duration_text: str
    distance_text: str
    geometry: dict  # GeoJSON LineString
    steps: list[DirectionsStep]
