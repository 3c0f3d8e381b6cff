from pydantic import BaseModel


class StopInfo(BaseModel):
    id: str
    name: str
    lat: float
    lng: float
    distance: float | None = None  # meters from the query point
