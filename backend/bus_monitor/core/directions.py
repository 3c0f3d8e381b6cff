"""Walking/driving directions from the public OSRM server."""

import logging

import httpx

from bus_monitor.config import settings
from bus_monitor.core.errors import NotFoundError, UpstreamError
from bus_monitor.core.geo import round_half_up
from bus_monitor.schemas.directions import Directions, DirectionsStep, Maneuver

logger = logging.getLogger(__name__)

OSRM_PROFILES = {
    "foot": "foot",
    "walking": "foot",
    "driving": "driving",
    "cycling": "cycling",
}

_PLAIN_INSTRUCTIONS = {
    "depart": "Yola çık",
    "arrive": "Hedefe vardın",
    "continue": "Düz devam et",
    "merge": "Yola katıl",
    "roundabout": "Dönel kavşaktan geç",
    "rotary": "Dönel kavşaktan geç",
    "new name": "Devam et",
    "straight": "Düz git",
}
_MODIFIED_INSTRUCTIONS = {
    "turn": {
        "left": "Sola dön",
        "right": "Sağa dön",
        "slight left": "Hafif sola dön",
        "slight right": "Hafif sağa dön",
        "sharp left": "Keskin sola dön",
        "sharp right": "Keskin sağa dön",
        "uturn": "U dönüşü yap",
    },
    "fork": {
        "left": "Soldan devam et",
        "right": "Sağdan devam et",
    },
    "end of road": {
        "left": "Yol sonunda sola dön",
        "right": "Yol sonunda sağa dön",
    },
}
_FALLBACK_INSTRUCTION = "Devam et"


def translate_instruction(maneuver_type: str, modifier: str | None, street: str | None) -> str:
    suffix = f" ({street})" if street else ""
    by_modifier = _MODIFIED_INSTRUCTIONS.get(maneuver_type)
    if by_modifier is not None and modifier:
        return by_modifier.get(modifier, _FALLBACK_INSTRUCTION) + suffix
    return _PLAIN_INSTRUCTIONS.get(maneuver_type, _FALLBACK_INSTRUCTION) + suffix


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{round_half_up(seconds)} sn"
    if seconds < 3600:
        return f"{round_half_up(seconds / 60)} dk"
    hours = int(seconds // 3600)
    mins = round_half_up((seconds % 3600) / 60)
    return f"{hours} sa {mins} dk"


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round_half_up(meters)} m"
    return f"{meters / 1000:.1f} km"


class OsrmClient:
    """Thin request/response wrapper; route computation is OSRM's business."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(
            base_url=settings.osrm_base_url,
            timeout=settings.request_timeout_seconds,
            verify=settings.verify_ssl,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def route(
        self,
        start_lat: float, start_lon: float,
        end_lat: float, end_lon: float,
        mode: str = "foot",
    ) -> Directions:
        profile = OSRM_PROFILES.get(mode, "foot")
        coords = f"{start_lon:.6f},{start_lat:.6f};{end_lon:.6f},{end_lat:.6f}"
        path = f"/route/v1/{profile}/{coords}"
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}

        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"OSRM: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"OSRM: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"OSRM: invalid JSON response: {e}") from e

        if data.get("code") != "Ok" or not data.get("routes"):
            raise NotFoundError(f"No {profile} route found ({data.get('code')})")

        route = data["routes"][0]
        steps = []
        for leg in route.get("legs", [])[:1]:
            for step in leg.get("steps", []):
                maneuver = step.get("maneuver", {})
                steps.append(DirectionsStep(
                    instruction=translate_instruction(
                        maneuver.get("type", ""), maneuver.get("modifier"), step.get("name"),
                    ),
                    distance=step.get("distance", 0.0),
                    duration=step.get("duration", 0.0),
                    name=step.get("name") or "Yol",
                    maneuver=Maneuver(
                        type=maneuver.get("type", ""),
                        modifier=maneuver.get("modifier"),
                        location=maneuver.get("location", []),
                    ),
                ))

        directions = Directions(
            distance=round_half_up(route["distance"]),
            duration=round_half_up(route["duration"]),
            duration_text=format_duration(route["duration"]),
            distance_text=format_distance(route["distance"]),
            geometry=route["geometry"],
            steps=steps,
        )
        logger.info(
            "Route found (%s): %s, %s", profile, directions.distance_text, directions.duration_text,
        )
        return directions
