"""Match live bus positions against a stop and estimate arrival times.

The live feed carries no trajectory history, so whether a bus is heading
to the stop is guessed from distance and reported speed alone. That guess
lives in a named policy object so it can be replaced without touching the
ETA and labelling code.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Protocol

from bus_monitor.core.errors import LiveDataUnavailable
from bus_monitor.core.geo import bearing, haversine, round_half_up
from bus_monitor.core.iett_client import Vehicle
from bus_monitor.core.route_codes import RouteCodeResolver
from bus_monitor.schemas.arrival import Arrival, LatLng

logger = logging.getLogger(__name__)

SEARCH_RADIUS_M = 2000.0
MAX_ARRIVALS = 10
# Average city bus speed used for ETA, km/h
ASSUMED_SPEED_KMH = 20.0

ROUTE_PALETTE = ["053e73", "e74c3c", "27ae60", "f39c12", "9b59b6", "1abc9c", "e67e22", "3498db"]

# Fleet timestamps and rider-facing clock times are Istanbul local (UTC+3)
_IST_TZ = datetime.timezone(datetime.timedelta(hours=3))

DEFAULT_OPERATOR = "İETT Otobüsü"
DEFAULT_DEPOT = "Merkez"
OPERATOR_LABELS = {
    "İETT": "İETT Otobüsü",
    "IETT": "İETT Otobüsü",
    "İstanbul Halk Ulaşım Tic.A.Ş": "Halk Otobüsü",
    "Yeni İstanbul Özel Halk Otobüsleri Tic.A.Ş": "Özel Halk Otobüsü",
    "ELİT KARAYOLU YOLCU TAŞIMA": "Elit Otobüs",
    "MAVİ MARMARA ULAŞIM A.Ş": "Mavi Marmara",
    "ÖZEL HALK": "Özel Halk Otobüsü",
}


class ApproachPolicy(Protocol):
    def is_approaching(self, distance_m: float, speed_kmh: float) -> bool: ...


@dataclass(frozen=True)
class DistanceSpeedApproachPolicy:
    """Distance/speed heuristic standing in for real heading data.

    Rules, first match wins:
      * closer than ``at_stop_m`` -> at the stop, include
      * stationary and farther than ``parked_m`` -> parked, exclude
      * within ``moving_m`` and moving -> include
      * otherwise exclude

    Known limitation: a bus slowly leaving the stop within ``moving_m`` is
    still reported as approaching.
    """

    at_stop_m: float = 50.0
    parked_m: float = 100.0
    moving_m: float = 1000.0

    def is_approaching(self, distance_m: float, speed_kmh: float) -> bool:
        if distance_m < self.at_stop_m:
            return True
        if speed_kmh == 0 and distance_m > self.parked_m:
            return False
        if distance_m <= self.moving_m and speed_kmh > 0:
            return True
        return False


def _to_int32(n: int) -> int:
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n


def route_color(route_code: str) -> str:
    """Deterministic palette colour for a route code (31x string hash)."""
    h = 0
    for ch in str(route_code):
        h = ord(ch) + _to_int32(_to_int32(h) << 5) - h
    return ROUTE_PALETTE[abs(h) % len(ROUTE_PALETTE)]


def estimate_minutes(distance_m: float, speed_kmh: float = ASSUMED_SPEED_KMH) -> int:
    """Minutes to cover ``distance_m`` at the assumed average speed, at least 1."""
    return max(1, round_half_up(distance_m / 1000 / speed_kmh * 60))


def format_operator(operator: str) -> str:
    if not operator:
        return DEFAULT_OPERATOR
    if operator in OPERATOR_LABELS:
        return OPERATOR_LABELS[operator]
    lowered = operator.lower()
    for key, label in OPERATOR_LABELS.items():
        if key.lower() in lowered:
            return label
    return operator[:20] + "..." if len(operator) > 20 else operator


def format_depot(depot: str) -> str:
    """'IKITELLI_GARAJI' -> 'Ikitelli'."""
    if not depot:
        return DEFAULT_DEPOT
    name = depot.strip()
    upper = name.upper()
    for suffix in ("GARAJI", "GARAJ"):
        if upper.endswith(suffix):
            name = name[: -len(suffix)]
            break
    name = name.replace("_", " ").strip()
    name = " ".join(w[:1].upper() + w[1:].lower() for w in name.split(" ") if w)
    return name or DEFAULT_DEPOT


class ArrivalMatcher:
    """Turns a live fleet snapshot into ranked arrivals for one stop."""

    def __init__(
        self,
        policy: ApproachPolicy | None = None,
        search_radius_m: float = SEARCH_RADIUS_M,
        max_arrivals: int = MAX_ARRIVALS,
        assumed_speed_kmh: float = ASSUMED_SPEED_KMH,
    ) -> None:
        self.policy = policy or DistanceSpeedApproachPolicy()
        self.search_radius_m = search_radius_m
        self.max_arrivals = max_arrivals
        self.assumed_speed_kmh = assumed_speed_kmh

    def match(
        self,
        stop_lat: float,
        stop_lon: float,
        vehicles: list[Vehicle],
        route_codes: RouteCodeResolver,
        now: datetime.datetime | None = None,
    ) -> list[Arrival]:
        """Arrivals sorted ascending by estimated minutes.

        Raises LiveDataUnavailable when the snapshot is empty, so callers can
        tell "no buses nearby" from "no data at all".
        """
        if not vehicles:
            raise LiveDataUnavailable("live vehicle snapshot is empty")

        nearby: list[tuple[float, Vehicle]] = []
        for v in vehicles:
            distance = haversine(stop_lat, stop_lon, v.lat, v.lon)
            if distance <= self.search_radius_m:
                nearby.append((distance, v))

        approaching = [
            (d, v) for d, v in nearby if self.policy.is_approaching(d, v.speed)
        ]
        approaching.sort(key=lambda dv: dv[0])
        logger.debug(
            "%d vehicles within %.0fm, %d approaching",
            len(nearby), self.search_radius_m, len(approaching),
        )

        now = now or datetime.datetime.now(datetime.timezone.utc)
        arrivals = [
            self._build_arrival(stop_lat, stop_lon, d, v, route_codes, now)
            for d, v in approaching[: self.max_arrivals]
        ]
        arrivals.sort(key=lambda a: a.minutes_until_arrival)
        return arrivals

    def _build_arrival(
        self,
        stop_lat: float,
        stop_lon: float,
        distance: float,
        vehicle: Vehicle,
        route_codes: RouteCodeResolver,
        now: datetime.datetime,
    ) -> Arrival:
        minutes = estimate_minutes(distance, self.assumed_speed_kmh)
        eta = (now + datetime.timedelta(minutes=minutes)).astimezone(_IST_TZ)

        resolved = route_codes.resolve(vehicle.door_no)
        operator = format_operator(vehicle.operator)
        depot = format_depot(vehicle.depot)

        return Arrival(
            route_id=resolved.route_code,
            route_short_name=resolved.route_code,
            route_long_name=resolved.route_name or f"{operator} - {depot}",
            door_no=vehicle.door_no,
            operator=operator,
            depot=depot,
            route_color=route_color(resolved.route_code),
            minutes_until_arrival=minutes,
            arrival_time=eta.strftime("%H:%M"),
            destination=resolved.direction or depot,
            is_live=True,
            has_route_code=resolved.confident,
            vehicle_id=vehicle.plate or vehicle.door_no,
            location=LatLng(lat=vehicle.lat, lng=vehicle.lon),
            heading=bearing(vehicle.lat, vehicle.lon, stop_lat, stop_lon),
            speed=vehicle.speed,
            distance=round_half_up(distance),
            last_update=vehicle.last_update,
        )
