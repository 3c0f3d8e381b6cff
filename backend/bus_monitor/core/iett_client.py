"""Async client for the IETT FiloDurum SOAP service (live bus positions)."""

import asyncio
import logging
import re
from dataclasses import dataclass

import httpx
import orjson

from bus_monitor.config import settings
from bus_monitor.core.errors import FeedParseError, UpstreamError
from bus_monitor.core.tabular import parse_float

logger = logging.getLogger(__name__)

SOAP_NS = "http://tempuri.org/"
FLEET_METHOD = "GetFiloAracKonum_json"
ROUTE_METHOD = "GetHatOtoKonum_json"

RETRY_BACKOFF = [1, 2, 4]  # seconds between retries

# The service HTML-escapes the JSON it embeds; '&amp;' must go last
_XML_ENTITIES = (("&quot;", '"'), ("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&"))


@dataclass
class Vehicle:
    door_no: str  # "kapı no", the physical vehicle id
    plate: str
    operator: str
    depot: str
    lat: float
    lon: float
    speed: float
    last_update: str = ""


@dataclass
class RouteVehicle:
    door_no: str
    route_code: str
    route_name: str = ""
    direction: str = ""


def _envelope(method: str, params: dict[str, str] | None = None) -> str:
    body = "".join(f"<tem:{k}>{v}</tem:{k}>" for k, v in (params or {}).items())
    call = f"<tem:{method}>{body}</tem:{method}>" if body else f"<tem:{method} />"
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/" '
        f'xmlns:tem="{SOAP_NS}">\n'
        f"  <soap:Body>\n    {call}\n  </soap:Body>\n"
        "</soap:Envelope>"
    )


def unescape_entities(text: str) -> str:
    for entity, char in _XML_ENTITIES:
        text = text.replace(entity, char)
    return text


def extract_payload(xml_text: str, method: str) -> list[dict]:
    """Pull the JSON array out of ``<{method}Result>`` and parse it."""
    match = re.search(rf"<{method}Result>([\s\S]*?)</{method}Result>", xml_text)
    if match is None:
        if re.search(rf"<{method}Result\s*/>", xml_text):
            return []
        raise FeedParseError(f"{method}: result element not found in envelope")

    raw = unescape_entities(match.group(1)).strip()
    if not raw:
        return []
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise FeedParseError(f"{method}: embedded JSON is malformed: {e}") from e
    if not isinstance(data, list):
        raise FeedParseError(f"{method}: expected a JSON array, got {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


def _lower_keys(item: dict) -> dict:
    return {str(k).lower(): v for k, v in item.items()}


def _text(item: dict, key: str) -> str:
    value = item.get(key)
    return "" if value is None else str(value).strip()


def normalize_vehicle(item: dict) -> Vehicle | None:
    """Map a raw fleet record to a Vehicle; None when coordinates don't parse."""
    rec = _lower_keys(item)
    lat = parse_float(rec.get("enlem"))
    lon = parse_float(rec.get("boylam"))
    if lat is None or lon is None:
        return None
    return Vehicle(
        door_no=_text(rec, "kapino"),
        plate=_text(rec, "plaka"),
        operator=_text(rec, "operator"),
        depot=_text(rec, "garaj"),
        lat=lat,
        lon=lon,
        speed=parse_float(rec.get("hiz")) or 0.0,
        last_update=_text(rec, "saat"),
    )


def normalize_route_vehicle(item: dict) -> RouteVehicle | None:
    rec = _lower_keys(item)
    door_no = _text(rec, "kapino")
    route_code = _text(rec, "hatkodu")
    if not door_no or not route_code:
        return None
    return RouteVehicle(
        door_no=door_no,
        route_code=route_code,
        route_name=_text(rec, "hatad"),
        direction=_text(rec, "yon"),
    )


class IettClient:
    """Calls the fleet-status SOAP procedures for live vehicle positions."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            headers={"Content-Type": "text/xml; charset=utf-8"},
            verify=settings.verify_ssl,
            transport=transport,
        )
        self._url = settings.fleet_service_url
        self._max_retries = settings.feed_max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: dict[str, str] | None = None) -> str:
        """POST a SOAP call with retry and backoff on transient failures."""
        headers = {"SOAPAction": f"{SOAP_NS}{method}"}
        body = _envelope(method, params).encode("utf-8")
        label = method if not params else f"{method}({', '.join(params.values())})"

        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.post(self._url, content=body, headers=headers)
                resp.raise_for_status()
                return resp.text
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < self._max_retries:
                    wait = RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)]
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %ds",
                        label, attempt + 1, self._max_retries + 1, type(e).__name__, wait,
                    )
                    await asyncio.sleep(wait)
                else:
                    raise UpstreamError(f"{label} failed after {attempt + 1} attempts: {e}") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempt < self._max_retries:
                    wait = RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)]
                    logger.warning(
                        "%s attempt %d/%d got HTTP %d, retrying in %ds",
                        label, attempt + 1, self._max_retries + 1, status, wait,
                    )
                    await asyncio.sleep(wait)
                else:
                    raise UpstreamError(f"{label}: HTTP {status}") from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"{label}: {type(e).__name__}: {e}") from e
        raise UpstreamError(f"{label}: no attempts made")

    async def fetch_vehicles(self) -> list[Vehicle]:
        """Fetch positions of every bus currently reporting."""
        xml_text = await self._call(FLEET_METHOD)
        items = extract_payload(xml_text, FLEET_METHOD)

        vehicles = []
        for item in items:
            vehicle = normalize_vehicle(item)
            if vehicle is None:
                continue
            vehicles.append(vehicle)

        skipped = len(items) - len(vehicles)
        if skipped:
            logger.debug("Skipped %d fleet records with unparseable coordinates", skipped)
        logger.info("Fetched %d bus positions from IETT", len(vehicles))
        return vehicles

    async def fetch_route_vehicles(self, route_code: str) -> list[RouteVehicle]:
        """Fetch the buses currently running on one route code."""
        xml_text = await self._call(ROUTE_METHOD, {"HatKodu": route_code})
        items = extract_payload(xml_text, ROUTE_METHOD)
        return [rv for rv in (normalize_route_vehicle(item) for item in items) if rv is not None]
