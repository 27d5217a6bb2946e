"""
Google Routes API (v2 computeRoutes) client.
Normalizes the response into DirectionsResult: decoded polyline, plain-text steps and display totals.
No retries here; callers re-trigger on input change.
"""
import logging
import re
from typing import Any

import httpx

from campusnav.data.geo import Coordinate
from campusnav.directions.errors import DirectionsConfigError, DirectionsError, NoRouteError
from campusnav.directions.models import DirectionsResult, Step

logger = logging.getLogger(__name__)

ROUTES_API_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
ROUTES_REQUEST_TIMEOUT_SECONDS = 10.0
ROUTES_FIELD_MASK = (
    "routes.duration,routes.distanceMeters,routes.polyline.encodedPolyline,"
    "routes.legs,routes.localizedValues"
)
MISSING_KEY_MESSAGE = "Missing Google Maps API key. Set GOOGLE_MAPS_API_KEY in the environment."

GOOGLE_MODES = {
    "walking": "WALK",
    "driving": "DRIVE",
    "transit": "TRANSIT",
}

_TRANSIT_VEHICLE_NAMES = {
    "SUBWAY": "Metro",
    "METRO": "Metro",
    "BUS": "Bus",
    "TRAIN": "Train",
    "COMMUTER_TRAIN": "Train",
}

_TAG_RE = re.compile(r"<[^>]*(?:>|$)")


def decode_polyline(encoded: str) -> list[Coordinate]:
    """Decode an encoded polyline (5-bit chunks, zigzag sign, 1e5 scale)."""
    points: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                byte = ord(encoded[index]) - 63
                index += 1
                result |= (byte & 0x1F) << shift
                shift += 5
                if byte < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lng += deltas[1]
        points.append(Coordinate(lat / 1e5, lng / 1e5))

    return points


def strip_html(html: str | None) -> str:
    """Remove markup such as <b> from instructions; &nbsp; becomes a plain space."""
    if not html:
        return ""
    return _TAG_RE.sub("", html).replace("&nbsp;", " ").strip()


def _transit_instruction(details: dict[str, Any]) -> str:
    line = details.get("transitLine") or {}
    vehicle_type = (line.get("vehicle") or {}).get("type") or ""
    line_name = line.get("nameShort") or line.get("name") or "Transit"
    type_name = _TRANSIT_VEHICLE_NAMES.get(vehicle_type, "Transit")

    stop_details = details.get("stopDetails") or {}
    departure_stop = (stop_details.get("departureStop") or {}).get("name")
    arrival_stop = (stop_details.get("arrivalStop") or {}).get("name")
    headsign = details.get("headsign")

    desc = f"Take {type_name} {line_name}"
    if headsign:
        desc += f" towards {headsign}"
    if departure_stop:
        desc += f" from {departure_stop}"
    if arrival_stop:
        desc += f". Get off at {arrival_stop}"
    return desc.strip()


def _normalize_step(index: int, raw: dict[str, Any]) -> Step:
    instruction = strip_html((raw.get("navigationInstruction") or {}).get("instructions") or "")
    if raw.get("transitDetails"):
        instruction = _transit_instruction(raw["transitDetails"])
    localized = raw.get("localizedValues") or {}
    return Step(
        id=f"step-{index}",
        instruction=instruction,
        distance=(localized.get("distance") or {}).get("text") or "",
        duration=(localized.get("duration") or {}).get("text") or "",
    )


def _normalize_routes_response(data: dict[str, Any]) -> DirectionsResult:
    routes = data.get("routes") or []
    if not routes:
        raise NoRouteError("No route found between these locations.")
    route = routes[0]
    legs = route.get("legs") or []
    if not legs:
        raise DirectionsError("Route data is missing leg information.")
    leg = legs[0]

    encoded = (route.get("polyline") or {}).get("encodedPolyline")
    try:
        polyline = decode_polyline(encoded) if encoded else []
    except IndexError as e:
        raise DirectionsError("Route polyline could not be decoded.") from e
    localized = route.get("localizedValues") or {}
    return DirectionsResult(
        polyline=polyline,
        steps=[_normalize_step(i, s) for i, s in enumerate(leg.get("steps") or []) if isinstance(s, dict)],
        distance_text=(localized.get("distance") or {}).get("text") or "",
        duration_text=(localized.get("duration") or {}).get("text") or "",
    )


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    return message or resp.reason_phrase


class RoutesClient:
    """Directions provider backed by the Routes API. One POST per fetch."""

    def __init__(
        self,
        api_key: str,
        base_url: str = ROUTES_API_URL,
        timeout: float = ROUTES_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._url = base_url
        self._timeout = timeout
        self._transport = transport

    def _request_body(self, origin: Coordinate, destination: Coordinate, mode: str) -> dict[str, Any]:
        return {
            "origin": {"location": {"latLng": {"latitude": origin.latitude, "longitude": origin.longitude}}},
            "destination": {
                "location": {"latLng": {"latitude": destination.latitude, "longitude": destination.longitude}}
            },
            "travelMode": GOOGLE_MODES.get(mode, "WALK"),
            "computeAlternativeRoutes": False,
            "routeModifiers": {"avoidTolls": False, "avoidHighways": False, "avoidFerries": False},
            "languageCode": "en-US",
            "units": "METRIC",
        }

    async def fetch_directions(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        mode: str = "walking",
    ) -> DirectionsResult | None:
        """
        Fetch one route. Returns None when origin or destination is missing.
        Raises DirectionsConfigError without any I/O when no API key is configured,
        DirectionsError on HTTP/transport failure or when no route comes back.
        """
        if origin is None or destination is None:
            return None
        if not self._api_key:
            logger.warning("telemetry directions_config_error reason=missing_api_key")
            raise DirectionsConfigError(MISSING_KEY_MESSAGE)

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        body = self._request_body(origin, destination, mode)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(
                "telemetry directions_transport_error mode=%s error=%s",
                mode,
                str(e),
                extra={"mode": mode, "error": str(e)},
            )
            raise DirectionsError(f"Directions request failed: {e}") from e

        if resp.is_error:
            msg = f"Google API HTTP error {resp.status_code}: {_error_message(resp)}"
            logger.warning(
                "telemetry directions_http_error status=%s mode=%s",
                resp.status_code,
                mode,
                extra={"status": resp.status_code, "mode": mode},
            )
            raise DirectionsError(msg)

        try:
            data = resp.json()
        except ValueError as e:
            raise DirectionsError("Directions response was not valid JSON.") from e

        result = _normalize_routes_response(data if isinstance(data, dict) else {})
        logger.info(
            "telemetry directions_fetched mode=%s points=%s steps=%s",
            mode,
            len(result.polyline),
            len(result.steps),
            extra={"mode": mode, "points": len(result.polyline), "steps": len(result.steps)},
        )
        return result
