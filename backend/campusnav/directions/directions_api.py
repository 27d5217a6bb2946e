"""
Google Directions API (GET directions/json) client used for route options.
Returns RouteOption summaries with transit-aware steps; also usable as a DirectionsProvider.
"""
import logging
import time
from typing import Any

import httpx

from campusnav.data.geo import Coordinate
from campusnav.directions.client import MISSING_KEY_MESSAGE
from campusnav.directions.errors import DirectionsConfigError, DirectionsError
from campusnav.directions.models import DirectionsResult, RouteOption, RouteOptionStep, Step

logger = logging.getLogger(__name__)

DIRECTIONS_API_URL = "https://maps.googleapis.com/maps/api/directions/json"
DIRECTIONS_REQUEST_TIMEOUT_SECONDS = 10.0
TRANSIT_MODES_PARAM = "bus|subway|train|tram"

MODE_TO_GOOGLE = {
    "walk": "walking",
    "drive": "driving",
    "transit": "transit",
}
# Provider-protocol modes -> route-option modes
_TRAVEL_MODE_TO_OPTION = {"walking": "walk", "driving": "drive", "transit": "transit"}

_SUMMARIES = {
    "walk": "Walking route (Google API)",
    "drive": "Driving route (Google API)",
    "transit": "Transit route (with schedules)",
}


def _decode(encoded: str | None) -> list[Coordinate]:
    if not encoded:
        return []
    values: list[int] = []
    shift = 0
    acc = 0
    for ch in encoded:
        chunk = ord(ch) - 63
        acc |= (chunk & 0x1F) << shift
        if chunk >= 0x20:
            shift += 5
            continue
        values.append(-((acc + 1) >> 1) if acc & 1 else acc >> 1)
        shift = 0
        acc = 0

    points: list[Coordinate] = []
    lat = lng = 0
    for dlat, dlng in zip(values[0::2], values[1::2]):
        lat += dlat
        lng += dlng
        points.append(Coordinate(lat / 1e5, lng / 1e5))
    return points


def _clean_text(text: Any) -> str:
    """Strip tags and collapse all whitespace runs to single spaces."""
    out = []
    in_tag = False
    for ch in str(text if text is not None else ""):
        if ch == "<":
            in_tag = True
        elif ch == ">" and in_tag:
            in_tag = False
        elif not in_tag:
            out.append(ch)
    return " ".join("".join(out).split())


def _normalize_step(raw: dict[str, Any]) -> RouteOptionStep:
    mode = raw.get("travel_mode")
    distance_text = (raw.get("distance") or {}).get("text") or ""
    duration_text = (raw.get("duration") or {}).get("text") or ""

    if mode == "WALKING":
        return RouteOptionStep(
            kind="walk",
            instruction=_clean_text(raw.get("html_instructions") or "Walk"),
            distance_text=distance_text,
            duration_text=duration_text,
        )

    details = raw.get("transit_details")
    if mode == "TRANSIT" and details:
        line = details.get("line") or {}
        vehicle_type = str((line.get("vehicle") or {}).get("type") or "TRANSIT").lower()
        line_name = line.get("short_name") or line.get("name") or "Line"
        origin_stop = (details.get("departure_stop") or {}).get("name") or ""
        final_stop = (details.get("arrival_stop") or {}).get("name") or ""
        num_stops = details.get("num_stops")
        return RouteOptionStep(
            kind=vehicle_type,
            instruction=f"{vehicle_type.upper()} {line_name}",
            detail=f"{origin_stop} → {final_stop}" if origin_stop and final_stop else "",
            stops_text=f"{num_stops} stops" if isinstance(num_stops, int) else "",
            headsign=_clean_text(details["headsign"]) if details.get("headsign") else "",
            depart_time=(details.get("departure_time") or {}).get("text") or "",
            arrive_time=(details.get("arrival_time") or {}).get("text") or "",
            distance_text=distance_text,
            duration_text=duration_text,
        )

    return RouteOptionStep(
        kind="other",
        instruction=_clean_text(raw.get("html_instructions") or "Step"),
        distance_text=distance_text,
        duration_text=duration_text,
    )


class DirectionsApiClient:
    """Client for the directions/json endpoint. No caching; errors raise DirectionsError."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DIRECTIONS_API_URL,
        timeout: float = DIRECTIONS_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._url = base_url
        self._timeout = timeout
        self._transport = transport

    async def _get_route(self, start: Coordinate, end: Coordinate, mode: str) -> dict[str, Any]:
        if not self._api_key:
            raise DirectionsConfigError(MISSING_KEY_MESSAGE)
        google_mode = MODE_TO_GOOGLE.get(mode)
        if google_mode is None:
            raise DirectionsError(f"Unsupported mode: {mode}")

        params: dict[str, Any] = {
            "origin": f"{start.latitude},{start.longitude}",
            "destination": f"{end.latitude},{end.longitude}",
            "mode": google_mode,
            "departure_time": int(time.time()),
            "key": self._api_key,
        }
        if mode == "transit":
            params["transit_mode"] = TRANSIT_MODES_PARAM

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._url, params=params)
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("telemetry directions_api_error mode=%s error=%s", mode, str(e))
            raise DirectionsError(f"Directions request failed: {e}") from e

        status = data.get("status") if isinstance(data, dict) else None
        routes = data.get("routes") if isinstance(data, dict) else None
        if status != "OK" or not routes:
            error_message = data.get("error_message", "") if isinstance(data, dict) else ""
            logger.warning("telemetry directions_api_status status=%s mode=%s", status, mode)
            raise DirectionsError(f"Directions API: {status} {error_message}".strip())
        return routes[0]

    async def fetch_route(self, start: Coordinate, end: Coordinate, mode: str) -> RouteOption:
        """Route summary for mode in {"walk", "drive", "transit"}."""
        route = await self._get_route(start, end, mode)
        leg = (route.get("legs") or [{}])[0]

        distance_meters = (leg.get("distance") or {}).get("value") or 0
        duration = leg.get("duration") or {}
        if mode == "drive" and leg.get("duration_in_traffic"):
            duration = leg["duration_in_traffic"]
        duration_seconds = duration.get("value") or 0

        return RouteOption(
            mode=mode,
            distance_meters=distance_meters,
            duration_minutes=max(1, round(duration_seconds / 60)),
            summary=_SUMMARIES.get(mode, "Route (Google API)"),
            polyline=_decode((route.get("overview_polyline") or {}).get("points")),
            steps=[_normalize_step(s) for s in leg.get("steps") or [] if isinstance(s, dict)],
        )

    async def fetch_directions(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        mode: str = "walking",
    ) -> DirectionsResult | None:
        """Same contract as RoutesClient.fetch_directions, backed by directions/json."""
        if origin is None or destination is None:
            return None
        option_mode = _TRAVEL_MODE_TO_OPTION.get(mode, "walk")
        route = await self._get_route(origin, destination, option_mode)
        leg = (route.get("legs") or [{}])[0]
        steps = [_normalize_step(s) for s in leg.get("steps") or [] if isinstance(s, dict)]
        return DirectionsResult(
            polyline=_decode((route.get("overview_polyline") or {}).get("points")),
            steps=[
                Step(id=f"step-{i}", instruction=s.instruction, distance=s.distance_text, duration=s.duration_text)
                for i, s in enumerate(steps)
            ],
            distance_text=(leg.get("distance") or {}).get("text") or "",
            duration_text=(leg.get("duration") or {}).get("text") or "",
        )
