"""
Route options with local fallback: shuttle is always estimated locally, other modes
use the directions provider and fall back to a straight-line estimate on any error.
"""
import logging
from typing import Protocol

from campusnav.data.geo import Coordinate, distance_meters
from campusnav.directions.models import RouteOption

logger = logging.getLogger(__name__)

# Average speeds for straight-line estimates
SPEED_KMH = {
    "walk": 5.0,
    "drive": 25.0,
    "transit": 18.0,
    "shuttle": 22.0,
}
DEFAULT_SPEED_KMH = 15.0

SHUTTLE_SUMMARY = "Shuttle option (handled separately)"
FALLBACK_SUMMARY = "Fallback estimate (API error)"


class RouteOptionProvider(Protocol):
    async def fetch_route(self, start: Coordinate, end: Coordinate, mode: str) -> RouteOption: ...


def estimate_duration_minutes(distance_m: float, speed_kmh: float) -> int:
    meters_per_minute = speed_kmh * 1000.0 / 60.0
    if meters_per_minute <= 0:
        return 1
    return max(1, round(distance_m / meters_per_minute))


def _estimate(start: Coordinate, end: Coordinate, mode: str, summary: str, error: str | None = None) -> RouteOption:
    dist_m = distance_meters(start, end)
    return RouteOption(
        mode=mode,
        distance_meters=dist_m,
        duration_minutes=estimate_duration_minutes(dist_m, SPEED_KMH.get(mode, DEFAULT_SPEED_KMH)),
        summary=summary,
        polyline=[start, end],
        steps=[],
        error=error,
    )


async def calculate_route(
    start: Coordinate | None,
    end: Coordinate | None,
    mode: str | None,
    client: RouteOptionProvider | None,
) -> RouteOption:
    if start is None or end is None:
        raise ValueError("calculate_route requires start and end")
    if not mode:
        raise ValueError("calculate_route requires mode")

    if mode == "shuttle":
        return _estimate(start, end, "shuttle", SHUTTLE_SUMMARY)

    try:
        if client is None:
            raise RuntimeError("Directions provider not configured.")
        return await client.fetch_route(start, end, mode)
    except Exception as e:
        logger.warning(
            "telemetry route_estimate_fallback mode=%s error=%s",
            mode,
            str(e),
            extra={"mode": mode, "error": str(e)},
        )
        return _estimate(start, end, mode, FALLBACK_SUMMARY, error=str(e) or type(e).__name__)
