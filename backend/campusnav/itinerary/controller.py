"""Debounced shuttle directions: recomposes the itinerary while shuttle mode is enabled."""
from typing import Any, NamedTuple

from campusnav.data.geo import Coordinate
from campusnav.directions.controller import DEBOUNCE_SECONDS, DebouncedController
from campusnav.directions.models import DirectionsState
from campusnav.itinerary.composer import ShuttleItineraryComposer
from campusnav.shuttle.models import ScheduleEntry

# Three provider calls, two of them sequential.
COMPOSE_TIMEOUT_SECONDS = 30.0


class ShuttleDirectionsState(DirectionsState):
    next_departure: ScheduleEntry | None = None


class ShuttleRequest(NamedTuple):
    origin: Coordinate
    destination: Coordinate
    origin_campus: str


class ShuttleDirectionsController(DebouncedController[ShuttleDirectionsState, ShuttleRequest]):
    fallback_error = "Could not compute shuttle directions."

    def __init__(
        self,
        composer: ShuttleItineraryComposer,
        *,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        fetch_timeout_seconds: float = COMPOSE_TIMEOUT_SECONDS,
    ):
        super().__init__(ShuttleDirectionsState(), debounce_seconds, fetch_timeout_seconds)
        self._composer = composer
        self._inputs: tuple | None = None
        self._user_position: Coordinate | None = None

    def set_request(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        origin_campus: str | None,
        enabled: bool = True,
    ) -> None:
        """Disabled or incomplete inputs -> idle (clears next_departure too)."""
        inputs = (enabled, origin, destination, origin_campus)
        if not enabled or origin is None or destination is None or not origin_campus:
            self._inputs = inputs
            self._reset()
            return
        if inputs == self._inputs:
            return
        self._inputs = inputs
        self._schedule(ShuttleRequest(origin, destination, origin_campus))

    def update_user_position(self, position: Coordinate | None) -> None:
        """Recorded only; shuttle itineraries are not recalculated on deviation."""
        self._user_position = position

    def _failure_changes(self, message: str) -> dict[str, Any]:
        return {**super()._failure_changes(message), "next_departure": None}

    async def _fetch(self, request: ShuttleRequest) -> dict[str, Any]:
        itinerary = await self._composer.compose(request.origin, request.destination, request.origin_campus)
        return {
            "route": itinerary.route,
            "steps": itinerary.steps,
            "distance_text": itinerary.distance_text,
            "duration_text": itinerary.duration_text,
            "next_departure": itinerary.next_departure,
        }
