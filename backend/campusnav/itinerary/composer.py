"""
Shuttle itinerary composition: walk to the origin-campus stop, ride the scheduled shuttle,
walk from the destination-campus stop.

The walk to the stop is fetched first because its duration decides when the user reaches
the stop; the departure lookup uses that arrival time. The shuttle leg (routed as driving)
and the final walk are then fetched concurrently. Any failure fails the whole itinerary.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from pydantic import BaseModel

from campusnav.data.geo import Coordinate
from campusnav.directions.models import DirectionsProvider, RouteSegment, Step
from campusnav.itinerary.formatting import (
    drop_trailing_destination_step,
    format_distance,
    format_duration,
    parse_distance_to_metres,
    parse_duration_to_seconds,
)
from campusnav.shuttle.models import ScheduleEntry
from campusnav.shuttle.schedule import get_next_departure, get_shuttle_stop, is_shuttle_operating, other_campus

logger = logging.getLogger(__name__)

STOP_INFO_MISSING = "Shuttle stop info missing."
NOT_OPERATING_TODAY = "Shuttle does not operate today."
WALK_TO_STOP_FAILED = "Failed to compute route to shuttle stop."
NO_MORE_BUSES = "No more shuttle buses today after you arrive."
LEGS_FAILED = "Failed to fetch directions."


class ItineraryError(RuntimeError):
    """A precondition or leg failure; the message is shown to the user as-is."""


class ShuttleItinerary(BaseModel):
    route: list[RouteSegment]
    steps: list[Step]
    distance_text: str
    duration_text: str
    next_departure: ScheduleEntry
    wait_seconds: float


class ShuttleItineraryComposer:
    def __init__(self, provider: DirectionsProvider, clock: Callable[[], datetime] = datetime.now):
        self._provider = provider
        self._clock = clock

    async def compose(self, origin: Coordinate, destination: Coordinate, origin_campus: str) -> ShuttleItinerary:
        """
        Build the three-leg itinerary. Raises ItineraryError for precondition and leg failures;
        provider errors (DirectionsError) propagate unchanged.
        """
        now = self._clock()
        origin_stop = get_shuttle_stop(origin_campus)
        dest_stop = get_shuttle_stop(other_campus(origin_campus))
        if origin_stop is None or dest_stop is None:
            raise ItineraryError(STOP_INFO_MISSING)
        if not is_shuttle_operating(now):
            raise ItineraryError(NOT_OPERATING_TODAY)

        walk_to_stop = await self._provider.fetch_directions(origin, origin_stop.coords, "walking")
        if not walk_to_stop:
            raise ItineraryError(WALK_TO_STOP_FAILED)

        walk_to_stop_s = parse_duration_to_seconds(walk_to_stop.duration_text)
        arrival_at_stop = now + timedelta(seconds=walk_to_stop_s)
        departure = get_next_departure(origin_campus, arrival_at_stop)
        if departure is None:
            raise ItineraryError(NO_MORE_BUSES)

        shuttle_leg, walk_from_stop = await asyncio.gather(
            self._provider.fetch_directions(origin_stop.coords, dest_stop.coords, "driving"),
            self._provider.fetch_directions(dest_stop.coords, destination, "walking"),
        )
        if not shuttle_leg or not walk_from_stop:
            raise ItineraryError(LEGS_FAILED)

        ride_instruction = f"Ride shuttle from {origin_stop.name} to {dest_stop.name} (departs {departure.label}"
        ride_instruction += ", last bus)" if departure.is_last_bus else ")"
        steps = [
            *(s.model_copy(update={"leg": "walk_to_stop"}) for s in drop_trailing_destination_step(walk_to_stop.steps)),
            Step(
                instruction=ride_instruction,
                distance=shuttle_leg.distance_text,
                duration=shuttle_leg.duration_text,
                leg="shuttle",
                is_shuttle_step=True,
                is_last_bus=departure.is_last_bus,
            ),
            Step(instruction=f"Exit shuttle at {dest_stop.name}", is_shuttle_step=True),
            *(
                s.model_copy(update={"leg": "walk_from_stop"})
                for s in drop_trailing_destination_step(walk_from_stop.steps)
            ),
        ]

        total_m = (
            parse_distance_to_metres(walk_to_stop.distance_text)
            + parse_distance_to_metres(shuttle_leg.distance_text)
            + parse_distance_to_metres(walk_from_stop.distance_text)
        )
        wait_s = max(0.0, (departure.departure_time - arrival_at_stop).total_seconds())
        total_s = (
            walk_to_stop_s
            + wait_s
            + parse_duration_to_seconds(shuttle_leg.duration_text)
            + parse_duration_to_seconds(walk_from_stop.duration_text)
        )

        logger.info(
            "telemetry shuttle_itinerary_composed campus=%s departs=%s wait_s=%.0f total_s=%.0f",
            origin_campus,
            departure.label,
            wait_s,
            total_s,
            extra={"campus": origin_campus, "departs": departure.label, "wait_s": wait_s, "total_s": total_s},
        )
        return ShuttleItinerary(
            route=[
                RouteSegment(id="leg1_walk", coordinates=walk_to_stop.polyline, mode="walking"),
                RouteSegment(id="leg2_shuttle", coordinates=shuttle_leg.polyline, mode="shuttle"),
                RouteSegment(id="leg3_walk", coordinates=walk_from_stop.polyline, mode="walking"),
            ],
            steps=steps,
            distance_text=format_distance(total_m),
            duration_text=format_duration(total_s),
            next_departure=departure,
            wait_seconds=wait_s,
        )
