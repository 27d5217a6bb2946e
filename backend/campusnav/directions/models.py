"""Pydantic models for routes, steps and directions controller state."""
from enum import Enum
from typing import Literal, Protocol, get_args

from pydantic import BaseModel, ConfigDict

from campusnav.data.geo import Coordinate

TravelMode = Literal["walking", "driving", "transit"]
TRAVEL_MODES = get_args(TravelMode)
SegmentMode = Literal["walking", "driving", "transit", "shuttle"]


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction: str
    distance: str = ""
    duration: str = ""
    id: str | None = None
    leg: str | None = None  # "walk_to_stop" | "shuttle" | "walk_from_stop" in shuttle itineraries
    is_shuttle_step: bool = False
    is_last_bus: bool = False


class RouteSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    coordinates: list[Coordinate]
    mode: SegmentMode


class DirectionsResult(BaseModel):
    """One successful provider response, normalized."""

    model_config = ConfigDict(frozen=True)

    polyline: list[Coordinate]
    steps: list[Step]
    distance_text: str
    duration_text: str


class FetchPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILURE = "failure"


class DirectionsState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: FetchPhase = FetchPhase.IDLE
    route: list[RouteSegment] = []
    steps: list[Step] = []
    distance_text: str = ""
    duration_text: str = ""
    loading: bool = False
    error: str | None = None


class DirectionsProvider(Protocol):
    async def fetch_directions(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        mode: str = "walking",
    ) -> DirectionsResult | None: ...


class DirectionsResponse(BaseModel):
    """GET /directions payload."""

    mode: TravelMode
    coords: list[Coordinate]
    steps: list[Step]
    distance_text: str
    duration_text: str


class RouteOptionStep(BaseModel):
    kind: str  # "walk", vehicle type ("bus", "subway", ...) or "other"
    instruction: str
    detail: str = ""
    stops_text: str = ""
    headsign: str = ""
    depart_time: str = ""
    arrive_time: str = ""
    distance_text: str = ""
    duration_text: str = ""


class RouteOption(BaseModel):
    """Route summary for the route-options screen (provider result or local estimate)."""

    mode: str  # "walk" | "drive" | "transit" | "shuttle"
    distance_meters: float
    duration_minutes: int
    summary: str
    polyline: list[Coordinate]
    steps: list[RouteOptionStep] = []
    error: str | None = None
