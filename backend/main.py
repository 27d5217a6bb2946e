import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from settings import get_settings
from campusnav.data.geo import Coordinate
from campusnav.data.shuttle_info import SHUTTLE_SERVICE_INFO, SHUTTLE_STOPS
from campusnav.directions.client import GOOGLE_MODES, RoutesClient
from campusnav.directions.controller import DirectionsController
from campusnav.directions.directions_api import DirectionsApiClient
from campusnav.directions.errors import DirectionsConfigError, DirectionsError, NoRouteError
from campusnav.directions.estimate import SPEED_KMH, calculate_route
from campusnav.directions.models import DirectionsResponse, RouteOption
from campusnav.itinerary.composer import ItineraryError, ShuttleItinerary, ShuttleItineraryComposer
from campusnav.itinerary.controller import ShuttleDirectionsController
from campusnav.middleware import RequestLoggingMiddleware
from campusnav.monitoring import get_metrics
from campusnav.sessions import (
    DirectionsSessionMessage,
    ShuttleSessionMessage,
    apply_directions_message,
    apply_shuttle_message,
    run_session,
)
from campusnav.shuttle.models import (
    ShuttleDeparturesResponse,
    ShuttleStatusResponse,
    ShuttleStopInfo,
    ShuttleStopsResponse,
)
from campusnav.shuttle.schedule import get_next_departures, get_schedule_key, is_shuttle_operating

settings = get_settings()

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

# Input validation bounds
LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0
DEPARTURES_COUNT_MIN, DEPARTURES_COUNT_MAX = 1, 20


def _validate_lat_lng(lat: float, lng: float, prefix: str = "") -> None:
    if not (LAT_MIN <= lat <= LAT_MAX):
        raise HTTPException(status_code=400, detail=f"{prefix}lat must be between {LAT_MIN} and {LAT_MAX}")
    if not (LNG_MIN <= lng <= LNG_MAX):
        raise HTTPException(status_code=400, detail=f"{prefix}lng must be between {LNG_MIN} and {LNG_MAX}")


def _endpoints(orig_lat: float, orig_lng: float, dest_lat: float, dest_lng: float) -> tuple[Coordinate, Coordinate]:
    _validate_lat_lng(orig_lat, orig_lng, "orig_")
    _validate_lat_lng(dest_lat, dest_lng, "dest_")
    return Coordinate(orig_lat, orig_lng), Coordinate(dest_lat, dest_lng)


def _validate_campus(campus: str) -> str:
    campus = (campus or "").strip().upper()
    if campus not in SHUTTLE_STOPS:
        raise HTTPException(status_code=400, detail=f"campus must be one of: {', '.join(SHUTTLE_STOPS)}.")
    return campus


def _shuttle_tz() -> ZoneInfo:
    return ZoneInfo(settings.shuttle_timezone)


def _now() -> datetime:
    return datetime.now(_shuttle_tz())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.google_maps_api_key:
        logger.warning("telemetry startup google_maps_api_key=missing directions will return 503")
    yield


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
# Clients raise DirectionsConfigError per call when the key is missing.
app.state.routes_client = RoutesClient(
    api_key=settings.google_maps_api_key,
    timeout=settings.directions_timeout_seconds,
)
app.state.directions_api_client = DirectionsApiClient(
    api_key=settings.google_maps_api_key,
    timeout=settings.directions_timeout_seconds,
)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500). Skip validation/HTTP errors."""
    from fastapi.exceptions import RequestValidationError
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    logger.info("telemetry route=health")
    return {"status": "ok"}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Request counts, directions fetch outcomes and uptime."""
    return get_metrics()


# --- Shuttle schedule ---


@app.get("/shuttle/stops", response_model=ShuttleStopsResponse)
def shuttle_stops(request: Request):
    return ShuttleStopsResponse(
        stops=[
            ShuttleStopInfo(
                id=s.id,
                campus_id=s.campus_id,
                name=s.name,
                lat=s.coords.latitude,
                lng=s.coords.longitude,
                address=s.address,
            )
            for s in SHUTTLE_STOPS.values()
        ]
    )


@app.get("/shuttle/status", response_model=ShuttleStatusResponse)
def shuttle_status(request: Request, on: date | None = None):
    """Whether the shuttle runs on a date (default: today, campus local time)."""
    day = on or _now().date()
    return ShuttleStatusResponse(
        on=day,
        operating=is_shuttle_operating(day),
        schedule_key=get_schedule_key(day),
        service_name=SHUTTLE_SERVICE_INFO["name"],
        notes=SHUTTLE_SERVICE_INFO["notes"],
    )


@app.get("/shuttle/departures", response_model=ShuttleDeparturesResponse)
def shuttle_departures(request: Request, campus: str = "SGW", count: int = 3, at: str = ""):
    """
    Next departures from a campus. `at` is ISO 8601; naive times are campus local time.
    Defaults to now.
    """
    campus = _validate_campus(campus)
    if not (DEPARTURES_COUNT_MIN <= count <= DEPARTURES_COUNT_MAX):
        raise HTTPException(
            status_code=400,
            detail=f"count must be between {DEPARTURES_COUNT_MIN} and {DEPARTURES_COUNT_MAX}",
        )
    if at:
        try:
            when = datetime.fromisoformat(at.replace("Z", "+00:00"))
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid at. Use ISO 8601 (e.g. 2026-02-23T09:00:00).") from e
        when = when.replace(tzinfo=_shuttle_tz()) if when.tzinfo is None else when.astimezone(_shuttle_tz())
    else:
        when = _now()
    logger.info("telemetry route=shuttle_departures campus=%s count=%s", campus, count)
    return ShuttleDeparturesResponse(campus=campus, departures=get_next_departures(campus, count, when))


# --- Directions ---


@app.get("/directions", response_model=DirectionsResponse)
@limiter.limit(settings.directions_rate_limit)
async def directions(
    request: Request,
    orig_lat: float,
    orig_lng: float,
    dest_lat: float,
    dest_lng: float,
    mode: str = "walking",
):
    """Single route from the Routes API: decoded polyline, plain-text steps, display totals."""
    origin, destination = _endpoints(orig_lat, orig_lng, dest_lat, dest_lng)
    if mode not in GOOGLE_MODES:
        raise HTTPException(status_code=400, detail=f"mode must be one of: {', '.join(GOOGLE_MODES)}.")
    logger.info("telemetry route=directions mode=%s", mode)
    client: RoutesClient = request.app.state.routes_client
    try:
        result = await client.fetch_directions(origin, destination, mode)
    except DirectionsConfigError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except NoRouteError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except DirectionsError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return DirectionsResponse(
        mode=mode,
        coords=result.polyline,
        steps=result.steps,
        distance_text=result.distance_text,
        duration_text=result.duration_text,
    )


@app.get("/directions/options", response_model=RouteOption)
@limiter.limit(settings.directions_rate_limit)
async def directions_options(
    request: Request,
    orig_lat: float,
    orig_lng: float,
    dest_lat: float,
    dest_lng: float,
    mode: str = "walk",
):
    """Route option for walk/drive/transit/shuttle; falls back to a local estimate on provider errors."""
    start, end = _endpoints(orig_lat, orig_lng, dest_lat, dest_lng)
    if mode not in SPEED_KMH:
        raise HTTPException(status_code=400, detail=f"mode must be one of: {', '.join(SPEED_KMH)}.")
    logger.info("telemetry route=directions_options mode=%s", mode)
    return await calculate_route(start, end, mode, request.app.state.directions_api_client)


@app.get("/itinerary/shuttle", response_model=ShuttleItinerary)
@limiter.limit(settings.directions_rate_limit)
async def shuttle_itinerary(
    request: Request,
    orig_lat: float,
    orig_lng: float,
    dest_lat: float,
    dest_lng: float,
    campus: str = "SGW",
):
    """Walk -> shuttle -> walk itinerary leaving from `campus`, aligned to the next departure."""
    origin, destination = _endpoints(orig_lat, orig_lng, dest_lat, dest_lng)
    campus = _validate_campus(campus)
    composer = ShuttleItineraryComposer(request.app.state.routes_client, clock=_now)
    try:
        return await composer.compose(origin, destination, campus)
    except ItineraryError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DirectionsConfigError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except DirectionsError as e:
        logger.warning("telemetry shuttle_itinerary_error campus=%s error=%s", campus, str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e


# --- Live sessions (debounced fetch + deviation recalculation) ---


@app.websocket("/ws/directions")
async def directions_session(websocket: WebSocket):
    controller = DirectionsController(
        websocket.app.state.routes_client,
        debounce_seconds=settings.debounce_ms / 1000.0,
        recalc_distance_m=settings.recalc_distance_m,
        fetch_timeout_seconds=settings.directions_timeout_seconds,
    )
    await run_session(websocket, controller, DirectionsSessionMessage, apply_directions_message)


@app.websocket("/ws/shuttle")
async def shuttle_session(websocket: WebSocket):
    composer = ShuttleItineraryComposer(websocket.app.state.routes_client, clock=_now)
    controller = ShuttleDirectionsController(composer, debounce_seconds=settings.debounce_ms / 1000.0)
    await run_session(websocket, controller, ShuttleSessionMessage, apply_shuttle_message)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
