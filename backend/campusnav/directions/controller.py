"""
Directions fetch controller: an explicit state machine over one origin -> destination -> mode route.

    idle -> debouncing -> fetching -> success | failure

Input changes restart a cancelable debounce task; only the last change within the window fetches.
Every fetch takes a monotonically increasing request token and only the latest token may write
state, so a slow stale response never overwrites a newer one. Live position updates refetch
immediately (no debounce) when the user strays from the current route.

Controllers must be driven from inside a running asyncio event loop.
"""
import asyncio
import logging
import math
from typing import Any, Callable, Generic, NamedTuple, TypeVar

from campusnav.data.geo import Coordinate, min_distance_to_polyline
from campusnav.directions.errors import DirectionsError
from campusnav.directions.models import TRAVEL_MODES, DirectionsProvider, DirectionsState, FetchPhase, RouteSegment
from campusnav.monitoring.metrics import record_provider_call

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.5
RECALC_DISTANCE_M = 50.0
FETCH_TIMEOUT_SECONDS = 10.0

NO_ROUTE_MESSAGE = "No route found."
FETCH_FAILED_MESSAGE = "Failed to fetch directions."
TIMEOUT_MESSAGE = "Directions request timed out."

StateT = TypeVar("StateT", bound=DirectionsState)
RequestT = TypeVar("RequestT")
Listener = Callable[[Any], None]


class DebouncedController(Generic[StateT, RequestT]):
    """
    Shared debounce / request-token / disposal machinery.
    Subclasses implement _fetch (returns state changes for success, raises on failure)
    and may override _on_success.
    """

    fallback_error = FETCH_FAILED_MESSAGE

    def __init__(self, initial_state: StateT, debounce_seconds: float, fetch_timeout_seconds: float):
        self._initial_state = initial_state
        self._state = initial_state
        self._debounce_seconds = debounce_seconds
        self._fetch_timeout_seconds = fetch_timeout_seconds
        self._listeners: list[Listener] = []
        self._debounce_task: asyncio.Task | None = None
        self._fetch_tasks: set[asyncio.Task] = set()
        self._request_seq = 0
        self._disposed = False

    @property
    def state(self) -> StateT:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with every new state. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        if self._disposed:
            return
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _failure_changes(self, message: str) -> dict[str, Any]:
        return {
            "phase": FetchPhase.FAILURE,
            "route": [],
            "steps": [],
            "distance_text": "",
            "duration_text": "",
            "error": message,
        }

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def _reset(self) -> None:
        """Go idle: cancel the pending timer, orphan in-flight requests, clear all output."""
        self._cancel_debounce()
        self._request_seq += 1
        initial = self._initial_state
        self._set_state(**{name: getattr(initial, name) for name in type(initial).model_fields})

    def _schedule(self, request: RequestT) -> None:
        if self._disposed:
            return
        self._cancel_debounce()
        self._set_state(phase=FetchPhase.DEBOUNCING)
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounce(request))

    async def _debounce(self, request: RequestT) -> None:
        await asyncio.sleep(self._debounce_seconds)
        self._debounce_task = None
        self._start(request)

    def _start(self, request: RequestT) -> None:
        if self._disposed:
            return
        self._request_seq += 1
        task = asyncio.get_running_loop().create_task(self._run(self._request_seq, request))
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    def _is_current(self, token: int) -> bool:
        return not self._disposed and token == self._request_seq

    async def _run(self, token: int, request: RequestT) -> None:
        # Superseded before the task got to run
        if not self._is_current(token):
            return
        self._set_state(phase=FetchPhase.FETCHING, loading=True, error=None)
        try:
            changes = await asyncio.wait_for(self._fetch(request), timeout=self._fetch_timeout_seconds)
        except asyncio.TimeoutError:
            record_provider_call(ok=False)
            if self._is_current(token):
                logger.warning("telemetry directions_fetch_timeout token=%s", token, extra={"token": token})
                self._set_state(**self._failure_changes(TIMEOUT_MESSAGE))
        except Exception as e:
            record_provider_call(ok=False)
            if self._is_current(token):
                logger.warning(
                    "telemetry directions_fetch_failed token=%s error=%s",
                    token,
                    str(e),
                    extra={"token": token, "error": str(e)},
                )
                self._set_state(**self._failure_changes(str(e) or self.fallback_error))
            else:
                logger.info("telemetry directions_stale_failure_dropped token=%s", token)
        else:
            record_provider_call(ok=True)
            if self._is_current(token):
                self._set_state(phase=FetchPhase.SUCCESS, error=None, **changes)
                self._on_success(request)
            else:
                logger.info("telemetry directions_stale_response_dropped token=%s", token, extra={"token": token})
        finally:
            if self._is_current(token):
                self._set_state(loading=False)

    async def _fetch(self, request: RequestT) -> dict[str, Any]:
        raise NotImplementedError

    def _on_success(self, request: RequestT) -> None:
        pass

    async def settle(self) -> None:
        """Wait until no debounce timer or fetch is pending."""
        while True:
            pending = [t for t in (self._debounce_task, *self._fetch_tasks) if t is not None and not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def dispose(self) -> None:
        """Cancel the pending timer; responses still in flight are ignored."""
        self._cancel_debounce()
        self._disposed = True
        self._listeners.clear()


class FetchRequest(NamedTuple):
    origin: Coordinate
    destination: Coordinate
    mode: str


class DirectionsController(DebouncedController[DirectionsState, FetchRequest]):
    """Point-to-point directions for one origin/destination pairing."""

    def __init__(
        self,
        provider: DirectionsProvider,
        *,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        recalc_distance_m: float = RECALC_DISTANCE_M,
        fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS,
    ):
        super().__init__(DirectionsState(), debounce_seconds, fetch_timeout_seconds)
        self._provider = provider
        self._recalc_distance_m = recalc_distance_m
        self._inputs: FetchRequest | None = None
        # Only written after a successful fetch; used for deviation recalculation.
        self._last_fetch: FetchRequest | None = None

    @property
    def last_fetch(self) -> FetchRequest | None:
        return self._last_fetch

    def set_request(
        self,
        origin: Coordinate | None,
        destination: Coordinate | None,
        travel_mode: str = "walking",
    ) -> None:
        """
        Update inputs. Missing origin or destination -> idle; any other change restarts the debounce.
        Raises ValueError for a travel mode outside walking/driving/transit.
        """
        if origin is None or destination is None:
            self._inputs = None
            self._reset()
            return
        if travel_mode not in TRAVEL_MODES:
            raise ValueError(f"Unsupported travel mode: {travel_mode}")
        request = FetchRequest(origin, destination, travel_mode)
        if request == self._inputs:
            return
        self._inputs = request
        self._schedule(request)

    def update_user_position(self, position: Coordinate | None) -> None:
        """Refetch from position, skipping the debounce, when it is off the current route."""
        if position is None or not self._state.route or self._last_fetch is None:
            return
        points = [p for segment in self._state.route for p in segment.coordinates]
        dist = min_distance_to_polyline(position, points)
        if math.isinf(dist) or dist <= self._recalc_distance_m:
            return
        logger.info(
            "telemetry route_deviation distance_m=%.1f threshold_m=%.1f",
            dist,
            self._recalc_distance_m,
            extra={"distance_m": dist, "threshold_m": self._recalc_distance_m},
        )
        self._start(FetchRequest(position, self._last_fetch.destination, self._last_fetch.mode))

    async def _fetch(self, request: FetchRequest) -> dict[str, Any]:
        result = await self._provider.fetch_directions(request.origin, request.destination, request.mode)
        if not result:
            raise DirectionsError(NO_ROUTE_MESSAGE)
        return {
            "route": [RouteSegment(id="standard", coordinates=result.polyline, mode=request.mode)],
            "steps": result.steps,
            "distance_text": result.distance_text,
            "duration_text": result.duration_text,
        }

    def _on_success(self, request: FetchRequest) -> None:
        self._last_fetch = request
