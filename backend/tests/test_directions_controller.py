"""Unit tests for the debounced directions controller: debounce, request tokens, deviation refetch."""
import asyncio
from unittest.mock import patch

import pytest

from campusnav.data.geo import Coordinate
from campusnav.directions.controller import (
    FETCH_FAILED_MESSAGE,
    NO_ROUTE_MESSAGE,
    TIMEOUT_MESSAGE,
    DirectionsController,
)
from campusnav.directions.models import DirectionsResult, FetchPhase, Step

ORIGIN = Coordinate(45.4970, -73.5790)
DEST_A = Coordinate(45.4950, -73.5780)
DEST_B = Coordinate(45.4581, -73.6393)
DEBOUNCE = 0.01


def _result(label="first", polyline=(ORIGIN, DEST_A)):
    return DirectionsResult(
        polyline=list(polyline),
        steps=[Step(id="step-0", instruction=f"Head west ({label})")],
        distance_text=f"{label} 1 km",
        duration_text="12 mins",
    )


def _controller(provider, **kwargs):
    return DirectionsController(provider, debounce_seconds=DEBOUNCE, **kwargs)


def test_debounced_fetch_succeeds(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A, "walking")
        assert controller.state.phase == FetchPhase.DEBOUNCING
        assert provider.calls == []
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    state = controller.state
    assert provider.calls == [(ORIGIN, DEST_A, "walking")]
    assert state.phase == FetchPhase.SUCCESS
    assert state.loading is False
    assert state.error is None
    assert state.route[0].id == "standard"
    assert state.route[0].mode == "walking"
    assert state.route[0].coordinates == [ORIGIN, DEST_A]
    assert state.steps[0].instruction == "Head west (first)"
    assert state.distance_text == "first 1 km"
    assert controller.last_fetch == (ORIGIN, DEST_A, "walking")


def test_rapid_changes_fetch_only_the_last(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A, "walking")
        controller.set_request(ORIGIN, DEST_B, "walking")
        controller.set_request(ORIGIN, DEST_B, "driving")
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    assert provider.calls == [(ORIGIN, DEST_B, "driving")]
    assert controller.state.route[0].mode == "driving"


def test_stale_response_does_not_overwrite_newer(make_provider):
    async def handler(origin, destination, mode):
        if destination == DEST_A:
            await asyncio.sleep(0.2)
            return _result("stale")
        return _result("fresh")

    provider = make_provider(handler)

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await asyncio.sleep(DEBOUNCE * 5)
        assert controller.state.phase == FetchPhase.FETCHING
        controller.set_request(ORIGIN, DEST_B)
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    assert len(provider.calls) == 2
    assert controller.state.distance_text == "fresh 1 km"
    assert controller.last_fetch.destination == DEST_B


def test_stale_failure_is_ignored(make_provider):
    async def handler(origin, destination, mode):
        if destination == DEST_A:
            await asyncio.sleep(0.2)
            raise RuntimeError("old request failed")
        return _result("fresh")

    provider = make_provider(handler)

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await asyncio.sleep(DEBOUNCE * 5)
        controller.set_request(ORIGIN, DEST_B)
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.SUCCESS
    assert state.error is None


def test_missing_endpoint_goes_idle_and_clears(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.set_request(None, DEST_A)
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.IDLE
    assert state.route == []
    assert state.steps == []
    assert state.distance_text == ""
    assert state.duration_text == ""
    assert state.error is None
    assert state.loading is False


def test_idle_orphans_in_flight_request(make_provider):
    async def handler(origin, destination, mode):
        await asyncio.sleep(0.1)
        return _result()

    provider = make_provider(handler)

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await asyncio.sleep(DEBOUNCE * 5)
        controller.set_request(ORIGIN, None)
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.IDLE
    assert state.route == []


def test_empty_result_is_no_route(make_provider):
    provider = make_provider(lambda o, d, m: None)

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.FAILURE
    assert state.error == NO_ROUTE_MESSAGE
    assert state.route == []
    assert state.loading is False


def test_provider_error_message_is_surfaced(make_provider):
    def handler(origin, destination, mode):
        raise RuntimeError("Google API HTTP error 403: denied")

    async def scenario():
        controller = _controller(make_provider(handler))
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        return controller

    assert asyncio.run(scenario()).state.error == "Google API HTTP error 403: denied"


def test_error_without_message_uses_fallback(make_provider):
    def handler(origin, destination, mode):
        raise RuntimeError()

    async def scenario():
        controller = _controller(make_provider(handler))
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        return controller

    assert asyncio.run(scenario()).state.error == FETCH_FAILED_MESSAGE


def test_failure_clears_previous_route(make_provider):
    def handler(origin, destination, mode):
        if destination == DEST_B:
            raise RuntimeError("boom")
        return _result()

    async def scenario():
        controller = _controller(make_provider(handler))
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.set_request(ORIGIN, DEST_B)
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    assert controller.state.route == []
    assert controller.state.steps == []
    assert controller.state.distance_text == ""
    # the last successful request is kept for deviation refetches
    assert controller.last_fetch.destination == DEST_A


def test_timeout_fails_request(make_provider):
    async def handler(origin, destination, mode):
        await asyncio.sleep(1)
        return _result()

    async def scenario():
        controller = _controller(make_provider(handler), fetch_timeout_seconds=0.05)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.FAILURE
    assert state.error == TIMEOUT_MESSAGE


def test_deviation_beyond_threshold_refetches_from_position(make_provider):
    provider = make_provider(lambda o, d, m: _result())
    far = Coordinate(45.6, -73.7)
    phases = []

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A, "driving")
        await controller.settle()
        controller.subscribe(lambda s: phases.append(s.phase))
        controller.update_user_position(far)
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    assert len(provider.calls) == 2
    assert provider.calls[-1] == (far, DEST_A, "driving")
    assert controller.last_fetch == (far, DEST_A, "driving")
    assert FetchPhase.DEBOUNCING not in phases
    assert phases[0] == FetchPhase.FETCHING


def test_position_near_route_does_not_refetch(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.update_user_position(Coordinate(45.4970001, -73.5790001))
        controller.update_user_position(None)
        await controller.settle()

    asyncio.run(scenario())
    assert len(provider.calls) == 1


def test_deviation_needs_a_route(make_provider):
    provider = make_provider(lambda o, d, m: _result(polyline=()))

    async def scenario():
        controller = _controller(provider)
        controller.update_user_position(Coordinate(45.6, -73.7))
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.update_user_position(Coordinate(45.6, -73.7))
        await controller.settle()

    asyncio.run(scenario())
    assert len(provider.calls) == 1


def test_unchanged_inputs_do_not_refetch(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.set_request(ORIGIN, DEST_A)
        assert controller.state.phase == FetchPhase.SUCCESS
        await controller.settle()

    asyncio.run(scenario())
    assert len(provider.calls) == 1


def test_subscribers_see_each_phase(make_provider):
    provider = make_provider(lambda o, d, m: _result())
    seen = []

    async def scenario():
        controller = _controller(provider)
        unsubscribe = controller.subscribe(seen.append)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        unsubscribe()
        controller.set_request(None, None)

    asyncio.run(scenario())
    phases = [s.phase for s in seen]
    assert phases[0] == FetchPhase.DEBOUNCING
    assert FetchPhase.FETCHING in phases
    assert phases[-1] == FetchPhase.SUCCESS
    assert seen[-1].loading is False
    assert FetchPhase.IDLE not in phases


def test_dispose_cancels_pending_debounce(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        controller.dispose()
        await asyncio.sleep(DEBOUNCE * 5)
        controller.set_request(ORIGIN, DEST_B)
        await controller.settle()
        return controller

    controller = asyncio.run(scenario())
    assert controller.disposed is True
    assert provider.calls == []


def test_dispose_ignores_in_flight_response(make_provider):
    async def handler(origin, destination, mode):
        await asyncio.sleep(0.05)
        return _result()

    async def scenario():
        controller = _controller(make_provider(handler))
        controller.set_request(ORIGIN, DEST_A)
        await asyncio.sleep(DEBOUNCE * 3)
        controller.dispose()
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.route == []
    assert state.phase == FetchPhase.FETCHING


def test_provider_outcomes_are_recorded(make_provider):
    def handler(origin, destination, mode):
        if destination == DEST_B:
            raise RuntimeError("boom")
        return _result()

    async def scenario():
        controller = _controller(make_provider(handler))
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.set_request(ORIGIN, DEST_B)
        await controller.settle()

    with patch("campusnav.directions.controller.record_provider_call") as record:
        asyncio.run(scenario())
    assert [c.kwargs["ok"] for c in record.call_args_list] == [True, False]


def test_mode_change_after_settling_fetches_once_more(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A, "walking")
        await controller.settle()
        controller.set_request(ORIGIN, DEST_A, "driving")
        await controller.settle()

    asyncio.run(scenario())
    assert [m for _, _, m in provider.calls] == ["walking", "driving"]


def test_reset_before_refetch_runs_stays_idle(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        controller.set_request(ORIGIN, DEST_A)
        await controller.settle()
        controller.update_user_position(Coordinate(45.6, -73.7))
        controller.set_request(None, DEST_A)
        await controller.settle()
        return controller

    state = asyncio.run(scenario()).state
    assert state.phase == FetchPhase.IDLE
    assert state.loading is False
    assert state.route == []
    assert len(provider.calls) == 1


def test_unknown_travel_mode_is_rejected(make_provider):
    provider = make_provider(lambda o, d, m: _result())

    async def scenario():
        controller = _controller(provider)
        with pytest.raises(ValueError):
            controller.set_request(ORIGIN, DEST_A, "bicycling")
        assert controller.state.phase == FetchPhase.IDLE
        await controller.settle()

    asyncio.run(scenario())
    assert provider.calls == []
