"""Unit tests for route options: shuttle estimate and provider fallback."""
import asyncio

import pytest

from campusnav.data.geo import Coordinate, distance_meters
from campusnav.directions.errors import DirectionsError
from campusnav.directions.estimate import (
    FALLBACK_SUMMARY,
    SHUTTLE_SUMMARY,
    calculate_route,
    estimate_duration_minutes,
)
from campusnav.directions.models import RouteOption

START = Coordinate(45.4970, -73.5788)
END = Coordinate(45.4581, -73.6393)


class FakeRouteClient:
    def __init__(self, result=None, error=None):
        self.calls = []
        self._result = result
        self._error = error

    async def fetch_route(self, start, end, mode):
        self.calls.append(mode)
        if self._error is not None:
            raise self._error
        return self._result


def test_estimate_duration_minutes():
    # 5 km/h is 83.3 m/min
    assert estimate_duration_minutes(1000, 5.0) == 12
    assert estimate_duration_minutes(10, 5.0) == 1
    assert estimate_duration_minutes(1000, 0) == 1


def test_shuttle_is_estimated_locally():
    client = FakeRouteClient()
    option = asyncio.run(calculate_route(START, END, "shuttle", client))
    assert client.calls == []
    assert option.mode == "shuttle"
    assert option.summary == SHUTTLE_SUMMARY
    assert option.polyline == [START, END]
    assert option.distance_meters == pytest.approx(distance_meters(START, END))
    assert option.error is None


def test_provider_result_is_returned():
    expected = RouteOption(mode="walk", distance_meters=1200, duration_minutes=15, summary="x", polyline=[])
    client = FakeRouteClient(result=expected)
    assert asyncio.run(calculate_route(START, END, "walk", client)) is expected
    assert client.calls == ["walk"]


def test_provider_error_falls_back_to_estimate():
    client = FakeRouteClient(error=DirectionsError("Directions API: ZERO_RESULTS"))
    option = asyncio.run(calculate_route(START, END, "drive", client))
    assert option.summary == FALLBACK_SUMMARY
    assert option.error == "Directions API: ZERO_RESULTS"
    assert option.steps == []
    assert option.duration_minutes == estimate_duration_minutes(option.distance_meters, 25.0)


def test_error_without_message_uses_type_name():
    option = asyncio.run(calculate_route(START, END, "transit", FakeRouteClient(error=TimeoutError())))
    assert option.error == "TimeoutError"


def test_missing_client_falls_back():
    option = asyncio.run(calculate_route(START, END, "walk", None))
    assert option.summary == FALLBACK_SUMMARY
    assert option.error == "Directions provider not configured."


@pytest.mark.parametrize("start,end,mode", [(None, END, "walk"), (START, None, "walk"), (START, END, "")])
def test_missing_arguments_raise(start, end, mode):
    with pytest.raises(ValueError):
        asyncio.run(calculate_route(start, end, mode, FakeRouteClient()))
