"""Unit tests for display-text parsing and formatting."""
import pytest

from campusnav.directions.models import Step
from campusnav.itinerary.formatting import (
    drop_trailing_destination_step,
    format_distance,
    format_duration,
    parse_distance_to_metres,
    parse_duration_to_seconds,
)


@pytest.mark.parametrize(
    "text,seconds",
    [
        ("2 mins", 120),
        ("1 min", 60),
        ("1 hour 5 mins", 3900),
        ("2 hr 10 min", 7800),
        ("3 hours", 10800),
        ("", 300),
        ("soon", 300),
        (None, 300),
    ],
)
def test_parse_duration_to_seconds(text, seconds):
    assert parse_duration_to_seconds(text) == seconds


@pytest.mark.parametrize(
    "text,metres",
    [("6.3 km", 6300), ("200 m", 200), ("1 km", 1000), ("far", 0), (None, 0)],
)
def test_parse_distance_to_metres(text, metres):
    assert parse_distance_to_metres(text) == metres


def test_long_input_is_truncated():
    assert parse_duration_to_seconds(" " * 60 + "5 mins") == 300


def test_format_distance():
    assert format_distance(6300) == "6.3 km"
    assert format_distance(1000) == "1.0 km"
    assert format_distance(999) == "999 m"


def test_format_duration():
    assert format_duration(2880) == "48 min"
    assert format_duration(61) == "2 min"
    assert format_duration(3900) == "1 hr 5 min"
    assert format_duration(0) == "0 min"


def test_drop_trailing_destination_step():
    steps = [Step(instruction="Head north"), Step(instruction="Your destination will be on the left")]
    assert [s.instruction for s in drop_trailing_destination_step(steps)] == ["Head north"]
    assert drop_trailing_destination_step(steps[:1]) == steps[:1]
    assert drop_trailing_destination_step([]) == []
