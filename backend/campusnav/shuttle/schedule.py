"""
Shuttle schedule queries: operating days and next departures from a campus.
Pure functions over the static timetable in campusnav.data.shuttle_info.
"""
from datetime import date, datetime, timedelta
from typing import NamedTuple

from campusnav.data.shuttle_info import (
    CAMPUS_LOY,
    CAMPUS_SGW,
    SHUTTLE_SCHEDULES,
    SHUTTLE_STOPS,
    ShuttleStop,
)
from campusnav.shuttle.models import ScheduleEntry

MON_THU = "MON_THU"
FRIDAY = "FRIDAY"

_ROUTE_KEYS = {CAMPUS_SGW: "SGW_TO_LOY", CAMPUS_LOY: "LOY_TO_SGW"}


class ParsedTime(NamedTuple):
    hours: int
    minutes: int
    is_last_bus: bool
    label: str


def parse_time(time_str: str) -> ParsedTime:
    """Parse "09:30" or "18:30*" (trailing * = last bus)."""
    is_last_bus = time_str.endswith("*")
    label = time_str.rstrip("*")
    hours, minutes = (int(part) for part in label.split(":"))
    return ParsedTime(hours, minutes, is_last_bus, label)


def get_schedule_key(on: date | datetime) -> str | None:
    """MON_THU for Monday-Thursday, FRIDAY for Friday, None on weekends."""
    weekday = on.weekday()  # 0 = Monday
    if weekday >= 5:
        return None
    return FRIDAY if weekday == 4 else MON_THU


def is_shuttle_operating(on: date | datetime) -> bool:
    return get_schedule_key(on) is not None


def get_shuttle_stop(campus_id: str | None) -> ShuttleStop | None:
    if campus_id is None:
        return None
    return SHUTTLE_STOPS.get(campus_id)


def other_campus(campus_id: str) -> str:
    return CAMPUS_LOY if campus_id == CAMPUS_SGW else CAMPUS_SGW


def get_next_departures(from_campus: str, count: int = 3, at: datetime | None = None) -> list[ScheduleEntry]:
    """
    Departures from from_campus on at's calendar date no earlier than at, in schedule order.
    Empty on weekends, for an unknown campus, or once the last bus has left.
    The returned times carry at's tzinfo.
    """
    if at is None:
        at = datetime.now()
    key = get_schedule_key(at)
    route_key = _ROUTE_KEYS.get(from_campus)
    if key is None or route_key is None or count <= 0:
        return []
    route = SHUTTLE_SCHEDULES[key].get(route_key)
    if route is None:
        return []

    upcoming: list[ScheduleEntry] = []
    for time_str in route.times:
        parsed = parse_time(time_str)
        departure_time = at.replace(hour=parsed.hours, minute=parsed.minutes, second=0, microsecond=0)
        if departure_time < at:
            continue
        upcoming.append(
            ScheduleEntry(
                label=parsed.label,
                is_last_bus=parsed.is_last_bus,
                departure_time=departure_time,
                arrival_time=departure_time + timedelta(minutes=route.travel_minutes),
                from_campus=route.from_campus,
                to_campus=route.to_campus,
                travel_minutes=route.travel_minutes,
            )
        )
        if len(upcoming) >= count:
            break
    return upcoming


def get_next_departure(from_campus: str, at: datetime | None = None) -> ScheduleEntry | None:
    departures = get_next_departures(from_campus, count=1, at=at)
    return departures[0] if departures else None
