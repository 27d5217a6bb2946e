"""
Concordia inter-campus shuttle reference data: stops per campus and weekday timetables.
Times are "HH:MM" local time; a trailing "*" marks the last bus of the day.
"""
from typing import NamedTuple

from campusnav.data.geo import Coordinate

SHUTTLE_TRAVEL_MINUTES = 30

CAMPUS_SGW = "SGW"
CAMPUS_LOY = "LOY"


class ShuttleStop(NamedTuple):
    id: str
    campus_id: str
    name: str
    coords: Coordinate
    address: str


class ShuttleRoute(NamedTuple):
    route_id: str
    from_campus: str
    to_campus: str
    times: tuple[str, ...]
    travel_minutes: int = SHUTTLE_TRAVEL_MINUTES


SHUTTLE_STOPS: dict[str, ShuttleStop] = {
    CAMPUS_SGW: ShuttleStop(
        id="SGW_MAIN",
        campus_id=CAMPUS_SGW,
        name="SGW Main Stop",
        coords=Coordinate(45.495, -73.578),
        address="1455 De Maisonneuve Blvd W, Montreal, QC H3G 1M8",
    ),
    CAMPUS_LOY: ShuttleStop(
        id="LOYOLA_LIB",
        campus_id=CAMPUS_LOY,
        name="Loyola Library Stop",
        coords=Coordinate(45.458, -73.640),
        address="7141 Sherbrooke St W, Montreal, QC H4B 1R6",
    ),
}

SHUTTLE_SCHEDULES: dict[str, dict[str, ShuttleRoute]] = {
    "MON_THU": {
        "SGW_TO_LOY": ShuttleRoute(
            "SGW_TO_LOY_MON_THU", CAMPUS_SGW, CAMPUS_LOY,
            (
                "09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45", "11:00",
                "11:15", "12:15", "12:30", "12:45", "13:00", "13:15", "13:30", "13:45",
                "14:00", "14:15", "14:30", "14:45", "15:00", "15:15", "15:30", "16:00",
                "16:15", "16:45", "17:00", "17:15", "17:30", "17:45", "18:00", "18:15",
                "18:30*",
            ),
        ),
        "LOY_TO_SGW": ShuttleRoute(
            "LOY_TO_SGW_MON_THU", CAMPUS_LOY, CAMPUS_SGW,
            (
                "09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45", "11:00",
                "11:15", "11:30", "11:45", "12:30", "12:45", "13:00", "13:15", "13:30",
                "13:45", "14:00", "14:15", "14:30", "14:45", "15:00", "15:15", "15:30",
                "15:45", "16:30", "16:45", "17:00", "17:15", "17:30", "17:45", "18:00",
                "18:15", "18:30*",
            ),
        ),
    },
    "FRIDAY": {
        "SGW_TO_LOY": ShuttleRoute(
            "SGW_TO_LOY_FRI", CAMPUS_SGW, CAMPUS_LOY,
            (
                "09:45", "10:00", "10:15", "10:45", "11:15", "11:30", "12:15", "12:30",
                "12:45", "13:15", "13:45", "14:00", "14:15", "14:45", "15:00", "15:15",
                "15:45", "16:00", "16:45", "17:15", "17:45", "18:15*",
            ),
        ),
        "LOY_TO_SGW": ShuttleRoute(
            "LOY_TO_SGW_FRI", CAMPUS_LOY, CAMPUS_SGW,
            (
                "09:15", "09:30", "09:45", "10:15", "10:45", "11:00", "11:15", "12:00",
                "12:15", "12:45", "13:00", "13:15", "13:45", "14:15", "14:30", "14:45",
                "15:15", "15:30", "15:45", "16:45", "17:15", "17:45", "18:15*",
            ),
        ),
    },
}

SHUTTLE_SERVICE_INFO = {
    "name": "Concordia Inter-Campus Shuttle",
    "operating_days": [1, 2, 3, 4, 5],  # ISO weekdays, Mon-Fri
    "website": "https://www.concordia.ca/maps/shuttle-bus.html",
    "notes": [
        "The shuttle is free for students, faculty and staff with a valid Concordia ID.",
        "No service on weekends or university holidays.",
        "Travel time between campuses is approximately 30 minutes, traffic permitting.",
    ],
}
