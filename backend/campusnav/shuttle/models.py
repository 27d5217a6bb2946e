"""Pydantic models for shuttle departures and stops."""
from datetime import date, datetime

from pydantic import BaseModel


class ScheduleEntry(BaseModel):
    label: str
    is_last_bus: bool
    departure_time: datetime
    arrival_time: datetime
    from_campus: str
    to_campus: str
    travel_minutes: int


class ShuttleStopInfo(BaseModel):
    id: str
    campus_id: str
    name: str
    lat: float
    lng: float
    address: str


class ShuttleStopsResponse(BaseModel):
    stops: list[ShuttleStopInfo]


class ShuttleStatusResponse(BaseModel):
    on: date
    operating: bool
    schedule_key: str | None
    service_name: str
    notes: list[str]


class ShuttleDeparturesResponse(BaseModel):
    campus: str
    departures: list[ScheduleEntry]
