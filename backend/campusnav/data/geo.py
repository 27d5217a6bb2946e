"""
Haversine distance helpers for route deviation checks and local estimates.
"""
import math
from typing import NamedTuple, Sequence

# Earth radius in km (WGS84 approximate)
EARTH_RADIUS_KM = 6371.0


class Coordinate(NamedTuple):
    latitude: float
    longitude: float


def to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Return great-circle distance between two points in kilometers.
    Arguments in degrees.
    """
    lat1_rad = to_radians(lat1)
    lat2_rad = to_radians(lat2)
    dlat = to_radians(lat2 - lat1)
    dlng = to_radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return great-circle distance in meters. Arguments in degrees."""
    return haversine_distance_km(lat1, lng1, lat2, lng2) * 1000.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates."""
    return haversine_distance_m(a.latitude, a.longitude, b.latitude, b.longitude)


def min_distance_to_polyline(point: Coordinate, polyline: Sequence[Coordinate]) -> float:
    """
    Closest distance in meters from point to any vertex of polyline.
    Returns inf for an empty polyline: no comparison is possible.
    """
    if not polyline:
        return math.inf
    return min(distance_meters(point, p) for p in polyline)
