"""Great-circle distance and the position provider used at check-in.

The mock provider stands in for a device GPS: it returns the downtown
Sao Paulo reference point shifted by the requested offset.
"""
import logging
import math
from typing import Optional

from medly.core.config import settings

logger = logging.getLogger("medly.geolocation")

EARTH_RADIUS_METERS = 6_371_000
MOCK_CENTER = (-23.5505, -46.6333)


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two coordinates."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_within_radius(
    lat: float,
    lng: float,
    target_lat: float,
    target_lng: float,
    radius_meters: Optional[float] = None,
) -> bool:
    if radius_meters is None:
        radius_meters = settings.CHECKIN_RADIUS_METERS
    return haversine_distance(lat, lng, target_lat, target_lng) <= radius_meters


def mock_position(offset_lat: float = 0.0, offset_lng: float = 0.0) -> dict:
    return {"lat": MOCK_CENTER[0] + offset_lat, "lng": MOCK_CENTER[1] + offset_lng}


def resolve_position(
    lat: Optional[float],
    lng: Optional[float],
    use_mock: bool = False,
    offset_lat: float = 0.0,
    offset_lng: float = 0.0,
) -> dict:
    """Position reported by the caller, or the mock one when allowed.

    Never raises: failures come back as ``{"status": "ERROR", "error": code}``.
    """
    if use_mock:
        if not settings.GEOLOCATION_MOCK_ENABLED:
            logger.warning("mock position requested while disabled")
            return {"status": "ERROR", "error": "MOCK_DISABLED"}
        return {"status": "OK", "coordinates": mock_position(offset_lat, offset_lng), "mock": True}
    if lat is None or lng is None:
        return {"status": "ERROR", "error": "POSITION_UNAVAILABLE"}
    return {"status": "OK", "coordinates": {"lat": lat, "lng": lng}, "mock": False}


def verify_against(coordinates: dict, target: Optional[dict]) -> tuple[bool, Optional[float]]:
    """``(verified, distance_m)`` of a reading against a location's coordinates."""
    if not target or target.get("lat") is None or target.get("lng") is None:
        return False, None
    distance = haversine_distance(coordinates["lat"], coordinates["lng"], target["lat"], target["lng"])
    return distance <= settings.CHECKIN_RADIUS_METERS, round(distance, 1)
