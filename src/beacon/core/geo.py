"""Great-circle distance helpers for radius filters."""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6371000


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def within_radius(
    lat: float | None,
    lng: float | None,
    center_lat: float,
    center_lng: float,
    radius_meters: float,
) -> bool:
    """True when the point is set and lies within ``radius_meters`` of the center."""
    if lat is None or lng is None:
        return False
    return haversine_meters(center_lat, center_lng, lat, lng) <= radius_meters
