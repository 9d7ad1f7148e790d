"""Geospatial helper functions."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
# Straight-line distance understates road distance; average urban speed is ~40 km/h.
ROAD_DISTANCE_FACTOR = 1.2
FALLBACK_SPEED_KMH = 40.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def midpoint(lat1: float, lon1: float, lat2: float, lon2: float) -> tuple[float, float]:
    """Arithmetic midpoint; good enough for the short hops of a delivery run."""

    return ((lat1 + lat2) / 2, (lon1 + lon2) / 2)


def estimate_travel_minutes(distance_km: float, speed_kmh: float = FALLBACK_SPEED_KMH) -> int:
    """Rough drive time for a straight-line distance."""

    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be positive.")
    return math.ceil(distance_km * ROAD_DISTANCE_FACTOR / speed_kmh * 60)


def format_duration(minutes: int) -> str:
    """Human-readable ETA: '25 mins' or '1h 15m'."""

    if minutes < 60:
        return f"{minutes} mins"
    return f"{minutes // 60}h {minutes % 60}m"
