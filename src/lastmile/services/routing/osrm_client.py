"""HTTP client for fetching drivable routes from OSRM services."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Sequence

import httpx

from ...config import settings
from ...errors import RoutingUnavailable
from ...models.domain import RoadRoute
from ..geospatial import estimate_travel_minutes, format_duration, haversine_km

logger = logging.getLogger(__name__)


class RoadRouteFetcher:
    """Resolves a road path between two points through an ordered list of OSRM endpoints.

    Each endpoint gets exactly one request, hard-cancelled after ``timeout``
    seconds. The first structurally valid route wins. Failure is not an error:
    ``fetch`` returns ``None`` and callers draw a straight line or nothing.
    """

    def __init__(
        self,
        endpoints: Sequence[str] | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoints = tuple(e.rstrip("/") for e in (endpoints if endpoints is not None else settings.routing_endpoints))
        if not self.endpoints:
            raise ValueError("At least one routing endpoint must be configured.")
        self.profile = profile or settings.routing_profile
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport)

    def _route_url(self, endpoint: str, a: tuple[float, float], b: tuple[float, float]) -> str:
        # OSRM expects lon,lat order
        coordinate_str = f"{a[1]},{a[0]};{b[1]},{b[0]}"
        return f"{endpoint}/route/v1/{self.profile}/{coordinate_str}"

    async def _request(self, client: httpx.AsyncClient, endpoint: str, a: tuple[float, float], b: tuple[float, float]) -> dict:
        params = {"overview": "full", "geometries": "geojson"}
        response = await client.get(self._route_url(endpoint, a, b), params=params)
        response.raise_for_status()
        return response.json()

    async def fetch(self, a: tuple[float, float], b: tuple[float, float]) -> RoadRoute | None:
        """Return the road route from ``a`` to ``b`` (both ``(lat, lon)``), or ``None``."""
        async with self._get_client() as client:
            for endpoint in self.endpoints:
                try:
                    data = await asyncio.wait_for(self._request(client, endpoint, a, b), timeout=self.timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Route from {endpoint} timed out after {self.timeout}s")
                    continue
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning(f"Route from {endpoint} failed: {e}")
                    continue

                route = parse_route_response(data, source_endpoint=endpoint)
                if route is None:
                    logger.warning(f"Route from {endpoint} had no usable geometry")
                    continue
                logger.info(f"Route fetched from {endpoint}: {route.distance_km}km, {route.duration_minutes}min")
                return route

        logger.warning(str(RoutingUnavailable(f"All routing endpoints failed for {a} -> {b}")))
        return None


def parse_route_response(data: Any, source_endpoint: str | None = None) -> RoadRoute | None:
    """Turn an OSRM route response into a RoadRoute; ``None`` if it is not usable."""

    if not isinstance(data, dict) or data.get("code") != "Ok":
        return None
    routes = data.get("routes") or []
    if not routes or not isinstance(routes[0], dict):
        return None
    route = routes[0]

    geometry = route.get("geometry")
    try:
        if isinstance(geometry, str):
            polyline = decode_polyline(geometry) if geometry else []
        elif isinstance(geometry, dict):
            # GeoJSON LineString, lon/lat pairs
            polyline = [(float(point[1]), float(point[0])) for point in geometry.get("coordinates") or []]
        else:
            polyline = []
        distance_km = round(float(route.get("distance", 0.0)) / 1000.0, 2)
        duration_minutes = math.ceil(float(route.get("duration", 0.0)) / 60.0)
    except (IndexError, TypeError, ValueError):
        return None
    if not polyline:
        return None

    return RoadRoute(
        polyline=tuple(polyline),
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        duration_text=format_duration(duration_minutes),
        source_endpoint=source_endpoint,
    )


def straight_line_route(a: tuple[float, float], b: tuple[float, float]) -> RoadRoute:
    """Haversine estimate used when no routing engine answered."""

    distance_km = round(haversine_km(a[0], a[1], b[0], b[1]), 2)
    minutes = estimate_travel_minutes(distance_km)
    return RoadRoute(
        polyline=(a, b),
        distance_km=distance_km,
        duration_minutes=minutes,
        duration_text=format_duration(minutes),
        is_fallback=True,
    )


def decode_polyline(polyline: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode Google polyline string to list of (lat, lon) coordinates."""
    coordinates = []
    index = 0
    lat = 0
    lon = 0
    factor = 10 ** precision

    def _next_value() -> int:
        nonlocal index
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        return ~(result >> 1) if (result & 1) else (result >> 1)

    while index < len(polyline):
        lat += _next_value()
        lon += _next_value()
        coordinates.append((lat / factor, lon / factor))

    return coordinates


async def check_health(endpoint: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> bool:
    """Probe a routing endpoint with a short fixed route.

    Public OSRM endpoints have no /health route, so a real route request is the
    only reliable probe.
    """
    base = endpoint or (settings.routing_endpoints[0] if settings.routing_endpoints else None)
    if not base:
        return False
    fetcher = RoadRouteFetcher(endpoints=[base], timeout=5.0, transport=transport)
    # Two points in central Chennai
    route = await fetcher.fetch((13.0827, 80.2707), (13.0604, 80.2496))
    return route is not None
