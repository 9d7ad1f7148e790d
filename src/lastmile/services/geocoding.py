"""Address geocoding and coordinate resolution for stops.

Resolution runs before the route optimizer so the optimizer never sees a stop
without coordinates. Order of preference for each stop:

1. coordinates reported by the backend,
2. a Nominatim lookup of the stop's address (cached per query string),
3. a deterministic synthetic placement around the hub, keyed on the stop id.
"""

from __future__ import annotations

import logging
import zlib
from dataclasses import replace
from typing import Sequence

import httpx

from ..config import settings
from ..models.domain import Coordinates, CoordinateSource, Stop

logger = logging.getLogger(__name__)

CITY_CENTROIDS: dict[str, Coordinates] = {
    "chennai": Coordinates(13.0827, 80.2707),
    "bangalore": Coordinates(12.9716, 77.5946),
    "bengaluru": Coordinates(12.9716, 77.5946),
    "mumbai": Coordinates(19.0760, 72.8777),
    "delhi": Coordinates(28.7041, 77.1025),
}


def city_centroid(city: str | None) -> Coordinates:
    """Known city centre, or the configured default hub."""
    if city:
        known = CITY_CENTROIDS.get(city.strip().lower())
        if known:
            return known
    return Coordinates(settings.default_hub_latitude, settings.default_hub_longitude)


SYNTHETIC_SLOTS = 4


def synthetic_slot(stop_id: str) -> int:
    """Stable slot for a stop, so its placement survives changes to the stop list."""
    return zlib.crc32(stop_id.encode("utf-8")) % SYNTHETIC_SLOTS


def synthetic_offset(anchor: Coordinates, index: int) -> Coordinates:
    """Spread unresolved stops around an anchor so they stay distinguishable."""
    return Coordinates(
        latitude=anchor.latitude + index * 0.01 - 0.015,
        longitude=anchor.longitude + (0.01 if index % 2 == 0 else -0.01),
    )


class Geocoder:
    """Forward geocoding against a Nominatim instance."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.geocoder_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self._transport = transport
        self._cache: dict[str, Coordinates | None] = {}

    @staticmethod
    def build_query(address: str | None, city: str | None, pincode: str | None) -> str | None:
        parts = [part.strip() for part in (address, city, pincode) if part and part.strip()]
        if not parts:
            return None
        return ", ".join([*parts, settings.geocoder_country])

    async def geocode(self, address: str | None, city: str | None = None, pincode: str | None = None) -> Coordinates | None:
        query = self.build_query(address, city, pincode)
        if query is None:
            return None
        if query in self._cache:
            return self._cache[query]

        params = {
            "q": query,
            "format": "json",
            "limit": 1,
            "countrycodes": settings.geocoder_country_code,
        }
        headers = {"User-Agent": settings.geocoder_user_agent}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/search", params=params, headers=headers)
                response.raise_for_status()
                results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            # Transient failures are not cached so the next pass can try again.
            logger.warning(f"Geocoding failed for '{query}': {e}")
            return None

        if not results:
            logger.warning(f"No geocoding results for: {query}")
            self._cache[query] = None
            return None

        first = results[0]
        try:
            coordinates = Coordinates(float(first["lat"]), float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Malformed geocoding result for '{query}': {first!r}")
            self._cache[query] = None
            return None
        logger.info(f"Geocoded '{query}' to {coordinates.latitude}, {coordinates.longitude}")
        self._cache[query] = coordinates
        return coordinates

    def clear_cache(self) -> None:
        self._cache.clear()


class CoordinateResolver:
    """Fills in missing stop coordinates before optimization."""

    def __init__(self, geocoder: Geocoder | None = None) -> None:
        self.geocoder = geocoder or Geocoder()

    async def resolve(self, stops: Sequence[Stop], hub: Coordinates | None = None) -> list[Stop]:
        resolved: list[Stop] = []
        for stop in stops:
            if stop.has_coordinates:
                resolved.append(stop)
                continue

            found = await self.geocoder.geocode(stop.address, stop.city, stop.pincode)
            if found is not None:
                resolved.append(
                    replace(
                        stop,
                        latitude=found.latitude,
                        longitude=found.longitude,
                        coordinate_source=CoordinateSource.GEOCODED,
                    )
                )
                continue

            anchor = hub or city_centroid(stop.city)
            placed = synthetic_offset(anchor, synthetic_slot(stop.id))
            logger.warning(
                f"Stop {stop.id} has no coordinates and could not be geocoded; "
                f"placing it at {placed.latitude:.4f}, {placed.longitude:.4f}"
            )
            resolved.append(
                replace(
                    stop,
                    latitude=placed.latitude,
                    longitude=placed.longitude,
                    coordinate_source=CoordinateSource.SYNTHETIC,
                )
            )
        return resolved


coordinate_resolver = CoordinateResolver()
