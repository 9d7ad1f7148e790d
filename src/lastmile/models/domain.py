"""Domain models for positions, stops and route plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class PositionSample:
    """A single position fix reported by an agent's device."""

    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    captured_at: datetime = field(default_factory=utcnow)

    def age_seconds(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.captured_at).total_seconds()

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class StopKind(str, Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class CoordinateSource(str, Enum):
    REPORTED = "reported"
    GEOCODED = "geocoded"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True, slots=True)
class Stop:
    """A pickup or delivery location within a batch."""

    id: str
    kind: StopKind
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone_contact: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    coordinate_source: CoordinateSource = CoordinateSource.REPORTED

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class RoutePlan:
    """Visit order for the pending stops of one agent run.

    Always rebuilt from scratch; never patched in place.
    """

    ordered_pending_stops: tuple[Stop, ...]
    origin: PositionSample
    agent_id: Optional[str] = None
    computed_at: datetime = field(default_factory=utcnow)

    @property
    def next_stop(self) -> Optional[Stop]:
        return self.ordered_pending_stops[0] if self.ordered_pending_stops else None

    def position_of(self, stop_id: str) -> Optional[int]:
        for index, stop in enumerate(self.ordered_pending_stops):
            if stop.id == stop_id:
                return index
        return None


@dataclass(frozen=True, slots=True)
class RoadRoute:
    """Drivable path between two points, as returned by a routing engine."""

    polyline: tuple[tuple[float, float], ...]
    distance_km: float
    duration_minutes: int
    duration_text: str
    source_endpoint: Optional[str] = None
    is_fallback: bool = False
