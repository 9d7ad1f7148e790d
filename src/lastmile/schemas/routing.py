"""Route planning request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinates, CoordinateSource, RoadRoute, RoutePlan, Stop, StopKind


class PointModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


class StopModel(BaseModel):
    id: str = Field(..., min_length=1)
    kind: StopKind = StopKind.DELIVERY
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    phone_contact: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None

    def to_stop(self) -> Stop:
        return Stop(
            id=self.id,
            kind=self.kind,
            latitude=self.latitude,
            longitude=self.longitude,
            phone_contact=self.phone_contact,
            completed=self.completed,
            completed_at=self.completed_at,
            address=self.address,
            city=self.city,
            pincode=self.pincode,
        )


class RoutePlanRequest(BaseModel):
    origin: Optional[PointModel] = Field(
        default=None,
        description="Agent position. When absent the hub is used as the starting point.",
    )
    stops: List[StopModel]
    hub: Optional[PointModel] = None
    agent_id: Optional[str] = None
    include_road_route: bool = Field(
        default=False,
        description="Fetch a road route from the origin to the next stop (advisory).",
    )


class PlannedStopModel(BaseModel):
    id: str
    kind: StopKind
    sequence: int
    latitude: float
    longitude: float
    coordinate_source: CoordinateSource
    phone_contact: Optional[str] = None

    @classmethod
    def from_stop(cls, stop: Stop, sequence: int) -> "PlannedStopModel":
        return cls(
            id=stop.id,
            kind=stop.kind,
            sequence=sequence,
            latitude=stop.latitude,
            longitude=stop.longitude,
            coordinate_source=stop.coordinate_source,
            phone_contact=stop.phone_contact,
        )


class RoadRouteModel(BaseModel):
    polyline: List[List[float]]
    distance_km: float
    duration_minutes: int
    duration_text: str
    source_endpoint: Optional[str] = None
    is_fallback: bool = False

    @classmethod
    def from_route(cls, route: RoadRoute) -> "RoadRouteModel":
        return cls(
            polyline=[[lat, lng] for lat, lng in route.polyline],
            distance_km=route.distance_km,
            duration_minutes=route.duration_minutes,
            duration_text=route.duration_text,
            source_endpoint=route.source_endpoint,
            is_fallback=route.is_fallback,
        )


class RoutePlanResponse(BaseModel):
    agent_id: Optional[str] = None
    origin: PointModel
    ordered_pending_stops: List[PlannedStopModel]
    next_stop_id: Optional[str] = None
    road_route: Optional[RoadRouteModel] = None
    computed_at: datetime

    @classmethod
    def from_plan(cls, plan: RoutePlan, road_route: RoadRoute | None = None) -> "RoutePlanResponse":
        return cls(
            agent_id=plan.agent_id,
            origin=PointModel(latitude=plan.origin.latitude, longitude=plan.origin.longitude),
            ordered_pending_stops=[
                PlannedStopModel.from_stop(stop, sequence)
                for sequence, stop in enumerate(plan.ordered_pending_stops, start=1)
            ],
            next_stop_id=plan.next_stop.id if plan.next_stop else None,
            road_route=RoadRouteModel.from_route(road_route) if road_route else None,
            computed_at=plan.computed_at,
        )
