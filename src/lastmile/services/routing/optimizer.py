"""Greedy nearest-neighbour ordering of pending stops.

This is a heuristic, not a TSP solver: each step picks the closest unvisited
stop from the current position. Batches hold tens of stops, so the O(n^2)
rebuild on every change is acceptable.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ...errors import MissingCoordinates
from ...models.domain import PositionSample, RoutePlan, Stop
from ..geospatial import haversine_km

logger = logging.getLogger(__name__)

PlanListener = Callable[[RoutePlan], None]


def order_stops(origin: tuple[float, float], stops: Sequence[Stop]) -> list[Stop]:
    """Nearest-neighbour visit order. Ties go to the stop listed first."""

    for stop in stops:
        if not stop.has_coordinates:
            raise MissingCoordinates(stop.id)

    remaining = list(stops)
    ordered: list[Stop] = []
    current_lat, current_lon = origin
    while remaining:
        nearest_idx = 0
        nearest_dist = float("inf")
        for idx, stop in enumerate(remaining):
            dist = haversine_km(current_lat, current_lon, stop.latitude, stop.longitude)
            # strict comparison keeps the earliest stop on ties
            if dist < nearest_dist:
                nearest_dist = dist
                nearest_idx = idx
        nearest = remaining.pop(nearest_idx)
        ordered.append(nearest)
        current_lat, current_lon = nearest.latitude, nearest.longitude
    return ordered


def optimize_route(origin: PositionSample, stops: Sequence[Stop], *, agent_id: str | None = None) -> RoutePlan:
    """Build a fresh plan over the stops that are not yet completed."""

    pending = [stop for stop in stops if not stop.completed]
    ordered = order_stops(origin.as_tuple(), pending)
    return RoutePlan(ordered_pending_stops=tuple(ordered), origin=origin, agent_id=agent_id)


def _stop_set_key(stops: Sequence[Stop]) -> tuple:
    return tuple((stop.id, stop.completed, stop.latitude, stop.longitude) for stop in stops)


class RoutePlanner:
    """Single writer for the active route plan of one (agent, batch) pair.

    Readers get the frozen ``plan`` snapshot; listeners are called after each
    rebuild.
    """

    def __init__(self, agent_id: str | None = None) -> None:
        self.agent_id = agent_id
        self._origin: PositionSample | None = None
        self._stops: tuple[Stop, ...] = ()
        self._stops_key: tuple = ()
        self._plan: RoutePlan | None = None
        self._listeners: list[PlanListener] = []

    @property
    def plan(self) -> RoutePlan | None:
        return self._plan

    @property
    def stops(self) -> tuple[Stop, ...]:
        return self._stops

    def add_listener(self, listener: PlanListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PlanListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update_origin(self, origin: PositionSample) -> RoutePlan | None:
        if self._origin is not None and self._origin.as_tuple() == origin.as_tuple():
            return self._plan
        self._origin = origin
        return self._recompute()

    def update_stops(self, stops: Sequence[Stop]) -> RoutePlan | None:
        key = _stop_set_key(stops)
        if key == self._stops_key and self._plan is not None:
            return self._plan
        self._stops = tuple(stops)
        self._stops_key = key
        return self._recompute()

    def _recompute(self) -> RoutePlan | None:
        if self._origin is None:
            return None
        plan = optimize_route(self._origin, self._stops, agent_id=self.agent_id)
        self._plan = plan
        logger.debug(
            f"Route plan rebuilt for agent {self.agent_id}: "
            f"{len(plan.ordered_pending_stops)} pending, next={plan.next_stop.id if plan.next_stop else None}"
        )
        for listener in list(self._listeners):
            try:
                listener(plan)
            except Exception:
                logger.exception("Route plan listener failed")
        return plan
