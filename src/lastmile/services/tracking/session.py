"""Agent run supervision.

An ``AgentSession`` is the single owner of everything that runs for one agent
on one batch: the telemetry publisher's timer, the route planner and the
advisory road route to the next stop. Nothing lives in module globals.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ...models.domain import Coordinates, PositionSample, RoadRoute, RoutePlan, Stop
from ..geocoding import CoordinateResolver, coordinate_resolver
from ..routing.optimizer import RoutePlanner
from ..routing.osrm_client import RoadRouteFetcher
from ..telemetry.acquirer import PositionAcquirer
from ..telemetry.publisher import LocationSink, TelemetryPublisher

logger = logging.getLogger(__name__)


class AgentSession:
    def __init__(
        self,
        agent_id: str,
        batch_id: str,
        acquirer: PositionAcquirer,
        sink: LocationSink,
        *,
        hub: Coordinates | None = None,
        resolver: CoordinateResolver | None = None,
        road_routes: RoadRouteFetcher | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self.agent_id = agent_id
        self.batch_id = batch_id
        self.hub = hub
        self.resolver = resolver or coordinate_resolver
        self.road_routes = road_routes
        self.planner = RoutePlanner(agent_id=agent_id)
        self.publisher = TelemetryPublisher(
            acquirer,
            sink,
            subject_id=batch_id,
            interval_seconds=interval_seconds,
            on_sample=self._on_sample,
        )
        self.road_route: RoadRoute | None = None
        self._route_task: asyncio.Task | None = None
        self.planner.add_listener(self._on_plan)

    @property
    def plan(self) -> RoutePlan | None:
        return self.planner.plan

    async def start(self) -> None:
        await self.publisher.start()

    async def stop(self) -> None:
        await self.publisher.stop()
        if self._route_task is not None:
            self._route_task.cancel()
            await asyncio.gather(self._route_task, return_exceptions=True)
            self._route_task = None

    async def set_stops(self, stops: Sequence[Stop]) -> RoutePlan | None:
        resolved = await self.resolver.resolve(stops, hub=self.hub)
        return self.planner.update_stops(resolved)

    def _on_sample(self, sample: PositionSample) -> None:
        self.planner.update_origin(sample)

    def _on_plan(self, plan: RoutePlan) -> None:
        if self.road_routes is None:
            return
        if self._route_task is not None and not self._route_task.done():
            # superseded by the newer plan
            self._route_task.cancel()
        self.road_route = None
        if plan.next_stop is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._route_task = loop.create_task(self._refresh_road_route(plan))

    async def _refresh_road_route(self, plan: RoutePlan) -> None:
        route = await self.road_routes.fetch(plan.origin.as_tuple(), plan.next_stop.as_tuple())
        if route is None:
            logger.info(f"No road route for agent {self.agent_id}; showing straight line")
        if self.planner.plan is plan:
            self.road_route = route
