"""Route planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...config import settings
from ...errors import LastMileError
from ...models.domain import PositionSample
from ...schemas.routing import RoutePlanRequest, RoutePlanResponse
from ...services.geocoding import coordinate_resolver
from ...services.routing.optimizer import optimize_route
from ...services.routing.osrm_client import RoadRouteFetcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


async def plan_route(payload: RoutePlanRequest) -> RoutePlanResponse:
    hub = payload.hub.to_coordinates() if payload.hub else None
    if payload.origin is not None:
        origin = PositionSample(latitude=payload.origin.latitude, longitude=payload.origin.longitude)
    elif hub is not None:
        origin = PositionSample(latitude=hub.latitude, longitude=hub.longitude)
    else:
        raise ValueError("Either an origin or a hub is required to plan a route.")

    stops = await coordinate_resolver.resolve([stop.to_stop() for stop in payload.stops], hub=hub)
    plan = optimize_route(origin, stops, agent_id=payload.agent_id)

    road_route = None
    if payload.include_road_route and plan.next_stop is not None:
        road_route = await RoadRouteFetcher().fetch(origin.as_tuple(), plan.next_stop.as_tuple())
    return RoutePlanResponse.from_plan(plan, road_route)


@router.post("/plan", response_model=RoutePlanResponse, status_code=status.HTTP_200_OK)
async def plan(payload: RoutePlanRequest) -> RoutePlanResponse:
    try:
        return await plan_route(payload)
    except (ValueError, LastMileError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error planning route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan route: {str(exc)}",
        ) from exc


@router.get("/endpoints", status_code=status.HTTP_200_OK)
def routing_endpoints() -> dict:
    """Configured routing engines, in the order they are tried."""
    return {
        "endpoints": list(settings.routing_endpoints),
        "profile": settings.routing_profile,
        "timeout_seconds": settings.routing_timeout_seconds,
    }
