"""Delivery stage endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...errors import LastMileError
from ...models.domain import PositionSample
from ...schemas.stages import StageRequest, StageResponse
from ...services.geocoding import coordinate_resolver
from ...services.routing.optimizer import optimize_route
from ...services.stages.deriver import AgentRole, StageContext, active_agent_role, coarse_stage, derive_stage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stages", tags=["stages"])


async def _build_context(payload: StageRequest) -> StageContext:
    hub = payload.hub.to_coordinates() if payload.hub else None
    agent_position = None
    if payload.agent_position is not None:
        agent_position = PositionSample(latitude=payload.agent_position.latitude, longitude=payload.agent_position.longitude)

    batch_stops = tuple(stop.to_stop() for stop in payload.batch_stops or ())
    route_plan = None
    stage = coarse_stage(
        payload.item_status,
        payload.batch_status,
        pickup_agent_id=payload.pickup_agent_id,
        delivery_agent_id=payload.delivery_agent_id,
    )
    role = active_agent_role(stage)
    origin = agent_position or (PositionSample(latitude=hub.latitude, longitude=hub.longitude) if hub else None)
    if batch_stops and origin is not None and role is not AgentRole.NONE:
        active_agent_id = payload.pickup_agent_id if role is AgentRole.PICKUP else payload.delivery_agent_id
        stops = await coordinate_resolver.resolve(batch_stops, hub=hub)
        route_plan = optimize_route(origin, stops, agent_id=active_agent_id)

    return StageContext(
        item_status=payload.item_status,
        batch_status=payload.batch_status,
        stop_id=payload.stop_id,
        pickup_agent_id=payload.pickup_agent_id,
        delivery_agent_id=payload.delivery_agent_id,
        route_plan=route_plan,
        hub=hub,
        pickup_location=payload.pickup_location.to_coordinates() if payload.pickup_location else None,
        delivery_location=payload.delivery_location.to_coordinates() if payload.delivery_location else None,
        agent_position=agent_position,
        batch_stops=batch_stops,
    )


@router.post("/derive", response_model=StageResponse, status_code=status.HTTP_200_OK)
async def derive(payload: StageRequest) -> StageResponse:
    try:
        context = await _build_context(payload)
        return StageResponse.from_view(derive_stage(context))
    except (ValueError, LastMileError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error deriving stage: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to derive stage: {str(exc)}",
        ) from exc
