"""Location ingest, snapshot and real-time channel endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from ...models.domain import PositionSample, utcnow
from ...persistence.locations import location_store
from ...schemas.location import LocationSnapshot, LocationUpdateRequest
from ...services.telemetry.broadcast import location_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracking"])


@router.post("/agents/location", status_code=status.HTTP_202_ACCEPTED)
async def update_location(payload: LocationUpdateRequest) -> dict:
    """Accept one position sample from an agent and fan it out to the subject's watchers."""
    sample = PositionSample(
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy_m=payload.accuracy_m,
        captured_at=payload.captured_at or utcnow(),
    )
    accepted = location_store.put(payload.subject_id, sample, agent_id=payload.agent_id)
    delivered = 0
    if accepted:
        snapshot = LocationSnapshot.from_sample(payload.subject_id, sample, agent_id=payload.agent_id)
        delivered = location_hub.publish(payload.subject_id, snapshot.model_dump(mode="json", by_alias=True))
    else:
        logger.debug(f"Ignoring older sample for {payload.subject_id}")
    return {"accepted": accepted, "subscribers": delivered}


@router.get("/tracking/{subject_id}/location", response_model=LocationSnapshot)
def get_location(subject_id: str) -> LocationSnapshot:
    stored = location_store.get(subject_id)
    if stored is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No location reported yet for '{subject_id}'",
        )
    return LocationSnapshot.from_sample(subject_id, stored.sample, agent_id=stored.agent_id)


@router.websocket("/ws/tracking/{subject_id}")
async def track_subject(websocket: WebSocket, subject_id: str) -> None:
    async def forward() -> None:
        async for payload in subscription:
            await websocket.send_json(payload)

    # Subscribe before accepting so nothing published after the handshake is missed.
    subscription = location_hub.subscribe(subject_id)
    forward_task: asyncio.Task | None = None
    try:
        await websocket.accept()
        stored = location_store.get(subject_id)
        if stored is not None:
            snapshot = LocationSnapshot.from_sample(subject_id, stored.sample, agent_id=stored.agent_id)
            await websocket.send_json(snapshot.model_dump(mode="json", by_alias=True))

        forward_task = asyncio.create_task(forward())
        while True:
            # Clients do not send anything meaningful; this only detects disconnects.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Tracking client for {subject_id} disconnected")
    finally:
        subscription.unsubscribe()
        if forward_task is not None:
            forward_task.cancel()
            await asyncio.gather(forward_task, return_exceptions=True)
