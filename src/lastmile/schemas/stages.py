"""Stage derivation request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.status import DeliveryStage, GroupStatus, ParcelStatus
from ..services.stages.deriver import AgentRole, QueuePosition, StageView
from .routing import PointModel, StopModel


class StageRequest(BaseModel):
    item_status: ParcelStatus
    batch_status: Optional[GroupStatus] = None
    stop_id: Optional[str] = Field(default=None, description="Stop of the item being tracked.")
    pickup_agent_id: Optional[str] = None
    delivery_agent_id: Optional[str] = None
    hub: Optional[PointModel] = None
    pickup_location: Optional[PointModel] = None
    delivery_location: Optional[PointModel] = None
    agent_position: Optional[PointModel] = Field(
        default=None,
        description="Last known position of the active agent; also the origin for ordering the batch's stops.",
    )
    batch_stops: Optional[List[StopModel]] = Field(
        default=None,
        description="Stops of the active agent's run, used for the imminent/waiting classification.",
    )


class ClassificationModel(BaseModel):
    position: QueuePosition
    ahead: int
    text: str


class ProgressModel(BaseModel):
    completed: int
    total: int
    text: str


class StageResponse(BaseModel):
    stage: DeliveryStage
    step: int
    label: str
    description: str
    terminal: bool
    active_agent_role: AgentRole
    classification: Optional[ClassificationModel] = None
    map_title: str
    agent_position_hint: Optional[PointModel] = None
    progress: Optional[ProgressModel] = None

    @classmethod
    def from_view(cls, view: StageView) -> "StageResponse":
        classification = None
        if view.classification is not None:
            classification = ClassificationModel(
                position=view.classification.position,
                ahead=view.classification.ahead,
                text=view.classification.text,
            )
        hint = None
        if view.agent_position_hint is not None:
            hint = PointModel(latitude=view.agent_position_hint.latitude, longitude=view.agent_position_hint.longitude)
        progress = None
        if view.progress is not None:
            progress = ProgressModel(completed=view.progress.completed, total=view.progress.total, text=view.progress.text)
        return cls(
            stage=view.stage,
            step=view.stage.step,
            label=view.stage.label,
            description=view.stage.description,
            terminal=view.stage.is_terminal,
            active_agent_role=view.active_agent_role,
            classification=classification,
            map_title=view.map_title,
            agent_position_hint=hint,
            progress=progress,
        )
