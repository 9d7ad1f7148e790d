"""Status-to-stage derivation for customer-facing tracking.

``derive_stage`` is a pure function of its inputs: it holds no state and is
recomputed on every observation, so the narrative cannot drift from backend
status. Missing context (hub, agent ids, route plan) only removes the finer
details; the coarse stage always comes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...models.domain import Coordinates, PositionSample, RoutePlan, Stop, StopKind
from ...models.status import DeliveryStage, GroupStatus, ParcelStatus
from ..geospatial import midpoint


class AgentRole(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    NONE = "none"


class QueuePosition(str, Enum):
    IMMINENT = "imminent"
    WAITING = "waiting"


@dataclass(frozen=True, slots=True)
class StageContext:
    """Everything the deriver looks at for one stop of one batch."""

    item_status: ParcelStatus
    batch_status: Optional[GroupStatus] = None
    stop_id: Optional[str] = None
    pickup_agent_id: Optional[str] = None
    delivery_agent_id: Optional[str] = None
    route_plan: Optional[RoutePlan] = None
    hub: Optional[Coordinates] = None
    pickup_location: Optional[Coordinates] = None
    delivery_location: Optional[Coordinates] = None
    agent_position: Optional[PositionSample] = None
    batch_stops: tuple[Stop, ...] = ()


@dataclass(frozen=True, slots=True)
class StopClassification:
    position: QueuePosition
    ahead: int

    @property
    def text(self) -> str:
        if self.position is QueuePosition.IMMINENT:
            return "Next stop"
        noun = "other" if self.ahead == 1 else "others"
        return f"Waiting behind {self.ahead} {noun}"


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """Completed vs. total stops of the kind the active agent is working through."""

    kind: StopKind
    completed: int
    total: int

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    @property
    def text(self) -> str:
        if self.kind is StopKind.PICKUP:
            return f"Collecting other packages ({self.completed}/{self.total})"
        return f"Delivering to other parcels ({self.completed}/{self.total} done)"


@dataclass(frozen=True, slots=True)
class StageView:
    stage: DeliveryStage
    active_agent_role: AgentRole
    classification: Optional[StopClassification]
    map_title: str
    agent_position_hint: Optional[Coordinates]
    progress: Optional[BatchProgress] = None

    @property
    def step(self) -> int:
        return self.stage.step

    @property
    def is_imminent(self) -> bool:
        return self.classification is not None and self.classification.position is QueuePosition.IMMINENT


_FORMING_BATCH = (GroupStatus.OPEN, GroupStatus.PARTIAL, GroupStatus.FULL)
_HUB_BATCH = (GroupStatus.PICKUP_COMPLETE, GroupStatus.AT_WAREHOUSE)
_PICKUP_PHASE = (
    DeliveryStage.AGENT_ASSIGNED,
    DeliveryStage.HEADING_TO_PICKUP,
    DeliveryStage.PICKED_UP,
    DeliveryStage.EN_ROUTE_TO_HUB,
)


def coarse_stage(
    item_status: ParcelStatus,
    batch_status: GroupStatus | None = None,
    *,
    pickup_agent_id: str | None = None,
    delivery_agent_id: str | None = None,
) -> DeliveryStage:
    """Stage from status alone. The first matching rule wins."""

    if item_status in (ParcelStatus.CANCELLED, ParcelStatus.RETURNED) or batch_status in (
        GroupStatus.CANCELLED,
        GroupStatus.EXPIRED,
    ):
        return DeliveryStage.CANCELLED
    if item_status is ParcelStatus.DELIVERED or batch_status is GroupStatus.COMPLETED:
        return DeliveryStage.DELIVERED
    if item_status is ParcelStatus.OUT_FOR_DELIVERY or batch_status is GroupStatus.DELIVERY_IN_PROGRESS:
        return DeliveryStage.OUT_FOR_DELIVERY
    if item_status is ParcelStatus.AT_WAREHOUSE or batch_status in _HUB_BATCH:
        return DeliveryStage.DELIVERY_AGENT_ASSIGNED if delivery_agent_id else DeliveryStage.AT_HUB
    if item_status in (ParcelStatus.IN_TRANSIT, ParcelStatus.IN_TRANSIT_TO_WAREHOUSE):
        return DeliveryStage.EN_ROUTE_TO_HUB
    if item_status is ParcelStatus.PICKED_UP:
        return DeliveryStage.PICKED_UP
    if item_status is ParcelStatus.ASSIGNED:
        if batch_status in _FORMING_BATCH:
            return DeliveryStage.AGENT_ASSIGNED
        return DeliveryStage.HEADING_TO_PICKUP
    # PENDING / CONFIRMED
    return DeliveryStage.AGENT_ASSIGNED if pickup_agent_id else DeliveryStage.PENDING


def active_agent_role(stage: DeliveryStage) -> AgentRole:
    if stage in _PICKUP_PHASE:
        return AgentRole.PICKUP
    if stage in (DeliveryStage.DELIVERY_AGENT_ASSIGNED, DeliveryStage.OUT_FOR_DELIVERY):
        return AgentRole.DELIVERY
    return AgentRole.NONE


def classify_stop(
    stop_id: str | None,
    route_plan: RoutePlan | None,
    active_agent_id: str | None = None,
) -> StopClassification | None:
    """Imminent when the stop is the plan's next stop; otherwise how many are ahead of it."""

    if stop_id is None or route_plan is None:
        return None
    if route_plan.agent_id is not None and active_agent_id is not None and route_plan.agent_id != active_agent_id:
        return None
    index = route_plan.position_of(stop_id)
    if index is None:
        return None
    next_stop = route_plan.next_stop
    if next_stop is not None and next_stop.id == stop_id:
        return StopClassification(position=QueuePosition.IMMINENT, ahead=0)
    return StopClassification(position=QueuePosition.WAITING, ahead=index)


def map_title(stage: DeliveryStage) -> str:
    if stage in (DeliveryStage.PENDING, DeliveryStage.AGENT_ASSIGNED, DeliveryStage.HEADING_TO_PICKUP, DeliveryStage.PICKED_UP):
        return "Agent 1 → Pickup"
    if stage is DeliveryStage.EN_ROUTE_TO_HUB:
        return "Pickup → Hub"
    if stage in (DeliveryStage.AT_HUB, DeliveryStage.DELIVERY_AGENT_ASSIGNED):
        return "At Hub (Waiting for Agent 2)"
    if stage is DeliveryStage.OUT_FOR_DELIVERY:
        return "Agent 2 → Your Delivery"
    if stage is DeliveryStage.CANCELLED:
        return "Cancelled"
    return "Delivered"


def agent_position_hint(stage: DeliveryStage, context: StageContext) -> Coordinates | None:
    """Where to draw the agent: real position if known, else a plausible simulated point."""

    role = active_agent_role(stage)
    if role is AgentRole.NONE or stage is DeliveryStage.DELIVERY_AGENT_ASSIGNED:
        return None
    if context.agent_position is not None:
        return Coordinates(context.agent_position.latitude, context.agent_position.longitude)

    pickup, hub, delivery = context.pickup_location, context.hub, context.delivery_location
    if stage in (DeliveryStage.AGENT_ASSIGNED, DeliveryStage.HEADING_TO_PICKUP) and pickup is not None:
        return Coordinates(pickup.latitude - 0.015, pickup.longitude - 0.015)
    if stage in (DeliveryStage.PICKED_UP, DeliveryStage.EN_ROUTE_TO_HUB) and pickup is not None and hub is not None:
        return Coordinates(*midpoint(pickup.latitude, pickup.longitude, hub.latitude, hub.longitude))
    if stage is DeliveryStage.OUT_FOR_DELIVERY and delivery is not None and hub is not None:
        return Coordinates(*midpoint(delivery.latitude, delivery.longitude, hub.latitude, hub.longitude))
    return None


def batch_progress(role: AgentRole, stops: tuple[Stop, ...]) -> BatchProgress | None:
    """Progress through the active agent's stops; ``None`` when there is nothing to count."""

    if role is AgentRole.PICKUP:
        kind = StopKind.PICKUP
    elif role is AgentRole.DELIVERY:
        kind = StopKind.DELIVERY
    else:
        return None
    relevant = [stop for stop in stops if stop.kind is kind]
    if not relevant:
        return None
    completed = sum(1 for stop in relevant if stop.completed)
    return BatchProgress(kind=kind, completed=completed, total=len(relevant))


def derive_stage(context: StageContext) -> StageView:
    stage = coarse_stage(
        context.item_status,
        context.batch_status,
        pickup_agent_id=context.pickup_agent_id,
        delivery_agent_id=context.delivery_agent_id,
    )
    role = active_agent_role(stage)

    classification = None
    if stage in (DeliveryStage.HEADING_TO_PICKUP, DeliveryStage.OUT_FOR_DELIVERY):
        active_agent_id = context.pickup_agent_id if role is AgentRole.PICKUP else context.delivery_agent_id
        classification = classify_stop(context.stop_id, context.route_plan, active_agent_id)

    return StageView(
        stage=stage,
        active_agent_role=role,
        classification=classification,
        map_title=map_title(stage),
        agent_position_hint=agent_position_hint(stage, context),
        progress=batch_progress(role, context.batch_stops),
    )
