"""Closed status enumerations for items, batches and derived stages."""

from __future__ import annotations

from enum import Enum


class ParcelStatus(str, Enum):
    """Lifecycle of a single parcel, as reported by the backend."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    IN_TRANSIT_TO_WAREHOUSE = "IN_TRANSIT_TO_WAREHOUSE"
    AT_WAREHOUSE = "AT_WAREHOUSE"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class GroupStatus(str, Enum):
    """Lifecycle of a batch (group shipment)."""

    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    FULL = "FULL"
    PICKUP_IN_PROGRESS = "PICKUP_IN_PROGRESS"
    PICKUP_COMPLETE = "PICKUP_COMPLETE"
    AT_WAREHOUSE = "AT_WAREHOUSE"
    DELIVERY_IN_PROGRESS = "DELIVERY_IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class DeliveryStage(str, Enum):
    """Customer-facing progress narrative; always derived, never stored."""

    PENDING = "PENDING"
    AGENT_ASSIGNED = "AGENT_ASSIGNED"
    HEADING_TO_PICKUP = "HEADING_TO_PICKUP"
    PICKED_UP = "PICKED_UP"
    EN_ROUTE_TO_HUB = "EN_ROUTE_TO_HUB"
    AT_HUB = "AT_HUB"
    DELIVERY_AGENT_ASSIGNED = "DELIVERY_AGENT_ASSIGNED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def step(self) -> int:
        return _STAGE_INFO[self][0]

    @property
    def label(self) -> str:
        return _STAGE_INFO[self][1]

    @property
    def description(self) -> str:
        return _STAGE_INFO[self][2]

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStage.DELIVERED, DeliveryStage.CANCELLED)


# CANCELLED sits outside the pipeline, so it has no step of its own.
_STAGE_INFO: dict[DeliveryStage, tuple[int, str, str]] = {
    DeliveryStage.PENDING: (0, "Order placed", "Waiting for an agent to be assigned"),
    DeliveryStage.AGENT_ASSIGNED: (1, "Agent assigned", "A pickup agent has been assigned to your package"),
    DeliveryStage.HEADING_TO_PICKUP: (2, "Agent heading to pickup", "The agent is on the way to collect your package"),
    DeliveryStage.PICKED_UP: (3, "Picked up", "Your package has been collected from the sender"),
    DeliveryStage.EN_ROUTE_TO_HUB: (4, "On way to hub", "The agent is heading to the sorting facility"),
    DeliveryStage.AT_HUB: (5, "At hub", "Package is at the sorting facility, waiting for a delivery agent"),
    DeliveryStage.DELIVERY_AGENT_ASSIGNED: (6, "Delivery agent assigned", "A delivery agent will bring your package"),
    DeliveryStage.OUT_FOR_DELIVERY: (7, "Out for delivery", "The delivery agent is on the way with your package"),
    DeliveryStage.DELIVERED: (8, "Delivered", "Package has been delivered successfully"),
    DeliveryStage.CANCELLED: (-1, "Cancelled", "This shipment was cancelled"),
}
