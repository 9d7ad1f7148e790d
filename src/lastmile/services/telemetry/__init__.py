"""Location telemetry: acquisition, publishing and subscription."""

from .acquirer import AccuracyTier, PositionAcquirer, PositionProvider, ReplayPositionProvider
from .broadcast import LocationHub, location_hub
from .publisher import HttpLocationSink, SharingState, TelemetryPublisher
from .subscriber import HttpSnapshotSource, TelemetrySubscriber, normalize_payload

__all__ = [
    "AccuracyTier",
    "PositionAcquirer",
    "PositionProvider",
    "ReplayPositionProvider",
    "LocationHub",
    "location_hub",
    "HttpLocationSink",
    "SharingState",
    "TelemetryPublisher",
    "HttpSnapshotSource",
    "TelemetrySubscriber",
    "normalize_payload",
]
