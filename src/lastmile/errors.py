"""Error taxonomy for the tracking core.

Nothing here is fatal to an agent session: every error degrades a feature to a
coarser signal (no live dot, no road-hugging line, no "imminent" label).
"""

from __future__ import annotations

from enum import Enum


class LastMileError(Exception):
    """Base class for recoverable tracking-core errors."""


class PositionErrorKind(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAVAILABLE = "UNAVAILABLE"
    TIMEOUT = "TIMEOUT"


_DEFAULT_POSITION_MESSAGES = {
    PositionErrorKind.PERMISSION_DENIED: "Location permission denied. Enable location access for this device.",
    PositionErrorKind.UNAVAILABLE: "Location unavailable. Check that GPS is enabled.",
    PositionErrorKind.TIMEOUT: "Location request timed out. Try again.",
}


class PositionError(LastMileError):
    """Raised when no usable position could be acquired."""

    def __init__(self, kind: PositionErrorKind, message: str | None = None) -> None:
        self.kind = PositionErrorKind(kind)
        self.message = message or _DEFAULT_POSITION_MESSAGES[self.kind]
        super().__init__(self.message)


class PublishError(LastMileError):
    """Raised by a location sink when a sample could not be delivered."""


class RoutingUnavailable(LastMileError):
    """Every routing endpoint failed for a request."""


class MissingCoordinates(LastMileError):
    """A stop reached the optimizer without coordinates."""

    def __init__(self, stop_id: str) -> None:
        self.stop_id = stop_id
        super().__init__(f"Stop '{stop_id}' has no coordinates; resolve it before optimizing.")
