"""In-memory last-known position store backing the snapshot endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models.domain import PositionSample


@dataclass(frozen=True, slots=True)
class StoredLocation:
    subject_id: str
    sample: PositionSample
    agent_id: Optional[str] = None


class LocationStore:
    """Last write wins per subject, judged by ``captured_at`` rather than arrival order."""

    def __init__(self) -> None:
        self._latest: dict[str, StoredLocation] = {}

    def put(self, subject_id: str, sample: PositionSample, agent_id: str | None = None) -> bool:
        current = self._latest.get(subject_id)
        if current is not None and sample.captured_at < current.sample.captured_at:
            return False
        self._latest[subject_id] = StoredLocation(subject_id=subject_id, sample=sample, agent_id=agent_id)
        return True

    def get(self, subject_id: str) -> StoredLocation | None:
        return self._latest.get(subject_id)

    def clear(self) -> None:
        self._latest.clear()


location_store = LocationStore()
