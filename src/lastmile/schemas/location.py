"""Location telemetry request/response schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..models.domain import PositionSample


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken to be UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LocationMessage(BaseModel):
    """Inbound sample from a channel or snapshot; tolerant of the key spellings in the wild."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat", "agentLat"))
    longitude: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon", "agentLng"))
    accuracy_m: Optional[float] = Field(
        default=None, ge=0, validation_alias=AliasChoices("accuracyMeters", "accuracy_m", "accuracy")
    )
    captured_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("capturedAt", "captured_at", "timestamp")
    )

    @field_validator("captured_at", mode="after")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def to_sample(self, received_at: datetime | None = None) -> PositionSample:
        captured = self.captured_at or received_at or datetime.now(timezone.utc)
        return PositionSample(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy_m=self.accuracy_m,
            captured_at=captured,
        )


class LocationUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    subject_id: str = Field(..., min_length=1, alias="subjectId")
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    accuracy_m: Optional[float] = Field(default=None, ge=0, alias="accuracyMeters")
    captured_at: Optional[datetime] = Field(default=None, alias="capturedAt")

    @field_validator("captured_at", mode="after")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class LocationSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., serialization_alias="subjectId")
    agent_id: Optional[str] = Field(default=None, serialization_alias="agentId")
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = Field(default=None, serialization_alias="accuracyMeters")
    captured_at: datetime = Field(..., serialization_alias="capturedAt")

    @classmethod
    def from_sample(cls, subject_id: str, sample: PositionSample, agent_id: str | None = None) -> "LocationSnapshot":
        return cls(
            subject_id=subject_id,
            agent_id=agent_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy_m=sample.accuracy_m,
            captured_at=sample.captured_at,
        )
