"""Normalized ingestion events.

All ingestion paths (WebSocket deltas, REST snapshots) convert their inputs
into these events. Only the state/store layer is allowed to merge them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pysignalk.models.data_point import DataPoint


class IngestionSource(StrEnum):
    STREAM = "stream"
    REST = "rest"


class IngestionEvent(BaseModel):
    """A normalized data point to apply to the data store."""

    model_config = ConfigDict(frozen=True)

    point: DataPoint
    source: IngestionSource = IngestionSource.STREAM
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    has_payload_timestamp: bool = True
    """``False`` when the server omitted the timestamp and ``point.timestamp`` was filled locally."""

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def path(self) -> str:
        return self.point.path

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.point.path, self.point.source)
