"""Latest-known value for a path/source pair."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pysignalk.models._base import parse_signalk_timestamp


class DataPoint(BaseModel):
    """Last value pushed by the server for one ``(path, source)``.

    ``converted``, ``formatted``, ``symbol`` and ``original`` are only
    populated when streaming from the units-preference plugin.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    source: str | None = None
    value: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    converted: float | None = None
    formatted: str | None = None
    symbol: str | None = None
    original: Any = None

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        path = value.strip()
        if not path:
            raise ValueError("path must be non-empty")
        return path

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        parsed = parse_signalk_timestamp(value)
        return parsed if parsed is not None else datetime.now(UTC)

    @property
    def has_converted_value(self) -> bool:
        return self.formatted is not None

    @property
    def numeric_value(self) -> float | None:
        """``value`` as a float, or ``None`` when it is not numeric."""
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            return None
        return float(self.value)

    def age_seconds(self, now: datetime | None = None) -> float:
        current = now or datetime.now(UTC)
        return (current - self.timestamp).total_seconds()

    def is_stale(self, ttl_seconds: float, now: datetime | None = None) -> bool:
        """Whether this point is older than *ttl_seconds*.  ``ttl <= 0`` never expires."""
        if ttl_seconds <= 0:
            return False
        return self.age_seconds(now) > ttl_seconds
