"""SignalK delta message models.

A delta is ``{"context": ..., "updates": [...]}`` where each update
carries a source, a timestamp, ``values`` and optionally ``meta``.
The source is sent either as ``"$source": "label"`` (units-preference
plugin, newer servers) or ``"source": {"label": ...}`` (standard format).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from pysignalk.models._base import SignalKBaseModel, SignalKTimestamp


class DeltaValue(SignalKBaseModel):
    """One ``{"path": ..., "value": ...}`` entry."""

    path: str = ""
    value: Any = None


class DeltaMeta(SignalKBaseModel):
    """One ``{"path": ..., "value": {...}}`` metadata entry."""

    path: str = ""
    value: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_units(self) -> dict[str, Any] | None:
        units = self.value.get("displayUnits")
        return units if isinstance(units, dict) else None


class DeltaUpdate(SignalKBaseModel):
    """One entry of a delta's ``updates`` list."""

    source: str | None = None
    timestamp: SignalKTimestamp = None
    values: list[DeltaValue] = Field(default_factory=list)
    meta: list[DeltaMeta] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_source(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        label: str | None = None
        dollar = merged.pop("$source", None)
        if isinstance(dollar, str) and dollar:
            label = dollar
        source_obj = merged.get("source")
        if label is None:
            if isinstance(source_obj, dict):
                candidate = source_obj.get("label")
                label = candidate if isinstance(candidate, str) and candidate else None
            elif isinstance(source_obj, str) and source_obj:
                label = source_obj
        if label is None:
            merged.pop("source", None)
        else:
            merged["source"] = label
        return merged


class Delta(SignalKBaseModel):
    """A full delta message."""

    context: str = ""
    updates: list[DeltaUpdate] = Field(default_factory=list)

    @staticmethod
    def is_delta(message: Any) -> bool:
        return isinstance(message, dict) and isinstance(message.get("updates"), list)

    def iter_values(self) -> list[tuple[DeltaUpdate, DeltaValue]]:
        return [(update, value) for update in self.updates for value in update.values if value.path]

    def iter_meta(self) -> list[tuple[DeltaUpdate, DeltaMeta]]:
        return [(update, meta) for update in self.updates for meta in update.meta if meta.path]

    def latest_timestamp(self) -> datetime | None:
        stamps = [update.timestamp for update in self.updates if update.timestamp is not None]
        return max(stamps) if stamps else None
