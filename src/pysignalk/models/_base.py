"""Base model for SignalK wire payloads.

Every response model inherits from :class:`SignalKBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase SignalK keys map
  automatically to snake_case fields.
* A ``raw`` dict that captures the original payload.

Timestamps go through :data:`SignalKTimestamp`, which accepts ISO 8601
strings (with or without ``Z``), epoch seconds/milliseconds and datetimes.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_signalk_timestamp(value: Any) -> datetime | None:
    """Convert a SignalK timestamp to a timezone-aware UTC datetime.

    Returns ``None`` for ``None``, empty strings and unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


SignalKTimestamp = Annotated[datetime | None, BeforeValidator(parse_signalk_timestamp)]
"""Annotated type that coerces SignalK timestamps to UTC datetimes."""


class SignalKBaseModel(BaseModel):
    """Base for SignalK payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        """Drop explicit ``None`` values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Only auto-stash raw when not explicitly provided.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
