"""Stream message ingestion.

Classifies messages read from the delta stream and translates deltas into
data-store events and metadata updates.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from pysignalk._constants import SELF_CONTEXT
from pysignalk.models.data_point import DataPoint
from pysignalk.models.delta import Delta, DeltaUpdate, DeltaValue
from pysignalk.state.events import IngestionEvent, IngestionSource

_logger = logging.getLogger(__name__)

# Keys that mark a value object as pre-converted by the units-preference plugin.
_CONVERTED_KEYS = frozenset({"converted", "formatted"})


class MessageKind(enum.StrEnum):
    DELTA = "delta"
    HELLO = "hello"
    REQUEST_STATUS = "request_status"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StreamMessage:
    """A decoded stream message."""

    kind: MessageKind
    payload: dict[str, Any] = field(default_factory=dict)
    delta: Delta | None = None

    @property
    def request_succeeded(self) -> bool:
        """For ``REQUEST_STATUS`` messages (e.g. the login reply): completed with a 2xx."""
        status = self.payload.get("statusCode")
        return (
            str(self.payload.get("state") or "").upper() == "COMPLETED"
            and isinstance(status, int)
            and 200 <= status < 300
        )


def decode_message(text: str | bytes | dict[str, Any]) -> StreamMessage:
    """Decode one stream frame.

    Non-JSON frames and JSON that is not an object decode to ``UNKNOWN``;
    the stream never fails on a bad frame.
    """
    if isinstance(text, dict):
        payload: Any = text
    else:
        try:
            payload = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError):
            _logger.debug("Ignoring non-JSON stream frame", exc_info=True)
            return StreamMessage(kind=MessageKind.UNKNOWN)
    if not isinstance(payload, dict):
        return StreamMessage(kind=MessageKind.UNKNOWN)

    if Delta.is_delta(payload):
        try:
            delta = Delta.model_validate(payload)
        except ValidationError:
            _logger.debug("Ignoring malformed delta", exc_info=True)
            return StreamMessage(kind=MessageKind.UNKNOWN, payload=payload)
        return StreamMessage(kind=MessageKind.DELTA, payload=payload, delta=delta)
    if payload.get("requestId") is not None and payload.get("state") is not None:
        return StreamMessage(kind=MessageKind.REQUEST_STATUS, payload=payload)
    if "self" in payload and ("version" in payload or "name" in payload):
        return StreamMessage(kind=MessageKind.HELLO, payload=payload)
    return StreamMessage(kind=MessageKind.UNKNOWN, payload=payload)


def _is_self_context(context: str, self_id: str | None) -> bool:
    if not context or context == SELF_CONTEXT:
        return True
    if self_id is None:
        return True
    return context in (self_id, f"vessels.{self_id}")


def _build_point(update: DeltaUpdate, entry: DeltaValue) -> DataPoint:
    raw = entry.value
    if isinstance(raw, dict) and _CONVERTED_KEYS & raw.keys():
        # Units-preference frame: keep the SI value in ``value`` so it can be
        # compared with what was sent, and the display fields alongside.
        converted = raw.get("converted")
        si_value = raw.get("original", raw.get("value", converted))
        return DataPoint(
            path=entry.path,
            source=update.source,
            value=si_value,
            timestamp=update.timestamp,
            converted=converted if isinstance(converted, (int, float)) and not isinstance(converted, bool) else None,
            formatted=raw.get("formatted") if isinstance(raw.get("formatted"), str) else None,
            symbol=raw.get("symbol") if isinstance(raw.get("symbol"), str) else None,
            original=raw.get("original"),
        )
    return DataPoint(
        path=entry.path,
        source=update.source,
        value=raw,
        timestamp=update.timestamp,
    )


def build_events_from_delta(
    delta: Delta,
    *,
    self_id: str | None = None,
    source: IngestionSource = IngestionSource.STREAM,
) -> list[IngestionEvent]:
    """Build one event per ``values`` entry of a delta about our own vessel."""
    if not _is_self_context(delta.context, self_id):
        return []

    events: list[IngestionEvent] = []
    for update, entry in delta.iter_values():
        try:
            point = _build_point(update, entry)
        except ValidationError:
            _logger.debug("Skipping invalid delta value path=%s", entry.path, exc_info=True)
            continue
        events.append(
            IngestionEvent(
                point=point,
                source=source,
                has_payload_timestamp=update.timestamp is not None,
            )
        )
    return events


def extract_display_units(delta: Delta) -> list[tuple[str, dict[str, Any]]]:
    """``(path, displayUnits)`` pairs carried by the delta's meta entries."""
    found: list[tuple[str, dict[str, Any]]] = []
    for _update, meta in delta.iter_meta():
        units = meta.display_units
        if units is not None:
            found.append((meta.path, units))
    return found
