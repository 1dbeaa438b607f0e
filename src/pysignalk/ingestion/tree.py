"""REST full-tree ingestion.

``GET /signalk/v1/api/vessels/self`` returns the vessel as a nested object
whose leaves look like ``{"value": ..., "timestamp": ..., "$source": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pysignalk.models._base import parse_signalk_timestamp
from pysignalk.models.data_point import DataPoint
from pysignalk.state.events import IngestionEvent, IngestionSource

_logger = logging.getLogger(__name__)

_SKIPPED_KEYS = frozenset({"$source", "timestamp", "meta", "values", "pgn", "sentence"})


def _is_metadata_key(key: str) -> bool:
    return key.startswith("_") or key in _SKIPPED_KEYS


def iter_leaves(tree: dict[str, Any], prefix: str = "") -> list[tuple[str, dict[str, Any]]]:
    """Return ``(path, leaf)`` for every node that carries a ``value``."""
    leaves: list[tuple[str, dict[str, Any]]] = []
    for key, node in tree.items():
        if _is_metadata_key(key) or not isinstance(node, dict):
            continue
        path = f"{prefix}.{key}" if prefix else key
        if "value" in node:
            leaves.append((path, node))
        else:
            leaves.extend(iter_leaves(node, path))
    return leaves


def extract_paths_from_tree(tree: dict[str, Any]) -> list[str]:
    """All leaf paths of a vessel tree (``navigation.speedOverGround`` etc.)."""
    return [path for path, _leaf in iter_leaves(tree)]


def build_events_from_tree(tree: dict[str, Any]) -> list[IngestionEvent]:
    """Snapshot events for every leaf value, tagged as REST-sourced."""
    events: list[IngestionEvent] = []
    for path, leaf in iter_leaves(tree):
        source = leaf.get("$source")
        timestamp = parse_signalk_timestamp(leaf.get("timestamp"))
        try:
            point = DataPoint(
                path=path,
                source=source if isinstance(source, str) and source else None,
                value=leaf.get("value"),
                timestamp=timestamp,
            )
        except ValidationError:
            _logger.debug("Skipping invalid tree leaf path=%s", path, exc_info=True)
            continue
        events.append(
            IngestionEvent(
                point=point,
                source=IngestionSource.REST,
                has_payload_timestamp=timestamp is not None,
            )
        )
    return events
