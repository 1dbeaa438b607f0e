"""Vessel data endpoints.

Endpoints:
  - GET /signalk/v1/api/vessels            (vessel ids; first key is self)
  - GET /signalk/v1/api/vessels/self       (full data tree)
  - GET /signalk/v1/api/vessels/self/{a/b} (one path with its sources)
"""

from __future__ import annotations

import logging
from typing import Any

from pysignalk._constants import SELF_ENDPOINT, VESSELS_ENDPOINT, path_to_url_segment
from pysignalk._transport import Transport

_logger = logging.getLogger(__name__)


async def fetch_self_id(transport: Transport) -> str | None:
    """Return the self vessel id (e.g. ``urn:mrn:imo:mmsi:230099999``), if any."""
    data = (await transport.request("GET", VESSELS_ENDPOINT)).json_object()
    for vessel_id in data:
        _logger.debug("Vessel self id: %s", vessel_id)
        return vessel_id
    return None


async def fetch_self_tree(transport: Transport) -> dict[str, Any]:
    """Return the full data tree of the self vessel."""
    return (await transport.request("GET", SELF_ENDPOINT)).json_object()


async def fetch_path_sources(transport: Transport, path: str) -> dict[str, dict[str, Any]]:
    """Return ``{source_label: {value, timestamp, is_active}}`` for *path*.

    A path reported by several devices carries them under ``values``; the
    source currently shown by the server is its ``$source``.
    """
    data = (await transport.request("GET", f"{SELF_ENDPOINT}/{path_to_url_segment(path)}")).json_object()
    active = data.get("$source")

    values = data.get("values")
    if isinstance(values, dict):
        return {
            label: {**(entry if isinstance(entry, dict) else {}), "is_active": label == active}
            for label, entry in values.items()
        }
    if isinstance(active, str):
        return {
            active: {
                "value": data.get("value"),
                "timestamp": data.get("timestamp"),
                "is_active": True,
            }
        }
    return {}
