"""V2 autopilot REST API: discovery and info.

Endpoints (relative to ``/signalk/v2/api/vessels/self/autopilots``):
  - GET /      registered instances
  - GET /{id}  state and capabilities of one instance

Commands (engage, mode, target, tack, gybe, dodge) are writes and go
through :class:`pysignalk.control.sender.CommandSender`.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from pysignalk._constants import AUTOPILOTS_V2_ENDPOINT
from pysignalk._transport import Transport
from pysignalk.exceptions import SignalKNotFoundError, SignalKV2NotAvailableError
from pysignalk.models.autopilot import AutopilotInfo, AutopilotInstance

_logger = logging.getLogger(__name__)


def instance_endpoint(instance_id: str, *parts: str) -> str:
    """``/signalk/v2/api/vessels/self/autopilots/{id}/{parts...}``."""
    return "/".join([AUTOPILOTS_V2_ENDPOINT, quote(instance_id, safe=""), *parts])


def _parse_instances(data: dict[str, Any]) -> list[AutopilotInstance]:
    # Some providers wrap the map in "autopilots".
    nested = data.get("autopilots")
    entries = nested if isinstance(nested, dict) else data
    instances: list[AutopilotInstance] = []
    for instance_id, info in entries.items():
        if not isinstance(info, dict):
            continue
        instances.append(AutopilotInstance.model_validate({**info, "id": instance_id}))
    return instances


async def discover_instances(transport: Transport) -> list[AutopilotInstance]:
    """List the autopilot providers registered with the server.

    Raises
    ------
    SignalKV2NotAvailableError
        The server does not serve the V2 autopilot API (HTTP 404).
    """
    try:
        response = await transport.request("GET", AUTOPILOTS_V2_ENDPOINT)
    except SignalKNotFoundError as exc:
        raise SignalKV2NotAvailableError(
            "V2 autopilot API not available on this server",
            status_code=exc.status_code,
            endpoint=AUTOPILOTS_V2_ENDPOINT,
        ) from exc
    instances = _parse_instances(response.json_object())
    _logger.debug("Discovered %d V2 autopilot instance(s)", len(instances))
    return instances


async def fetch_info(transport: Transport, instance_id: str) -> AutopilotInfo:
    response = await transport.request("GET", instance_endpoint(instance_id))
    return AutopilotInfo.model_validate(response.json_object())
