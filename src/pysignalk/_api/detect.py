"""Autopilot API version detection."""

from __future__ import annotations

import logging

from pysignalk._api.autopilot_v2 import discover_instances
from pysignalk._transport import Transport
from pysignalk.exceptions import SignalKTransportError, SignalKV2NotAvailableError
from pysignalk.models.autopilot import AutopilotApiVersion, AutopilotDetection

_logger = logging.getLogger(__name__)


async def detect_autopilot_api(transport: Transport) -> AutopilotDetection:
    """Probe the V2 autopilot API and fall back to V1.

    V2 is chosen only when discovery succeeds *and* lists at least one
    instance.  A 404, an empty list, or any transport failure selects V1.
    """
    try:
        instances = await discover_instances(transport)
    except SignalKV2NotAvailableError:
        _logger.debug("V2 autopilot API not available, using V1")
    except SignalKTransportError as exc:
        _logger.debug("V2 autopilot detection failed (%s), using V1", exc)
    else:
        if instances:
            _logger.debug(
                "V2 autopilot API detected with %d instance(s): %s",
                len(instances),
                ", ".join(f"{i.name} ({i.provider})" for i in instances),
            )
            return AutopilotDetection(version=AutopilotApiVersion.V2, instances=instances)
        _logger.debug("V2 autopilot API lists no instances, using V1")
    return AutopilotDetection(version=AutopilotApiVersion.V1)
