"""Autopilot commands over the V1 (plugin PUT) or V2 (REST) API.

Engage, disengage and mode changes share one :class:`OptimisticControl`
on ``steering.autopilot.state`` and are verified against it.  Heading
adjustments and manoeuvres are sent unverified: their effect is a moving
target heading, not a value that can be compared.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from typing import Any

from pysignalk._api.autopilot_v2 import fetch_info, instance_endpoint
from pysignalk._api.detect import detect_autopilot_api
from pysignalk._constants import (
    AUTOPILOT_ADJUST_HEADING_PATH,
    AUTOPILOT_ADVANCE_WAYPOINT_PATH,
    AUTOPILOT_ENGAGED_PATH,
    AUTOPILOT_MODE_PATH,
    AUTOPILOT_STATE_PATH,
    AUTOPILOT_TACK_PATH,
    AUTOPILOT_TARGET_HEADING_PATH,
    ENGAGED_STATE,
    STANDBY_STATE,
)
from pysignalk._transport import Transport
from pysignalk.control.optimistic import OptimisticControl
from pysignalk.control.sender import CommandSender
from pysignalk.control.verifier import StateVerifier
from pysignalk.conversion import radians_to_degrees
from pysignalk.exceptions import SignalKCommandError, SignalKV2NotAvailableError
from pysignalk.models.autopilot import (
    AutopilotApiVersion,
    AutopilotDetection,
    AutopilotInfo,
    AutopilotInstance,
    TackDirection,
)
from pysignalk.models.command import Command, CommandAck, CommandOutcome, CommandResult, ControlPhase
from pysignalk.state.store import DataStore

_logger = logging.getLogger(__name__)


class AutopilotControl:
    """Autopilot command flows wired through sender, verifier and optimistic display.

    Use :meth:`create` to probe the server for the V2 API first; the
    constructor defaults to V1 when no detection result is given.
    """

    def __init__(
        self,
        *,
        store: DataStore,
        sender: CommandSender,
        verifier: StateVerifier,
        transport: Transport,
        detection: AutopilotDetection | None = None,
        grace_window: float = 3.0,
        verify_timeout: float | None = None,
        on_change: Callable[[Any], None] | None = None,
        on_result: Callable[[CommandResult], None] | None = None,
        on_phase: Callable[[ControlPhase], None] | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._transport = transport
        self._detection = detection or AutopilotDetection(version=AutopilotApiVersion.V1)
        self._instance: AutopilotInstance | None = self._detection.default_instance
        self._on_result = on_result
        self.state_control = OptimisticControl(
            AUTOPILOT_STATE_PATH,
            store=store,
            sender=sender,
            verifier=verifier,
            grace_window=grace_window,
            verify_timeout=verify_timeout,
            send_fn=self._send_state,
            on_change=on_change,
            on_result=on_result,
            on_phase=on_phase,
        )

    @classmethod
    async def create(
        cls,
        *,
        store: DataStore,
        sender: CommandSender,
        verifier: StateVerifier,
        transport: Transport,
        **kwargs: Any,
    ) -> AutopilotControl:
        """Detect the autopilot API and build a control for it."""
        detection = await detect_autopilot_api(transport)
        return cls(store=store, sender=sender, verifier=verifier, transport=transport, detection=detection, **kwargs)

    # ------------------------------------------------------------------
    # API selection
    # ------------------------------------------------------------------

    @property
    def api_version(self) -> AutopilotApiVersion:
        return AutopilotApiVersion.V2 if self.is_v2 else AutopilotApiVersion.V1

    @property
    def is_v2(self) -> bool:
        return self._detection.is_v2 and self._instance is not None

    @property
    def instances(self) -> list[AutopilotInstance]:
        return list(self._detection.instances)

    @property
    def instance(self) -> AutopilotInstance | None:
        return self._instance

    def select_instance(self, instance_id: str) -> AutopilotInstance:
        for instance in self._detection.instances:
            if instance.id == instance_id:
                self._instance = instance
                return instance
        raise ValueError(f"unknown autopilot instance {instance_id!r}")

    def _require_v2(self, feature: str) -> AutopilotInstance:
        if not self.is_v2 or self._instance is None:
            raise SignalKV2NotAvailableError(f"{feature} requires the V2 autopilot API")
        return self._instance

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def state(self) -> str | None:
        value = self._store.value(AUTOPILOT_STATE_PATH)
        return value if isinstance(value, str) else None

    @property
    def mode(self) -> str | None:
        value = self._store.value(AUTOPILOT_MODE_PATH)
        return value if isinstance(value, str) else None

    @property
    def engaged(self) -> bool:
        """The engaged flag when the pilot publishes one, else ``state != "standby"``."""
        flag = self._store.value(AUTOPILOT_ENGAGED_PATH)
        if isinstance(flag, bool):
            return flag
        state = self.state
        return state is not None and state.strip().lower() != STANDBY_STATE

    @property
    def target_heading(self) -> float | None:
        """Target heading in degrees (the server publishes radians)."""
        value = self._store.value(AUTOPILOT_TARGET_HEADING_PATH)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return radians_to_degrees(value)

    @property
    def displayed_state(self) -> Any:
        """State to show: the optimistic value while a command is in flight."""
        return self.state_control.displayed_value

    async def info(self) -> AutopilotInfo:
        instance = self._require_v2("Autopilot info")
        return await fetch_info(self._transport, instance.id)

    # ------------------------------------------------------------------
    # Verified state commands
    # ------------------------------------------------------------------

    async def _send_state(self, value: Any) -> CommandAck:
        if not self.is_v2 or self._instance is None:
            return await self._sender.send(AUTOPILOT_STATE_PATH, value)
        instance_id = self._instance.id
        if value == STANDBY_STATE:
            return await self._sender.send_request("POST", instance_endpoint(instance_id, "disengage"))
        if value == ENGAGED_STATE:
            return await self._sender.send_request("POST", instance_endpoint(instance_id, "engage"))
        return await self._sender.send_request("PUT", instance_endpoint(instance_id, "mode"), {"value": value})

    async def engage(self) -> CommandResult:
        return await self.state_control.send(ENGAGED_STATE)

    async def disengage(self) -> CommandResult:
        return await self.state_control.send(STANDBY_STATE)

    async def toggle_engaged(self) -> CommandResult:
        return await (self.disengage() if self.engaged else self.engage())

    async def set_mode(self, mode: str) -> CommandResult:
        """Switch mode (``auto``, ``wind``, ``route``, ...); verified on the state path."""
        return await self.state_control.send(mode.strip().lower())

    # ------------------------------------------------------------------
    # Unverified actions
    # ------------------------------------------------------------------

    async def _send_action(
        self,
        path: str,
        value: Any,
        *,
        v2: tuple[str, str, Mapping[str, Any] | None] | None = None,
    ) -> CommandResult:
        command = Command(path=path, value=value)
        try:
            if v2 is not None and self.is_v2:
                method, endpoint, body = v2
                ack = await self._sender.send_request(method, endpoint, body)
            else:
                ack = await self._sender.send(path, value)
        except SignalKCommandError as exc:
            _logger.debug("Autopilot action failed path=%s kind=%s", path, exc.kind, exc_info=True)
            result = CommandResult(
                command=command,
                outcome=CommandOutcome.FAILED,
                error_kind=exc.kind,
                detail=exc.user_message(),
            )
        else:
            result = CommandResult(command=command, outcome=CommandOutcome.UNVERIFIED, ack=ack)
        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                _logger.debug("on_result callback failed path=%s", path, exc_info=True)
        return result

    def _v2_endpoint(self, *parts: str) -> str:
        if self._instance is None:
            return ""
        return instance_endpoint(self._instance.id, *parts)

    async def adjust_heading(self, degrees: int) -> CommandResult:
        """Nudge the target heading by *degrees* (typically +-1 or +-10)."""
        return await self._send_action(
            AUTOPILOT_ADJUST_HEADING_PATH,
            int(degrees),
            v2=("PUT", self._v2_endpoint("target", "adjust"), {"value": int(degrees), "units": "deg"}),
        )

    async def set_target_heading(self, degrees: float) -> CommandResult:
        """Set an absolute target heading in degrees."""
        return await self._send_action(
            AUTOPILOT_TARGET_HEADING_PATH,
            math.radians(degrees % 360.0),
            v2=("PUT", self._v2_endpoint("target"), {"value": degrees % 360.0, "units": "deg"}),
        )

    async def tack(self, direction: TackDirection | str) -> CommandResult:
        side = TackDirection(direction).value
        return await self._send_action(AUTOPILOT_TACK_PATH, side, v2=("POST", self._v2_endpoint("tack", side), None))

    async def gybe(self, direction: TackDirection | str) -> CommandResult:
        instance = self._require_v2("Gybe")
        side = TackDirection(direction).value
        endpoint = instance_endpoint(instance.id, "gybe", side)
        return await self._send_action(endpoint, side, v2=("POST", endpoint, None))

    async def set_dodge(self, active: bool) -> CommandResult:
        instance = self._require_v2("Dodge")
        endpoint = instance_endpoint(instance.id, "dodge")
        return await self._send_action(endpoint, active, v2=("POST" if active else "DELETE", endpoint, None))

    async def advance_waypoint(self) -> CommandResult:
        # Both API versions advance through the V1 action path.
        return await self._send_action(AUTOPILOT_ADVANCE_WAYPOINT_PATH, 1)

    @property
    def closed(self) -> bool:
        return self.state_control.closed

    async def close(self) -> None:
        await self.state_control.close()

    async def __aenter__(self) -> AutopilotControl:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
