"""High-level async client for a SignalK server."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any

import aiohttp

from pysignalk._api import auth as _auth_api
from pysignalk._api import vessels as _vessels_api
from pysignalk._stream import DeltaStream
from pysignalk._transport import RestTransport
from pysignalk.config import SignalKConfig
from pysignalk.control.autopilot import AutopilotControl
from pysignalk.control.optimistic import OptimisticControl
from pysignalk.control.sender import CommandSender
from pysignalk.control.verifier import StateVerifier
from pysignalk.exceptions import SignalKError, SignalKTransportError
from pysignalk.ingestion.delta import MessageKind, StreamMessage, build_events_from_delta, extract_display_units
from pysignalk.ingestion.tree import build_events_from_tree, extract_paths_from_tree
from pysignalk.models.access import AccessRequest
from pysignalk.models.command import CommandAck, CommandResult, ControlPhase
from pysignalk.models.data_point import DataPoint
from pysignalk.session import AuthToken, AuthType
from pysignalk.state.metadata import MetadataStore
from pysignalk.state.store import DataStore, Subscription

_logger = logging.getLogger(__name__)

MISSING_VALUE_TEXT = "---"


class SignalKClient:
    """Async client for a SignalK server.

    Usage::

        async with SignalKClient(SignalKConfig.from_env()) as client:
            await client.connect()
            autopilot = await client.autopilot()
            result = await autopilot.engage()
            print(result.message)

    The client owns the data store fed by the delta stream, the unit
    metadata learned from meta deltas, and the command sender every control
    shares.  Each control gets its own state verifier, so two controls on
    the same path never cancel each other's verification.
    """

    def __init__(
        self,
        config: SignalKConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        on_message: Callable[[StreamMessage], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: RestTransport | None = None
        self._sender: CommandSender | None = None
        self._stream: DeltaStream | None = None
        self._token: AuthToken | None = (
            AuthToken(token=config.token, auth_type=AuthType.DEVICE) if config.token else None
        )
        self._self_id: str | None = None
        self._on_message_cb = on_message
        self._controls: list[OptimisticControl | AutopilotControl] = []

        self.store = DataStore(
            skew_allowance_seconds=config.skew_allowance_seconds,
            stale_ttl=config.stale_ttl,
        )
        self.metadata = MetadataStore()
        self.verifier = self._new_verifier()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SignalKClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = RestTransport(
            self._config,
            self._http_session,
            token=self._token.token if self._token else None,
        )
        self._sender = CommandSender(self._transport)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        for control in self._controls:
            await control.close()
        self._controls.clear()
        self.verifier.cancel_all()
        await self.disconnect()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None
        self._transport = None
        self._sender = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> RestTransport:
        if self._transport is None:
            raise SignalKError("Client not initialized. Use 'async with SignalKClient(...) as client:'")
        return self._transport

    @property
    def sender(self) -> CommandSender:
        if self._sender is None:
            raise SignalKError("Client not initialized. Use 'async with SignalKClient(...) as client:'")
        return self._sender

    @property
    def config(self) -> SignalKConfig:
        return self._config

    @property
    def token(self) -> AuthToken | None:
        return self._token

    @property
    def self_id(self) -> str | None:
        return self._self_id

    @property
    def is_connected(self) -> bool:
        return self._stream is not None and self._stream.is_connected

    def _new_verifier(self) -> StateVerifier:
        return StateVerifier(
            self.store,
            timeout=self._config.verify_timeout,
            numeric_tolerance=self._config.numeric_tolerance,
            watch_notifications=self._config.watch_autopilot_notifications,
        )

    def _track(self, control: OptimisticControl | AutopilotControl) -> None:
        self._controls = [tracked for tracked in self._controls if not tracked.closed]
        self._controls.append(control)

    def _set_token(self, token: AuthToken) -> None:
        self._token = token
        self._require_transport().set_token(token.token)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self) -> AuthToken:
        """Log in with the configured username/password."""
        if not self._config.has_credentials:
            raise SignalKError("No credentials configured (set username and password)")
        token = await _auth_api.login(
            self._require_transport(),
            self._config.username or "",
            self._config.password or "",
        )
        self._set_token(token)
        return token

    async def ensure_token(self) -> AuthToken | None:
        """Return a usable token, logging in again when it is about to expire."""
        if self._token is not None and not self._token.is_expired:
            return self._token
        if self._config.has_credentials:
            return await self.login()
        return self._token

    async def request_device_access(
        self,
        client_id: str | None = None,
        description: str = _auth_api.DEFAULT_DEVICE_DESCRIPTION,
    ) -> AccessRequest:
        """Submit a device access request; approve it in the server admin UI."""
        return await _auth_api.request_access(
            self._require_transport(),
            client_id or str(uuid.uuid4()),
            description,
        )

    async def wait_for_device_access(
        self,
        request: AccessRequest,
        *,
        interval: float = 2.0,
        timeout: float = 300.0,
    ) -> AuthToken:
        """Poll *request* until approved and start using the device token."""
        token = await _auth_api.poll_access_request(
            self._require_transport(),
            request,
            interval=interval,
            timeout=timeout,
        )
        self._set_token(token)
        return token

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------

    async def connect(self, *, wait: bool = True, timeout: float | None = None) -> bool:
        """Authenticate if needed, then open the delta stream.

        Returns whether the stream connected within *timeout* (always
        ``True`` with ``wait=False``).
        """
        transport = self._require_transport()
        if self._http_session is None:
            raise SignalKError("Client not initialized. Use 'async with SignalKClient(...) as client:'")
        await self.ensure_token()

        try:
            self._self_id = await _vessels_api.fetch_self_id(transport)
        except SignalKTransportError:
            _logger.debug("Could not resolve vessel self id", exc_info=True)

        if self._stream is None:
            self._stream = DeltaStream(
                self._config,
                self._http_session,
                on_message=self._handle_message,
                token_provider=lambda: transport.token,
                paths_provider=self.available_paths,
            )
        self._stream.start()
        if not wait:
            return True
        return await self._stream.wait_connected(timeout or self._config.request_timeout)

    async def disconnect(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            await stream.stop()

    async def subscribe_paths(self, paths: list[str]) -> None:
        """Ask the stream for additional explicit paths."""
        if self._stream is None:
            raise SignalKError("Stream not connected; call connect() first")
        await self._stream.subscribe_paths(paths)

    def _handle_message(self, message: StreamMessage) -> None:
        if message.kind == MessageKind.DELTA and message.delta is not None:
            for event in build_events_from_delta(message.delta, self_id=self._self_id):
                self.store.apply(event)
            for path, display_units in extract_display_units(message.delta):
                self.metadata.update_from_meta(path, display_units)
        if self._on_message_cb is not None:
            try:
                self._on_message_cb(message)
            except Exception:
                _logger.debug("on_message callback failed kind=%s", message.kind, exc_info=True)

    # ------------------------------------------------------------------
    # REST reads
    # ------------------------------------------------------------------

    async def available_paths(self) -> list[str]:
        tree = await _vessels_api.fetch_self_tree(self._require_transport())
        return extract_paths_from_tree(tree)

    async def refresh_snapshot(self) -> int:
        """Load the full vessel tree into the store; returns the number of points accepted.

        Live stream values are never overwritten by an older snapshot.
        """
        tree = await _vessels_api.fetch_self_tree(self._require_transport())
        return sum(1 for event in build_events_from_tree(tree) if self.store.apply(event))

    async def path_sources(self, path: str) -> dict[str, dict[str, Any]]:
        return await _vessels_api.fetch_path_sources(self._require_transport(), path)

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    def subscribe(
        self,
        path: str,
        listener: Callable[[DataPoint], None],
        *,
        source: str | None = None,
        prefix: bool = False,
    ) -> Subscription:
        return self.store.subscribe(path, listener, source=source, prefix=prefix)

    def get_value(self, path: str, source: str | None = None) -> DataPoint | None:
        return self.store.get(path, source)

    def get_numeric_value(self, path: str, source: str | None = None) -> float | None:
        point = self.store.get(path, source)
        return point.numeric_value if point is not None else None

    def get_converted_value(self, path: str, source: str | None = None) -> float | None:
        """Value in the user's preferred unit."""
        point = self.store.get(path, source)
        if point is None:
            return None
        if point.converted is not None:
            return point.converted
        numeric = point.numeric_value
        if numeric is None:
            return None
        return self.metadata.convert(path, numeric)

    def get_formatted_value(self, path: str, source: str | None = None, *, decimals: int = 1) -> str:
        """Display string such as ``"10.5 kn"``; ``"---"`` when there is no value."""
        point = self.store.get(path, source)
        if point is None or point.value is None:
            return MISSING_VALUE_TEXT
        if point.formatted is not None:
            return point.formatted
        numeric = point.numeric_value
        if numeric is not None:
            return self.metadata.format(path, numeric, decimals=decimals)
        return str(point.value)

    def get_unit_symbol(self, path: str) -> str | None:
        point = self.store.get(path)
        if point is not None and point.symbol:
            return point.symbol
        return self.metadata.get_symbol(path)

    def convert_to_si(self, path: str, display_value: float) -> float:
        return self.metadata.convert_to_si(path, display_value)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def send_put(self, path: str, value: Any) -> CommandAck:
        """Send one PUT without verification or optimistic display."""
        return await self.sender.send(path, value)

    def control(
        self,
        path: str,
        *,
        source: str | None = None,
        on_change: Callable[[Any], None] | None = None,
        on_result: Callable[[CommandResult], None] | None = None,
        on_phase: Callable[[ControlPhase], None] | None = None,
    ) -> OptimisticControl:
        """Optimistic control bound to *path*; closed with the client."""
        control = OptimisticControl(
            path,
            store=self.store,
            sender=self.sender,
            verifier=self._new_verifier(),
            grace_window=self._config.grace_window,
            verify_timeout=self._config.verify_timeout,
            source=source,
            on_change=on_change,
            on_result=on_result,
            on_phase=on_phase,
        )
        self._track(control)
        return control

    async def autopilot(
        self,
        *,
        on_change: Callable[[Any], None] | None = None,
        on_result: Callable[[CommandResult], None] | None = None,
        on_phase: Callable[[ControlPhase], None] | None = None,
    ) -> AutopilotControl:
        """Detect the autopilot API and return a control for it; closed with the client."""
        control = await AutopilotControl.create(
            store=self.store,
            sender=self.sender,
            verifier=self._new_verifier(),
            transport=self._require_transport(),
            grace_window=self._config.grace_window,
            verify_timeout=self._config.verify_timeout,
            on_change=on_change,
            on_result=on_result,
            on_phase=on_phase,
        )
        self._track(control)
        return control

    async def wait_for_value(self, path: str, timeout: float | None = None) -> DataPoint | None:
        """Wait for the first value on *path* (returns the cached one immediately)."""
        current = self.store.get(path)
        if current is not None:
            return current
        async with self.store.stream(path) as updates:
            try:
                return await asyncio.wait_for(updates.get(), timeout)
            except TimeoutError:
                return None
