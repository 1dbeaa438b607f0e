"""WebSocket delta stream with login, subscription and reconnect."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import aiohttp

from pysignalk._constants import SELF_CONTEXT, STREAM_ENDPOINT, UNITS_PREFERENCE_STREAM_ENDPOINT, USER_AGENT
from pysignalk._redact import redact_for_log
from pysignalk.config import SignalKConfig
from pysignalk.ingestion.delta import MessageKind, StreamMessage, decode_message

_logger = logging.getLogger(__name__)

WILDCARD = "*"


def build_login_message(username: str, password: str, request_id: str) -> dict[str, Any]:
    return {"requestId": request_id, "login": {"username": username, "password": password}}


def build_subscribe_message(
    paths: Iterable[str],
    *,
    period: int = 1000,
    policy: str = "instant",
    context: str = SELF_CONTEXT,
) -> dict[str, Any]:
    """Build a ``subscribe`` message for *paths* (``"*"`` for everything)."""
    return {
        "context": context,
        "subscribe": [
            {"path": path, "period": period, "format": "delta", "policy": policy} for path in paths
        ],
    }


def build_unsubscribe_message(paths: Iterable[str], *, context: str = SELF_CONTEXT) -> dict[str, Any]:
    return {"context": context, "unsubscribe": [{"path": path} for path in paths]}


class DeltaStream:
    """Reads the server's delta stream and hands decoded messages to a callback.

    The stream reconnects with exponential backoff (bounded by
    ``config.reconnect_max_delay``) and re-sends its subscription after each
    reconnect.  The units-preference endpoint does not accept the ``"*"``
    wildcard, so in that mode the subscription is built from explicit paths
    returned by *paths_provider*.

    Parameters
    ----------
    config : SignalKConfig
        Client configuration.
    http_session : aiohttp.ClientSession
        Session used to open the WebSocket.
    on_message : callable
        Called with every decoded :class:`StreamMessage`.
    token_provider : callable or None
        Returns the current bearer token, sent on the upgrade request.
    paths_provider : callable or None
        Coroutine returning the paths to subscribe to when a wildcard
        subscription is not available.
    """

    def __init__(
        self,
        config: SignalKConfig,
        http_session: aiohttp.ClientSession,
        *,
        on_message: Callable[[StreamMessage], None],
        token_provider: Callable[[], str | None] | None = None,
        paths_provider: Callable[[], Awaitable[list[str]]] | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._on_message = on_message
        self._token_provider = token_provider
        self._paths_provider = paths_provider
        self._extra_paths: list[str] = []
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self._stopping = False
        self._login_request_id: str | None = None
        self._subscribed = False

    @property
    def url(self) -> str:
        endpoint = UNITS_PREFERENCE_STREAM_ENDPOINT if self._config.use_units_preference else STREAM_ENDPOINT
        return f"{self._config.ws_base}{endpoint}"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the receive loop in the background.  Idempotent."""
        if self.is_running:
            return
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pysignalk-delta-stream")

    async def stop(self) -> None:
        self._stopping = True
        task = self._task
        self._task = None
        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._connected.clear()

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def subscribe_paths(self, paths: Iterable[str]) -> None:
        """Add explicit paths; sent now if connected and remembered for reconnects."""
        new_paths = [path for path in paths if path not in self._extra_paths]
        if not new_paths:
            return
        self._extra_paths.extend(new_paths)
        ws = self._ws
        if ws is not None and not ws.closed and self._subscribed:
            await self._send(ws, self._subscribe_message(new_paths))

    async def unsubscribe_paths(self, paths: Iterable[str]) -> None:
        removed = [path for path in paths if path in self._extra_paths]
        for path in removed:
            self._extra_paths.remove(path)
        ws = self._ws
        if removed and ws is not None and not ws.closed and self._subscribed:
            await self._send(ws, build_unsubscribe_message(removed))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"user-agent": USER_AGENT}
        token = self._token_provider() if self._token_provider is not None else None
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    def _subscribe_message(self, paths: Iterable[str]) -> dict[str, Any]:
        return build_subscribe_message(
            paths,
            period=self._config.subscribe_period,
            policy=self._config.subscribe_policy,
        )

    async def _send(self, ws: aiohttp.ClientWebSocketResponse, message: dict[str, Any]) -> None:
        _logger.debug("Stream send %s", redact_for_log(message))
        await ws.send_str(json.dumps(message, separators=(",", ":")))

    async def _subscription_paths(self) -> list[str]:
        if not self._config.use_units_preference:
            return [WILDCARD]
        paths: list[str] = []
        if self._paths_provider is not None:
            try:
                paths = await self._paths_provider()
            except Exception:
                _logger.warning("Could not list paths for subscription", exc_info=True)
        return paths

    async def _on_open(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._subscribed = False
        if self._config.has_credentials:
            self._login_request_id = str(uuid.uuid4())
            await self._send(
                ws,
                build_login_message(
                    self._config.username or "",
                    self._config.password or "",
                    self._login_request_id,
                ),
            )
            # Subscribe once the login reply arrives.
            return
        await self._subscribe(ws)

    async def _subscribe(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        paths = await self._subscription_paths()
        for path in self._extra_paths:
            if path not in paths:
                paths.append(path)
        if not paths:
            _logger.warning("No paths to subscribe to")
        else:
            await self._send(ws, self._subscribe_message(paths))
            _logger.debug("Subscribed to %d path(s)", len(paths))
        self._subscribed = True

    async def _handle_frame(self, ws: aiohttp.ClientWebSocketResponse, data: str) -> None:
        message = decode_message(data)
        if message.kind == MessageKind.REQUEST_STATUS and message.payload.get("requestId") == self._login_request_id:
            self._login_request_id = None
            if message.request_succeeded:
                _logger.debug("Stream login succeeded")
            else:
                _logger.warning("Stream login failed: %s", message.payload.get("message"))
            await self._subscribe(ws)
            return
        if message.kind == MessageKind.HELLO:
            _logger.debug("Server hello: %s", message.payload)
        try:
            self._on_message(message)
        except Exception:
            _logger.debug("Stream message handler failed kind=%s", message.kind, exc_info=True)

    async def _run(self) -> None:
        delay = self._config.reconnect_initial_delay
        while not self._stopping:
            try:
                async with self._http.ws_connect(self.url, headers=self._headers(), heartbeat=30.0) as ws:
                    self._ws = ws
                    self._connected.set()
                    delay = self._config.reconnect_initial_delay
                    _logger.debug("Stream connected url=%s", self.url)
                    await self._on_open(ws)
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._handle_frame(ws, msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            _logger.warning("Stream error: %s", ws.exception())
                            break
            except (aiohttp.ClientError, TimeoutError) as exc:
                _logger.warning("Stream connection failed: %s", exc)
            finally:
                self._ws = None
                self._subscribed = False
                self._connected.clear()

            if self._stopping:
                break
            _logger.warning("Stream disconnected; reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._config.reconnect_max_delay)
