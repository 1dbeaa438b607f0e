"""HTTP transport with bearer-token auth and SignalK error mapping."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from pysignalk._constants import USER_AGENT
from pysignalk._redact import redact_for_log
from pysignalk.config import SignalKConfig
from pysignalk.exceptions import (
    SignalKAuthenticationError,
    SignalKCommandRejectedError,
    SignalKNetworkError,
    SignalKNotFoundError,
    SignalKTimeoutError,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Status and decoded JSON body of a successful (2xx) request."""

    status: int
    body: Any = None

    def json_object(self) -> dict[str, Any]:
        """Return the body as a dict, or an empty dict for non-object bodies."""
        return self.body if isinstance(self.body, dict) else {}


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
        *,
        authenticated: bool = True,
    ) -> TransportResponse:
        ...


def _server_message(text: str) -> str | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text.strip()[:200] or None
    if isinstance(parsed, dict):
        message = parsed.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def raise_for_status(status: int, text: str, endpoint: str) -> None:
    """Map a non-2xx HTTP status to the library's error taxonomy."""
    if 200 <= status < 300:
        return
    message = _server_message(text)
    if status in (401, 403):
        raise SignalKAuthenticationError(
            f"HTTP {status} from {endpoint}: authentication failed",
            status_code=status,
            endpoint=endpoint,
            server_message=message,
        )
    if status == 404:
        raise SignalKNotFoundError(
            f"HTTP 404 from {endpoint}: not found",
            status_code=status,
            endpoint=endpoint,
            server_message=message,
        )
    raise SignalKCommandRejectedError(
        f"HTTP {status} from {endpoint}: {message or 'request rejected'}",
        status_code=status,
        endpoint=endpoint,
        server_message=message,
    )


class RestTransport:
    """aiohttp transport for SignalK REST endpoints."""

    def __init__(
        self,
        config: SignalKConfig,
        http_session: aiohttp.ClientSession,
        *,
        token: str | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        self._token = token

    def _headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if authenticated and self._token:
            headers["authorization"] = f"Bearer {self._token}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
        *,
        authenticated: bool = True,
    ) -> TransportResponse:
        """Send a JSON request and return the decoded response.

        Raises
        ------
        SignalKNetworkError
            Connection refused, DNS failure, connection dropped.
        SignalKTimeoutError
            No complete response within ``config.request_timeout``.
        SignalKAuthenticationError
            HTTP 401/403.
        SignalKCommandRejectedError
            Any other non-2xx status (``SignalKNotFoundError`` for 404).
        """
        url = endpoint if endpoint.startswith(("http://", "https://")) else f"{self._config.http_base}{endpoint}"
        body = json.dumps(dict(payload), separators=(",", ":")) if payload is not None else None

        _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=self._headers(authenticated),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except TimeoutError as exc:
            raise SignalKTimeoutError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise SignalKNetworkError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        _logger.debug("%s %s -> HTTP %d", method, url, status)
        raise_for_status(status, text, endpoint)

        if not text.strip():
            return TransportResponse(status=status)
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            _logger.debug("Non-JSON body from %s: %s", endpoint, text[:200])
            return TransportResponse(status=status, body=text)
        return TransportResponse(status=status, body=parsed)
