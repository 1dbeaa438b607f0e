"""Authentication endpoints.

Endpoints:
  - POST /signalk/v1/auth/login
  - POST /signalk/v1/access/requests
  - GET  /signalk/v1/requests/{requestId} (or the ``href`` returned above)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pysignalk._constants import ACCESS_REQUESTS_ENDPOINT, LOGIN_ENDPOINT, REQUESTS_ENDPOINT
from pysignalk._redact import redact_for_log
from pysignalk._transport import Transport
from pysignalk.exceptions import (
    SignalKAccessDeniedError,
    SignalKAuthenticationError,
    SignalKTimeoutError,
)
from pysignalk.models.access import AccessRequest, AccessRequestState
from pysignalk.session import AuthToken, AuthType

_logger = logging.getLogger(__name__)

DEFAULT_DEVICE_DESCRIPTION = "pysignalk dashboard client"


async def login(transport: Transport, username: str, password: str) -> AuthToken:
    """Log in with username/password and return the issued token.

    Raises
    ------
    SignalKAuthenticationError
        Bad credentials (HTTP 401/403) or a response without a token.
    """
    response = await transport.request(
        "POST",
        LOGIN_ENDPOINT,
        {"username": username, "password": password},
        authenticated=False,
    )
    data = response.json_object()
    _logger.debug("Login response: %s", redact_for_log(data))

    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise SignalKAuthenticationError(
            "Login response did not contain a token",
            status_code=response.status,
            endpoint=LOGIN_ENDPOINT,
        )
    ttl = data.get("timeToLive")
    return AuthToken(
        token=token,
        auth_type=AuthType.USER,
        username=username,
        ttl=float(ttl) if isinstance(ttl, (int, float)) and not isinstance(ttl, bool) else None,
    )


def _parse_access_request(data: dict[str, Any], *, client_id: str, description: str) -> AccessRequest:
    return AccessRequest.model_validate({"clientId": client_id, "description": description, **data})


async def request_access(
    transport: Transport,
    client_id: str,
    description: str = DEFAULT_DEVICE_DESCRIPTION,
) -> AccessRequest:
    """Submit a device access request.

    The server usually answers ``202 PENDING`` with an ``href`` to poll; an
    administrator then approves or denies the device in the server UI.
    """
    response = await transport.request(
        "POST",
        ACCESS_REQUESTS_ENDPOINT,
        {"clientId": client_id, "description": description},
        authenticated=False,
    )
    data = response.json_object()
    _logger.debug("Access request response HTTP %d: %s", response.status, redact_for_log(data))
    request = _parse_access_request(data, client_id=client_id, description=description)
    if request.request_id is None:
        request = request.model_copy(update={"request_id": client_id})
    return request


def status_endpoint(request: AccessRequest) -> str:
    """Where to poll *request*: the server-provided href, else the standard path."""
    if request.status_href:
        return request.status_href
    return f"{REQUESTS_ENDPOINT}/{request.request_id or request.client_id}"


async def fetch_access_request(transport: Transport, request: AccessRequest) -> AccessRequest:
    """Fetch the current state of *request* once."""
    response = await transport.request("GET", status_endpoint(request), authenticated=False)
    data = response.json_object()
    _logger.debug("Access request poll: %s", redact_for_log(data))
    updated = _parse_access_request(data, client_id=request.client_id, description=request.description)
    return updated.model_copy(
        update={
            "request_id": updated.request_id or request.request_id,
            "status_href": updated.status_href or request.status_href,
        }
    )


async def poll_access_request(
    transport: Transport,
    request: AccessRequest,
    *,
    interval: float = 2.0,
    timeout: float = 300.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AuthToken:
    """Poll *request* until it is approved and return the device token.

    Parameters
    ----------
    transport : Transport
        HTTP transport.
    request : AccessRequest
        The request returned by :func:`request_access`.
    interval : float
        Seconds between polls.
    timeout : float
        Give up after this many seconds.
    sleep : callable
        Injected for tests.

    Raises
    ------
    SignalKAccessDeniedError
        The administrator denied the request.
    SignalKTimeoutError
        No decision within *timeout* seconds.
    """
    deadline = time.monotonic() + timeout
    current = request
    while True:
        if current.state == AccessRequestState.APPROVED and current.token:
            _logger.debug("Access request %s approved", current.request_id)
            return AuthToken(token=current.token, auth_type=AuthType.DEVICE, client_id=current.client_id)
        if current.state == AccessRequestState.DENIED:
            raise SignalKAccessDeniedError(
                current.message or f"Access request {current.request_id} was denied"
            )
        if time.monotonic() >= deadline:
            raise SignalKTimeoutError(
                f"Access request {current.request_id} not approved within {timeout}s",
                endpoint=status_endpoint(current),
            )
        await sleep(interval)
        current = await fetch_access_request(transport, current)
