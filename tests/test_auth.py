from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from pysignalk._api.auth import login, poll_access_request, request_access, status_endpoint
from pysignalk._transport import TransportResponse
from pysignalk.exceptions import SignalKAccessDeniedError, SignalKAuthenticationError, SignalKTimeoutError
from pysignalk.models.access import AccessRequest, AccessRequestState
from pysignalk.session import AuthToken, AuthType


class _ScriptedTransport:
    """Returns queued responses in order and records each request."""

    def __init__(self, *responses: TransportResponse) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str, Mapping[str, Any] | None, bool]] = []

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
        *,
        authenticated: bool = True,
    ) -> TransportResponse:
        self.calls.append((method, endpoint, payload, authenticated))
        return self._responses.pop(0)


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.mark.asyncio
async def test_login_returns_user_token() -> None:
    transport = _ScriptedTransport(TransportResponse(status=200, body={"token": "jwt-1", "timeToLive": 86400}))

    token = await login(transport, "skipper", "secret")

    assert token.token == "jwt-1"
    assert token.auth_type == AuthType.USER
    assert token.username == "skipper"
    assert token.ttl == 86400
    assert transport.calls == [
        ("POST", "/signalk/v1/auth/login", {"username": "skipper", "password": "secret"}, False)
    ]


@pytest.mark.asyncio
async def test_login_without_token_raises() -> None:
    transport = _ScriptedTransport(TransportResponse(status=200, body={"message": "ok"}))

    with pytest.raises(SignalKAuthenticationError):
        await login(transport, "skipper", "secret")


@pytest.mark.asyncio
async def test_request_access_parses_pending_response() -> None:
    transport = _ScriptedTransport(
        TransportResponse(
            status=202,
            body={"state": "PENDING", "requestId": "req-1", "href": "/signalk/v1/requests/req-1"},
        )
    )

    request = await request_access(transport, "client-1", "Helm tablet")

    assert request.state == AccessRequestState.PENDING
    assert request.request_id == "req-1"
    assert request.client_id == "client-1"
    assert status_endpoint(request) == "/signalk/v1/requests/req-1"
    assert transport.calls[0][2] == {"clientId": "client-1", "description": "Helm tablet"}


def test_status_endpoint_defaults_to_request_id() -> None:
    request = AccessRequest(client_id="client-1", request_id="req-9")

    assert status_endpoint(request) == "/signalk/v1/requests/req-9"


@pytest.mark.asyncio
async def test_poll_access_request_until_approved() -> None:
    transport = _ScriptedTransport(
        TransportResponse(status=200, body={"state": "PENDING", "requestId": "req-1"}),
        TransportResponse(
            status=200,
            body={
                "state": "COMPLETED",
                "requestId": "req-1",
                "accessRequest": {"permission": "APPROVED", "token": "device-jwt"},
            },
        ),
    )
    request = AccessRequest(client_id="client-1", request_id="req-1", status_href="/signalk/v1/requests/req-1")

    token = await poll_access_request(transport, request, interval=0.0, sleep=_no_sleep)

    assert token == AuthToken(
        token="device-jwt",
        auth_type=AuthType.DEVICE,
        client_id="client-1",
        issued_at=token.issued_at,
    )
    assert len(transport.calls) == 2
    assert all(call[:2] == ("GET", "/signalk/v1/requests/req-1") for call in transport.calls)


@pytest.mark.asyncio
async def test_poll_access_request_denied() -> None:
    transport = _ScriptedTransport(
        TransportResponse(
            status=200,
            body={"state": "COMPLETED", "requestId": "req-1", "accessRequest": {"permission": "DENIED"}},
        )
    )
    request = AccessRequest(client_id="client-1", request_id="req-1")

    with pytest.raises(SignalKAccessDeniedError):
        await poll_access_request(transport, request, interval=0.0, sleep=_no_sleep)


@pytest.mark.asyncio
async def test_poll_access_request_times_out() -> None:
    request = AccessRequest(client_id="client-1", request_id="req-1")

    with pytest.raises(SignalKTimeoutError):
        await poll_access_request(_ScriptedTransport(), request, timeout=0.0, sleep=_no_sleep)


def test_token_expiry() -> None:
    fresh = AuthToken(token="t", ttl=86400)
    expiring = AuthToken(token="t", ttl=100, issued_at=0.0)
    forever = AuthToken(token="t")

    assert not fresh.is_expired
    assert expiring.is_expired
    assert not forever.is_expired
    assert forever.expires_at is None
