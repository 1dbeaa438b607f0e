from __future__ import annotations

import json
from typing import Any

import pytest

from pysignalk._stream import (
    DeltaStream,
    build_login_message,
    build_subscribe_message,
    build_unsubscribe_message,
)
from pysignalk.config import SignalKConfig
from pysignalk.ingestion.delta import MessageKind, StreamMessage


class _FakeWebSocket:
    closed = False

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_str(self, data: str) -> None:
        self.sent.append(json.loads(data))


def _stream(config: SignalKConfig, received: list[StreamMessage], paths: list[str] | None = None) -> DeltaStream:
    async def provider() -> list[str]:
        return list(paths or [])

    return DeltaStream(
        config,
        None,  # type: ignore[arg-type]
        on_message=received.append,
        token_provider=lambda: "jwt",
        paths_provider=provider,
    )


def test_build_messages() -> None:
    assert build_login_message("skipper", "pw", "r-1") == {
        "requestId": "r-1",
        "login": {"username": "skipper", "password": "pw"},
    }
    assert build_subscribe_message(["*"], period=500, policy="ideal") == {
        "context": "vessels.self",
        "subscribe": [{"path": "*", "period": 500, "format": "delta", "policy": "ideal"}],
    }
    assert build_unsubscribe_message(["a.b"]) == {"context": "vessels.self", "unsubscribe": [{"path": "a.b"}]}


def test_stream_url_depends_on_units_preference() -> None:
    plain = _stream(SignalKConfig(host="boat:3000"), [])
    converted = _stream(
        SignalKConfig(host="boat:3000", username="u", password="p", use_units_preference=True),
        [],
    )

    assert plain.url == "ws://boat:3000/signalk/v1/stream?subscribe=none"
    assert converted.url == "ws://boat:3000/plugins/signalk-units-preference/stream"


@pytest.mark.asyncio
async def test_anonymous_stream_subscribes_to_everything_on_open() -> None:
    stream = _stream(SignalKConfig(), [])
    ws = _FakeWebSocket()

    await stream._on_open(ws)  # type: ignore[arg-type]

    assert ws.sent == [build_subscribe_message(["*"])]


@pytest.mark.asyncio
async def test_login_then_subscribe_after_login_reply() -> None:
    received: list[StreamMessage] = []
    config = SignalKConfig(username="u", password="p", use_units_preference=True)
    stream = _stream(config, received, paths=["navigation.speedOverGround", "steering.autopilot.state"])
    ws = _FakeWebSocket()

    await stream._on_open(ws)  # type: ignore[arg-type]
    assert len(ws.sent) == 1
    login_message = ws.sent[0]
    assert login_message["login"] == {"username": "u", "password": "p"}

    reply = {"requestId": login_message["requestId"], "state": "COMPLETED", "statusCode": 200}
    await stream._handle_frame(ws, json.dumps(reply))  # type: ignore[arg-type]

    assert ws.sent[1]["subscribe"] == [
        {"path": "navigation.speedOverGround", "period": 1000, "format": "delta", "policy": "instant"},
        {"path": "steering.autopilot.state", "period": 1000, "format": "delta", "policy": "instant"},
    ]
    # The login reply is consumed by the stream itself.
    assert received == []


@pytest.mark.asyncio
async def test_extra_paths_are_sent_when_subscribed() -> None:
    stream = _stream(SignalKConfig(), [])
    ws = _FakeWebSocket()
    await stream._on_open(ws)  # type: ignore[arg-type]
    stream._ws = ws  # type: ignore[assignment]

    await stream.subscribe_paths(["environment.depth.belowKeel"])
    await stream.subscribe_paths(["environment.depth.belowKeel"])
    await stream.unsubscribe_paths(["environment.depth.belowKeel"])

    assert ws.sent[1:] == [
        build_subscribe_message(["environment.depth.belowKeel"]),
        build_unsubscribe_message(["environment.depth.belowKeel"]),
    ]


@pytest.mark.asyncio
async def test_frames_are_decoded_and_forwarded() -> None:
    received: list[StreamMessage] = []
    stream = _stream(SignalKConfig(), received)
    ws = _FakeWebSocket()

    await stream._handle_frame(  # type: ignore[arg-type]
        ws, json.dumps({"context": "vessels.self", "updates": [{"values": [{"path": "a.b", "value": 1}]}]})
    )
    await stream._handle_frame(ws, "garbage")  # type: ignore[arg-type]

    assert [message.kind for message in received] == [MessageKind.DELTA, MessageKind.UNKNOWN]


@pytest.mark.asyncio
async def test_failing_handler_does_not_break_stream() -> None:
    def broken(_message: StreamMessage) -> None:
        raise RuntimeError("boom")

    stream = DeltaStream(SignalKConfig(), None, on_message=broken)  # type: ignore[arg-type]

    await stream._handle_frame(_FakeWebSocket(), "{}")  # type: ignore[arg-type]


def test_headers_carry_bearer_token() -> None:
    stream = _stream(SignalKConfig(), [])

    assert stream._headers()["authorization"] == "Bearer jwt"
