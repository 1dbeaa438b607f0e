"""Command sender: one write, one acknowledgement, no retries."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pysignalk._constants import SELF_ENDPOINT, path_to_url_segment
from pysignalk._redact import redact_for_log
from pysignalk._transport import Transport, TransportResponse, raise_for_status
from pysignalk.models.command import Command, CommandAck

_logger = logging.getLogger(__name__)


def put_endpoint(path: str) -> str:
    """REST endpoint for a PUT on *path* of the self vessel."""
    return f"{SELF_ENDPOINT}/{path_to_url_segment(path)}"


def _build_ack(response: TransportResponse, *, path: str = "", value: Any = None) -> CommandAck:
    body = response.json_object()
    return CommandAck.model_validate(
        {
            **body,
            "path": path,
            "value": value,
            "httpStatus": response.status,
            "raw": body,
        }
    )


def _check_ack(ack: CommandAck, endpoint: str) -> None:
    """Raise when a 2xx response carries a failed request status.

    SignalK may answer ``200`` with ``{"state": "COMPLETED", "statusCode": 400}``
    when the handler for the path refused the value.  ``PENDING`` is an
    accepted, still-running request.
    """
    if ack.pending:
        return
    status = ack.status_code
    if status is None and (ack.state or "").upper() == "FAILED":
        status = 500
    if status is not None and status >= 300:
        raise_for_status(status, json.dumps(ack.raw), endpoint)


class CommandSender:
    """Issues write commands and reports acceptance, never effect.

    Success means the server accepted the request.  Whether the value
    actually changed is the :class:`~pysignalk.control.verifier.StateVerifier`'s
    job.  The sender never touches the data store and never retries.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def send(self, path: str, value: Any) -> CommandAck:
        """PUT *value* on *path*.

        Raises
        ------
        ValueError
            Empty path.
        SignalKNetworkError, SignalKTimeoutError
            The request did not reach the server or got no answer in time.
        SignalKAuthenticationError
            HTTP 401/403 (also for a request status carrying one).
        SignalKCommandRejectedError
            Any other refusal, including ``SignalKNotFoundError`` for 404.
        """
        return await self.send_command(Command(path=path, value=value))

    async def send_command(self, command: Command) -> CommandAck:
        endpoint = put_endpoint(command.path)
        _logger.debug("Sending command path=%s value=%s", command.path, redact_for_log(command.value))
        response = await self._transport.request("PUT", endpoint, {"value": command.value})
        ack = _build_ack(response, path=command.path, value=command.value)
        _check_ack(ack, endpoint)
        _logger.debug(
            "Command accepted path=%s http=%d state=%s",
            command.path,
            ack.http_status,
            ack.state,
        )
        return ack

    async def send_request(
        self,
        method: str,
        endpoint: str,
        body: Mapping[str, Any] | None = None,
    ) -> CommandAck:
        """Send a REST command (V2 APIs) with the same error taxonomy as :meth:`send`."""
        response = await self._transport.request(method, endpoint, body)
        value = body.get("value") if body is not None else None
        ack = _build_ack(response, value=value)
        _check_ack(ack, endpoint)
        return ack
