"""Command, verification and optimistic-override models.

Consolidates the records exchanged by the command sender, the state
verifier and the optimistic control, plus the outcome enums callers
report to users.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pysignalk.exceptions import CommandErrorKind
from pysignalk.models._base import SignalKBaseModel

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class VerificationOutcome(enum.StrEnum):
    """How a verification window ended."""

    VERIFIED = "verified"
    TIMED_OUT = "timed_out"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class CommandOutcome(enum.StrEnum):
    """What the initiating control reports for one command."""

    VERIFIED = "verified"
    TIMED_OUT = "timed_out"
    UNVERIFIED = "unverified"
    REJECTED = "rejected"
    FAILED = "failed"
    SUPERSEDED = "superseded"


class ControlPhase(enum.StrEnum):
    IDLE = "idle"
    SENDING = "sending"
    VERIFIED = "verified"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class Command(BaseModel):
    """A single write to a control path.  Sent once, never retried."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    value: Any = None

    @field_validator("path")
    @classmethod
    def _require_path(cls, value: str) -> str:
        path = value.strip()
        if not path:
            raise ValueError("command path must be non-empty")
        return path


class VerificationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    expected: Any = None
    deadline: float
    """Loop-clock time (``loop.time()``) after which the request times out."""


class OptimisticOverride(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    value: Any = None
    expires_at: float
    """Loop-clock time at which the override stops hiding pushes."""

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    outcome: VerificationOutcome
    observed_value: Any = None
    message: str | None = None

    @property
    def verified(self) -> bool:
        return self.outcome == VerificationOutcome.VERIFIED


# ------------------------------------------------------------------
# Transport acknowledgement
# ------------------------------------------------------------------


class CommandAck(SignalKBaseModel):
    """Server acknowledgement of a write.

    SignalK answers PUTs with a request-status object such as
    ``{"state": "COMPLETED", "statusCode": 200}`` or
    ``{"state": "PENDING", "requestId": "...", "href": "..."}``; plain
    2xx responses without a body are acknowledged as well.
    """

    path: str = ""
    value: Any = None
    http_status: int = 200
    state: str | None = None
    status_code: int | None = None
    request_id: str | None = None
    href: str | None = None
    message: str | None = None

    @property
    def pending(self) -> bool:
        return (self.state or "").upper() == "PENDING"


# ------------------------------------------------------------------
# Command result
# ------------------------------------------------------------------

_OUTCOME_MESSAGES: dict[CommandOutcome, str] = {
    CommandOutcome.VERIFIED: "Command successful",
    CommandOutcome.TIMED_OUT: "Command sent but not confirmed",
    CommandOutcome.UNVERIFIED: "Command sent",
    CommandOutcome.REJECTED: "Command rejected",
    CommandOutcome.FAILED: "Command failed",
    CommandOutcome.SUPERSEDED: "Command superseded",
}


class CommandResult(BaseModel):
    """Final report of one command/verify cycle for the initiating control."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: Command
    outcome: CommandOutcome
    error_kind: CommandErrorKind | None = None
    detail: str | None = None
    ack: CommandAck | None = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def sent(self) -> bool:
        """Whether the transport accepted the command."""
        return self.outcome in (
            CommandOutcome.VERIFIED,
            CommandOutcome.TIMED_OUT,
            CommandOutcome.UNVERIFIED,
            CommandOutcome.REJECTED,
        )

    @property
    def message(self) -> str:
        """User-facing summary."""
        if self.detail and self.outcome in (CommandOutcome.FAILED, CommandOutcome.REJECTED):
            return self.detail
        return _OUTCOME_MESSAGES[self.outcome]
