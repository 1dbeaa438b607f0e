"""Data models for SignalK payloads, commands and cached values."""

from pysignalk.models._base import SignalKBaseModel, SignalKTimestamp, parse_signalk_timestamp
from pysignalk.models.access import AccessRequest, AccessRequestState
from pysignalk.models.autopilot import (
    AutopilotApiVersion,
    AutopilotDetection,
    AutopilotInfo,
    AutopilotInstance,
    AutopilotOptions,
    AutopilotStateOption,
    TackDirection,
)
from pysignalk.models.command import (
    Command,
    CommandAck,
    CommandOutcome,
    CommandResult,
    ControlPhase,
    OptimisticOverride,
    VerificationOutcome,
    VerificationRequest,
    VerificationResult,
)
from pysignalk.models.data_point import DataPoint
from pysignalk.models.delta import Delta, DeltaMeta, DeltaUpdate, DeltaValue
from pysignalk.models.metadata import PathMetadata

__all__ = [
    "AccessRequest",
    "AccessRequestState",
    "AutopilotApiVersion",
    "AutopilotDetection",
    "AutopilotInfo",
    "AutopilotInstance",
    "AutopilotOptions",
    "AutopilotStateOption",
    "Command",
    "CommandAck",
    "CommandOutcome",
    "CommandResult",
    "ControlPhase",
    "DataPoint",
    "Delta",
    "DeltaMeta",
    "DeltaUpdate",
    "DeltaValue",
    "OptimisticOverride",
    "PathMetadata",
    "SignalKBaseModel",
    "SignalKTimestamp",
    "TackDirection",
    "VerificationOutcome",
    "VerificationRequest",
    "VerificationResult",
    "parse_signalk_timestamp",
]
