"""pysignalk - Async Python client for SignalK marine data servers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysignalk")
except PackageNotFoundError:
    __version__ = "0+local"
from pysignalk.client import SignalKClient
from pysignalk.config import SignalKConfig
from pysignalk.control import AutopilotControl, CommandSender, OptimisticControl, StateVerifier, values_match
from pysignalk.exceptions import (
    CommandErrorKind,
    SignalKAccessDeniedError,
    SignalKAuthenticationError,
    SignalKCommandError,
    SignalKCommandRejectedError,
    SignalKConfigError,
    SignalKError,
    SignalKNetworkError,
    SignalKNotFoundError,
    SignalKTimeoutError,
    SignalKTransportError,
    SignalKV2NotAvailableError,
)
from pysignalk.models import (
    AccessRequest,
    AutopilotApiVersion,
    AutopilotInfo,
    AutopilotInstance,
    Command,
    CommandAck,
    CommandOutcome,
    CommandResult,
    ControlPhase,
    DataPoint,
    PathMetadata,
    TackDirection,
    VerificationOutcome,
    VerificationResult,
)
from pysignalk.session import AuthToken, AuthType
from pysignalk.state.metadata import MetadataStore
from pysignalk.state.store import DataStore, Subscription

__all__ = [
    "__version__",
    "AccessRequest",
    "AuthToken",
    "AuthType",
    "AutopilotApiVersion",
    "AutopilotControl",
    "AutopilotInfo",
    "AutopilotInstance",
    "Command",
    "CommandAck",
    "CommandErrorKind",
    "CommandOutcome",
    "CommandResult",
    "CommandSender",
    "ControlPhase",
    "DataPoint",
    "DataStore",
    "MetadataStore",
    "OptimisticControl",
    "PathMetadata",
    "SignalKAccessDeniedError",
    "SignalKAuthenticationError",
    "SignalKClient",
    "SignalKCommandError",
    "SignalKCommandRejectedError",
    "SignalKConfig",
    "SignalKConfigError",
    "SignalKError",
    "SignalKNetworkError",
    "SignalKNotFoundError",
    "SignalKTimeoutError",
    "SignalKTransportError",
    "SignalKV2NotAvailableError",
    "StateVerifier",
    "Subscription",
    "TackDirection",
    "VerificationOutcome",
    "VerificationResult",
    "values_match",
]
