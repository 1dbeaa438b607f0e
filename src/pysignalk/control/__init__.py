"""Command-and-verify control layer.

``CommandSender`` writes, ``StateVerifier`` confirms from the data stream,
``OptimisticControl`` keeps the display responsive while both run, and
``AutopilotControl`` wires the autopilot commands through all three.
"""

from pysignalk.control.autopilot import AutopilotControl
from pysignalk.control.optimistic import OptimisticControl
from pysignalk.control.sender import CommandSender
from pysignalk.control.verifier import StateVerifier, values_match

__all__ = [
    "AutopilotControl",
    "CommandSender",
    "OptimisticControl",
    "StateVerifier",
    "values_match",
]
