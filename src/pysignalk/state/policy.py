"""Deterministic merge policy for the data store.

This module intentionally contains *no* payload parsing.  The ingestion
boundary is responsible for producing normalized data points and
timestamps.
"""

from __future__ import annotations

from datetime import datetime

from pysignalk.state.events import IngestionSource


def source_priority(source: IngestionSource) -> int:
    """Higher wins for deterministic tie-breaking."""
    # Live stream beats a REST snapshot of the same path.
    priorities: dict[IngestionSource, int] = {
        IngestionSource.STREAM: 50,
        IngestionSource.REST: 40,
    }
    return priorities.get(source, 0)


def should_accept_update(
    *,
    cached_ts: datetime | None,
    incoming_ts: datetime | None,
    cached_source: IngestionSource | None,
    incoming_source: IngestionSource,
    skew_allowance_seconds: float,
) -> bool:
    """Decide whether an incoming point should overwrite the cached one.

    Policy:
    - Nothing cached: accept.
    - Both timestamps known: accept unless incoming is older than the cached
      one by more than the skew allowance (out-of-order delivery).
    - A timestamp missing: fall back to source priority.
    """
    if cached_source is None:
        return True
    if incoming_ts is not None and cached_ts is not None:
        return (cached_ts - incoming_ts).total_seconds() <= skew_allowance_seconds
    return source_priority(incoming_source) >= source_priority(cached_source)


def path_matches(pattern: str, path: str, *, prefix: bool) -> bool:
    """Whether *path* is covered by a subscription on *pattern*.

    ``"*"`` matches every path.  With ``prefix=True`` the pattern matches
    itself and any dotted descendant (``a.b`` covers ``a.b.c`` but not
    ``a.bc``).
    """
    if pattern == "*":
        return True
    if path == pattern:
        return True
    return prefix and path.startswith(f"{pattern}.")
