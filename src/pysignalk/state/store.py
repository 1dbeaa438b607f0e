"""In-memory data store with per-path publish/subscribe.

This is the only component allowed to merge inbound data.  There is one
writer (the delta handler, plus REST snapshots) and any number of readers.
Readers either query the latest point or subscribe to a path, a dotted
prefix, or everything; filtering happens here, not in each consumer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pysignalk.models.data_point import DataPoint
from pysignalk.state.events import IngestionEvent, IngestionSource
from pysignalk.state.policy import path_matches, should_accept_update

_logger = logging.getLogger(__name__)

Listener = Callable[[DataPoint], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class _Entry:
    point: DataPoint
    source: IngestionSource
    payload_ts: datetime | None


@dataclass(eq=False)
class Subscription:
    """Handle for a registered listener.  Call :meth:`unsubscribe` on teardown."""

    path: str
    listener: Listener
    source: str | None = None
    prefix: bool = False
    _store: DataStore | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._store is not None

    def matches(self, point: DataPoint) -> bool:
        if self.source is not None and point.source != self.source:
            return False
        return path_matches(self.path, point.path, prefix=self.prefix)

    def unsubscribe(self) -> None:
        store = self._store
        self._store = None
        if store is not None:
            store._remove(self)  # noqa: SLF001

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unsubscribe()


class UpdateStream:
    """Async iterator of data points for one subscription.

    Usage::

        async with store.stream("steering.autopilot.state") as updates:
            async for point in updates:
                ...
    """

    def __init__(self, store: DataStore, path: str, *, source: str | None, prefix: bool, maxsize: int) -> None:
        self._queue: asyncio.Queue[DataPoint | None] = asyncio.Queue(maxsize=maxsize)
        self._subscription = store.subscribe(path, self._push, source=source, prefix=prefix)

    def _push(self, point: DataPoint) -> None:
        if self._queue.full():
            # Drop the oldest; consumers only care about the latest values.
            self._queue.get_nowait()
        self._queue.put_nowait(point)

    async def get(self) -> DataPoint:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self._subscription.active:
            self._subscription.unsubscribe()
            if self._queue.full():
                self._queue.get_nowait()
            self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[DataPoint]:
        return self

    async def __anext__(self) -> DataPoint:
        return await self.get()

    async def __aenter__(self) -> UpdateStream:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class DataStore:
    """Latest value per ``(path, source)``.

    ``get(path)`` without a source returns the most recently accepted point
    for the path, whichever device produced it.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        skew_allowance_seconds: float = 0.0,
        stale_ttl: float = 0.0,
    ) -> None:
        self._clock = clock
        self._skew_allowance_seconds = skew_allowance_seconds
        self._stale_ttl = stale_ttl
        self._entries: dict[str, dict[str | None, _Entry]] = {}
        self._latest_source: dict[str, str | None] = {}
        self._exact: dict[str, list[Subscription]] = {}
        self._patterns: list[Subscription] = []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, event: IngestionEvent) -> bool:
        """Apply a normalized ingestion event; return whether it was accepted.

        Freshness is checked twice: against the cached point of the same
        source, then against the path's current latest point.  A point that
        loses the second check is still kept for its own source when it came
        from the stream, but ``get(path)`` keeps returning the fresher value
        and only source-filtered subscribers hear about it.  A REST snapshot
        that loses is dropped.
        """
        point = event.point
        by_source = self._entries.setdefault(point.path, {})
        cached = by_source.get(point.source)
        incoming_ts = point.timestamp if event.has_payload_timestamp else None

        if not self._accepts(cached, incoming_ts, event.source):
            _logger.debug("Dropped out-of-order update path=%s source=%s", point.path, point.source)
            return False

        latest_key = self._latest_source.get(point.path)
        latest = by_source.get(latest_key) if latest_key != point.source else None
        becomes_latest = self._accepts(latest, incoming_ts, event.source)
        if not becomes_latest and event.source is IngestionSource.REST:
            _logger.debug("Dropped snapshot older than live value path=%s source=%s", point.path, point.source)
            return False

        payload_ts = incoming_ts
        # Never move the stored timestamp backwards.
        if cached is not None and cached.payload_ts is not None:
            if payload_ts is None or payload_ts < cached.payload_ts:
                payload_ts = cached.payload_ts
        by_source[point.source] = _Entry(point=point, source=event.source, payload_ts=payload_ts)
        if becomes_latest:
            self._latest_source[point.path] = point.source
        self._notify(point, source_filtered_only=not becomes_latest)
        return True

    def _accepts(self, cached: _Entry | None, incoming_ts: datetime | None, incoming: IngestionSource) -> bool:
        return should_accept_update(
            cached_ts=cached.payload_ts if cached is not None else None,
            incoming_ts=incoming_ts,
            cached_source=cached.source if cached is not None else None,
            incoming_source=incoming,
            skew_allowance_seconds=self._skew_allowance_seconds,
        )

    def apply_point(self, point: DataPoint, *, source: IngestionSource = IngestionSource.STREAM) -> bool:
        return self.apply(IngestionEvent(point=point, source=source))

    def clear(self) -> None:
        """Forget every cached point.  Subscriptions stay registered."""
        self._entries.clear()
        self._latest_source.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str, source: str | None = None) -> DataPoint | None:
        by_source = self._entries.get(path)
        if not by_source:
            return None
        if source is not None:
            entry = by_source.get(source)
            return entry.point if entry is not None else None
        entry = by_source.get(self._latest_source.get(path))
        return entry.point if entry is not None else None

    def value(self, path: str, source: str | None = None, default: Any = None) -> Any:
        point = self.get(path, source)
        if point is None or point.value is None:
            return default
        return point.value

    def get_fresh(self, path: str, source: str | None = None, *, ttl: float | None = None) -> DataPoint | None:
        """Like :meth:`get`, but ``None`` when the point is older than the TTL."""
        point = self.get(path, source)
        if point is None:
            return None
        effective_ttl = self._stale_ttl if ttl is None else ttl
        if point.is_stale(effective_ttl, self._clock()):
            return None
        return point

    def is_stale(self, path: str, source: str | None = None, *, ttl: float | None = None) -> bool:
        point = self.get(path, source)
        if point is None:
            return True
        effective_ttl = self._stale_ttl if ttl is None else ttl
        return point.is_stale(effective_ttl, self._clock())

    def sources(self, path: str) -> list[str | None]:
        return list(self._entries.get(path, {}).keys())

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def snapshot(self) -> dict[str, DataPoint]:
        """Latest point per path (any source)."""
        result: dict[str, DataPoint] = {}
        for path in self._entries:
            point = self.get(path)
            if point is not None:
                result[path] = point
        return result

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        path: str,
        listener: Listener,
        *,
        source: str | None = None,
        prefix: bool = False,
    ) -> Subscription:
        """Call *listener* for every accepted point matching *path*.

        Listeners run synchronously on the writer's event loop, after the
        store has been updated, so ``get()`` inside a listener already sees
        the new value.
        """
        subscription = Subscription(path=path, listener=listener, source=source, prefix=prefix, _store=self)
        if prefix or path == "*":
            self._patterns.append(subscription)
        else:
            self._exact.setdefault(path, []).append(subscription)
        return subscription

    def stream(
        self,
        path: str,
        *,
        source: str | None = None,
        prefix: bool = False,
        maxsize: int = 0,
    ) -> UpdateStream:
        """Return an async iterator of matching points."""
        return UpdateStream(self, path, source=source, prefix=prefix, maxsize=maxsize)

    @property
    def listener_count(self) -> int:
        return sum(len(subs) for subs in self._exact.values()) + len(self._patterns)

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._patterns:
            self._patterns.remove(subscription)
            return
        subs = self._exact.get(subscription.path)
        if subs is not None and subscription in subs:
            subs.remove(subscription)
            if not subs:
                self._exact.pop(subscription.path, None)

    def _notify(self, point: DataPoint, *, source_filtered_only: bool = False) -> None:
        # Copy: listeners may unsubscribe (or subscribe) while being called.
        candidates = [*self._exact.get(point.path, ()), *self._patterns]
        for subscription in candidates:
            if not subscription.active or not subscription.matches(point):
                continue
            if source_filtered_only and subscription.source is None:
                continue
            try:
                subscription.listener(point)
            except Exception:
                _logger.debug("Data store listener failed path=%s", point.path, exc_info=True)
