from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from pysignalk.models.data_point import DataPoint
from pysignalk.state.events import IngestionEvent, IngestionSource
from pysignalk.state.store import DataStore


def _dt(seconds: float = 0.0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=seconds)


def _event(
    path: str,
    value: object,
    *,
    at: float = 0.0,
    source: str | None = "nmea.A",
    ingestion: IngestionSource = IngestionSource.STREAM,
    has_ts: bool = True,
) -> IngestionEvent:
    return IngestionEvent(
        point=DataPoint(path=path, source=source, value=value, timestamp=_dt(at)),
        source=ingestion,
        has_payload_timestamp=has_ts,
    )


def test_latest_value_is_returned() -> None:
    store = DataStore()

    assert store.apply(_event("navigation.speedOverGround", 5.0, at=1))
    assert store.apply(_event("navigation.speedOverGround", 5.5, at=2))

    point = store.get("navigation.speedOverGround")
    assert point is not None
    assert point.value == 5.5
    assert store.value("navigation.speedOverGround") == 5.5


def test_unknown_path_returns_none_and_default() -> None:
    store = DataStore()

    assert store.get("environment.depth.belowKeel") is None
    assert store.value("environment.depth.belowKeel", default=-1) == -1
    assert store.is_stale("environment.depth.belowKeel")


def test_stale_update_rejected_outside_skew_allowance() -> None:
    store = DataStore(skew_allowance_seconds=1.0)
    path = "steering.autopilot.state"

    store.apply(_event(path, "auto", at=10))
    accepted = store.apply(_event(path, "standby", at=5))

    assert not accepted
    assert store.value(path) == "auto"


def test_slightly_older_update_accepted_within_skew_allowance() -> None:
    store = DataStore(skew_allowance_seconds=2.0)
    path = "steering.autopilot.state"

    store.apply(_event(path, "auto", at=10))

    assert store.apply(_event(path, "wind", at=9))
    assert store.value(path) == "wind"


def test_stored_timestamp_never_moves_backwards() -> None:
    store = DataStore(skew_allowance_seconds=5.0)
    path = "navigation.headingMagnetic"

    store.apply(_event(path, 1.0, at=10))
    store.apply(_event(path, 1.1, at=8))
    # Still compared against t=10, so t=4 is outside the allowance.
    assert not store.apply(_event(path, 1.2, at=4))
    assert store.value(path) == 1.1


def test_rest_snapshot_without_timestamp_does_not_override_stream() -> None:
    store = DataStore()
    path = "electrical.batteries.house.voltage"

    store.apply(_event(path, 12.8, at=1, has_ts=False))
    accepted = store.apply(_event(path, 12.1, ingestion=IngestionSource.REST, has_ts=False))

    assert not accepted
    assert store.value(path) == 12.8


def test_values_are_kept_per_source() -> None:
    store = DataStore()
    path = "navigation.position"

    store.apply(_event(path, {"latitude": 1}, at=1, source="gps.1"))
    store.apply(_event(path, {"latitude": 2}, at=2, source="gps.2"))

    assert store.sources(path) == ["gps.1", "gps.2"]
    assert store.value(path, "gps.1") == {"latitude": 1}
    assert store.value(path) == {"latitude": 2}
    assert store.get(path, "gps.3") is None


def test_out_of_order_check_is_per_source() -> None:
    store = DataStore()
    path = "navigation.speedThroughWater"

    store.apply(_event(path, 4.0, at=10, source="a"))

    assert store.apply(_event(path, 3.0, at=5, source="b"))
    assert store.value(path, "b") == 3.0
    assert store.value(path) == 4.0


def test_older_snapshot_from_other_source_does_not_replace_live_value() -> None:
    store = DataStore()
    path = "steering.autopilot.state"
    seen: list[object] = []
    store.subscribe(path, lambda p: seen.append(p.value))

    store.apply(_event(path, "auto", at=10, source="derived"))
    accepted = store.apply(_event(path, "standby", at=5, source=None, ingestion=IngestionSource.REST))

    assert not accepted
    assert store.value(path) == "auto"
    assert store.sources(path) == ["derived"]
    assert seen == ["auto"]


def test_newer_snapshot_from_other_source_is_accepted() -> None:
    store = DataStore()
    path = "steering.autopilot.state"

    store.apply(_event(path, "auto", at=10, source="derived"))

    assert store.apply(_event(path, "standby", at=20, source=None, ingestion=IngestionSource.REST))
    assert store.value(path) == "standby"


def test_older_point_from_other_stream_source_only_reaches_source_listeners() -> None:
    store = DataStore()
    path = "navigation.speedThroughWater"
    any_source: list[object] = []
    only_b: list[object] = []
    store.subscribe(path, lambda p: any_source.append(p.value))
    store.subscribe(path, lambda p: only_b.append(p.value), source="b")

    store.apply(_event(path, 4.0, at=10, source="a"))
    store.apply(_event(path, 3.0, at=5, source="b"))

    assert any_source == [4.0]
    assert only_b == [3.0]


def test_clear_forgets_values_but_keeps_subscriptions() -> None:
    store = DataStore()
    seen: list[object] = []
    store.subscribe("a.b", lambda point: seen.append(point.value))

    store.apply(_event("a.b", 1, at=1))
    store.clear()
    store.apply(_event("a.b", 2, at=0))

    assert store.paths() == ["a.b"]
    assert seen == [1, 2]


def test_subscribe_exact_prefix_and_wildcard() -> None:
    store = DataStore()
    exact: list[str] = []
    prefixed: list[str] = []
    everything: list[str] = []
    store.subscribe("steering.autopilot", lambda p: exact.append(p.path))
    store.subscribe("steering.autopilot", lambda p: prefixed.append(p.path), prefix=True)
    store.subscribe("*", lambda p: everything.append(p.path))

    store.apply(_event("steering.autopilot.state", "auto", at=1))
    store.apply(_event("steering.autopilotX", 1, at=1))
    store.apply(_event("steering.autopilot", "x", at=1))

    assert exact == ["steering.autopilot"]
    assert prefixed == ["steering.autopilot.state", "steering.autopilot"]
    assert everything == ["steering.autopilot.state", "steering.autopilotX", "steering.autopilot"]


def test_subscription_source_filter() -> None:
    store = DataStore()
    seen: list[object] = []
    store.subscribe("a.b", lambda p: seen.append(p.value), source="wanted")

    store.apply(_event("a.b", 1, at=1, source="other"))
    store.apply(_event("a.b", 2, at=2, source="wanted"))

    assert seen == [2]


def test_rejected_update_does_not_notify() -> None:
    store = DataStore()
    seen: list[object] = []
    store.subscribe("a.b", lambda p: seen.append(p.value))

    store.apply(_event("a.b", 1, at=10))
    store.apply(_event("a.b", 2, at=1))

    assert seen == [1]


def test_listener_sees_updated_store() -> None:
    store = DataStore()
    observed: list[object] = []
    store.subscribe("a.b", lambda p: observed.append(store.value("a.b")))

    store.apply(_event("a.b", 42, at=1))

    assert observed == [42]


def test_failing_listener_does_not_block_others() -> None:
    store = DataStore()
    seen: list[object] = []

    def broken(_point: DataPoint) -> None:
        raise RuntimeError("boom")

    store.subscribe("a.b", broken)
    store.subscribe("a.b", lambda p: seen.append(p.value))

    assert store.apply(_event("a.b", 1, at=1))
    assert seen == [1]


def test_unsubscribe_inside_listener() -> None:
    store = DataStore()
    seen: list[object] = []

    def once(point: DataPoint) -> None:
        seen.append(point.value)
        subscription.unsubscribe()

    subscription = store.subscribe("a.b", once)

    store.apply(_event("a.b", 1, at=1))
    store.apply(_event("a.b", 2, at=2))

    assert seen == [1]
    assert not subscription.active
    assert store.listener_count == 0


def test_subscription_context_manager_unsubscribes() -> None:
    store = DataStore()
    with store.subscribe("a.b", lambda _p: None, prefix=True):
        assert store.listener_count == 1
    assert store.listener_count == 0


def test_staleness_uses_injected_clock() -> None:
    now = _dt(100)
    store = DataStore(clock=lambda: now, stale_ttl=30.0)

    store.apply(_event("a.b", 1, at=50))
    store.apply(_event("c.d", 2, at=90))

    assert store.get_fresh("a.b") is None
    assert store.is_stale("a.b")
    assert store.get_fresh("c.d") is not None
    assert not store.is_stale("a.b", ttl=0)


def test_snapshot_returns_latest_point_per_path() -> None:
    store = DataStore()
    store.apply(_event("a.b", 1, at=1, source="x"))
    store.apply(_event("a.b", 2, at=2, source="y"))
    store.apply(_event("c.d", 3, at=1))

    snapshot = store.snapshot()

    assert {path: point.value for path, point in snapshot.items()} == {"a.b": 2, "c.d": 3}


@pytest.mark.asyncio
async def test_update_stream_yields_points_until_closed() -> None:
    store = DataStore()
    received: list[object] = []

    async def consume() -> None:
        async with store.stream("a.b") as updates:
            async for point in updates:
                received.append(point.value)
                if len(received) == 2:
                    break

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    store.apply(_event("a.b", 1, at=1))
    store.apply(_event("a.b", 2, at=2))
    await asyncio.wait_for(task, 1.0)

    assert received == [1, 2]
    assert store.listener_count == 0


@pytest.mark.asyncio
async def test_bounded_update_stream_drops_oldest() -> None:
    store = DataStore()
    updates = store.stream("a.b", maxsize=2)

    for i in range(4):
        store.apply(_event("a.b", i, at=i))

    assert (await updates.get()).value == 2
    assert (await updates.get()).value == 3
    updates.close()
    with pytest.raises(StopAsyncIteration):
        await updates.get()
