from __future__ import annotations

import asyncio

import pytest

from pysignalk.control.verifier import StateVerifier, values_match
from pysignalk.models.command import VerificationOutcome
from pysignalk.models.data_point import DataPoint
from pysignalk.state.store import DataStore

STATE = "steering.autopilot.state"


def _push(store: DataStore, path: str, value: object, source: str | None = "pypilot") -> None:
    store.apply_point(DataPoint(path=path, source=source, value=value))


async def _push_later(store: DataStore, delay: float, path: str, value: object, source: str | None = "pypilot") -> None:
    await asyncio.sleep(delay)
    _push(store, path, value, source)


@pytest.mark.parametrize(
    ("observed", "expected", "tolerance", "matches"),
    [
        ("Auto", "auto", 0.0, True),
        (" WIND ", "wind", 0.0, True),
        ("auto", "standby", 0.0, False),
        (True, True, 0.0, True),
        (True, 1, 0.0, False),
        (1, True, 0.0, False),
        (0, False, 0.0, False),
        (1.5, 1.5, 0.0, True),
        (1.5, 1.50001, 0.0, False),
        (1.5, 1.6, 0.2, True),
        (1.5, 2.0, 0.2, False),
        (2, 2.0, 0.0, True),
        ("2", 2, 0.0, False),
        (None, None, 0.0, True),
        (None, "auto", 0.0, False),
        ({"a": 1}, {"a": 1}, 0.0, True),
    ],
)
def test_values_match(observed: object, expected: object, tolerance: float, matches: bool) -> None:
    assert values_match(observed, expected, tolerance=tolerance) is matches


@pytest.mark.asyncio
async def test_verify_resolves_on_first_matching_push() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=1.0)
    asyncio.get_running_loop().create_task(_push_later(store, 0.02, STATE, "standby"))
    asyncio.get_running_loop().create_task(_push_later(store, 0.05, STATE, "Auto"))

    result = await verifier.verify(STATE, "auto")

    assert result.outcome == VerificationOutcome.VERIFIED
    assert result.observed_value == "Auto"
    assert not verifier.is_pending(STATE)
    assert store.listener_count == 0


@pytest.mark.asyncio
async def test_verify_times_out_without_raising() -> None:
    store = DataStore()
    _push(store, STATE, "standby")
    verifier = StateVerifier(store)

    result = await verifier.verify(STATE, "auto", timeout=0.05)

    assert result.outcome == VerificationOutcome.TIMED_OUT
    assert result.observed_value == "standby"
    assert not result.verified
    assert result.message is not None
    assert store.listener_count == 0


@pytest.mark.asyncio
async def test_verify_accepts_current_value() -> None:
    store = DataStore()
    _push(store, STATE, "auto")
    verifier = StateVerifier(store)

    result = await verifier.verify(STATE, "auto", timeout=0.05)

    assert result.outcome == VerificationOutcome.VERIFIED


@pytest.mark.asyncio
async def test_verify_can_ignore_current_value() -> None:
    store = DataStore()
    _push(store, STATE, "auto")
    verifier = StateVerifier(store)

    result = await verifier.verify(STATE, "auto", timeout=0.05, check_current=False)

    assert result.outcome == VerificationOutcome.TIMED_OUT


@pytest.mark.asyncio
async def test_verify_respects_source_filter() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=0.2)
    asyncio.get_running_loop().create_task(_push_later(store, 0.01, STATE, "auto", source="other"))
    asyncio.get_running_loop().create_task(_push_later(store, 0.03, STATE, "auto", source="pypilot"))

    result = await verifier.verify(STATE, "auto", source="pypilot")

    assert result.outcome == VerificationOutcome.VERIFIED


@pytest.mark.asyncio
async def test_custom_matcher() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=0.2)
    asyncio.get_running_loop().create_task(_push_later(store, 0.01, STATE, "route"))

    result = await verifier.verify(STATE, "standby", match=lambda observed, expected: observed != expected)

    assert result.outcome == VerificationOutcome.VERIFIED
    assert result.observed_value == "route"


@pytest.mark.asyncio
async def test_numeric_tolerance() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=0.2, numeric_tolerance=0.01)
    asyncio.get_running_loop().create_task(_push_later(store, 0.01, "steering.autopilot.target.headingMagnetic", 1.575))

    result = await verifier.verify("steering.autopilot.target.headingMagnetic", 1.57)

    assert result.outcome == VerificationOutcome.VERIFIED


@pytest.mark.asyncio
async def test_newer_verification_cancels_older_one() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=1.0)

    first = asyncio.create_task(verifier.verify(STATE, "auto"))
    await asyncio.sleep(0)
    second = asyncio.create_task(verifier.verify(STATE, "wind"))
    await asyncio.sleep(0)
    _push(store, STATE, "wind")

    first_result = await first
    second_result = await second

    assert first_result.outcome == VerificationOutcome.CANCELLED
    assert second_result.outcome == VerificationOutcome.VERIFIED
    assert verifier.pending_paths == []


@pytest.mark.asyncio
async def test_verifications_on_different_paths_are_independent() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=1.0)

    state = asyncio.create_task(verifier.verify(STATE, "auto"))
    light = asyncio.create_task(verifier.verify("electrical.switches.anchorLight.state", True))
    await asyncio.sleep(0)
    assert verifier.pending_paths == ["electrical.switches.anchorLight.state", STATE]

    _push(store, "electrical.switches.anchorLight.state", True)
    _push(store, STATE, "auto")

    assert (await state).verified
    assert (await light).verified


@pytest.mark.asyncio
async def test_cancel_all() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=1.0)
    task = asyncio.create_task(verifier.verify(STATE, "auto"))
    await asyncio.sleep(0)

    assert verifier.cancel_all() == 1
    assert (await task).outcome == VerificationOutcome.CANCELLED
    assert not verifier.cancel(STATE)


@pytest.mark.asyncio
async def test_alarm_notification_rejects_verification() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=1.0, watch_notifications=True)
    task = asyncio.create_task(verifier.verify(STATE, "auto"))
    await asyncio.sleep(0)

    _push(store, "notifications.steering.autopilot.piLocked", {"state": "normal", "message": "ok"})
    assert not task.done()
    _push(store, "notifications.steering.autopilot.noCompass", {"state": "alarm", "message": "No compass"})

    result = await task
    assert result.outcome == VerificationOutcome.REJECTED
    assert result.message == "Autopilot rejected command: No compass"


@pytest.mark.asyncio
async def test_notifications_ignored_unless_watched() -> None:
    store = DataStore()
    verifier = StateVerifier(store, timeout=0.05)
    task = asyncio.create_task(verifier.verify(STATE, "auto"))
    await asyncio.sleep(0)

    _push(store, "notifications.steering.autopilot.noCompass", {"state": "alarm"})

    assert (await task).outcome == VerificationOutcome.TIMED_OUT
