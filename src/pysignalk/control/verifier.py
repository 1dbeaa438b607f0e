"""State verifier: confirms a command's effect from the data stream.

After a command is accepted the verifier watches the data store for the
expected value on the command's path.  The first matching value wins and
is reported exactly once; if nothing matches before the deadline the
request resolves as timed out.  Verification never raises for a missed
deadline: "sent but not confirmed" is an outcome, not an error.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pysignalk._constants import ALARM_NOTIFICATION_STATES, AUTOPILOT_NOTIFICATION_PREFIX
from pysignalk.models.command import VerificationOutcome, VerificationRequest, VerificationResult
from pysignalk.models.data_point import DataPoint
from pysignalk.state.store import DataStore, Subscription

_logger = logging.getLogger(__name__)

Matcher = Callable[[Any, Any], bool]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_match(observed: Any, expected: Any, *, tolerance: float = 0.0) -> bool:
    """Type-appropriate equality used for verification.

    - strings: case-insensitive (autopilot states arrive as ``"Auto"`` or ``"auto"``)
    - booleans: exact, and never equal to a number
    - numbers: ``|observed - expected| <= tolerance`` (exact for ``0``)
    - anything else: ``==``
    """
    if observed is None:
        return expected is None
    if isinstance(expected, bool) or isinstance(observed, bool):
        return isinstance(expected, bool) and isinstance(observed, bool) and observed is expected
    if isinstance(expected, str):
        return isinstance(observed, str) and observed.strip().casefold() == expected.strip().casefold()
    if _is_number(expected) and _is_number(observed):
        if tolerance <= 0:
            return observed == expected
        if math.isnan(observed) or math.isnan(expected):
            return False
        return abs(observed - expected) <= tolerance
    return bool(observed == expected)


@dataclass(eq=False)
class _Pending:
    request: VerificationRequest
    future: asyncio.Future[VerificationResult]
    subscriptions: list[Subscription] = field(default_factory=list)

    def resolve(self, result: VerificationResult) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        # Stop listening as soon as the outcome is known.
        self.release()
        return True

    def release(self) -> None:
        for subscription in self.subscriptions:
            subscription.unsubscribe()
        self.subscriptions.clear()


class StateVerifier:
    """Watches the data store for the expected effect of a command.

    Parameters
    ----------
    store : DataStore
        Data store fed by the delta stream.
    timeout : float
        Default verification window in seconds.
    numeric_tolerance : float
        Absolute tolerance for numeric comparisons.  ``0`` means exact.
    watch_notifications : bool
        Resolve as ``REJECTED`` when an autopilot alarm notification
        (``notifications.steering.autopilot.*``) arrives during the window.
    """

    def __init__(
        self,
        store: DataStore,
        *,
        timeout: float = 5.0,
        numeric_tolerance: float = 0.0,
        watch_notifications: bool = False,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._numeric_tolerance = numeric_tolerance
        self._watch_notifications = watch_notifications
        self._pending: dict[str, _Pending] = {}

    @property
    def pending_paths(self) -> list[str]:
        return sorted(self._pending)

    def is_pending(self, path: str) -> bool:
        return path in self._pending

    def matches(self, observed: Any, expected: Any) -> bool:
        return values_match(observed, expected, tolerance=self._numeric_tolerance)

    async def verify(
        self,
        path: str,
        expected: Any,
        *,
        timeout: float | None = None,
        source: str | None = None,
        match: Matcher | None = None,
        check_current: bool = True,
    ) -> VerificationResult:
        """Wait until *path* shows *expected* or the window closes.

        Parameters
        ----------
        path : str
            Path to watch.
        expected : Any
            Value the command should produce.
        timeout : float or None
            Window in seconds; defaults to the verifier's timeout.
        source : str or None
            Only accept values from this source label.
        match : callable or None
            ``match(observed, expected) -> bool`` replacing the default
            comparison (e.g. "any state except standby").
        check_current : bool
            Also accept the value already cached when verification starts.

        Returns
        -------
        VerificationResult
            ``VERIFIED`` on the first match, ``TIMED_OUT`` when the window
            closes, ``REJECTED`` on an autopilot alarm and ``CANCELLED`` when
            a newer verification for the same path superseded this one.
        """
        loop = asyncio.get_running_loop()
        window = self._timeout if timeout is None else timeout
        matcher = match or self.matches

        # One verification per path: the newer one supersedes.
        self.cancel(path)

        future: asyncio.Future[VerificationResult] = loop.create_future()
        pending = _Pending(
            request=VerificationRequest(path=path, expected=expected, deadline=loop.time() + window),
            future=future,
        )
        self._pending[path] = pending

        def on_point(point: DataPoint) -> None:
            if future.done() or not matcher(point.value, expected):
                return
            _logger.debug("Verified path=%s value=%r", path, point.value)
            pending.resolve(
                VerificationResult(path=path, outcome=VerificationOutcome.VERIFIED, observed_value=point.value)
            )

        def on_notification(point: DataPoint) -> None:
            notification = point.value if isinstance(point.value, dict) else {}
            state = str(notification.get("state") or "").lower()
            if future.done() or state not in ALARM_NOTIFICATION_STATES:
                return
            message = notification.get("message") or f"Autopilot {state}"
            _logger.debug("Verification rejected path=%s notification=%s", path, point.path)
            pending.resolve(
                VerificationResult(
                    path=path,
                    outcome=VerificationOutcome.REJECTED,
                    observed_value=self._store.value(path, source),
                    message=f"Autopilot rejected command: {message}",
                )
            )

        pending.subscriptions.append(self._store.subscribe(path, on_point, source=source))
        if self._watch_notifications:
            pending.subscriptions.append(
                self._store.subscribe(AUTOPILOT_NOTIFICATION_PREFIX, on_notification, prefix=True)
            )

        if check_current:
            current = self._store.get(path, source)
            if current is not None:
                on_point(current)

        try:
            if future.done():
                return future.result()
            return await asyncio.wait_for(future, timeout=max(window, 0.0))
        except TimeoutError:
            observed = self._store.value(path, source)
            _logger.debug("Verification timed out path=%s expected=%r observed=%r", path, expected, observed)
            return VerificationResult(
                path=path,
                outcome=VerificationOutcome.TIMED_OUT,
                observed_value=observed,
                message=f"{path} did not reach {expected!r} within {window:g}s",
            )
        finally:
            pending.release()
            if self._pending.get(path) is pending:
                del self._pending[path]

    def cancel(self, path: str) -> bool:
        """Resolve a pending verification on *path* as ``CANCELLED``."""
        pending = self._pending.pop(path, None)
        if pending is None:
            return False
        return pending.resolve(
            VerificationResult(
                path=path,
                outcome=VerificationOutcome.CANCELLED,
                observed_value=self._store.value(path),
                message="Superseded by a newer command",
            )
        )

    def cancel_all(self) -> int:
        return sum(1 for path in list(self._pending) if self.cancel(path))
