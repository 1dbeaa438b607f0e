"""Optimistic control: immediate display feedback for a writable path.

Each control runs a small state machine per command::

    IDLE -> SENDING -> VERIFIED | TIMED_OUT | FAILED -> IDLE

While ``SENDING`` the displayed value is the commanded one.  An optimistic
override hides pushes that disagree with it for ``grace_window`` seconds,
so stale or re-ordered pushes arriving right after a command do not make
the display flicker back.  Once the cycle ends (or the override expires)
the display tracks the data store exactly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pysignalk.control.sender import CommandSender
from pysignalk.control.verifier import Matcher, StateVerifier
from pysignalk.exceptions import SignalKCommandError
from pysignalk.models.command import (
    Command,
    CommandAck,
    CommandOutcome,
    CommandResult,
    ControlPhase,
    OptimisticOverride,
    VerificationOutcome,
)
from pysignalk.models.data_point import DataPoint
from pysignalk.state.store import DataStore

_logger = logging.getLogger(__name__)

SendFn = Callable[[Any], Awaitable[CommandAck]]

_VERIFICATION_OUTCOMES: dict[VerificationOutcome, tuple[CommandOutcome, ControlPhase]] = {
    VerificationOutcome.VERIFIED: (CommandOutcome.VERIFIED, ControlPhase.VERIFIED),
    VerificationOutcome.TIMED_OUT: (CommandOutcome.TIMED_OUT, ControlPhase.TIMED_OUT),
    VerificationOutcome.REJECTED: (CommandOutcome.REJECTED, ControlPhase.FAILED),
    VerificationOutcome.CANCELLED: (CommandOutcome.SUPERSEDED, ControlPhase.IDLE),
}


class OptimisticControl:
    """Display state and command cycle for one control bound to one path.

    Parameters
    ----------
    path : str
        Path whose value the control displays and verifies.
    store : DataStore
        Data store to read and subscribe to.
    sender : CommandSender
        Used to PUT the value on *path* unless *send_fn* is given.
    verifier : StateVerifier
        Confirms the command's effect on *path*.
    grace_window : float
        Seconds the optimistic override hides disagreeing pushes.
    verify_timeout : float or None
        Verification window; ``None`` uses the verifier's default.
    source : str or None
        Only display and verify values from this source label.
    send_fn : callable or None
        ``await send_fn(value) -> CommandAck`` replacing the default PUT,
        for commands whose endpoint differs from the watched path (V2
        autopilot).
    on_change : callable or None
        Called with the new displayed value whenever it changes.
    on_result : callable or None
        Called with the :class:`CommandResult` of every cycle that was not
        superseded.
    on_phase : callable or None
        Called with each :class:`ControlPhase` transition.
    """

    def __init__(
        self,
        path: str,
        *,
        store: DataStore,
        sender: CommandSender,
        verifier: StateVerifier,
        grace_window: float = 3.0,
        verify_timeout: float | None = None,
        source: str | None = None,
        send_fn: SendFn | None = None,
        on_change: Callable[[Any], None] | None = None,
        on_result: Callable[[CommandResult], None] | None = None,
        on_phase: Callable[[ControlPhase], None] | None = None,
    ) -> None:
        self.path = path
        self._store = store
        self._sender = sender
        self._verifier = verifier
        self._grace_window = grace_window
        self._verify_timeout = verify_timeout
        self._source = source
        self._send_fn = send_fn
        self._on_change = on_change
        self._on_result = on_result
        self._on_phase = on_phase

        self._phase = ControlPhase.IDLE
        self._override: OptimisticOverride | None = None
        self._override_handle: asyncio.TimerHandle | None = None
        self._cycle: asyncio.Task[CommandResult] | None = None
        self._closed = False
        self._displayed: Any = store.value(path, source)
        self._subscription = store.subscribe(path, self._on_point, source=source)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> ControlPhase:
        return self._phase

    @property
    def displayed_value(self) -> Any:
        return self._displayed

    @property
    def override(self) -> OptimisticOverride | None:
        return self._override

    @property
    def is_busy(self) -> bool:
        return self._cycle is not None and not self._cycle.done()

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def send(
        self,
        value: Any,
        *,
        optimistic: bool = True,
        expected: Any = None,
        verify: bool = True,
        match: Matcher | None = None,
    ) -> CommandResult:
        """Run one command/verify cycle.

        A second call while a cycle is in flight cancels the first cycle;
        the first call then returns ``CommandOutcome.SUPERSEDED`` and its
        ``on_result`` is not fired.

        Parameters
        ----------
        value : Any
            Value to send.
        optimistic : bool
            Show the expected value immediately.
        expected : Any
            Value to verify and display; defaults to *value*.
        verify : bool
            Wait for the effect on the data stream.  Unverified commands end
            as ``UNVERIFIED`` once the server accepts them.
        match : callable or None
            Custom ``match(observed, expected)`` for verification.
        """
        if self._closed:
            raise RuntimeError(f"control for {self.path} is closed")

        command = Command(path=self.path, value=value)
        previous = self._cycle
        if previous is not None and not previous.done():
            _logger.debug("Superseding in-flight command path=%s", self.path)
            previous.cancel()

        task = asyncio.get_running_loop().create_task(
            self._run_cycle(command, optimistic=optimistic, expected=expected, verify=verify, match=match)
        )
        self._cycle = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and (self._cycle is not task or self._closed):
                return CommandResult(
                    command=command,
                    outcome=CommandOutcome.SUPERSEDED,
                    detail="Control closed" if self._closed else "Superseded by a newer command",
                )
            raise

    async def _run_cycle(
        self,
        command: Command,
        *,
        optimistic: bool,
        expected: Any,
        verify: bool,
        match: Matcher | None,
    ) -> CommandResult:
        expected_value = command.value if expected is None else expected
        self._set_phase(ControlPhase.SENDING)
        if optimistic:
            self._apply_override(expected_value)

        try:
            if self._send_fn is not None:
                ack = await self._send_fn(command.value)
            else:
                ack = await self._sender.send_command(command)
        except SignalKCommandError as exc:
            _logger.debug("Command failed path=%s kind=%s", self.path, exc.kind, exc_info=True)
            self._set_phase(ControlPhase.FAILED)
            self._clear_override()
            return self._finish(
                CommandResult(
                    command=command,
                    outcome=CommandOutcome.FAILED,
                    error_kind=exc.kind,
                    detail=exc.user_message(),
                )
            )
        except Exception:
            self._clear_override()
            self._set_phase(ControlPhase.IDLE)
            raise

        if not verify:
            # The override, if any, keeps hiding stale pushes until it expires.
            return self._finish(CommandResult(command=command, outcome=CommandOutcome.UNVERIFIED, ack=ack))

        verification = await self._verifier.verify(
            self.path,
            expected_value,
            timeout=self._verify_timeout,
            source=self._source,
            match=match,
        )
        outcome, phase = _VERIFICATION_OUTCOMES[verification.outcome]
        if outcome == CommandOutcome.SUPERSEDED:
            # Another command on this path took over the verification.
            self._clear_override()
            self._set_phase(ControlPhase.IDLE)
            return CommandResult(command=command, outcome=outcome, detail=verification.message, ack=ack)

        self._set_phase(phase)
        self._clear_override()
        return self._finish(
            CommandResult(
                command=command,
                outcome=outcome,
                detail=verification.message if outcome == CommandOutcome.REJECTED else None,
                ack=ack,
            )
        )

    def _finish(self, result: CommandResult) -> CommandResult:
        _logger.debug("Command cycle finished path=%s outcome=%s", self.path, result.outcome)
        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                _logger.debug("on_result callback failed path=%s", self.path, exc_info=True)
        self._set_phase(ControlPhase.IDLE)
        return result

    # ------------------------------------------------------------------
    # Display state
    # ------------------------------------------------------------------

    def _override_active(self) -> bool:
        override = self._override
        if override is None:
            return False
        return override.is_active(asyncio.get_running_loop().time())

    def _on_point(self, point: DataPoint) -> None:
        override = self._override
        if override is not None and self._override_active() and not self._verifier.matches(point.value, override.value):
            _logger.debug("Ignoring push during grace window path=%s value=%r", self.path, point.value)
            return
        self._set_displayed(point.value)

    def _apply_override(self, value: Any) -> None:
        self._cancel_override_timer()
        loop = asyncio.get_running_loop()
        self._override = OptimisticOverride(path=self.path, value=value, expires_at=loop.time() + self._grace_window)
        self._override_handle = loop.call_later(self._grace_window, self._expire_override)
        self._set_displayed(value)

    def _expire_override(self) -> None:
        self._override_handle = None
        if self._override is None:
            return
        _logger.debug("Optimistic override expired path=%s", self.path)
        self._override = None
        self._resync()

    def _clear_override(self) -> None:
        self._cancel_override_timer()
        self._override = None
        self._resync()

    def _cancel_override_timer(self) -> None:
        if self._override_handle is not None:
            self._override_handle.cancel()
            self._override_handle = None

    def _resync(self) -> None:
        self._set_displayed(self._store.value(self.path, self._source))

    def _set_displayed(self, value: Any) -> None:
        if value == self._displayed and type(value) is type(self._displayed):
            return
        self._displayed = value
        if self._on_change is not None:
            try:
                self._on_change(value)
            except Exception:
                _logger.debug("on_change callback failed path=%s", self.path, exc_info=True)

    def _set_phase(self, phase: ControlPhase) -> None:
        if phase == self._phase:
            return
        self._phase = phase
        if self._on_phase is not None:
            try:
                self._on_phase(phase)
            except Exception:
                _logger.debug("on_phase callback failed path=%s", self.path, exc_info=True)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel the in-flight cycle and the override timer and unsubscribe."""
        if self._closed:
            return
        self._closed = True
        task = self._cycle
        self._cycle = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._cancel_override_timer()
        self._override = None
        self._subscription.unsubscribe()
        self._phase = ControlPhase.IDLE

    async def __aenter__(self) -> OptimisticControl:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
