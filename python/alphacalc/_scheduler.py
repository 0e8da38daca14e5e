"""Debounced recompute scheduler.

State machine::

    IDLE --change--> PENDING --quiet window elapses--> EVALUATING --> IDLE
                       ^  |
                       +--+ every further change rearms the timer

A pass visits formula cells in registration order and evaluates each against
the live value store, so a formula sees the values written earlier in the
same pass.  There is no dependency ordering and no fixpoint iteration: a
circular formula reads whatever partial state exists when it runs, once per
pass.  Calculation hooks run after the formulas, each isolated from the
others' failures.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from enum import Enum
from typing import Any, Callable

from alphacalc._errors import Diagnostic, DiagnosticKind
from alphacalc._events import (
    EventChannel,
    EventKind,
    PassFinished,
    PassStarted,
    RecomputeRequested,
    ValueChanged,
)
from alphacalc._protocol import CellDelta, Clock, RecomputeResult, TimerHandle
from alphacalc._store import CellKind, ValueStore
from alphacalc.formula import FormulaEvaluator

logger = logging.getLogger(__name__)

CalculationHook = Callable[[ValueStore], Any]


class SchedulerState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    EVALUATING = "evaluating"


# ---------------------------------------------------------------------------
# ManualClock: virtual time for tests and for hosts without an event loop
# ---------------------------------------------------------------------------


class ManualTimer:
    __slots__ = ("due", "callback", "args", "cancelled")

    def __init__(self, due: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """A :class:`Clock` whose time only moves when :meth:`advance` is called."""

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._seq = itertools.count()

    @property
    def time(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualTimer:
        timer = ManualTimer(self._now + max(delay, 0.0), callback, args)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every timer that falls due, in order."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            timer.callback(*timer.args)
        self._now = target


# ---------------------------------------------------------------------------
# RecomputeScheduler
# ---------------------------------------------------------------------------


class RecomputeScheduler:
    """Coalesces change notifications into debounced recompute passes.

    When no clock is given, the running ``asyncio`` loop is used.  Outside an
    event loop there is nothing to defer to, so a request runs the pass
    immediately.
    """

    def __init__(
        self,
        store: ValueStore,
        channel: EventChannel,
        evaluator: FormulaEvaluator,
        clock: Clock | None = None,
        debounce_ms: int = 50,
        auto_calculate: bool = True,
    ) -> None:
        self._store = store
        self._channel = channel
        self._evaluator = evaluator
        self._clock = clock
        self.debounce_ms = debounce_ms
        self.auto_calculate = auto_calculate
        self._formulas: dict[str, str] = {}  # registration order
        self._hooks: list[CalculationHook] = []
        self._state = SchedulerState.IDLE
        self._timer: TimerHandle | None = None
        self._pass_count = 0
        self._subscription = channel.subscribe(EventKind.VALUE_CHANGED, self._on_value_changed)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def formulas(self) -> dict[str, str]:
        return dict(self._formulas)

    @property
    def hooks(self) -> list[CalculationHook]:
        return list(self._hooks)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_formula(self, cell_id: str, expression: str) -> None:
        self._formulas[cell_id] = expression

    def remove_formula(self, cell_id: str) -> None:
        self._formulas.pop(cell_id, None)

    def add_hook(self, hook: CalculationHook) -> bool:
        if not callable(hook):
            logger.warning("Ignoring calculation hook %r: not callable", hook)
            return False
        self._hooks.append(hook)
        return True

    def remove_hook(self, hook: CalculationHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def _on_value_changed(self, event: ValueChanged) -> None:
        # writes made by a pass never schedule another one
        if self._state is SchedulerState.EVALUATING or event.kind is CellKind.FORMULA:
            return
        if self.auto_calculate:
            self.request(event.cell_id)

    def request(self, cell_id: str | None = None) -> None:
        """Arm (or rearm) the debounce timer."""
        if self._state is SchedulerState.EVALUATING:
            logger.debug("Ignoring recompute request during a pass")
            return

        clock = self._resolve_clock()
        if clock is None:
            logger.debug("No clock or running event loop; recomputing immediately")
            self.run()
            return

        if self._timer is not None:
            self._timer.cancel()
        else:
            self._channel.publish(EventKind.RECOMPUTE_REQUESTED, RecomputeRequested(cell_id))
        self._state = SchedulerState.PENDING
        self._timer = clock.call_later(self.debounce_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        """Drop a pending request without running it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state is SchedulerState.PENDING:
            self._state = SchedulerState.IDLE

    def _fire(self) -> None:
        self._timer = None
        self.run()

    def _resolve_clock(self) -> Clock | None:
        if self._clock is not None:
            return self._clock
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    # ------------------------------------------------------------------
    # The pass
    # ------------------------------------------------------------------

    def run(self) -> RecomputeResult | None:
        """Run one pass now, cancelling any pending request.

        Returns None when called from inside a running pass.
        """
        if self._state is SchedulerState.EVALUATING:
            logger.warning("Recompute requested from inside a pass; ignored")
            return None

        self.cancel()
        self._state = SchedulerState.EVALUATING
        self._pass_count += 1
        pass_number = self._pass_count
        formulas = list(self._formulas.items())
        hooks = list(self._hooks)
        self._channel.publish(EventKind.PASS_START, PassStarted(pass_number, len(formulas)))
        logger.debug("Pass %d: processing %d formula cells", pass_number, len(formulas))

        deltas: list[CellDelta] = []
        diagnostics: list[Diagnostic] = []
        failures = 0
        try:
            for cell_id, expression in formulas:
                outcome = self._evaluator.evaluate_detailed(expression, self._store, cell_id)
                if outcome.diagnostic is not None:
                    diagnostics.append(outcome.diagnostic)
                    self._channel.report(outcome.diagnostic)
                old_value = self._store.get(cell_id)
                new_value = self._store.set(cell_id, outcome.value)
                logger.debug("Formula result: %s = %r = %s", cell_id, expression, new_value)
                if new_value != old_value:
                    deltas.append(CellDelta(cell_id, old_value, new_value, expression))

            for index, hook in enumerate(hooks, start=1):
                try:
                    hook(self._store)
                except Exception as e:
                    failures += 1
                    logger.exception("Error in calculation hook #%d", index)
                    diagnostic = Diagnostic(
                        DiagnosticKind.HOOK_ERROR,
                        f"Calculation hook #{index} raised {e!r}",
                        None,
                        e,
                    )
                    diagnostics.append(diagnostic)
                    self._channel.report(diagnostic)
        finally:
            self._state = SchedulerState.IDLE

        result = RecomputeResult(
            pass_number=pass_number,
            deltas=tuple(deltas),
            formula_cells=len(formulas),
            hooks_run=len(hooks),
            hook_failures=failures,
            diagnostics=tuple(diagnostics),
        )
        self._channel.publish(EventKind.PASS_END, PassFinished(pass_number, result))
        return result

    def close(self) -> None:
        self.cancel()
        self._subscription.cancel()
        self._formulas.clear()
        self._hooks.clear()
