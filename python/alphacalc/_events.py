"""Synchronous publish/subscribe channel keyed by event kind.

Subscribers may listen to every event of a kind or only to events published
under a specific key (for ``value-changed`` the key is the cell id).  Every
subscription is an independent handle that can be cancelled on its own.
Delivery is synchronous and run-to-completion, in subscription order.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from alphacalc._errors import Diagnostic, DiagnosticKind

if TYPE_CHECKING:
    from alphacalc._protocol import RecomputeResult
    from alphacalc._store import CellKind

logger = logging.getLogger(__name__)


class EventKind(Enum):
    VALUE_CHANGED = "value-changed"
    RECOMPUTE_REQUESTED = "recompute-requested"
    PASS_START = "pass-start"
    PASS_END = "pass-end"
    DIAGNOSTIC = "diagnostic"


@dataclass(frozen=True)
class ValueChanged:
    cell_id: str
    value: float
    previous: float
    kind: CellKind

    @property
    def changed(self) -> bool:
        return self.value != self.previous


@dataclass(frozen=True)
class RecomputeRequested:
    cell_id: str | None = None  # the change that armed the timer, if any


@dataclass(frozen=True)
class PassStarted:
    pass_number: int
    formula_count: int


@dataclass(frozen=True)
class PassFinished:
    pass_number: int
    result: RecomputeResult


Callback = Callable[[Any], None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    kind: EventKind
    callback: Callback
    key: str | None
    order: int
    _channel: EventChannel | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._channel is not None

    def cancel(self) -> None:
        """Stop receiving events.  Cancelling twice is harmless."""
        if self._channel is not None:
            self._channel._remove(self)
            self._channel = None


class EventChannel:
    """Typed, single-threaded event bus."""

    def __init__(self) -> None:
        # (kind, key) -> subscriptions; key None means "every event of kind"
        self._subscriptions: dict[tuple[EventKind, str | None], list[Subscription]] = {}
        self._counter = itertools.count()

    def subscribe(
        self,
        kind: EventKind,
        callback: Callback,
        key: str | None = None,
    ) -> Subscription:
        sub = Subscription(kind, callback, key, next(self._counter), self)
        self._subscriptions.setdefault((kind, key), []).append(sub)
        return sub

    def publish(self, kind: EventKind, payload: Any, key: str | None = None) -> None:
        """Deliver *payload* to subscribers of *kind* (all, plus those on *key*).

        A failing subscriber is logged and reported as a diagnostic; the
        remaining subscribers still run.
        """
        targets = list(self._subscriptions.get((kind, None), ()))
        if key is not None:
            targets.extend(self._subscriptions.get((kind, key), ()))
            targets.sort(key=lambda s: s.order)

        for sub in targets:
            if not sub.active:
                continue
            try:
                sub.callback(payload)
            except Exception as e:
                logger.exception("Subscriber for %s failed", kind.value)
                if kind is not EventKind.DIAGNOSTIC:
                    self.publish(EventKind.DIAGNOSTIC, Diagnostic(
                        DiagnosticKind.SUBSCRIBER_ERROR,
                        f"Subscriber for {kind.value} raised {e!r}",
                        key,
                        e,
                    ))

    def report(self, diagnostic: Diagnostic) -> None:
        """Publish a diagnostic on the structured diagnostics stream."""
        self.publish(EventKind.DIAGNOSTIC, diagnostic, diagnostic.cell_id)

    def subscriber_count(self, kind: EventKind, key: str | None = None) -> int:
        return len(self._subscriptions.get((kind, key), ()))

    def clear(self) -> None:
        """Cancel every subscription."""
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                sub.cancel()
        self._subscriptions.clear()

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get((sub.kind, sub.key))
        if subs is None:
            return
        try:
            subs.remove(sub)
        except ValueError:
            return
        if not subs:
            del self._subscriptions[(sub.kind, sub.key)]
