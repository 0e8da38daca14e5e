"""Calculator: one reactive instance and its public API.

Usage::

    calc = Calculator("checkout", {"debounce_ms": 100}, render=paint)
    calc.register_cell("price", 10)
    calc.register_cell("qty", 1, minimum=0)
    calc.register_formula("total", "=price * qty")
    calc.recompute()
    calc.set_value("qty", 3)   # total follows after the debounce window

No runtime failure escapes these methods.  Bad formulas, unknown groups and
failing hooks degrade to 0 or a no-op, log, and publish a
:class:`~alphacalc.Diagnostic` on the ``diagnostic`` event stream.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable

from alphacalc._config import CalcConfig
from alphacalc._errors import Diagnostic, DiagnosticKind
from alphacalc._events import EventChannel, EventKind, PassFinished, Subscription, ValueChanged
from alphacalc._groups import GroupAggregator, GroupMode
from alphacalc._layout import PageLayout
from alphacalc._numeric import format_number, parse_numeric
from alphacalc._protocol import Clock, RecomputeResult
from alphacalc._scheduler import CalculationHook, RecomputeScheduler, SchedulerState
from alphacalc._store import VALUE_TOLERANCE, CellKind, ValueStore
from alphacalc.formula import DependencyGraph, FormulaEvaluator, FunctionRegistry, looks_like_formula

logger = logging.getLogger(__name__)

RenderCallback = Callable[[str, str], Any]


class Calculator:
    """A set of cells, formulas and groups kept consistent as inputs change."""

    def __init__(
        self,
        name: str = "unnamed",
        config: CalcConfig | Mapping[str, Any] | None = None,
        *,
        clock: Clock | None = None,
        render: RenderCallback | None = None,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self.name = name
        self.config = config if isinstance(config, CalcConfig) else CalcConfig.from_options(config)
        self.channel = EventChannel()
        self.store = ValueStore(self.channel)
        self.evaluator = FormulaEvaluator(self.config.input_decimals, functions)
        self.graph = DependencyGraph()
        self.groups = GroupAggregator(self.store, self.channel)
        self.scheduler = RecomputeScheduler(
            self.store,
            self.channel,
            self.evaluator,
            clock=clock,
            debounce_ms=self.config.debounce_ms,
            auto_calculate=self.config.auto_calculate,
        )
        self._render = render
        self._destroyed = False
        if render is not None:
            self.channel.subscribe(EventKind.VALUE_CHANGED, self._on_value_changed)
        if self.config.debug:
            self.channel.subscribe(EventKind.PASS_END, self._log_report)
        logger.debug(
            "Calculator %r initialized with debounce time: %dms", name, self.config.debounce_ms
        )

    def __repr__(self) -> str:
        return f"Calculator(name={self.name!r}, cells={len(self.store)})"

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def state(self) -> SchedulerState:
        return self.scheduler.state

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_cell(
        self,
        cell_id: str,
        initial: Any = 0,
        *,
        minimum: float | None = None,
        maximum: float | None = None,
        toggle: bool = False,
        active: bool = False,
        decimals: int | None = None,
    ) -> bool:
        """Declare a raw cell.  Returns False (with a diagnostic) when skipped."""
        if not self._alive("register_cell") or not self._claim(cell_id, "Cell"):
            return False
        self.store.register(
            cell_id,
            CellKind.RAW,
            initial,
            minimum=minimum,
            maximum=maximum,
            toggle=toggle,
            active=active,
            decimals=decimals,
        )
        return True

    def register_formula(
        self,
        cell_id: str,
        formula: str,
        *,
        minimum: float | None = None,
        maximum: float | None = None,
        decimals: int | None = None,
    ) -> bool:
        """Declare a formula cell, evaluated on every pass in registration order.

        A formula that reads itself, directly or through other formulas, is
        accepted with a ``circular-reference`` warning; with
        ``reject_cycles`` enabled it is refused instead.
        """
        if not self._alive("register_formula") or not self._claim(cell_id, "Formula cell"):
            return False

        if not isinstance(formula, str):
            self._report(DiagnosticKind.INVALID_ARGUMENT,
                         f"Formula for {cell_id!r} must be text, not {type(formula).__name__}",
                         cell_id)
            return False

        expression = formula.strip()
        references = self.evaluator.parser.references(expression)
        self.graph.add_formula(cell_id, expression, references)
        cycle = self.graph.cycle_through(cell_id)
        if cycle:
            path = " -> ".join(cycle)
            if self.config.reject_cycles:
                self.graph.remove_formula(cell_id)
                self._report(DiagnosticKind.CIRCULAR_REFERENCE,
                             f"Formula refused, circular reference: {path}", cell_id)
                return False
            self._report(DiagnosticKind.CIRCULAR_REFERENCE,
                         f"Circular reference evaluated in registration order: {path}", cell_id)

        self.store.register(
            cell_id,
            CellKind.FORMULA,
            minimum=minimum,
            maximum=maximum,
            decimals=decimals,
            formula=expression,
        )
        self.scheduler.add_formula(cell_id, expression)
        logger.debug("Registered formula cell %s with formula: %s", cell_id, expression)
        return True

    def register_group(
        self,
        name: str,
        members: Iterable[str],
        mode: GroupMode | str = GroupMode.ADDITIVE,
    ) -> bool:
        """Declare a group whose value is derived from *members*."""
        if not self._alive("register_group"):
            return False
        if not name:
            self._report(DiagnosticKind.MISSING_IDENTIFIER, "Group declared without a name", None)
            return False
        return self.groups.register(name, members, mode) is not None

    def load(self, layout: PageLayout | Mapping[str, Any]) -> RecomputeResult | None:
        """Register a whole page layout, then run the initial pass."""
        if not self._alive("load"):
            return None
        if not isinstance(layout, PageLayout):
            try:
                layout = PageLayout.from_dict(layout)
            except (ValueError, TypeError, AttributeError) as e:
                self._report(DiagnosticKind.INVALID_ARGUMENT, f"Layout not loaded: {e}", None)
                return None
        for cell in layout.cells:
            self.register_cell(
                cell.cell_id,
                cell.initial,
                minimum=cell.minimum,
                maximum=cell.maximum,
                toggle=cell.toggle,
                active=cell.active,
                decimals=cell.decimals,
            )
        for group in layout.groups:
            self.register_group(group.name, group.members, group.mode)
        for formula in layout.formulas:
            self.register_formula(
                formula.cell_id,
                formula.formula,
                minimum=formula.minimum,
                maximum=formula.maximum,
                decimals=formula.decimals,
            )
        return self.recompute()

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def set_value(self, cell_id: str, value: Any) -> None:
        """Feed a value change from the page.

        Formula cells are read-only here.  Setting a group selects the
        exclusive member with that value; setting a toggle cell switches it on
        when *value* matches its own value and off otherwise.
        """
        if not self._alive("set_value"):
            return
        if self.groups.is_exclusive(cell_id):
            self.groups.select_value(cell_id, value)
            return
        cell = self.store.cell(cell_id)
        if cell is not None and cell.is_derived:
            logger.debug("Ignoring set_value on %s cell %r", cell.kind.value, cell_id)
            self.channel.report(Diagnostic(
                DiagnosticKind.READ_ONLY_CELL, f"{cell_id!r} is a {cell.kind.value} cell", cell_id,
            ))
            return
        if cell is not None and cell.toggle:
            matches = abs(cell.value - parse_numeric(value)) < VALUE_TOLERANCE
            self.groups.activate(cell_id, matches)
            return
        self.store.set(cell_id, value)

    def set_active(self, cell_id: str, active: bool = True) -> bool:
        """Check or uncheck a toggle cell (exclusive siblings are deselected)."""
        if not self._alive("set_active"):
            return False
        return self.groups.activate(cell_id, active)

    def get_value(self, cell_id: str) -> float:
        return self.store.get(cell_id)

    def get_all_values(self) -> dict[str, float]:
        return self.store.snapshot()

    def group_value(self, name: str) -> float:
        return self.groups.group_value(name)

    def evaluate(self, expression: str) -> float:
        """Evaluate an ad-hoc formula against the current values."""
        outcome = self.evaluator.evaluate_detailed(expression, self.store)
        if outcome.diagnostic is not None:
            self.channel.report(outcome.diagnostic)
        return outcome.value

    def read(self, source: str) -> float:
        """Value for an output source: a formula, or a plain cell/group id."""
        if not isinstance(source, str) or looks_like_formula(source):
            return self.evaluate(source)
        return self.get_value(source.strip())

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def add_calculation_hook(self, hook: CalculationHook) -> bool:
        """Run ``hook(store)`` after the formulas on every pass."""
        if not self._alive("add_calculation_hook"):
            return False
        return self.scheduler.add_hook(hook)

    def remove_calculation_hook(self, hook: CalculationHook) -> None:
        self.scheduler.remove_hook(hook)

    def recompute(self) -> RecomputeResult | None:
        """Run a pass now, bypassing the debounce window."""
        if not self._alive("recompute"):
            return None
        return self.scheduler.run()

    def schedule_recompute(self) -> None:
        """Request a debounced pass, as a submit button would."""
        if self._alive("schedule_recompute"):
            self.scheduler.request()

    def subscribe(
        self,
        kind: EventKind | str,
        callback: Callable[[Any], Any],
        key: str | None = None,
    ) -> Subscription | None:
        """Listen to an event stream; None (with a diagnostic) for an unknown kind."""
        try:
            event_kind = EventKind(kind)
        except ValueError:
            self._report(DiagnosticKind.INVALID_ARGUMENT, f"Unknown event kind {kind!r}", None)
            return None
        return self.channel.subscribe(event_kind, callback, key)

    # ------------------------------------------------------------------
    # Teardown and introspection
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Cancel pending work, drop every subscription, hook and cell."""
        if self._destroyed:
            return
        self.scheduler.close()
        self.groups.clear()
        self.channel.clear()
        self.store.clear()
        self.graph = DependencyGraph()
        self._destroyed = True
        logger.debug("Calculator %r destroyed", self.name)

    def debug_report(self) -> dict[str, list[dict[str, Any]]]:
        """Tabular view of every cell and group, for logging or inspection."""
        circular = self.graph.circular_cells()
        cells: list[dict[str, Any]] = []
        for cell in self.store.cells():
            if cell.kind is CellKind.GROUP:
                continue
            cells.append({
                "cell": cell.cell_id,
                "kind": cell.kind.value,
                "groups": ", ".join(self.groups.groups_of(cell.cell_id)) or "-",
                "value": cell.effective_value,
                "active": cell.active if cell.toggle else True,
                "formula": cell.formula or "-",
                "circular": cell.cell_id in circular,
            })
        groups: list[dict[str, Any]] = []
        for name in self.groups.names:
            group = self.groups.get(name)
            if group is None:
                continue
            groups.append({
                "group": name,
                "mode": group.mode.value,
                "value": group.value,
                "members": len(group.members),
                "active": len(self.groups.active_members(name)),
            })
        return {"cells": cells, "groups": groups}

    # ------------------------------------------------------------------

    def _on_value_changed(self, event: ValueChanged) -> None:
        if self._render is None:
            return
        cell = self.store.cell(event.cell_id)
        decimals = self.config.display_decimals
        if cell is not None and cell.decimals is not None:
            decimals = cell.decimals
        self._render(event.cell_id, format_number(event.value, decimals, self.config.use_grouping))

    def _log_report(self, finished: PassFinished) -> None:
        report = self.debug_report()
        logger.info("AlphaCalc [%s] pass %d", self.name, finished.pass_number)
        for row in report["cells"]:
            logger.info("  cell %(cell)s (%(kind)s) = %(value)s  groups=%(groups)s "
                        "formula=%(formula)s", row)
        for row in report["groups"]:
            logger.info("  group %(group)s (%(mode)s) = %(value)s  active %(active)d/%(members)d",
                        row)

    def _claim(self, cell_id: str, what: str) -> bool:
        if not cell_id:
            self._report(DiagnosticKind.MISSING_IDENTIFIER,
                         f"{what} declared without an id; skipped", None)
            return False
        if cell_id in self.store or cell_id in self.groups:
            self._report(DiagnosticKind.DUPLICATE_IDENTIFIER,
                         f"{what} id {cell_id!r} is already in use; skipped", cell_id)
            return False
        return True

    def _alive(self, operation: str) -> bool:
        if self._destroyed:
            logger.debug("Calculator %r is destroyed; ignoring %s()", self.name, operation)
        return not self._destroyed

    def _report(self, kind: DiagnosticKind, message: str, cell_id: str | None) -> None:
        logger.warning("AlphaCalc [%s]: %s", self.name, message)
        self.channel.report(Diagnostic(kind, message, cell_id))


def create_instance(
    config: CalcConfig | Mapping[str, Any] | None = None,
    *,
    name: str = "unnamed",
    clock: Clock | None = None,
    render: RenderCallback | None = None,
    layout: PageLayout | Mapping[str, Any] | None = None,
) -> Calculator:
    """Build a calculator; when *layout* is given it is loaded and computed."""
    calc = Calculator(name, config, clock=clock, render=render)
    if layout is not None:
        calc.load(layout)
    return calc
