"""Clock protocol and recompute result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from alphacalc._errors import Diagnostic


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class Clock(Protocol):
    """Deferred-execution timer used for debouncing.

    ``asyncio`` event loops satisfy this protocol as-is.
    """

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run ``callback(*args)`` once, *delay* seconds from now."""
        ...


@dataclass(frozen=True)
class CellDelta:
    """A single formula cell's value change from a recompute pass."""

    cell_id: str
    old_value: float
    new_value: float
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RecomputeResult:
    """What one recompute pass did."""

    pass_number: int
    deltas: tuple[CellDelta, ...]  # formula cells whose value changed
    formula_cells: int = 0
    hooks_run: int = 0
    hook_failures: int = 0
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def changed_cells(self) -> list[str]:
        return [d.cell_id for d in self.deltas]

    @property
    def propagation_ratio(self) -> float:
        if self.formula_cells == 0:
            return 0.0
        return len(self.deltas) / self.formula_cells
