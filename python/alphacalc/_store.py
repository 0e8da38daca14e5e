"""Value store: the authoritative cell id -> number mapping.

The store is a read-only ``Mapping`` of *effective* values, which is what
formulas see: raw and derived cells read as their value, toggle cells read as
their value while active and 0 otherwise.  Every write goes through
:meth:`ValueStore.set` (or :meth:`publish_group`), which coerces, clamps,
stores and emits ``value-changed``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from alphacalc._events import EventChannel, EventKind, ValueChanged
from alphacalc._numeric import clamp, optional_number, parse_numeric

logger = logging.getLogger(__name__)

# Toggle members match a requested value within this tolerance.
VALUE_TOLERANCE = 0.001


class CellKind(Enum):
    RAW = "raw"
    FORMULA = "formula"
    GROUP = "group"


@dataclass
class Cell:
    """A named numeric value."""

    cell_id: str
    kind: CellKind = CellKind.RAW
    value: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    toggle: bool = False
    active: bool = False
    decimals: int | None = None
    formula: str | None = None

    @property
    def effective_value(self) -> float:
        """The value formulas and aggregates read."""
        if self.toggle and not self.active:
            return 0.0
        return self.value

    @property
    def is_derived(self) -> bool:
        return self.kind is not CellKind.RAW


class ValueStore(Mapping[str, float]):
    """Single source of truth for cell values.

    Usage::

        store = ValueStore(channel)
        store.register("price", initial=10, minimum=0)
        store.set("price", -5)   # clamped to 0, emits value-changed
        store.get("missing")     # 0.0
    """

    def __init__(self, channel: EventChannel) -> None:
        self._channel = channel
        self._cells: dict[str, Cell] = {}

    # ------------------------------------------------------------------
    # Mapping protocol (effective values)
    # ------------------------------------------------------------------

    def __getitem__(self, cell_id: str) -> float:
        return self._cells[cell_id].effective_value

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._cells

    def get(self, cell_id: str, default: float = 0.0) -> float:  # type: ignore[override]
        """Current value of *cell_id*; *default* (0) when absent."""
        cell = self._cells.get(cell_id)
        return default if cell is None else cell.effective_value

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        cell_id: str,
        kind: CellKind = CellKind.RAW,
        initial: Any = 0,
        *,
        minimum: float | None = None,
        maximum: float | None = None,
        toggle: bool = False,
        active: bool = False,
        decimals: int | None = None,
        formula: str | None = None,
    ) -> Cell:
        """Create a cell.  Raises KeyError when *cell_id* is already taken.

        Bounds that hold no number (``None``, ``""``, ``"abc"``) are left unset.
        """
        if cell_id in self._cells:
            raise KeyError(f"Cell id {cell_id!r} is already registered")
        cell = Cell(
            cell_id=cell_id,
            kind=kind,
            minimum=optional_number(minimum),
            maximum=optional_number(maximum),
            toggle=toggle,
            active=active,
            decimals=decimals,
            formula=formula,
        )
        cell.value = clamp(parse_numeric(initial), cell.minimum, cell.maximum)
        self._cells[cell_id] = cell
        return cell

    def unregister(self, cell_id: str) -> Cell | None:
        return self._cells.pop(cell_id, None)

    def cell(self, cell_id: str) -> Cell | None:
        return self._cells.get(cell_id)

    def kind(self, cell_id: str) -> CellKind | None:
        cell = self._cells.get(cell_id)
        return None if cell is None else cell.kind

    def cells(self) -> list[Cell]:
        return list(self._cells.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, cell_id: str, value: Any) -> float:
        """Store *value* for *cell_id* and emit ``value-changed``.

        The value is coerced to a finite float and clamped against the cell's
        bounds.  An unknown id becomes an implicit raw cell.  For a toggle
        cell this sets the value it contributes while active.
        """
        cell = self._cells.get(cell_id)
        if cell is None:
            logger.debug("Creating implicit raw cell %r", cell_id)
            cell = self.register(cell_id)
        previous = cell.effective_value
        cell.value = clamp(parse_numeric(value), cell.minimum, cell.maximum)
        self._emit(cell, previous)
        return cell.value

    def set_active(self, cell_id: str, active: bool, notify: bool = True) -> bool:
        """Switch a toggle cell on or off.  Returns False for non-toggle ids."""
        cell = self._cells.get(cell_id)
        if cell is None or not cell.toggle:
            logger.debug("Cannot toggle %r: not a toggle cell", cell_id)
            return False
        previous = cell.effective_value
        cell.active = bool(active)
        if notify:
            self._emit(cell, previous)
        return True

    def notify(self, cell_id: str) -> None:
        """Re-emit ``value-changed`` for *cell_id* with its current value."""
        cell = self._cells.get(cell_id)
        if cell is not None:
            self._emit(cell, cell.effective_value)

    def publish_group(self, name: str, value: float) -> float:
        """Write a group aggregate under the group's name."""
        cell = self._cells.get(name)
        if cell is None:
            cell = self.register(name, CellKind.GROUP)
        previous = cell.value
        cell.value = clamp(parse_numeric(value), cell.minimum, cell.maximum)
        self._emit(cell, previous)
        return cell.value

    def snapshot(self) -> dict[str, float]:
        """Point-in-time copy of every effective value."""
        return {cell_id: cell.effective_value for cell_id, cell in self._cells.items()}

    def clear(self) -> None:
        self._cells.clear()

    def _emit(self, cell: Cell, previous: float) -> None:
        self._channel.publish(
            EventKind.VALUE_CHANGED,
            ValueChanged(cell.cell_id, cell.effective_value, previous, cell.kind),
            key=cell.cell_id,
        )
