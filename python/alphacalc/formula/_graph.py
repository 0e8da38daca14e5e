"""Dependency graph for formula cells, used to diagnose circular references.

Recompute passes do NOT follow this graph: formulas are evaluated once per
pass in registration order.  The graph only answers which formula cells sit
on a cycle, so a circular definition can be reported (or refused) when it is
registered.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable


class DependencyGraph:
    """Tracks which identifiers each formula cell reads."""

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of identifiers it reads from
        self.dependencies: dict[str, set[str]] = {}
        # identifier -> set of formula cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # formula cell -> formula string
        self.formulas: dict[str, str] = {}

    def add_formula(self, cell_id: str, formula: str, references: Iterable[str]) -> None:
        """Register a formula cell and the identifiers it references."""
        self.remove_formula(cell_id)
        self.formulas[cell_id] = formula
        refs = set(references)
        self.dependencies[cell_id] = refs
        for ref in refs:
            self.dependents.setdefault(ref, set()).add(cell_id)

    def remove_formula(self, cell_id: str) -> None:
        self.formulas.pop(cell_id, None)
        for ref in self.dependencies.pop(cell_id, set()):
            readers = self.dependents.get(ref)
            if readers is not None:
                readers.discard(cell_id)
                if not readers:
                    del self.dependents[ref]

    def circular_cells(self) -> set[str]:
        """Formula cells that cannot be ordered (Kahn's algorithm leftovers).

        The result contains every cell on a cycle plus formula cells that
        depend on one.
        """
        formula_cells = set(self.formulas)
        if not formula_cells:
            return set()

        # Only count deps that are themselves formula cells
        in_degree: dict[str, int] = {
            cell: len(self.dependencies.get(cell, set()) & formula_cells)
            for cell in formula_cells
        }
        queue: deque[str] = deque(c for c in formula_cells if in_degree[c] == 0)

        ordered: set[str] = set()
        while queue:
            cell = queue.popleft()
            ordered.add(cell)
            for dep in self.dependents.get(cell, set()):
                if dep in formula_cells:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        return formula_cells - ordered

    def cycle_through(self, cell_id: str) -> list[str]:
        """A dependency path from *cell_id* back to itself, or ``[]``.

        ``["a", "b", "a"]`` means ``a`` reads ``b`` which reads ``a``.
        """
        if cell_id not in self.formulas:
            return []
        parents: dict[str, str] = {}
        queue: deque[str] = deque([cell_id])
        visited: set[str] = set()
        while queue:
            cell = queue.popleft()
            for ref in sorted(self.dependencies.get(cell, set())):
                if ref == cell_id:
                    chain = [cell]
                    while chain[-1] != cell_id:
                        chain.append(parents[chain[-1]])
                    chain.reverse()
                    return [*chain, cell_id]
                if ref in self.formulas and ref not in visited:
                    visited.add(ref)
                    parents[ref] = cell
                    queue.append(ref)
        return []
