"""Declarative description of a calculator page.

Adapters that scan markup produce a :class:`PageLayout`; the calculator loads
it in one step.  ``PageLayout.from_dict`` accepts the plain-data form::

    {
        "cells": [{"id": "qty", "initial": 1, "min": 0},
                  {"id": "gift", "initial": 5, "toggle": True}],
        "formulas": [{"id": "total", "formula": "=qty * price"}],
        "groups": [{"name": "extras", "members": ["gift"], "mode": "additive"}],
    }
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from alphacalc._numeric import optional_number

# Markup attribute values that mean "off".
_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True)
class CellDeclaration:
    cell_id: str
    initial: Any = 0
    minimum: float | None = None
    maximum: float | None = None
    toggle: bool = False
    active: bool = False
    decimals: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CellDeclaration:
        return cls(
            cell_id=str(data.get("id") or ""),
            initial=data.get("initial", 0),
            minimum=optional_number(data.get("min")),
            maximum=optional_number(data.get("max")),
            toggle=_flag(data.get("toggle")),
            active=_flag(data.get("active")),
            decimals=_decimals(data.get("decimals")),
        )


@dataclass(frozen=True)
class FormulaDeclaration:
    cell_id: str
    formula: str
    minimum: float | None = None
    maximum: float | None = None
    decimals: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FormulaDeclaration:
        return cls(
            cell_id=str(data.get("id") or ""),
            formula=str(data.get("formula") or ""),
            minimum=optional_number(data.get("min")),
            maximum=optional_number(data.get("max")),
            decimals=_decimals(data.get("decimals")),
        )


@dataclass(frozen=True)
class GroupDeclaration:
    name: str
    members: tuple[str, ...]
    mode: str = "additive"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GroupDeclaration:
        return cls(
            name=str(data.get("name") or ""),
            members=tuple(str(m) for m in data.get("members", ())),
            mode=str(data.get("mode") or "additive").strip().lower(),
        )


@dataclass(frozen=True)
class PageLayout:
    """Cells, formulas and groups in declaration order."""

    cells: tuple[CellDeclaration, ...] = ()
    formulas: tuple[FormulaDeclaration, ...] = ()
    groups: tuple[GroupDeclaration, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PageLayout:
        return cls(
            cells=tuple(CellDeclaration.from_dict(c) for c in _entries(data, "cells")),
            formulas=tuple(FormulaDeclaration.from_dict(f) for f in _entries(data, "formulas")),
            groups=tuple(GroupDeclaration.from_dict(g) for g in _entries(data, "groups")),
        )


def _entries(data: Mapping[str, Any], key: str) -> Sequence[Mapping[str, Any]]:
    entries = data.get(key) or ()
    if isinstance(entries, Mapping):
        raise ValueError(f"Layout section {key!r} must be a list, not a mapping")
    return entries


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _decimals(value: Any) -> int | None:
    number = optional_number(value)
    if number is None:
        return None
    return min(max(int(number), 0), 20)
