"""alphacalc - reactive calculator engine for declarative form pages.

Usage::

    from alphacalc import create_instance

    calc = create_instance(
        {"decimal": {"display": 2}},
        name="quote",
        layout={
            "cells": [{"id": "price", "initial": 12.5}, {"id": "qty", "initial": 1, "min": 0},
                      {"id": "express", "initial": 9, "toggle": True}],
            "groups": [{"name": "shipping", "members": ["express"]}],
            "formulas": [{"id": "total", "formula": "=price * qty + shipping"}],
        },
    )
    calc.set_value("qty", 4)
    calc.set_active("express")
    calc.recompute()
    calc.get_value("total")   # 59.0
"""

from alphacalc._calculator import Calculator, create_instance
from alphacalc._config import CalcConfig, merge_options
from alphacalc._errors import (
    AlphaCalcError,
    Diagnostic,
    DiagnosticKind,
    FormulaEvaluationError,
    FormulaSyntaxError,
    UnknownIdentifierError,
)
from alphacalc._events import EventChannel, EventKind, Subscription, ValueChanged
from alphacalc._groups import GroupAggregator, GroupMode
from alphacalc._layout import CellDeclaration, FormulaDeclaration, GroupDeclaration, PageLayout
from alphacalc._numeric import clamp, format_number, parse_numeric
from alphacalc._protocol import CellDelta, Clock, RecomputeResult
from alphacalc._registry import CalculatorRegistry
from alphacalc._scheduler import ManualClock, RecomputeScheduler, SchedulerState
from alphacalc._store import CellKind, ValueStore
from alphacalc.formula import FormulaEvaluator, FunctionRegistry

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AlphaCalcError",
    "CalcConfig",
    "Calculator",
    "CalculatorRegistry",
    "CellDeclaration",
    "CellDelta",
    "CellKind",
    "Clock",
    "Diagnostic",
    "DiagnosticKind",
    "EventChannel",
    "EventKind",
    "FormulaDeclaration",
    "FormulaEvaluationError",
    "FormulaEvaluator",
    "FormulaSyntaxError",
    "FunctionRegistry",
    "GroupAggregator",
    "GroupDeclaration",
    "GroupMode",
    "ManualClock",
    "PageLayout",
    "RecomputeResult",
    "RecomputeScheduler",
    "SchedulerState",
    "Subscription",
    "UnknownIdentifierError",
    "ValueChanged",
    "ValueStore",
    "clamp",
    "create_instance",
    "format_number",
    "merge_options",
    "parse_numeric",
]
