"""alphacalc.formula - Arithmetic formula parsing and evaluation."""

from alphacalc.formula._evaluator import DEFAULT_PRECISION, Evaluation, FormulaEvaluator, round_to
from alphacalc.formula._functions import FUNCTION_WHITELIST, FunctionRegistry, is_supported
from alphacalc.formula._graph import DependencyGraph
from alphacalc.formula._parser import FormulaParser, looks_like_formula, parse, sanitize

__all__ = [
    "DEFAULT_PRECISION",
    "DependencyGraph",
    "Evaluation",
    "FUNCTION_WHITELIST",
    "FormulaEvaluator",
    "FormulaParser",
    "FunctionRegistry",
    "is_supported",
    "looks_like_formula",
    "parse",
    "round_to",
    "sanitize",
]
