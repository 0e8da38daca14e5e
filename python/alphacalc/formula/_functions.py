"""Numeric helper whitelist and builtin implementations for formula evaluation."""

from __future__ import annotations

import math
from typing import Any, Callable

# ---------------------------------------------------------------------------
# Whitelist: the only callables a formula can reach.
# Organized by category for readability.
# ---------------------------------------------------------------------------

FUNCTION_WHITELIST: dict[str, str] = {
    # Arithmetic (7)
    "ABS": "arithmetic",
    "SIGN": "arithmetic",
    "SQRT": "arithmetic",
    "CBRT": "arithmetic",
    "POW": "arithmetic",
    "MIN": "arithmetic",
    "MAX": "arithmetic",
    # Rounding (4)
    "ROUND": "rounding",
    "CEIL": "rounding",
    "FLOOR": "rounding",
    "TRUNC": "rounding",
    # Exponential (4)
    "EXP": "exponential",
    "LOG": "exponential",
    "LOG10": "exponential",
    "LOG2": "exponential",
    # Trigonometric (8)
    "SIN": "trigonometric",
    "COS": "trigonometric",
    "TAN": "trigonometric",
    "ASIN": "trigonometric",
    "ACOS": "trigonometric",
    "ATAN": "trigonometric",
    "ATAN2": "trigonometric",
    "HYPOT": "trigonometric",
}

CONSTANTS: dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}

# Formulas written for the browser build spell helpers as ``Math.sqrt(x)``.
_NAMESPACE_PREFIX = "MATH."


def normalize_name(name: str) -> str:
    """Canonical lookup key: upper case, without a ``Math.`` prefix."""
    key = name.upper()
    if key.startswith(_NAMESPACE_PREFIX):
        key = key[len(_NAMESPACE_PREFIX):]
    return key


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the evaluation whitelist."""
    return normalize_name(func_name) in FUNCTION_WHITELIST


def lookup_constant(name: str) -> float | None:
    return CONSTANTS.get(normalize_name(name))


# ---------------------------------------------------------------------------
# Builtin implementations - pure Python, no external deps.
# Each takes a list of already evaluated float arguments.  Domain errors are
# raised as ValueError and surface as NaN in the evaluator.
# ---------------------------------------------------------------------------


def _exactly(name: str, args: list[float], count: int) -> None:
    if len(args) != count:
        plural = "argument" if count == 1 else "arguments"
        raise ValueError(f"{name} requires exactly {count} {plural}")


def _builtin_abs(args: list[float]) -> float:
    _exactly("ABS", args, 1)
    return abs(args[0])


def _builtin_sign(args: list[float]) -> float:
    _exactly("SIGN", args, 1)
    if math.isnan(args[0]):
        return math.nan
    if args[0] > 0:
        return 1.0
    if args[0] < 0:
        return -1.0
    return 0.0


def _builtin_sqrt(args: list[float]) -> float:
    _exactly("SQRT", args, 1)
    return math.sqrt(args[0])


def _builtin_cbrt(args: list[float]) -> float:
    _exactly("CBRT", args, 1)
    return math.copysign(abs(args[0]) ** (1.0 / 3.0), args[0])


def _builtin_pow(args: list[float]) -> float:
    _exactly("POW", args, 2)
    return power(args[0], args[1])


def _builtin_min(args: list[float]) -> float:
    # An empty MIN is +inf, which the evaluator turns into the 0 fallback.
    if not args:
        return math.inf
    if any(math.isnan(a) for a in args):
        return math.nan
    return min(args)


def _builtin_max(args: list[float]) -> float:
    if not args:
        return -math.inf
    if any(math.isnan(a) for a in args):
        return math.nan
    return max(args)


def _builtin_round(args: list[float]) -> float:
    """Round half toward positive infinity (``round(-2.5) == -2``)."""
    _exactly("ROUND", args, 1)
    if not math.isfinite(args[0]):
        return args[0]
    return float(math.floor(args[0] + 0.5))


def _builtin_ceil(args: list[float]) -> float:
    _exactly("CEIL", args, 1)
    if not math.isfinite(args[0]):
        return args[0]
    return float(math.ceil(args[0]))


def _builtin_floor(args: list[float]) -> float:
    _exactly("FLOOR", args, 1)
    if not math.isfinite(args[0]):
        return args[0]
    return float(math.floor(args[0]))


def _builtin_trunc(args: list[float]) -> float:
    _exactly("TRUNC", args, 1)
    if not math.isfinite(args[0]):
        return args[0]
    return float(math.trunc(args[0]))


def _builtin_exp(args: list[float]) -> float:
    _exactly("EXP", args, 1)
    return math.exp(args[0])


def _builtin_log(args: list[float]) -> float:
    _exactly("LOG", args, 1)
    if args[0] == 0:
        return -math.inf
    return math.log(args[0])


def _builtin_log10(args: list[float]) -> float:
    _exactly("LOG10", args, 1)
    if args[0] == 0:
        return -math.inf
    return math.log10(args[0])


def _builtin_log2(args: list[float]) -> float:
    _exactly("LOG2", args, 1)
    if args[0] == 0:
        return -math.inf
    return math.log2(args[0])


def _builtin_sin(args: list[float]) -> float:
    _exactly("SIN", args, 1)
    return math.sin(args[0])


def _builtin_cos(args: list[float]) -> float:
    _exactly("COS", args, 1)
    return math.cos(args[0])


def _builtin_tan(args: list[float]) -> float:
    _exactly("TAN", args, 1)
    return math.tan(args[0])


def _builtin_asin(args: list[float]) -> float:
    _exactly("ASIN", args, 1)
    return math.asin(args[0])


def _builtin_acos(args: list[float]) -> float:
    _exactly("ACOS", args, 1)
    return math.acos(args[0])


def _builtin_atan(args: list[float]) -> float:
    _exactly("ATAN", args, 1)
    return math.atan(args[0])


def _builtin_atan2(args: list[float]) -> float:
    _exactly("ATAN2", args, 2)
    return math.atan2(args[0], args[1])


def _builtin_hypot(args: list[float]) -> float:
    return math.hypot(*args)


# ---------------------------------------------------------------------------
# Operator helpers with IEEE semantics (no ZeroDivisionError)
# ---------------------------------------------------------------------------


def divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def remainder(left: float, right: float) -> float:
    """Truncated remainder: the result takes the sign of *left*."""
    if right == 0 or math.isinf(left) or math.isnan(left) or math.isnan(right):
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


def power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf
    except ValueError:
        # negative base with a fractional exponent, or 0 ** negative
        if base == 0:
            return math.inf
        return math.nan


_BUILTINS: dict[str, Callable[..., Any]] = {
    "ABS": _builtin_abs,
    "SIGN": _builtin_sign,
    "SQRT": _builtin_sqrt,
    "CBRT": _builtin_cbrt,
    "POW": _builtin_pow,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "ROUND": _builtin_round,
    "CEIL": _builtin_ceil,
    "FLOOR": _builtin_floor,
    "TRUNC": _builtin_trunc,
    "EXP": _builtin_exp,
    "LOG": _builtin_log,
    "LOG10": _builtin_log10,
    "LOG2": _builtin_log2,
    "SIN": _builtin_sin,
    "COS": _builtin_cos,
    "TAN": _builtin_tan,
    "ASIN": _builtin_asin,
    "ACOS": _builtin_acos,
    "ATAN": _builtin_atan,
    "ATAN2": _builtin_atan2,
    "HYPOT": _builtin_hypot,
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.  Names
    are case-insensitive and may carry a ``Math.`` prefix.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._functions[normalize_name(name)] = func

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(normalize_name(name))

    def has(self, name: str) -> bool:
        return normalize_name(name) in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
