"""FormulaEvaluator: evaluates arithmetic formulas against a table of named values.

The formula text is filtered through a character allow-list, parsed into an
expression tree and walked against a restricted variable table: the keys of
the supplied context plus the whitelisted numeric helpers.  No other name is
reachable from a formula.

Evaluation never raises.  A parse or runtime failure and a non-finite result
both produce ``0``; the reason is reported as a :class:`Diagnostic`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal

from alphacalc._errors import (
    Diagnostic,
    DiagnosticKind,
    FormulaEvaluationError,
    UnknownIdentifierError,
)
from alphacalc.formula._functions import (
    FunctionRegistry,
    divide,
    lookup_constant,
    power,
    remainder,
)
from alphacalc.formula._parser import (
    BinaryOp,
    Call,
    FormulaParser,
    Name,
    Node,
    Number,
    UnaryOp,
)

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 4

# Wide enough for every finite float at any sane precision.
_ROUNDING_CONTEXT = Context(prec=400)


def round_to(value: float, precision: int) -> float:
    """Round half away from zero on the exact binary value of *value*.

    ``round_to(1.005, 2) == 1.0`` because 1.005 is stored as 1.00499...
    """
    quantum = Decimal(1).scaleb(-precision)
    return float(
        Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_ROUNDING_CONTEXT)
    )


@dataclass(frozen=True)
class Evaluation:
    """Outcome of a single evaluation: the safe value and why it fell back."""

    value: float
    diagnostic: Diagnostic | None = None

    @property
    def ok(self) -> bool:
        return self.diagnostic is None


class FormulaEvaluator:
    """Evaluates formulas against a mapping of identifier -> number.

    Usage::

        evaluator = FormulaEvaluator(precision=4)
        evaluator.evaluate("price * qty", {"price": 2.5, "qty": 3})  # 7.5
    """

    def __init__(
        self,
        precision: int = DEFAULT_PRECISION,
        functions: FunctionRegistry | None = None,
        parser: FormulaParser | None = None,
    ) -> None:
        self.precision = precision
        self._functions = functions or FunctionRegistry()
        self._parser = parser or FormulaParser()

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    @property
    def parser(self) -> FormulaParser:
        return self._parser

    def evaluate(self, expression: str, context: Mapping[str, float]) -> float:
        """Evaluate *expression* with every key of *context* bound as a name."""
        return self.evaluate_detailed(expression, context).value

    def evaluate_detailed(
        self,
        expression: str,
        context: Mapping[str, float],
        cell_id: str | None = None,
    ) -> Evaluation:
        if not isinstance(expression, str):
            return _failure(FormulaEvaluationError(
                f"Formula must be text, not {type(expression).__name__}",
            ), expression, cell_id)
        try:
            tree = self._parser.parse(expression)
            result = self._eval(tree, context, expression)
        except RecursionError:
            return _failure(
                FormulaEvaluationError("Formula nested too deeply", expression), expression, cell_id,
            )
        except (FormulaEvaluationError, ArithmeticError, ValueError, TypeError) as e:
            return _failure(e, expression, cell_id)

        if not math.isfinite(result):
            logger.debug("Formula result is not finite: %r = %s", expression, result)
            return Evaluation(0.0, Diagnostic(
                DiagnosticKind.NON_FINITE_RESULT,
                f"{expression!r} evaluated to {result}",
                cell_id,
            ))

        return Evaluation(round_to(result, self.precision))

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _eval(self, node: Node, context: Mapping[str, float], expression: str) -> float:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Name):
            return self._resolve_name(node.name, context, expression)
        if isinstance(node, UnaryOp):
            operand = self._eval(node.operand, context, expression)
            return -operand if node.op == "-" else operand
        if isinstance(node, BinaryOp):
            left = self._eval(node.left, context, expression)
            right = self._eval(node.right, context, expression)
            return _binary_op(left, node.op, right)
        if isinstance(node, Call):
            return self._eval_call(node, context, expression)
        raise FormulaEvaluationError(f"Unsupported node {node!r}", expression)

    def _resolve_name(self, name: str, context: Mapping[str, float], expression: str) -> float:
        if name in context:
            return float(context[name])
        constant = lookup_constant(name)
        if constant is not None:
            return constant
        raise UnknownIdentifierError(name, expression)

    def _eval_call(self, node: Call, context: Mapping[str, float], expression: str) -> float:
        func = self._functions.get(node.name)
        if func is None:
            raise UnknownIdentifierError(node.name, expression)
        args = [self._eval(arg, context, expression) for arg in node.args]
        try:
            return float(func(args))
        except OverflowError:
            return math.inf
        except ValueError as e:
            logger.debug("Domain error in %s: %s", node.name, e)
            return math.nan


def _failure(error: Exception, expression: object, cell_id: str | None) -> Evaluation:
    logger.debug("Error evaluating formula %r: %s", expression, error)
    return Evaluation(0.0, Diagnostic(
        DiagnosticKind.FORMULA_EVALUATION_ERROR, str(error), cell_id, error,
    ))


def _binary_op(left: float, op: str, right: float) -> float:
    """Evaluate an arithmetic binary operation with IEEE semantics."""
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return divide(left, right)
    if op == "%":
        return remainder(left, right)
    if op == "**":
        return power(left, right)
    raise ValueError(f"Unknown operator {op!r}")
