"""Error taxonomy and structured diagnostics.

Exceptions are raised inside the engine and caught where they originate;
nothing here escapes the public ``Calculator`` API at runtime.  Each caught
failure is turned into a :class:`Diagnostic` published on the event channel
alongside the log line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AlphaCalcError(Exception):
    """Base class for engine errors."""


class FormulaEvaluationError(AlphaCalcError):
    """A formula failed to parse or raised during evaluation."""

    def __init__(self, message: str, expression: str = "") -> None:
        self.expression = expression
        super().__init__(message)


class FormulaSyntaxError(FormulaEvaluationError):
    """The filtered expression does not match the arithmetic grammar."""

    def __init__(self, message: str, expression: str = "", position: int = -1) -> None:
        self.position = position
        super().__init__(message, expression)


class UnknownIdentifierError(FormulaEvaluationError):
    """An identifier is neither a context value nor a whitelisted helper."""

    def __init__(self, name: str, expression: str = "") -> None:
        self.name = name
        super().__init__(f"Unknown identifier {name!r}", expression)


class DiagnosticKind(Enum):
    MISSING_IDENTIFIER = "missing-identifier"
    DUPLICATE_IDENTIFIER = "duplicate-identifier"
    FORMULA_EVALUATION_ERROR = "formula-evaluation-error"
    NON_FINITE_RESULT = "non-finite-result"
    UNKNOWN_GROUP_REFERENCE = "unknown-group-reference"
    HOOK_ERROR = "hook-error"
    CIRCULAR_REFERENCE = "circular-reference"
    READ_ONLY_CELL = "read-only-cell"
    SUBSCRIBER_ERROR = "subscriber-error"
    INVALID_ARGUMENT = "invalid-argument"


@dataclass(frozen=True)
class Diagnostic:
    """A single non-fatal failure, degraded to a safe default."""

    kind: DiagnosticKind
    message: str
    cell_id: str | None = None
    error: BaseException | None = None

    def __str__(self) -> str:
        where = f" [{self.cell_id}]" if self.cell_id else ""
        return f"{self.kind.value}{where}: {self.message}"
