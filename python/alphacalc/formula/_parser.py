"""Formula parser: character allow-list, tokenizer and recursive descent to an expression tree."""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

from alphacalc._errors import FormulaSyntaxError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 512

# ---------------------------------------------------------------------------
# Allow-list filtering
# ---------------------------------------------------------------------------

# Everything outside word characters, whitespace, arithmetic operators,
# ``.``, ``%``, ``,`` and parentheses is dropped before parsing.
_DISALLOWED_RE = re.compile(r"[^\w\s+\-*/.()%,]", re.ASCII)

# Sources that read as a formula even without a leading ``=``.
_OPERATOR_RE = re.compile(r"[+\-*/()%]")


def sanitize(expression: str) -> str:
    """Strip characters that are not part of the arithmetic grammar."""
    body = expression.strip()
    if body.startswith("="):
        body = body[1:]
    clean = _DISALLOWED_RE.sub("", body)
    if clean != body:
        logger.debug("Dropped disallowed characters from formula %r", expression)
    return clean.strip()


def looks_like_formula(source: str) -> bool:
    """``True`` for ``=``-prefixed sources or ones containing an operator.

    Anything else is a plain reference to a cell or group id.
    """
    stripped = source.strip()
    return stripped.startswith("=") or bool(_OPERATOR_RE.search(stripped))


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Node, ...]


Node = Union[Number, Name, UnaryOp, BinaryOp, Call]

# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)
  | (?P<op>\*\*|[-+*/%(),])
    """,
    re.VERBOSE | re.ASCII,
)


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "name", "op" or "end"
    text: str
    position: int


def tokenize(expression: str) -> list[Token]:
    """Split a sanitized expression into tokens, ending with an ``end`` token."""
    tokens: list[Token] = []
    pos = 0
    length = len(expression)
    while pos < length:
        m = _TOKEN_RE.match(expression, pos)
        if m is None:
            raise FormulaSyntaxError(
                f"Unexpected character {expression[pos]!r} at position {pos}",
                expression,
                pos,
            )
        kind = m.lastgroup or ""
        if kind != "space":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    tokens.append(Token("end", "", length))
    return tokens


# ---------------------------------------------------------------------------
# Recursive descent
# ---------------------------------------------------------------------------


class _Parser:
    """Grammar, lowest to highest precedence::

        expression := term (("+" | "-") term)*
        term       := unary (("*" | "/" | "%") unary)*
        unary      := ("+" | "-") unary | power
        power      := primary ("**" unary)?
        primary    := NUMBER | NAME | NAME "(" [expression ("," expression)*] ")"
                    | "(" expression ")"
    """

    def __init__(self, expression: str) -> None:
        self._expression = expression
        self._tokens = tokenize(expression)
        self._index = 0

    def parse(self) -> Node:
        if self._peek().kind == "end":
            raise FormulaSyntaxError("Empty formula", self._expression, 0)
        node = self._parse_expression()
        token = self._peek()
        if token.kind != "end":
            self._fail(token)
        return node

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _accept(self, *ops: str) -> Token | None:
        token = self._peek()
        if token.kind == "op" and token.text in ops:
            self._index += 1
            return token
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            self._fail(self._peek(), expected=op)

    def _fail(self, token: Token, expected: str | None = None) -> None:
        found = "end of formula" if token.kind == "end" else repr(token.text)
        message = f"Unexpected {found} at position {token.position}"
        if expected:
            message += f" (expected {expected!r})"
        raise FormulaSyntaxError(message, self._expression, token.position)

    def _parse_expression(self) -> Node:
        node = self._parse_term()
        while (token := self._accept("+", "-")) is not None:
            node = BinaryOp(token.text, node, self._parse_term())
        return node

    def _parse_term(self) -> Node:
        node = self._parse_unary()
        while (token := self._accept("*", "/", "%")) is not None:
            node = BinaryOp(token.text, node, self._parse_unary())
        return node

    def _parse_unary(self) -> Node:
        token = self._accept("+", "-")
        if token is not None:
            return UnaryOp(token.text, self._parse_unary())
        return self._parse_power()

    def _parse_power(self) -> Node:
        base = self._parse_primary()
        if self._accept("**") is not None:
            # right-associative: 2 ** 3 ** 2 == 2 ** 9
            return BinaryOp("**", base, self._parse_unary())
        return base

    def _parse_primary(self) -> Node:
        token = self._advance()
        if token.kind == "number":
            return Number(float(token.text))
        if token.kind == "name":
            if self._accept("(") is not None:
                return Call(token.text, self._parse_args())
            return Name(token.text)
        if token.kind == "op" and token.text == "(":
            node = self._parse_expression()
            self._expect(")")
            return node
        self._index -= 1
        self._fail(token)
        raise AssertionError("unreachable")

    def _parse_args(self) -> tuple[Node, ...]:
        args: list[Node] = []
        if self._accept(")") is not None:
            return ()
        while True:
            args.append(self._parse_expression())
            if self._accept(")") is not None:
                return tuple(args)
            self._expect(",")


def parse(expression: str) -> Node:
    """Sanitize and parse *expression*.  Raises FormulaSyntaxError."""
    try:
        return _Parser(sanitize(expression)).parse()
    except RecursionError:
        raise FormulaSyntaxError("Formula nested too deeply", expression) from None


def names_in(node: Node) -> list[str]:
    """Identifiers read by *node*, in first-use order, excluding call targets."""
    found: list[str] = []
    seen: set[str] = set()
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Name):
            if current.name not in seen:
                seen.add(current.name)
                found.append(current.name)
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, Call):
            stack.extend(reversed(current.args))
    return found


# ---------------------------------------------------------------------------
# FormulaParser: caching front end
# ---------------------------------------------------------------------------


class FormulaParser:
    """Parses formulas into expression trees, caching by source text.

    The cache keeps the *maxsize* most recently used expressions; failed
    parses are not cached.
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        self._parse = functools.lru_cache(maxsize=maxsize)(parse)

    def parse(self, expression: str) -> Node:
        """Return the tree for *expression*.  Raises FormulaSyntaxError."""
        return self._parse(expression)

    def references(self, expression: str) -> list[str]:
        """Identifiers the formula reads; empty when it does not parse."""
        try:
            return names_in(self.parse(expression))
        except FormulaSyntaxError:
            return []

    def cache_info(self) -> Any:
        """``functools`` cache statistics (hits, misses, maxsize, currsize)."""
        return self._parse.cache_info()

    def clear(self) -> None:
        self._parse.cache_clear()
