"""Tests for alphacalc.formula parser: filtering, tokenizing and the expression tree."""

from __future__ import annotations

import pytest

from alphacalc._errors import FormulaSyntaxError
from alphacalc.formula._parser import (
    BinaryOp,
    Call,
    FormulaParser,
    Name,
    Number,
    UnaryOp,
    looks_like_formula,
    names_in,
    parse,
    sanitize,
    tokenize,
)


class TestSanitize:
    def test_drops_leading_equals(self) -> None:
        assert sanitize("=a+b") == "a+b"

    def test_strips_surrounding_whitespace(self) -> None:
        assert sanitize("  = price * qty  ") == "price * qty"

    def test_strips_disallowed_characters(self) -> None:
        assert sanitize("a$b") == "ab"
        assert sanitize("total; alert[1]") == "total alert1"

    def test_quotes_and_brackets_removed(self) -> None:
        assert sanitize("__import__('os')") == "__import__(os)"

    def test_keeps_grammar_characters(self) -> None:
        text = "(a + b) * c / d - e % f, g.h"
        assert sanitize(text) == text


class TestLooksLikeFormula:
    def test_equals_prefix(self) -> None:
        assert looks_like_formula("=total")

    def test_operator(self) -> None:
        assert looks_like_formula("price*qty")
        assert looks_like_formula("(subtotal)")

    def test_plain_reference(self) -> None:
        assert not looks_like_formula("subtotal")
        assert not looks_like_formula("  shipping  ")


class TestTokenize:
    def test_kinds(self) -> None:
        tokens = tokenize("1.5e3 + x")
        assert [t.kind for t in tokens] == ["number", "op", "name", "end"]
        assert tokens[0].text == "1.5e3"

    def test_power_operator_single_token(self) -> None:
        tokens = tokenize("2**3")
        assert [t.text for t in tokens[:-1]] == ["2", "**", "3"]

    def test_dotted_name(self) -> None:
        tokens = tokenize("Math.sqrt(x)")
        assert tokens[0].kind == "name"
        assert tokens[0].text == "Math.sqrt"

    def test_leading_dot_number(self) -> None:
        assert tokenize(".5")[0].text == ".5"

    def test_unexpected_character(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            tokenize("1 # 2")
        assert exc_info.value.position == 2


class TestParse:
    def test_number(self) -> None:
        assert parse("42") == Number(42.0)

    def test_precedence(self) -> None:
        assert parse("1+2*3") == BinaryOp(
            "+", Number(1.0), BinaryOp("*", Number(2.0), Number(3.0))
        )

    def test_left_associative_subtraction(self) -> None:
        assert parse("8-4-2") == BinaryOp(
            "-", BinaryOp("-", Number(8.0), Number(4.0)), Number(2.0)
        )

    def test_parentheses(self) -> None:
        assert parse("(1+2)*3") == BinaryOp(
            "*", BinaryOp("+", Number(1.0), Number(2.0)), Number(3.0)
        )

    def test_power_right_associative(self) -> None:
        assert parse("2**3**2") == BinaryOp(
            "**", Number(2.0), BinaryOp("**", Number(3.0), Number(2.0))
        )

    def test_unary_minus_binds_looser_than_power(self) -> None:
        assert parse("-2**2") == UnaryOp("-", BinaryOp("**", Number(2.0), Number(2.0)))

    def test_power_with_negative_exponent(self) -> None:
        assert parse("2**-1") == BinaryOp("**", Number(2.0), UnaryOp("-", Number(1.0)))

    def test_call_with_arguments(self) -> None:
        assert parse("Math.max(a, 2)") == Call("Math.max", (Name("a"), Number(2.0)))

    def test_call_without_arguments(self) -> None:
        assert parse("max()") == Call("max", ())

    def test_formula_prefix(self) -> None:
        assert parse("=qty") == Name("qty")

    def test_empty_formula(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Empty formula"):
            parse("=")

    def test_dangling_operator(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse("1 +")
        assert exc_info.value.position == 3

    def test_unbalanced_parenthesis(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="expected"):
            parse("(1 + 2")

    def test_adjacent_operands(self) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse("1 2")

    def test_comma_outside_call(self) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse("1, 2")


class TestNamesIn:
    def test_first_use_order_without_duplicates(self) -> None:
        assert names_in(parse("a + max(b, a) * c")) == ["a", "b", "c"]

    def test_call_targets_excluded(self) -> None:
        assert names_in(parse("sqrt(x)")) == ["x"]

    def test_constant_only(self) -> None:
        assert names_in(parse("1 + 2")) == []


class TestFormulaParser:
    def test_cache(self) -> None:
        p = FormulaParser()
        assert p.parse("a+1") is p.parse("a+1")

    def test_clear(self) -> None:
        p = FormulaParser()
        first = p.parse("a+1")
        p.clear()
        second = p.parse("a+1")
        assert first == second
        assert first is not second

    def test_references(self) -> None:
        assert FormulaParser().references("=price * qty + shipping") == [
            "price", "qty", "shipping",
        ]

    def test_references_of_invalid_formula(self) -> None:
        assert FormulaParser().references("1 +") == []

    def test_cache_is_bounded(self) -> None:
        p = FormulaParser(maxsize=2)
        first = p.parse("a+1")
        p.parse("b+1")
        p.parse("c+1")
        assert p.cache_info().currsize == 2
        assert p.parse("a+1") is not first

    def test_references_of_deeply_nested_formula(self) -> None:
        assert FormulaParser().references("(" * 2000 + "x" + ")" * 2000) == []


class TestNestingDepth:
    def test_parentheses(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="nested too deeply"):
            parse("(" * 2000 + "1" + ")" * 2000)

    def test_unary_chain(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="nested too deeply"):
            parse("-" * 5000 + "1")

    def test_moderate_nesting_parses(self) -> None:
        assert parse("(" * 20 + "1" + ")" * 20) == Number(1.0)
