"""Tests for alphacalc numeric helpers."""

from __future__ import annotations

import pytest

from alphacalc._numeric import clamp, format_number, optional_number, parse_numeric


class TestParseNumeric:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, 0.0),
            ("", 0.0),
            (True, 1.0),
            (False, 0.0),
            (7, 7.0),
            (2.5, 2.5),
            ("42", 42.0),
            ("-5", -5.0),
            (".5", 0.5),
            ("$1,250.50", 1250.5),
            ("12 kg", 12.0),
            ("12-3", 12.0),
            ("abc", 0.0),
            ("inf", 0.0),
            (float("nan"), 0.0),
            (float("-inf"), 0.0),
        ],
    )
    def test_values(self, value: object, expected: float) -> None:
        assert parse_numeric(value) == expected

    def test_unconvertible_object(self) -> None:
        assert parse_numeric(object()) == 0.0


class TestClamp:
    def test_no_bounds(self) -> None:
        assert clamp(5.0) == 5.0

    def test_bounds(self) -> None:
        assert clamp(5.0, 0, 3) == 3
        assert clamp(-1.0, 0, None) == 0

    def test_crossed_bounds_maximum_wins(self) -> None:
        assert clamp(5.0, 10, 3) == 3


class TestFormatNumber:
    def test_grouping(self) -> None:
        assert format_number(1234.5) == "1,234.50"

    def test_without_grouping(self) -> None:
        assert format_number(1234.56, 1, use_grouping=False) == "1234.6"

    def test_zero_decimals(self) -> None:
        assert format_number(1234567.0, 0) == "1,234,567"


class TestOptionalNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, None),
            ("", None),
            ("abc", None),
            (True, None),
            (float("nan"), None),
            ("5", 5.0),
            (" -2.5 ", -2.5),
            ("10px", 10.0),
            (0, 0.0),
            (3, 3.0),
        ],
    )
    def test_values(self, value: object, expected: float | None) -> None:
        assert optional_number(value) == expected
