"""Tests for alphacalc.formula function whitelist and builtins."""

from __future__ import annotations

import math

import pytest

from alphacalc.formula._functions import (
    _BUILTINS,
    CONSTANTS,
    FUNCTION_WHITELIST,
    FunctionRegistry,
    divide,
    is_supported,
    lookup_constant,
    normalize_name,
    power,
    remainder,
)


class TestWhitelist:
    def test_every_whitelisted_name_has_a_builtin(self) -> None:
        assert set(FUNCTION_WHITELIST) == set(_BUILTINS)

    def test_is_supported(self) -> None:
        assert is_supported("sqrt")
        assert is_supported("Math.hypot")
        assert is_supported("ATAN2")
        assert not is_supported("eval")
        assert not is_supported("Math.random")

    def test_normalize_name(self) -> None:
        assert normalize_name("Math.floor") == "FLOOR"
        assert normalize_name("math.PI") == "PI"
        assert normalize_name("subtotal") == "SUBTOTAL"

    def test_constants(self) -> None:
        assert lookup_constant("Math.PI") == math.pi
        assert lookup_constant("e") == math.e
        assert lookup_constant("TAU") is None
        assert set(CONSTANTS) == {"PI", "E"}


class TestBuiltins:
    def _call(self, name: str, *args: float) -> float:
        return FunctionRegistry().get(name)(list(args))

    def test_round_half_up(self) -> None:
        assert self._call("ROUND", 2.5) == 3.0
        assert self._call("ROUND", -2.5) == -2.0
        assert self._call("ROUND", 1.4) == 1.0

    def test_sign(self) -> None:
        assert self._call("SIGN", -3) == -1.0
        assert self._call("SIGN", 0) == 0.0
        assert self._call("SIGN", 9) == 1.0

    def test_truncation_family(self) -> None:
        assert self._call("CEIL", 1.2) == 2.0
        assert self._call("FLOOR", -1.2) == -2.0
        assert self._call("TRUNC", -1.7) == -1.0

    def test_cbrt_keeps_sign(self) -> None:
        assert self._call("CBRT", -27) == pytest.approx(-3.0)

    def test_min_max(self) -> None:
        assert self._call("MIN", 4, -1, 2) == -1
        assert self._call("MAX", 4, -1, 2) == 4
        assert self._call("MIN") == math.inf
        assert self._call("MAX") == -math.inf
        assert math.isnan(self._call("MAX", 1, math.nan))

    def test_logs(self) -> None:
        assert self._call("LOG", 0) == -math.inf
        assert self._call("LOG10", 1000) == pytest.approx(3.0)
        assert self._call("LOG2", 8) == pytest.approx(3.0)

    def test_hypot(self) -> None:
        assert self._call("HYPOT", 3, 4) == 5.0

    def test_arity_error(self) -> None:
        with pytest.raises(ValueError, match="exactly 1 argument"):
            self._call("ABS", 1, 2)
        with pytest.raises(ValueError, match="exactly 2 arguments"):
            self._call("POW", 2)

    def test_domain_error(self) -> None:
        with pytest.raises(ValueError):
            self._call("ASIN", 2)


class TestOperatorHelpers:
    def test_divide(self) -> None:
        assert divide(6, 3) == 2.0
        assert divide(1, 0) == math.inf
        assert divide(-1, 0) == -math.inf
        assert math.isnan(divide(0, 0))

    def test_remainder(self) -> None:
        assert remainder(7, 3) == 1.0
        assert remainder(-7, 3) == -1.0
        assert remainder(5, math.inf) == 5
        assert math.isnan(remainder(5, 0))
        assert math.isnan(remainder(math.inf, 2))

    def test_power(self) -> None:
        assert power(2, 10) == 1024.0
        assert power(10, 400) == math.inf
        assert power(0, -1) == math.inf
        assert math.isnan(power(-8, 1 / 3))


class TestFunctionRegistry:
    def test_register_custom(self) -> None:
        registry = FunctionRegistry()
        registry.register("Tax", lambda args: args[0] * 0.2)
        assert registry.has("TAX")
        assert registry.get("tax")([100.0]) == 20.0
        assert "TAX" in registry.supported_functions

    def test_registries_are_independent(self) -> None:
        first = FunctionRegistry()
        first.register("custom", lambda args: 1.0)
        assert not FunctionRegistry().has("custom")

    def test_unknown(self) -> None:
        assert FunctionRegistry().get("eval") is None
