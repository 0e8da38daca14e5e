"""Tests for alphacalc page layout declarations."""

from __future__ import annotations

import pytest

from alphacalc import CellDeclaration, FormulaDeclaration, GroupDeclaration, PageLayout


class TestFromDict:
    def test_full_layout(self) -> None:
        layout = PageLayout.from_dict({
            "cells": [{"id": "qty", "initial": "2", "min": 0, "max": 10, "decimals": 0}],
            "formulas": [{"id": "total", "formula": "=qty * 3"}],
            "groups": [{"name": "size", "members": ["s", "m"], "mode": "exclusive"}],
        })
        assert layout.cells == (CellDeclaration("qty", "2", 0, 10, False, False, 0),)
        assert layout.formulas == (FormulaDeclaration("total", "=qty * 3"),)
        assert layout.groups == (GroupDeclaration("size", ("s", "m"), "exclusive"),)

    def test_defaults(self) -> None:
        cell = CellDeclaration.from_dict({"id": "gift", "toggle": 1})
        assert cell.initial == 0
        assert cell.toggle is True
        assert cell.active is False
        assert GroupDeclaration.from_dict({"name": "g"}).mode == "additive"

    def test_missing_sections(self) -> None:
        assert PageLayout.from_dict({}) == PageLayout()

    def test_missing_id_is_empty(self) -> None:
        assert CellDeclaration.from_dict({}).cell_id == ""
        assert FormulaDeclaration.from_dict({"formula": "1"}).cell_id == ""

    def test_section_must_be_a_list(self) -> None:
        with pytest.raises(ValueError, match="cells"):
            PageLayout.from_dict({"cells": {"id": "qty"}})


class TestMarkupStrings:
    def test_string_bounds_are_numbers(self) -> None:
        cell = CellDeclaration.from_dict({"id": "qty", "min": "5", "max": "10.5", "decimals": "3"})
        assert cell.minimum == 5.0
        assert cell.maximum == 10.5
        assert cell.decimals == 3

    def test_garbled_bounds_are_unset(self) -> None:
        cell = CellDeclaration.from_dict({"id": "qty", "min": "", "max": "none", "decimals": "x"})
        assert cell.minimum is None
        assert cell.maximum is None
        assert cell.decimals is None

    def test_decimals_kept_in_range(self) -> None:
        assert CellDeclaration.from_dict({"id": "a", "decimals": "-2"}).decimals == 0
        assert FormulaDeclaration.from_dict({"id": "a", "decimals": 99}).decimals == 20

    @pytest.mark.parametrize("text", ["false", "0", "no", "OFF", ""])
    def test_false_flags(self, text: str) -> None:
        cell = CellDeclaration.from_dict({"id": "gift", "toggle": text, "active": text})
        assert cell.toggle is False
        assert cell.active is False

    def test_true_flags(self) -> None:
        cell = CellDeclaration.from_dict({"id": "gift", "toggle": "true", "active": "checked"})
        assert cell.toggle is True
        assert cell.active is True

    def test_mode_is_lower_cased(self) -> None:
        assert GroupDeclaration.from_dict({"name": "g", "mode": " Exclusive "}).mode == "exclusive"
