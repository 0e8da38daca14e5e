"""Named collection of calculator instances owned by the caller."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from alphacalc._calculator import Calculator, RenderCallback
from alphacalc._config import CalcConfig
from alphacalc._layout import PageLayout
from alphacalc._protocol import Clock, RecomputeResult

logger = logging.getLogger(__name__)


class CalculatorRegistry:
    """Calculators by name, with registry-wide default options.

    Usage::

        registry = CalculatorRegistry({"features": {"debounce_ms": 100}})
        registry.create("Checkout", layout=page)
        registry.get("checkout").set_value("qty", 2)
        registry.recompute_all()

    Names are matched case-insensitively.  Creating a calculator under a name
    already in use destroys the previous instance first.
    """

    def __init__(
        self,
        defaults: Mapping[str, Any] | CalcConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._defaults = defaults
        self._clock = clock
        self._instances: dict[str, Calculator] = {}

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[Calculator]:
        return iter(list(self._instances.values()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._instances

    def create(
        self,
        name: str,
        options: Mapping[str, Any] | None = None,
        *,
        render: RenderCallback | None = None,
        layout: PageLayout | Mapping[str, Any] | None = None,
    ) -> Calculator:
        """Build a calculator with *options* merged over the registry defaults."""
        key = name.lower()
        previous = self._instances.pop(key, None)
        if previous is not None:
            logger.debug("Replacing calculator %r", previous.name)
            previous.destroy()

        config = CalcConfig.from_options(self._defaults, options)
        calc = Calculator(name, config, clock=self._clock, render=render)
        self._instances[key] = calc
        if layout is not None:
            calc.load(layout)
        return calc

    def get(self, name: str) -> Calculator | None:
        return self._instances.get(name.lower())

    def names(self) -> list[str]:
        return [calc.name for calc in self._instances.values()]

    def recompute_all(self) -> dict[str, RecomputeResult | None]:
        return {calc.name: calc.recompute() for calc in list(self._instances.values())}

    def destroy(self, name: str) -> bool:
        calc = self._instances.pop(name.lower(), None)
        if calc is None:
            return False
        calc.destroy()
        return True

    def destroy_all(self) -> None:
        for calc in list(self._instances.values()):
            calc.destroy()
        self._instances.clear()
