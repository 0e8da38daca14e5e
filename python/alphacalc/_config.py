"""Calculator configuration.

Options can be given flat (``{"debounce_ms": 100}``) or in the sectioned
layout the page markup produces::

    {
        "decimal": {"input": 4, "display": 2},
        "features": {"auto_calculate": True, "debug": False, "debounce_ms": 50},
        "formatting": {"use_grouping": True},
    }

Sections are deep-merged over the defaults, later sources winning.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

# section -> {section key -> CalcConfig field}
_SECTIONS: dict[str, dict[str, str]] = {
    "decimal": {"input": "input_decimals", "display": "display_decimals"},
    "features": {
        "auto_calculate": "auto_calculate",
        "debug": "debug",
        "debounce_ms": "debounce_ms",
        "reject_cycles": "reject_cycles",
    },
    "formatting": {"use_grouping": "use_grouping"},
}


@dataclass(frozen=True)
class CalcConfig:
    """Recognized options for a calculator instance."""

    debounce_ms: int = 50
    input_decimals: int = 4
    display_decimals: int = 2
    auto_calculate: bool = True
    debug: bool = False
    use_grouping: bool = True
    reject_cycles: bool = False

    def __post_init__(self) -> None:
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        for name in ("input_decimals", "display_decimals"):
            value = getattr(self, name)
            if not 0 <= value <= 20:
                raise ValueError(f"{name} must be between 0 and 20, got {value}")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_options(cls, *sources: Mapping[str, Any] | CalcConfig | None) -> CalcConfig:
        """Build a config from option mappings merged left to right."""
        merged = merge_options(*(_as_mapping(s) for s in sources))
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in merged.items():
            if key in _SECTIONS and isinstance(value, Mapping):
                for sub_key, sub_value in value.items():
                    target = _SECTIONS[key].get(sub_key)
                    if target is None:
                        raise ValueError(f"Unknown option {key}.{sub_key}")
                    values[target] = sub_value
            elif key in known:
                values[key] = value
            else:
                raise ValueError(f"Unknown option {key!r}")
        return cls(**values)

    def as_options(self) -> dict[str, Any]:
        return asdict(self)


def _as_mapping(source: Mapping[str, Any] | CalcConfig | None) -> Mapping[str, Any]:
    if source is None:
        return {}
    if isinstance(source, CalcConfig):
        return source.as_options()
    return source


def merge_options(*sources: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge mappings; nested mappings merge, lists concatenate, others replace."""
    result: dict[str, Any] = {}
    for source in sources:
        for key, value in source.items():
            current = result.get(key)
            if isinstance(current, Mapping) and isinstance(value, Mapping):
                result[key] = merge_options(current, value)
            elif isinstance(current, list) and isinstance(value, list):
                result[key] = [*current, *value]
            elif isinstance(value, Mapping):
                result[key] = merge_options(value)
            else:
                result[key] = value
    return result
