"""Diagram geometry and styling options."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, FrozenSet, Optional

from .errors import ConfigError

DEFAULT_NODE_COLOR = "#1e1e1e"
DEFAULT_NODE_WIDTH = 200


@dataclass(frozen=True)
class DiagramConfig:
    """Options accepted by :func:`planviz.generate`.

    ``operator_font_size`` and ``details_font_size`` are derived from
    ``font_size`` (x1.25 and x0.875) unless given explicitly. ``label_font``
    points at a TrueType file used to measure column labels; without it a
    character-class estimate is used.
    """

    node_width: float = DEFAULT_NODE_WIDTH
    node_height: float = 80
    vertical_spacing: float = 100
    horizontal_spacing: float = 50
    font_size: float = 16
    operator_font_size: Optional[float] = None
    details_font_size: Optional[float] = None
    node_color: str = DEFAULT_NODE_COLOR
    arrow_color: str = DEFAULT_NODE_COLOR
    label_font: Optional[str] = None
    _derived_fonts: FrozenSet[str] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("node_width", "node_height", "font_size"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("vertical_spacing", "horizontal_spacing"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        derived = set()
        if self.operator_font_size is None:
            object.__setattr__(self, "operator_font_size", round(self.font_size * 1.25))
            derived.add("operator_font_size")
        if self.details_font_size is None:
            object.__setattr__(self, "details_font_size", round(self.font_size * 0.875))
            derived.add("details_font_size")
        object.__setattr__(self, "_derived_fonts", frozenset(derived))
        if self.operator_font_size <= 0 or self.details_font_size <= 0:
            raise ConfigError("font sizes must be positive")

    def with_overrides(self, **values: Any) -> "DiagramConfig":
        """Return a copy with every non-None value applied.

        Changing ``font_size`` re-derives the dependent font sizes that were
        derived in the first place; sizes set explicitly are kept.
        """
        known = {f.name for f in fields(self) if f.init}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"unknown config option(s): {', '.join(unknown)}")
        updates = {key: value for key, value in values.items() if value is not None}
        for name in self._derived_fonts:
            updates.setdefault(name, None)
        return replace(self, **updates)


__all__ = ["DiagramConfig", "DEFAULT_NODE_COLOR", "DEFAULT_NODE_WIDTH"]
