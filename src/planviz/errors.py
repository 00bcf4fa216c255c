"""Error types raised by planviz with stable codes for CLI mapping."""
from __future__ import annotations


class PlanVizError(ValueError):
    """Structured error with a stable code."""

    code = "E_PLANVIZ"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class StructuralError(PlanVizError):
    """The plan tree has a shape an operator cannot render (arity, mismatched inputs)."""

    code = "E_PLAN_STRUCTURE"


class PlanParseError(PlanVizError):
    """The plan text is empty or contains no operators."""

    code = "E_PARSE_PLAN"


class ConfigError(PlanVizError):
    code = "E_CONFIG"


__all__ = ["PlanVizError", "StructuralError", "PlanParseError", "ConfigError"]
