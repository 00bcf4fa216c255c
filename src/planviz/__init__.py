"""Public API for planviz."""
from .config import DiagramConfig
from .errors import ConfigError, PlanParseError, PlanVizError, StructuralError
from .layout import NodeLayoutResult
from .parser import PlanNode, extract_physical_plan, parse_plan
from .planviz import convert, dumps, generate

__all__ = [
    "convert",
    "generate",
    "dumps",
    "parse_plan",
    "extract_physical_plan",
    "PlanNode",
    "NodeLayoutResult",
    "DiagramConfig",
    "PlanVizError",
    "StructuralError",
    "PlanParseError",
    "ConfigError",
]
