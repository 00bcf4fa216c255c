"""DataFusion physical plan to Excalidraw diagram conversion."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .config import DiagramConfig
from .elements import GenerationSession
from .errors import PlanParseError
from .layout import LayoutContext, StrategyRegistry
from .parser import PlanNode, parse_plan
from .strategies import REGISTRY

logger = logging.getLogger(__name__)

EXCALIDRAW_SOURCE = "https://excalidraw.com"


def _document(elements: list) -> Dict[str, Any]:
    return {
        "type": "excalidraw",
        "version": 2,
        "source": EXCALIDRAW_SOURCE,
        "elements": elements,
        "appState": {"gridSize": None, "viewBackgroundColor": "#ffffff"},
        "files": {},
    }


def generate(
    root: Optional[PlanNode],
    config: Optional[DiagramConfig] = None,
    *,
    seed: Optional[int] = None,
    timestamp: Optional[int] = None,
    registry: Optional[StrategyRegistry] = None,
) -> Dict[str, Any]:
    """Lay out ``root`` and return an Excalidraw document.

    ``seed`` and ``timestamp`` pin the random element seeds and the id
    prefix so repeated runs produce identical output. A missing root gives
    an empty document; a plan whose shape an operator cannot render raises
    :class:`~planviz.errors.StructuralError` and nothing is returned.
    """
    if root is None:
        return _document([])
    session = GenerationSession(config or DiagramConfig(), timestamp=timestamp, seed=seed)
    ctx = LayoutContext(session, registry or REGISTRY)
    ctx.layout(root, 0, 0, is_root=True)
    logger.debug("generated %d elements", len(session.elements))
    return _document(session.elements)


def convert(
    plan_text: str,
    config: Optional[DiagramConfig] = None,
    **options: Any,
) -> Dict[str, Any]:
    """Parse a physical plan (or ``EXPLAIN`` output) and generate its diagram."""
    if not plan_text or not plan_text.strip():
        raise PlanParseError("Execution plan text cannot be empty")
    root = parse_plan(plan_text)
    if root is None:
        raise PlanParseError("Failed to parse execution plan: no valid operators found")
    return generate(root, config, **options)


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2)


__all__ = ["generate", "convert", "dumps"]
