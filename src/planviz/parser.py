"""Parse indented DataFusion physical plans into a tree of :class:`PlanNode`."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .properties import parse_properties

logger = logging.getLogger(__name__)

INDENT_SIZE = 2
PHYSICAL_PLAN_TYPE = "physical_plan"


@dataclass
class PlanNode:
    operator: str
    properties: Dict[str, str] = field(default_factory=dict)
    children: List["PlanNode"] = field(default_factory=list)
    level: int = 0

    def walk(self):
        """Yield this node and its descendants depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


def extract_physical_plan(text: str) -> str:
    """Pull the ``physical_plan`` column out of an ``EXPLAIN`` result table.

    DataFusion prints::

        | plan_type     | plan                 |
        | physical_plan | ProjectionExec: ...  |
        |               |   AggregateExec: ... |

    Continuation rows have an empty first cell. Text that is not such a
    table is returned unchanged.
    """
    lines: List[str] = []
    in_physical = False
    saw_table = False
    for raw in text.splitlines():
        row = raw.strip()
        if not row.startswith("|"):
            if saw_table and in_physical:
                in_physical = False
            continue
        first, sep, rest = row[1:].partition("|")
        if not sep or not rest.endswith("|"):
            continue
        saw_table = True
        plan_type = first.strip()
        cell = rest[:-1].rstrip()
        if plan_type:
            in_physical = plan_type == PHYSICAL_PLAN_TYPE
        if not in_physical:
            continue
        if cell.startswith(" "):
            cell = cell[1:]
        if cell.strip():
            lines.append(cell)
    if not saw_table:
        return text
    return "\n".join(lines)


def _indent_level(line: str) -> int:
    spaces = 0
    for ch in line:
        if ch == " ":
            spaces += 1
        elif ch == "\t":
            spaces += INDENT_SIZE
        else:
            break
    return spaces // INDENT_SIZE


def parse_operator_line(line: str) -> Tuple[str, Dict[str, str]]:
    """``HashJoinExec: mode=Partitioned, on=[(a@0, b@1)]`` -> operator and properties."""
    operator, sep, rest = line.strip().partition(":")
    if not sep:
        return operator.strip(), {}
    return operator.strip(), parse_properties(rest.strip())


def parse_plan(text: str) -> Optional[PlanNode]:
    """Build the operator tree; returns None when there are no operator lines.

    Each indentation level (two spaces, tabs count as two) nests a node
    under the nearest shallower line above it.
    """
    if not text or not text.strip():
        return None
    text = extract_physical_plan(text)

    root: Optional[PlanNode] = None
    stack: List[PlanNode] = []
    count = 0
    for raw in text.splitlines():
        line = raw.rstrip()
        if not line.strip():
            continue
        level = _indent_level(line)
        operator, properties = parse_operator_line(line)
        node = PlanNode(operator=operator, properties=properties, level=level)

        while stack and stack[-1].level >= level:
            stack.pop()
        if stack:
            stack[-1].children.append(node)
        elif root is None:
            root = node
        else:
            logger.warning("ignoring %s: it is not nested under the plan root", operator)
            continue
        stack.append(node)
        count += 1

    logger.debug("parsed %d plan nodes", count)
    return root


__all__ = ["PlanNode", "extract_physical_plan", "parse_operator_line", "parse_plan"]
