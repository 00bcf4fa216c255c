"""Layout coordination shared by every operator strategy.

A strategy receives the :class:`LayoutContext`, a plan node and the top-left
corner of its box. It draws its own box, lays its children out through
``ctx.layout`` and returns a :class:`NodeLayoutResult` describing what its
parent needs to connect to it: the box, the anchor element, how many
arrows leave it and where, plus the columns and sort order it produces.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from . import elements
from .config import DiagramConfig
from .elements import GenerationSession
from .geometry import (
    ARROWS_AFTER_ELLIPSIS,
    ARROWS_BEFORE_ELLIPSIS,
    MAX_ARROWS_BEFORE_ELLIPSIS,
    Point,
    distribute_points,
    ellipsis_split,
    output_arrow_positions,
)
from .parser import PlanNode

logger = logging.getLogger(__name__)

STANDARD_WIDTH = 300.0
OPERATOR_TEXT_HEIGHT = 25.0
DETAIL_LINE_HEIGHT = 17.5
DETAIL_BOTTOM_MARGIN = 22.5
COLUMN_LABEL_HEIGHT = 17.5
COLUMN_LABEL_FONT_SIZE = 14
ELLIPSIS_FONT_SIZE = 14
ELLIPSIS_SIZE = 20.0
LABEL_OFFSET = 5.0
CHILD_SPACING_RATIO = 3 / 5
ORDERED_COLUMN_COLOR = "#1e90ff"

DetailLine = Tuple[str, Optional[str]]
Segment = Tuple[Point, Point]


@dataclass(frozen=True)
class NodeLayoutResult:
    x: float
    y: float
    width: float
    height: float
    bottom: float
    anchor_id: str
    output_arrow_count: int
    output_arrow_positions: Tuple[float, ...] = ()
    output_columns: Tuple[str, ...] = ()
    output_sort_order: Tuple[str, ...] = ()

    def translated(self, dx: float) -> "NodeLayoutResult":
        return replace(
            self,
            x=self.x + dx,
            output_arrow_positions=tuple(p + dx for p in self.output_arrow_positions),
        )


Strategy = Callable[["LayoutContext", PlanNode, float, float, bool], NodeLayoutResult]


class StrategyRegistry:
    """Operator name -> layout strategy, with a fallback for unknown operators."""

    def __init__(self, default: Optional[Strategy] = None) -> None:
        self._strategies: Dict[str, Strategy] = {}
        self._default = default

    def register(self, *operators: str) -> Callable[[Strategy], Strategy]:
        def decorator(strategy: Strategy) -> Strategy:
            for operator in operators:
                self._strategies[operator] = strategy
            return strategy

        return decorator

    def set_default(self, strategy: Strategy) -> Strategy:
        self._default = strategy
        return strategy

    def resolve(self, operator: str) -> Strategy:
        strategy = self._strategies.get(operator, self._default)
        if strategy is None:
            raise LookupError(f"no layout strategy for {operator!r} and no default registered")
        return strategy

    def operators(self) -> List[str]:
        return sorted(self._strategies)

    def __contains__(self, operator: object) -> bool:
        return operator in self._strategies


class LayoutContext:
    def __init__(self, session: GenerationSession, registry: StrategyRegistry) -> None:
        self.session = session
        self.registry = registry

    @property
    def config(self) -> DiagramConfig:
        return self.session.config

    def layout(self, node: PlanNode, x: float, y: float, is_root: bool = False) -> NodeLayoutResult:
        strategy = self.registry.resolve(node.operator)
        logger.debug(
            "laying out %s at (%.1f, %.1f)%s",
            node.operator,
            x,
            y,
            "" if node.operator in self.registry else " with the fallback strategy",
        )
        return strategy(self, node, x, y, is_root)


# --- boxes and text -------------------------------------------------------


def draw_operator_box(
    ctx: LayoutContext,
    x: float,
    y: float,
    width: float,
    height: float,
    label: str,
    *,
    label_color: Optional[str] = None,
) -> str:
    """Rectangle plus its bold centered operator label; returns the rectangle id."""
    box = elements.rectangle(ctx.session, x, y, width, height)
    elements.text(
        ctx.session,
        x,
        y + LABEL_OFFSET,
        width,
        OPERATOR_TEXT_HEIGHT,
        label,
        font_size=ctx.config.operator_font_size,
        bold=True,
        align="center",
        color=label_color,
        container_id=box["id"],
    )
    return box["id"]


def bottom_anchored_top(y: float, height: float, count: int) -> float:
    """Top of a block of ``count`` detail lines whose last line sits near the box bottom."""
    return y + height - DETAIL_BOTTOM_MARGIN - max(0, count - 1) * DETAIL_LINE_HEIGHT


def draw_details(
    ctx: LayoutContext, x: float, top: float, width: float, lines: Sequence[DetailLine]
) -> None:
    for index, (value, color) in enumerate(lines):
        elements.text(
            ctx.session,
            x,
            top + index * DETAIL_LINE_HEIGHT,
            width,
            DETAIL_LINE_HEIGHT,
            value,
            font_size=ctx.config.details_font_size,
            align="center",
            color=color,
        )


def draw_ellipsis_glyph(ctx: LayoutContext, center_x: float, center_y: float) -> None:
    elements.text(
        ctx.session,
        center_x - ELLIPSIS_SIZE / 2,
        center_y - ELLIPSIS_SIZE / 2,
        ELLIPSIS_SIZE,
        ELLIPSIS_SIZE,
        "...",
        font_size=ELLIPSIS_FONT_SIZE,
        align="center",
    )


# --- column labels --------------------------------------------------------


def _column_runs(
    columns: Sequence[str], sort_order: Sequence[str], base_color: str
) -> List[Tuple[List[str], str]]:
    ordered = set(sort_order)
    runs: List[Tuple[List[str], str]] = []
    for column in columns:
        column = column.strip()
        color = ORDERED_COLUMN_COLOR if column in ordered else base_color
        if runs and runs[-1][1] == color:
            runs[-1][0].append(column)
        else:
            runs.append(([column], color))
    return runs


def draw_column_labels(
    ctx: LayoutContext,
    columns: Sequence[str],
    sort_order: Sequence[str],
    mid_y: float,
    anchor_x: float,
    *,
    side: str = "right",
) -> None:
    """Label an edge with the columns flowing along it.

    Columns that are part of the sort order are highlighted. On the
    ``"right"`` side text starts just right of ``anchor_x``; on the
    ``"left"`` side it ends just left of it.
    """
    if not columns:
        return
    session = ctx.session
    runs = _column_runs(columns, sort_order, ctx.config.node_color)
    group_id = session.next_id()
    y = mid_y - COLUMN_LABEL_HEIGHT / 2

    if side == "right":
        cursor = anchor_x + LABEL_OFFSET
        for index, (names, color) in enumerate(runs):
            value = ", ".join(names)
            if index > 0:
                value = ", " + value
            width = session.measure(value, COLUMN_LABEL_FONT_SIZE)
            elements.text(
                session,
                cursor,
                y,
                width,
                COLUMN_LABEL_HEIGHT,
                value,
                font_size=COLUMN_LABEL_FONT_SIZE,
                color=color,
                group_id=group_id,
            )
            cursor += width
        return

    cursor = anchor_x - LABEL_OFFSET
    last = len(runs) - 1
    for index in range(last, -1, -1):
        names, color = runs[index]
        value = ", ".join(names)
        if index < last:
            value += ", "
        width = session.measure(value, COLUMN_LABEL_FONT_SIZE)
        cursor -= width
        elements.text(
            session,
            cursor,
            y,
            width,
            COLUMN_LABEL_HEIGHT,
            value,
            font_size=COLUMN_LABEL_FONT_SIZE,
            align="right",
            color=color,
            group_id=group_id,
        )


# --- arrows ---------------------------------------------------------------


def draw_arrows(
    ctx: LayoutContext,
    segments: Sequence[Segment],
    source: Union[str, Sequence[str]],
    target: Union[str, Sequence[str]],
) -> List[Segment]:
    """Draw bound arrows for ``segments``, collapsing large bundles.

    ``source`` and ``target`` are a single element id or one id per
    segment. More than eight segments are reduced to the first two and last
    two with an ellipsis glyph between them. Returns the segments drawn.
    """
    count = len(segments)
    sources = [source] * count if isinstance(source, str) else list(source)
    targets = [target] * count if isinstance(target, str) else list(target)
    if count <= MAX_ARROWS_BEFORE_ELLIPSIS:
        for index in range(count):
            _draw_segment(ctx, segments[index], sources[index], targets[index])
        return list(segments)

    head = list(range(ARROWS_BEFORE_ELLIPSIS))
    tail = list(range(count - ARROWS_AFTER_ELLIPSIS, count))
    for index in head:
        _draw_segment(ctx, segments[index], sources[index], targets[index])
    before = _midpoint(segments[head[-1]])
    after = _midpoint(segments[tail[0]])
    draw_ellipsis_glyph(ctx, (before[0] + after[0]) / 2, (before[1] + after[1]) / 2)
    for index in tail:
        _draw_segment(ctx, segments[index], sources[index], targets[index])
    return [segments[index] for index in head + tail]


def draw_vertical_arrows(
    ctx: LayoutContext,
    count: int,
    positions: Sequence[float],
    top: float,
    bottom: float,
    source_id: str,
    target_id: str,
) -> List[float]:
    """Vertical arrows from a child's top (``top``) up to a parent's bottom.

    Returns the x positions actually drawn.
    """
    split = ellipsis_split(count, positions)
    if not split.collapsed:
        for px in positions:
            _draw_segment(ctx, ((px, top), (px, bottom)), source_id, target_id)
        return list(positions)

    shown = list(split.positions)
    for px in shown[:ARROWS_BEFORE_ELLIPSIS]:
        _draw_segment(ctx, ((px, top), (px, bottom)), source_id, target_id)
    draw_ellipsis_glyph(ctx, split.ellipsis_x, (top + bottom) / 2)
    for px in shown[ARROWS_BEFORE_ELLIPSIS:]:
        _draw_segment(ctx, ((px, top), (px, bottom)), source_id, target_id)
    return shown


def _draw_segment(ctx: LayoutContext, segment: Segment, source_id: str, target_id: str) -> None:
    (sx, sy), (ex, ey) = segment
    elements.arrow(ctx.session, sx, sy, ex, ey, start_id=source_id, end_id=target_id)


def _midpoint(segment: Segment) -> Point:
    (sx, sy), (ex, ey) = segment
    return (sx + ex) / 2, (sy + ey) / 2


# --- stacked children -----------------------------------------------------


@dataclass
class StackedChildren:
    results: List[NodeLayoutResult]
    total_arrows: int
    positions: List[float]
    bottom: float

    @property
    def first(self) -> Optional[NodeLayoutResult]:
        return self.results[0] if self.results else None

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.first.output_columns if self.first else ()

    @property
    def sort_order(self) -> Tuple[str, ...]:
        return self.first.output_sort_order if self.first else ()


def stack_children(
    ctx: LayoutContext,
    node: PlanNode,
    x: float,
    y: float,
    width: float,
    height: float,
    anchor_id: str,
) -> StackedChildren:
    """Lay children out directly below the box and connect each with its arrows.

    Every child contributes ``max(1, child.output_arrow_count)`` arrows,
    landing where the child says they leave it or, when it gives no usable
    positions, spread across this box's bottom edge.
    """
    parent_bottom = y + height
    child_y = parent_bottom + ctx.config.vertical_spacing * CHILD_SPACING_RATIO
    stacked = StackedChildren([], 0, [], parent_bottom)

    for child in node.children:
        result = ctx.layout(child, x, child_y)
        stacked.results.append(result)

        count = max(1, result.output_arrow_count)
        stacked.total_arrows += count
        if len(result.output_arrow_positions) == count:
            positions = list(result.output_arrow_positions)
        else:
            positions = distribute_points(count, x, x + width)
        stacked.positions.extend(positions)

        drawn = draw_vertical_arrows(
            ctx, count, positions, child_y, parent_bottom, result.anchor_id, anchor_id
        )
        if drawn:
            draw_column_labels(
                ctx,
                result.output_columns,
                result.output_sort_order,
                (child_y + parent_bottom) / 2,
                max(drawn),
            )
        stacked.bottom = max(stacked.bottom, result.bottom)
    return stacked


def pass_through(
    x: float,
    y: float,
    width: float,
    height: float,
    anchor_id: str,
    stacked: StackedChildren,
    *,
    columns: Optional[Sequence[str]] = None,
    sort_order: Optional[Sequence[str]] = None,
) -> NodeLayoutResult:
    """Result for an operator that keeps its input cardinality."""
    positions, count = output_arrow_positions(stacked.total_arrows, x, width)
    if not positions and stacked.positions:
        positions = stacked.positions
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=stacked.bottom,
        anchor_id=anchor_id,
        output_arrow_count=count,
        output_arrow_positions=tuple(positions),
        output_columns=tuple(stacked.columns if columns is None else columns),
        output_sort_order=tuple(stacked.sort_order if sort_order is None else sort_order),
    )


__all__ = [
    "LayoutContext",
    "NodeLayoutResult",
    "StackedChildren",
    "Strategy",
    "StrategyRegistry",
    "bottom_anchored_top",
    "draw_arrows",
    "draw_column_labels",
    "draw_details",
    "draw_ellipsis_glyph",
    "draw_operator_box",
    "draw_vertical_arrows",
    "pass_through",
    "stack_children",
]
