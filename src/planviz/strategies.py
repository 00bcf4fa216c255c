"""Per-operator layout strategies.

Each function below draws one DataFusion operator family and is registered
on :data:`REGISTRY` under the operator names it handles. Operators without
a registered strategy are drawn by :func:`layout_unimplemented`.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from . import elements
from .config import DEFAULT_NODE_WIDTH
from .errors import StructuralError
from .geometry import (
    distribute_central,
    distribute_points,
    ellipse_edge_point,
    output_arrow_positions,
)
from .layout import (
    CHILD_SPACING_RATIO,
    STANDARD_WIDTH,
    DetailLine,
    LayoutContext,
    NodeLayoutResult,
    Segment,
    StrategyRegistry,
    bottom_anchored_top,
    draw_arrows,
    draw_column_labels,
    draw_details,
    draw_operator_box,
    pass_through,
    stack_children,
)
from .parser import PlanNode
from .properties import (
    aggregate_names,
    bracket_content,
    bracket_items,
    column_name,
    date_bin_source,
    file_label,
    function_name,
    join_keys,
    limit_text,
    output_name,
    parse_file_groups,
    parse_partitioning,
    projection_alias,
    projection_columns,
    sort_columns,
    strip_indices,
)

logger = logging.getLogger(__name__)

RED = "#ff0000"
DARK_RED = "#8B0000"
ORANGE = "#f08c00"
PURPLE = "#9b59b6"

DATASOURCE_HEIGHT = 100.0
PIPELINE_AGGREGATE_HEIGHT = 100.0
JOIN_HEIGHT = 125.0
JOIN_DETAILS_OFFSET = 35.0

FILE_ELLIPSE_SIZE = 60.0
FILE_ELLIPSE_SPACING = 20.0
FILE_GROUP_SPACING = 40.0
FILE_GROUP_OFFSET = 75.0
FILE_GROUP_PADDING = 10.0
FILE_LABEL_FONT_SIZE = 20
MAX_VISIBLE_FILES = 3

HASH_TABLE_WIDTH = 138.0
HASH_TABLE_HEIGHT = 41.0
HASH_TABLE_OFFSET = 70.0

DYNAMIC_FILTER_WIDTH = 120.0
DYNAMIC_FILTER_HEIGHT = 30.0
DYNAMIC_FILTER_OFFSET = 50.0

UNION_SPACING_RATIO = 1.5

_AS_RE = re.compile(r"\s+as\s+", re.IGNORECASE)
_EMBEDDED_PROJECTION_RE = re.compile(r",?\s*projection=(\[[^\]]*\])")


REGISTRY = StrategyRegistry()


def _box_with_details(
    ctx: LayoutContext,
    node: PlanNode,
    x: float,
    y: float,
    width: float,
    height: float,
    lines: Sequence[DetailLine],
    *,
    label: Optional[str] = None,
    label_color: Optional[str] = None,
) -> str:
    anchor = draw_operator_box(
        ctx, x, y, width, height, label or node.operator, label_color=label_color
    )
    if lines:
        draw_details(ctx, x, bottom_anchored_top(y, height, len(lines)), width, lines)
    return anchor


def _single_output(
    x: float,
    y: float,
    width: float,
    height: float,
    anchor: str,
    bottom: float,
    columns: Sequence[str],
    sort_order: Sequence[str],
) -> NodeLayoutResult:
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=bottom,
        anchor_id=anchor,
        output_arrow_count=1,
        output_arrow_positions=(x + width / 2,),
        output_columns=tuple(columns),
        output_sort_order=tuple(sort_order),
    )


def _require_children(node: PlanNode, expected: int) -> None:
    if len(node.children) != expected:
        raise StructuralError(
            f"{node.operator} must have exactly {expected} "
            f"{'child' if expected == 1 else 'children'}, but found {len(node.children)}"
        )


def _merge_columns(*groups: Sequence[str]) -> Tuple[str, ...]:
    merged: List[str] = []
    for group in groups:
        for column in group:
            if column not in merged:
                merged.append(column)
    return tuple(merged)


@REGISTRY.set_default
def layout_unimplemented(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Placeholder box for operators without a dedicated layout."""
    config = ctx.config
    width = STANDARD_WIDTH if config.node_width == DEFAULT_NODE_WIDTH else config.node_width
    height = config.node_height
    anchor = _box_with_details(
        ctx, node, x, y, width, height, [("Unimplemented", RED)], label_color=RED
    )
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked)


# --- sources --------------------------------------------------------------


@REGISTRY.register("DataSourceExec")
def layout_data_source(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Scan node with one ellipse per visible file, grouped by file group.

    Each file group feeds one arrow into the box; groups holding more than
    one file are wrapped in a dashed rectangle that the arrow starts from.
    """
    session = ctx.session
    props = node.properties
    width = STANDARD_WIDTH
    height = DATASOURCE_HEIGHT

    limit = limit_text(props)
    anchor = _box_with_details(ctx, node, x, y, width, height, [(limit, None)] if limit else [])
    if "DynamicFilter" in props.get("predicate", ""):
        _draw_dynamic_filter(ctx, x, y, width)

    columns = projection_columns(props.get("projection"))
    sort_order = sort_columns(props.get("output_ordering"))
    groups = parse_file_groups(props)
    if not groups:
        return NodeLayoutResult(
            x=x,
            y=y,
            width=width,
            height=height,
            bottom=y + height,
            anchor_id=anchor,
            output_arrow_count=0,
            output_columns=tuple(columns),
            output_sort_order=tuple(sort_order),
        )

    box_bottom = y + height
    base_y = box_bottom + FILE_GROUP_OFFSET
    pitch = FILE_ELLIPSE_SIZE + FILE_ELLIPSE_SPACING
    total_width = len(groups) * FILE_ELLIPSE_SIZE + (len(groups) - 1) * FILE_GROUP_SPACING
    tallest = max(min(len(files), MAX_VISIBLE_FILES) for files in groups)
    tallest_height = tallest * FILE_ELLIPSE_SIZE + (tallest - 1) * FILE_ELLIPSE_SPACING

    group_x = x + (width - total_width) / 2
    # (anchor id, center x, top y) per group
    sources: List[Tuple[str, float, float]] = []
    bottom = box_bottom
    for files in groups:
        shown = len(files) if len(files) <= 2 else MAX_VISIBLE_FILES
        group_height = shown * FILE_ELLIPSE_SIZE + (shown - 1) * FILE_ELLIPSE_SPACING
        top = base_y + (tallest_height - group_height) / 2
        center_x = group_x + FILE_ELLIPSE_SIZE / 2

        slots: List[Optional[str]] = list(files)
        if len(files) > 2:
            slots = [files[0], None, files[-1]]
        first_ellipse = None
        for slot, path in enumerate(slots):
            slot_y = top + slot * pitch
            if path is None:
                elements.text(
                    session,
                    center_x - 10,
                    slot_y + FILE_ELLIPSE_SIZE / 2 - 10,
                    20,
                    20,
                    "...",
                    font_size=ctx.config.details_font_size,
                    align="center",
                    vertical_align="middle",
                    auto_resize=True,
                )
                continue
            shape = elements.ellipse(session, group_x, slot_y, FILE_ELLIPSE_SIZE, FILE_ELLIPSE_SIZE)
            elements.text(
                session,
                center_x - 10,
                slot_y + FILE_ELLIPSE_SIZE / 2 - 15,
                20,
                30,
                file_label(path),
                font_size=FILE_LABEL_FONT_SIZE,
                bold=True,
                align="center",
                vertical_align="middle",
                container_id=shape["id"],
                auto_resize=True,
                line_height=1.15,
            )
            if first_ellipse is None:
                first_ellipse = shape["id"]

        group_bottom = top + group_height
        if len(files) > 1:
            frame = elements.rectangle(
                session,
                group_x - FILE_GROUP_PADDING,
                top - FILE_GROUP_PADDING,
                FILE_ELLIPSE_SIZE + 2 * FILE_GROUP_PADDING,
                group_height + 2 * FILE_GROUP_PADDING,
                stroke_style="dashed",
            )
            sources.append((frame["id"], center_x, top - FILE_GROUP_PADDING))
            group_bottom += FILE_GROUP_PADDING
        else:
            sources.append((first_ellipse, center_x, top))
        bottom = max(bottom, group_bottom)
        group_x += FILE_ELLIPSE_SIZE + FILE_GROUP_SPACING

    centers = [center for _, center, _ in sources]
    if all(x <= center <= x + width for center in centers):
        ends = centers
    else:
        ends = distribute_points(len(sources), x, x + width)

    segments: List[Segment] = [
        ((center, top), (end, box_bottom)) for (_, center, top), end in zip(sources, ends)
    ]
    drawn = draw_arrows(ctx, segments, [source for source, _, _ in sources], anchor)
    if columns:
        draw_column_labels(
            ctx,
            columns,
            sort_order,
            (box_bottom + sources[0][2]) / 2,
            max(start[0] for start, _ in drawn),
        )

    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=bottom,
        anchor_id=anchor,
        output_arrow_count=len(groups),
        output_arrow_positions=tuple(ends),
        output_columns=tuple(columns),
        output_sort_order=tuple(sort_order),
    )


def _draw_dynamic_filter(ctx: LayoutContext, x: float, y: float, width: float) -> None:
    left = x + (width - DYNAMIC_FILTER_WIDTH) / 2
    top = y + DYNAMIC_FILTER_OFFSET
    shape = elements.ellipse(
        ctx.session,
        left,
        top,
        DYNAMIC_FILTER_WIDTH,
        DYNAMIC_FILTER_HEIGHT,
        stroke_color=ORANGE,
        stroke_style="dashed",
    )
    elements.text(
        ctx.session,
        left + (DYNAMIC_FILTER_WIDTH - 100) / 2,
        top + DYNAMIC_FILTER_HEIGHT / 2 - 9,
        100,
        18,
        "DynamicFilter",
        font_size=ctx.config.details_font_size,
        bold=True,
        align="center",
        color=ORANGE,
        container_id=shape["id"],
        auto_resize=True,
    )


# --- single-input operators -----------------------------------------------


def _filter_predicate(props: Dict[str, str]) -> Optional[str]:
    for key in ("filter", "predicate", "args"):
        if props.get(key):
            return props[key]
    for value in props.values():
        if "=" in value and "@" in value:
            return value
    return None


@REGISTRY.register("FilterExec")
def layout_filter(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    raw = _filter_predicate(props)
    projection = props.get("projection")
    if raw and not projection:
        embedded = _EMBEDDED_PROJECTION_RE.search(raw)
        if embedded:
            projection = embedded.group(1)

    lines: List[DetailLine] = []
    if raw:
        predicate = strip_indices(_EMBEDDED_PROJECTION_RE.sub("", raw)).strip()
        if predicate:
            lines.append((predicate, None))
    columns = projection_columns(projection)
    if columns:
        lines.append((f"projection=[{', '.join(columns)}]", None))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked, columns=columns or None)


@REGISTRY.register("CoalesceBatchesExec")
def layout_coalesce_batches(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height
    lines: List[DetailLine] = []
    if props.get("target_batch_size"):
        lines.append((f"target_batch_size={props['target_batch_size']}", None))
    limit = limit_text(props)
    if limit:
        lines.append((limit, None))
    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked)


@REGISTRY.register("CoalescePartitionsExec")
def layout_coalesce_partitions(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Merges every input partition into a single output stream."""
    width = STANDARD_WIDTH
    height = ctx.config.node_height
    limit = limit_text(node.properties)
    anchor = _box_with_details(ctx, node, x, y, width, height, [(limit, None)] if limit else [])
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return _single_output(
        x, y, width, height, anchor, stacked.bottom, stacked.columns, stacked.sort_order
    )


@REGISTRY.register("RepartitionExec")
def layout_repartition(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Fans the input out to the declared number of partitions.

    Hash and round-robin repartitioning only keep the input ordering when
    ``preserve_order=true`` or when there is a single input stream.
    """
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    partitioning = parse_partitioning(props["partitioning"]) if props.get("partitioning") else None
    preserve_order = props.get("preserve_order", "").strip().lower() == "true"
    lines: List[DetailLine] = []
    if partitioning:
        lines.append((partitioning.text, None))
    if preserve_order:
        lines.append(("preserve_order=true", DARK_RED))
    sort_exprs = sort_columns(props.get("sort_exprs"))
    if sort_exprs:
        lines.append((f"sort_exprs=[{', '.join(sort_exprs)}]", None))
    limit = limit_text(props)
    if limit:
        lines.append((limit, None))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)

    sort_order: Tuple[str, ...] = stacked.sort_order
    if partitioning and partitioning.kind in ("hash", "round_robin"):
        if not (sort_order and (preserve_order or stacked.total_arrows == 1)):
            sort_order = ()

    count = partitioning.count if partitioning and partitioning.count > 0 else 0
    if count == 0:
        count = stacked.total_arrows
        logger.debug("no partition count in %r; reusing %d input streams", props.get("partitioning"), count)
    positions: List[float] = []
    if is_root or count == 0:
        count = 0
    else:
        positions, count = output_arrow_positions(count, x, width)
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=stacked.bottom,
        anchor_id=anchor,
        output_arrow_count=count,
        output_arrow_positions=tuple(positions),
        output_columns=stacked.columns,
        output_sort_order=sort_order,
    )


@REGISTRY.register("AggregateExec")
def layout_aggregate(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    props = node.properties
    width = STANDARD_WIDTH
    pipelined = props.get("ordering_mode", "").strip() == "Sorted"
    height = PIPELINE_AGGREGATE_HEIGHT if pipelined else ctx.config.node_height
    label = "AggregateExec - Pipeline" if pipelined else node.operator

    gby_items = bracket_items(props.get("gby"))
    gby_names = [output_name(item) for item in gby_items]
    aggr = props.get("aggr")

    lines: List[DetailLine] = []
    if props.get("mode"):
        lines.append((f"mode={props['mode']}", PURPLE))
    parts = []
    if gby_names:
        parts.append(f"gby=[{', '.join(gby_names)}]")
    if aggr:
        parts.append(f"aggr={strip_indices(aggr)}")
    if parts:
        lines.append((", ".join(parts), None))
    if pipelined:
        lines.append(("ordering_mode=Sorted", DARK_RED))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines, label=label)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)

    columns = gby_names + aggregate_names(aggr)
    sort_order = list(stacked.sort_order)
    for item in gby_items:
        source = date_bin_source(item)
        if source and source in sort_order and "date_bin" not in sort_order:
            sort_order.insert(sort_order.index(source) + 1, "date_bin")
    return pass_through(
        x, y, width, height, anchor, stacked, columns=columns or None, sort_order=sort_order
    )


@REGISTRY.register("ProjectionExec")
def layout_projection(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    expr = node.properties.get("expr") or node.properties.get("args")
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    items = bracket_items(expr)
    columns = [projection_alias(item) for item in items]
    lines: List[DetailLine] = []
    if items:
        shown = []
        for item in items:
            head = _AS_RE.split(item, maxsplit=1)[0]
            shown.append(function_name(head) or projection_alias(item))
        lines.append((", ".join(shown), None))
    elif expr:
        lines.append((bracket_content(expr) or expr, None))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked, columns=columns or None)


@REGISTRY.register("SortExec")
def layout_sort(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    keys = sort_columns(props.get("expr"))
    lines: List[DetailLine] = []
    if keys:
        lines.append((f"[{', '.join(keys)}]", None))
    if props.get("preserve_partitioning"):
        lines.append((f"preserve_partitioning={props['preserve_partitioning']}", None))
    limit = limit_text(props)
    if limit:
        lines.append((limit, None))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked, sort_order=keys)


@REGISTRY.register("SortPreservingMergeExec")
def layout_sort_preserving_merge(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Merges sorted partitions into one sorted stream."""
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    value = props.get("expr") or props.get("expression") or props.get("args")
    keys = [function_name(item) or column_name(item) for item in bracket_items(value)]
    lines: List[DetailLine] = []
    if keys:
        lines.append((f"[{', '.join(keys)}]", None))
    limit = limit_text(props)
    if limit:
        lines.append((limit, None))

    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return _single_output(x, y, width, height, anchor, stacked.bottom, stacked.columns, keys)


@REGISTRY.register("GlobalLimitExec")
def layout_global_limit(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    _require_children(node, 1)
    props = node.properties
    width = STANDARD_WIDTH
    height = ctx.config.node_height

    parts = [f"{key}={props[key]}" for key in ("skip", "fetch") if props.get(key)]
    lines: List[DetailLine] = [(", ".join(parts), None)] if parts else []
    anchor = _box_with_details(ctx, node, x, y, width, height, lines)
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    if stacked.total_arrows != 1:
        raise StructuralError(
            f"{node.operator} requires a single input stream, but its input has "
            f"{stacked.total_arrows}"
        )
    return _single_output(
        x, y, width, height, anchor, stacked.bottom, stacked.columns, stacked.sort_order
    )


@REGISTRY.register("LocalLimitExec")
def layout_local_limit(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    width = STANDARD_WIDTH
    height = ctx.config.node_height
    fetch = node.properties.get("fetch")
    anchor = _box_with_details(
        ctx, node, x, y, width, height, [(f"fetch={fetch}", None)] if fetch else []
    )
    stacked = stack_children(ctx, node, x, y, width, height, anchor)
    return pass_through(x, y, width, height, anchor, stacked)


# --- multi-input operators ------------------------------------------------


def _join_lines(props: Dict[str, str]) -> List[DetailLine]:
    lines: List[DetailLine] = []
    if props.get("join_type"):
        lines.append((f"join_type={props['join_type']}", None))
    if props.get("on"):
        lines.append((f"on={strip_indices(props['on'])}", None))
    return lines


def _layout_join_sides(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, width: float, height: float
) -> Tuple[NodeLayoutResult, NodeLayoutResult, float]:
    """Place the two inputs of a join to the lower left and lower right."""
    _require_children(node, 2)
    child_y = y + height + ctx.config.vertical_spacing
    spacing = ctx.config.horizontal_spacing
    left = ctx.layout(node.children[0], x - STANDARD_WIDTH - spacing, child_y)
    right = ctx.layout(node.children[1], x + width + spacing, child_y)
    return left, right, child_y


def _side_starts(side: NodeLayoutResult) -> List[float]:
    return distribute_central(max(1, side.output_arrow_count), side.x, side.width)


@REGISTRY.register("HashJoinExec")
def layout_hash_join(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Build side on the left, probe side on the right, both feeding the hash table.

    Output cardinality, positions and ordering follow the probe side.
    """
    _require_children(node, 2)
    session = ctx.session
    props = node.properties
    width = STANDARD_WIDTH
    height = JOIN_HEIGHT

    label = f"{node.operator}: {props['mode']}" if props.get("mode") else node.operator
    anchor = draw_operator_box(ctx, x, y, width, height, label)

    table_x = x + (width - HASH_TABLE_WIDTH) / 2
    table_y = y + HASH_TABLE_OFFSET
    table = elements.ellipse(
        session, table_x, table_y, HASH_TABLE_WIDTH, HASH_TABLE_HEIGHT, stroke_color=ORANGE
    )
    center_x = table_x + HASH_TABLE_WIDTH / 2
    center_y = table_y + HASH_TABLE_HEIGHT / 2
    elements.text(
        session,
        center_x - 35,
        center_y - 9.2,
        70,
        18.4,
        "HashTable",
        font_size=16,
        bold=True,
        align="center",
        vertical_align="middle",
        color=ORANGE,
        auto_resize=True,
        line_height=1.15,
    )
    draw_details(ctx, x, y + JOIN_DETAILS_OFFSET, width, _join_lines(props))

    build, probe, child_y = _layout_join_sides(ctx, node, x, y, width, height)
    label_y = (child_y + center_y) / 2
    for side, placement in ((build, "left"), (probe, "right")):
        segments: List[Segment] = []
        for start_x in _side_starts(side):
            end = ellipse_edge_point(
                start_x, child_y, center_x, center_y, HASH_TABLE_WIDTH, HASH_TABLE_HEIGHT
            )
            segments.append(((start_x, child_y), end))
        drawn = draw_arrows(ctx, segments, side.anchor_id, table["id"])
        starts = [start[0] for start, _ in drawn]
        anchor_x = min(starts) if placement == "left" else max(starts)
        draw_column_labels(
            ctx, side.output_columns, side.output_sort_order, label_y, anchor_x, side=placement
        )

    positions, count = output_arrow_positions(max(1, probe.output_arrow_count), x, width)
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=max(y + height, build.bottom, probe.bottom),
        anchor_id=anchor,
        output_arrow_count=count,
        output_arrow_positions=tuple(positions),
        output_columns=tuple(projection_columns(props.get("projection"))),
        output_sort_order=probe.output_sort_order,
    )


@REGISTRY.register("SortMergeJoinExec", "SortMergeJoin")
def layout_sort_merge_join(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Streams matching partitions of two sorted inputs pairwise.

    Both inputs must deliver the same number of streams.
    """
    _require_children(node, 2)
    props = node.properties
    width = STANDARD_WIDTH
    height = JOIN_HEIGHT
    anchor = draw_operator_box(ctx, x, y, width, height, node.operator)
    draw_details(ctx, x, y + JOIN_DETAILS_OFFSET, width, _join_lines(props))

    left, right, child_y = _layout_join_sides(ctx, node, x, y, width, height)
    left_count = max(1, left.output_arrow_count)
    right_count = max(1, right.output_arrow_count)
    if left_count != right_count:
        raise StructuralError(
            f"{node.operator} requires both inputs to have the same number of "
            f"partitions/streams, but left has {left_count} and right has {right_count}"
        )

    box_bottom = y + height
    ends = distribute_central(left_count, x, width)
    label_y = (child_y + box_bottom) / 2
    for side, placement in ((left, "left"), (right, "right")):
        segments: List[Segment] = [
            ((start, child_y), (end, box_bottom)) for start, end in zip(_side_starts(side), ends)
        ]
        drawn = draw_arrows(ctx, segments, side.anchor_id, anchor)
        starts = [start[0] for start, _ in drawn]
        anchor_x = min(starts) if placement == "left" else max(starts)
        draw_column_labels(
            ctx, side.output_columns, side.output_sort_order, label_y, anchor_x, side=placement
        )

    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=max(box_bottom, left.bottom, right.bottom),
        anchor_id=anchor,
        output_arrow_count=left_count,
        output_arrow_positions=tuple(ends),
        output_columns=_merge_columns(left.output_columns, right.output_columns),
        output_sort_order=tuple(join_keys(props.get("on"))),
    )


@REGISTRY.register("CrossJoinExec")
def layout_cross_join(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Cartesian product; left inputs land on the left half of the box, right on the right."""
    _require_children(node, 2)
    width = STANDARD_WIDTH
    height = JOIN_HEIGHT
    anchor = draw_operator_box(ctx, x, y, width, height, node.operator)

    left, right, child_y = _layout_join_sides(ctx, node, x, y, width, height)
    box_bottom = y + height
    label_y = (child_y + box_bottom) / 2
    middle = x + width / 2
    for side, (low, high) in ((left, (x, middle)), (right, (middle, x + width))):
        starts = _side_starts(side)
        ends = distribute_points(len(starts), low, high)
        segments: List[Segment] = [
            ((start, child_y), (end, box_bottom)) for start, end in zip(starts, ends)
        ]
        drawn = draw_arrows(ctx, segments, side.anchor_id, anchor)
        draw_column_labels(
            ctx,
            side.output_columns,
            side.output_sort_order,
            label_y,
            max(start[0] for start, _ in drawn),
        )

    count = max(max(1, left.output_arrow_count), max(1, right.output_arrow_count))
    positions, count = output_arrow_positions(count, x, width)
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=max(box_bottom, left.bottom, right.bottom),
        anchor_id=anchor,
        output_arrow_count=count,
        output_arrow_positions=tuple(positions),
        output_columns=_merge_columns(left.output_columns, right.output_columns),
    )


@REGISTRY.register("UnionExec")
def layout_union(
    ctx: LayoutContext, node: PlanNode, x: float, y: float, is_root: bool
) -> NodeLayoutResult:
    """Lays inputs out side by side, centered as a row under the union box.

    Children are drawn first at provisional positions, then everything they
    emitted is shifted so the row is centered before the arrows are drawn.
    """
    session = ctx.session
    config = ctx.config
    width = STANDARD_WIDTH
    height = config.node_height
    anchor = draw_operator_box(ctx, x, y, width, height, node.operator)

    spacing = config.horizontal_spacing * UNION_SPACING_RATIO
    child_y = y + height + config.vertical_spacing * CHILD_SPACING_RATIO
    mark = session.mark()
    results: List[NodeLayoutResult] = []
    cursor = x
    for child in node.children:
        result = ctx.layout(child, cursor, child_y)
        results.append(result)
        cursor += result.width + spacing

    if results:
        row_width = sum(r.width for r in results) + (len(results) - 1) * spacing
        shift = x + width / 2 - row_width / 2 - results[0].x
        if abs(shift) > 0.1:
            session.translate(mark, shift)
            results = [r.translated(shift) for r in results]

    counts = [max(1, r.output_arrow_count) for r in results]
    total = sum(counts)
    if total == 1:
        ends = [x + width / 2]
    elif total <= 4:
        ends = distribute_central(total, x, width)
    else:
        ends = distribute_points(total, x, x + width)

    box_bottom = y + height
    offset = 0
    for result, count in zip(results, counts):
        child_ends = ends[offset : offset + count]
        offset += count
        starts = distribute_points(count, result.x, result.x + result.width)
        segments: List[Segment] = [
            ((start, child_y), (end, box_bottom)) for start, end in zip(starts, child_ends)
        ]
        drawn = draw_arrows(ctx, segments, result.anchor_id, anchor)
        draw_column_labels(
            ctx,
            result.output_columns,
            result.output_sort_order,
            (child_y + box_bottom) / 2,
            max(end[0] for _, end in drawn),
        )

    positions, count = output_arrow_positions(total, x, width)
    first = results[0] if results else None
    return NodeLayoutResult(
        x=x,
        y=y,
        width=width,
        height=height,
        bottom=max([box_bottom] + [r.bottom for r in results]),
        anchor_id=anchor,
        output_arrow_count=count,
        output_arrow_positions=tuple(positions),
        output_columns=first.output_columns if first else (),
        output_sort_order=first.output_sort_order if first else (),
    )


__all__ = [
    "REGISTRY",
    "layout_aggregate",
    "layout_coalesce_batches",
    "layout_coalesce_partitions",
    "layout_cross_join",
    "layout_data_source",
    "layout_filter",
    "layout_global_limit",
    "layout_hash_join",
    "layout_local_limit",
    "layout_projection",
    "layout_repartition",
    "layout_sort",
    "layout_sort_merge_join",
    "layout_sort_preserving_merge",
    "layout_unimplemented",
    "layout_union",
]
