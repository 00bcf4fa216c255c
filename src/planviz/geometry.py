"""Arrow distribution and shape intersection helpers.

All functions here are pure; they only compute x positions or points and
never touch the element buffer.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

MAX_ARROWS_BEFORE_ELLIPSIS = 8
ARROWS_BEFORE_ELLIPSIS = 2
ARROWS_AFTER_ELLIPSIS = 2
MIN_ARROW_SPACING = 20.0
CENTRAL_REGION_RATIO = 0.6

Point = Tuple[float, float]


def distribute_points(count: int, left: float, right: float) -> List[float]:
    """Spread ``count`` x positions over ``[left, right]``.

    One position sits in the middle, two sit exactly on the edges and more
    are evenly spaced edge to edge.
    """
    if count <= 0:
        return []
    if count == 1:
        return [(left + right) / 2]
    if count == 2:
        return [left, right]
    spacing = (right - left) / (count - 1)
    return [left + i * spacing for i in range(count)]


def central_region(x: float, width: float, ratio: float = CENTRAL_REGION_RATIO) -> Tuple[float, float]:
    region = width * ratio
    left = x + (width - region) / 2
    return left, left + region


def distribute_central(count: int, x: float, width: float) -> List[float]:
    left, right = central_region(x, width)
    return distribute_points(count, left, right)


def output_arrow_positions(total: int, x: float, width: float) -> Tuple[List[float], int]:
    """Attachment points on a box's bottom edge for ``total`` incoming arrows.

    Returns ``(positions, total)``. Above the ellipsis threshold only the
    2 + 2 visible arrows get positions, one pair per half of the region.
    """
    collapsed = total > MAX_ARROWS_BEFORE_ELLIPSIS
    count = ARROWS_BEFORE_ELLIPSIS + ARROWS_AFTER_ELLIPSIS if collapsed else total
    if count <= 0:
        return [], total
    if count == 1:
        return [x + width / 2], total

    if count <= ARROWS_BEFORE_ELLIPSIS + ARROWS_AFTER_ELLIPSIS:
        left, right = central_region(x, width)
    else:
        left, right = x, x + width

    if collapsed:
        middle = left + (right - left) / 2
        positions = distribute_points(ARROWS_BEFORE_ELLIPSIS, left, middle)
        positions += distribute_points(ARROWS_AFTER_ELLIPSIS, middle, right)
        return positions, total
    return distribute_points(count, left, right), total


@dataclass(frozen=True)
class EllipsisSplit:
    positions: Tuple[float, ...]
    collapsed: bool
    ellipsis_x: float = 0.0


def _cluster(count: int, start: float, width: float) -> List[float]:
    if count <= 0:
        return []
    if count == 1:
        return [start + width / 2]
    needed = (count - 1) * MIN_ARROW_SPACING
    if needed <= width:
        first = start + (width - needed) / 2
        return [first + i * MIN_ARROW_SPACING for i in range(count)]
    spacing = width / (count - 1)
    return [start + i * spacing for i in range(count)]


def ellipsis_split(count: int, positions: Sequence[float]) -> EllipsisSplit:
    """Collapse a bundle of ``count`` vertical arrows to 2 + 2 around a glyph.

    The visible arrows are packed into the central 60% of the span covered
    by ``positions``; bundles at or below the threshold are returned as is.
    """
    if count <= MAX_ARROWS_BEFORE_ELLIPSIS or not positions:
        return EllipsisSplit(tuple(positions), False)

    low, high = min(positions), max(positions)
    span = high - low
    region = span * CENTRAL_REGION_RATIO
    region_left = low + (span - region) / 2
    half = region / 2
    ellipsis_x = region_left + half

    shown = _cluster(ARROWS_BEFORE_ELLIPSIS, region_left, half)
    shown += _cluster(ARROWS_AFTER_ELLIPSIS, ellipsis_x, half)
    return EllipsisSplit(tuple(shown), True, ellipsis_x)


def ellipse_edge_point(
    px: float, py: float, cx: float, cy: float, width: float, height: float
) -> Point:
    """Point where the segment from ``(px, py)`` to the ellipse center crosses its boundary."""
    dx = px - cx
    dy = py - cy
    length = math.hypot(dx, dy)
    if length == 0:
        return cx, cy
    ux = dx / length
    uy = dy / length
    a = width / 2
    b = height / 2
    t = 1 / math.sqrt((ux * ux) / (a * a) + (uy * uy) / (b * b))
    return cx + t * ux, cy + t * uy


__all__ = [
    "MAX_ARROWS_BEFORE_ELLIPSIS",
    "ARROWS_BEFORE_ELLIPSIS",
    "ARROWS_AFTER_ELLIPSIS",
    "MIN_ARROW_SPACING",
    "CENTRAL_REGION_RATIO",
    "EllipsisSplit",
    "central_region",
    "distribute_central",
    "distribute_points",
    "ellipse_edge_point",
    "ellipsis_split",
    "output_arrow_positions",
]
