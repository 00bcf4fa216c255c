"""Excalidraw element construction and the per-diagram generation session."""
from __future__ import annotations

import random
import time
from typing import Any, Dict, List, Optional

from .config import DiagramConfig
from .text import TextMeasurer

FONT_FAMILY_NORMAL = 6
FONT_FAMILY_BOLD = 7
LINE_HEIGHT = 1.25

Element = Dict[str, Any]


class GenerationSession:
    """Mutable state for a single ``generate`` call.

    Holds the element buffer in z-order, the id and index counters and a
    seeded RNG for the Excalidraw ``seed``/``versionNonce`` fields. A new
    session is created per call so concurrent generations never share
    counters.
    """

    def __init__(
        self,
        config: DiagramConfig,
        *,
        timestamp: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.config = config
        self.elements: List[Element] = []
        self.measurer = TextMeasurer(config.label_font)
        self._by_id: Dict[str, Element] = {}
        self._timestamp = int(time.time() * 1000) if timestamp is None else timestamp
        self._random = random.Random(seed)
        self._id_counter = 0
        self._index_counter = 0

    def next_id(self) -> str:
        self._id_counter += 1
        return f"element-{self._timestamp}-{self._id_counter}"

    def next_index(self) -> str:
        index = f"c0g{self._index_counter:X}"
        self._index_counter += 1
        return index

    def random_seed(self) -> int:
        return self._random.randrange(1_000_000)

    def add(self, element: Element) -> Element:
        self.elements.append(element)
        self._by_id[element["id"]] = element
        return element

    def get(self, element_id: str) -> Element:
        try:
            return self._by_id[element_id]
        except KeyError:
            raise ValueError(f"unknown element id {element_id!r}") from None

    def mark(self) -> int:
        """Position in the buffer; pass to :meth:`translate` to move what follows."""
        return len(self.elements)

    def translate(self, mark: int, dx: float) -> None:
        """Shift every element emitted since ``mark`` horizontally.

        Arrow points are relative to the arrow's own x, so only ``x`` moves.
        """
        for element in self.elements[mark:]:
            element["x"] += dx

    def measure(self, text: str, font_size: float) -> float:
        return self.measurer.measure(text, font_size)

    def new_element(self, kind: str, x: float, y: float, width: float, height: float) -> Element:
        return {
            "id": self.next_id(),
            "type": kind,
            "x": x,
            "y": y,
            "width": width,
            "height": height,
            "angle": 0,
            "strokeColor": self.config.node_color,
            "backgroundColor": "transparent",
            "fillStyle": "solid",
            "strokeWidth": 1,
            "strokeStyle": "solid",
            "roughness": 0,
            "opacity": 100,
            "groupIds": [],
            "frameId": None,
            "index": self.next_index(),
            "roundness": None,
            "seed": self.random_seed(),
            "version": 1,
            "versionNonce": self.random_seed(),
            "isDeleted": False,
            "boundElements": [],
            "updated": self._timestamp,
            "link": None,
            "locked": False,
        }


def rectangle(
    session: GenerationSession,
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    stroke_color: Optional[str] = None,
    stroke_style: str = "solid",
) -> Element:
    element = session.new_element("rectangle", x, y, width, height)
    element.update(
        {
            "strokeColor": stroke_color or session.config.node_color,
            "strokeStyle": stroke_style,
            "roundness": {"type": 3},
            "version": 7,
        }
    )
    return session.add(element)


def ellipse(
    session: GenerationSession,
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    stroke_color: Optional[str] = None,
    stroke_style: str = "solid",
) -> Element:
    element = session.new_element("ellipse", x, y, width, height)
    element.update(
        {
            "strokeColor": stroke_color or session.config.node_color,
            "strokeStyle": stroke_style,
            "roundness": {"type": 2},
        }
    )
    return session.add(element)


def text(
    session: GenerationSession,
    x: float,
    y: float,
    width: float,
    height: float,
    value: str,
    *,
    font_size: float,
    bold: bool = False,
    align: str = "left",
    vertical_align: str = "top",
    color: Optional[str] = None,
    container_id: Optional[str] = None,
    auto_resize: bool = False,
    line_height: float = LINE_HEIGHT,
    group_id: Optional[str] = None,
) -> Element:
    element = session.new_element("text", x, y, width, height)
    font_family = FONT_FAMILY_BOLD if bold else FONT_FAMILY_NORMAL
    element.update(
        {
            "strokeColor": color or session.config.node_color,
            "version": 3 if (align == "center" and bold and container_id) else 1,
            "text": value,
            "fontSize": font_size,
            "fontFamily": font_family,
            "textAlign": align,
            "verticalAlign": vertical_align,
            "baseline": font_size,
            "containerId": container_id,
            "originalText": value,
            "autoResize": auto_resize,
            "lineHeight": line_height,
        }
    )
    if group_id:
        element["groupIds"] = [group_id]
    return session.add(element)


def arrow(
    session: GenerationSession,
    start_x: float,
    start_y: float,
    end_x: float,
    end_y: float,
    *,
    start_id: str,
    end_id: str,
) -> Element:
    """Arrow from a child shape to a parent shape, bound at both ends.

    Both endpoints must already exist in the session; each gets the arrow
    recorded in its ``boundElements``.
    """
    source = session.get(start_id)
    target = session.get(end_id)
    dx = end_x - start_x
    dy = end_y - start_y
    element = session.new_element("arrow", start_x, start_y, abs(dx), abs(dy))
    element.update(
        {
            "strokeColor": session.config.arrow_color,
            "roundness": {"type": 2},
            "points": [[0, 0], [dx, dy]],
            "lastCommittedPoint": None,
            "startBinding": {"elementId": start_id, "focus": 0, "gap": 0},
            "endBinding": {"elementId": end_id, "focus": 0, "gap": 0},
            "startArrowhead": None,
            "endArrowhead": "arrow",
            "elbowed": False,
        }
    )
    session.add(element)
    _bind(source, element["id"])
    _bind(target, element["id"])
    return element


def _bind(shape: Element, arrow_id: str) -> None:
    bound = shape.setdefault("boundElements", [])
    if not any(entry.get("id") == arrow_id for entry in bound):
        bound.append({"id": arrow_id, "type": "arrow"})


__all__ = [
    "Element",
    "FONT_FAMILY_BOLD",
    "FONT_FAMILY_NORMAL",
    "GenerationSession",
    "arrow",
    "ellipse",
    "rectangle",
    "text",
]
