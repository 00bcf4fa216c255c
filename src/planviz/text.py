"""Text width estimation for labels placed next to arrows."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

NARROW_CHARS = frozenset("iltr ,.")
WIDE_CHARS = frozenset("mwMW_")


def estimate_text_width(text: str, font_size: float) -> float:
    width = 0.0
    for ch in text:
        if ch in NARROW_CHARS:
            width += font_size * 0.32
        elif ch in WIDE_CHARS:
            width += font_size * 0.8
        elif "A" <= ch <= "Z":
            width += font_size * 0.7
        else:
            width += font_size * 0.55
    return width


class TextMeasurer:
    """Measures label widths with a TrueType font, caching one font per size.

    Without a configured font file (or when it cannot be opened) widths come
    from :func:`estimate_text_width`, which keeps layouts deterministic.
    """

    def __init__(self, font_path: Optional[str] = None) -> None:
        self.font_path = font_path
        self._font_cache: Dict[Tuple[str, int], Optional["ImageFont.FreeTypeFont"]] = {}

    def font(self, size: float) -> Optional["ImageFont.FreeTypeFont"]:
        if not self.font_path:
            return None
        key_size = max(1, int(round(size)))
        cache_key = (self.font_path, key_size)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        font: Optional["ImageFont.FreeTypeFont"] = None
        path = Path(self.font_path).expanduser()
        try:
            font = ImageFont.truetype(str(path), key_size)
        except OSError as exc:
            logger.debug("could not load label font %s: %s", path, exc)
            font = None
        self._font_cache[cache_key] = font
        return font

    def measure(self, text: str, size: float) -> float:
        font = self.font(size)
        if font is None:
            return estimate_text_width(text, size)
        return float(font.getlength(text))


__all__ = ["TextMeasurer", "estimate_text_width"]
