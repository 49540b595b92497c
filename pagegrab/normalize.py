"""Page geometry parsing and encoder-safe size corrections.

Everything in this module is pure so it can be exercised against plain
style strings.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

CANONICAL_WIDTH = 1191
DEFAULT_RASTER_HEIGHT = 1684
# A4 at 96 CSS pixels per inch.
DEFAULT_VECTOR_WIDTH = 794
DEFAULT_VECTOR_HEIGHT = 1123

_DIMENSION_PATTERN = re.compile(
    r"(?<![\w-])(width|height)\s*:\s*(\d+(?:\.\d+)?)\s*px",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PageSize:
    width: int
    height: int

    @property
    def css(self) -> Tuple[str, str]:
        return f"{self.width}px", f"{self.height}px"


def even_height(height: int) -> int:
    """Round an odd height up by one pixel; even heights are returned as-is."""
    return height + 1 if height % 2 else height


def parse_style_dimensions(style: Optional[str]) -> Optional[Tuple[int, int]]:
    """Extract pixel ``width`` and ``height`` from an inline style attribute.

    Returns ``None`` unless both are declared. Prefixed properties such as
    ``max-width`` are ignored.
    """
    if not style:
        return None
    found = {}
    for name, value in _DIMENSION_PATTERN.findall(style):
        found.setdefault(name.lower(), int(float(value)))
    if "width" not in found or "height" not in found:
        return None
    return found["width"], found["height"]


def vector_page_size(
    style: Optional[str],
    default_width: int = DEFAULT_VECTOR_WIDTH,
    default_height: int = DEFAULT_VECTOR_HEIGHT,
) -> PageSize:
    """Size used when printing a single page to PDF."""
    parsed = parse_style_dimensions(style)
    width, height = parsed if parsed and parsed[0] > 0 and parsed[1] > 0 else (default_width, default_height)
    return PageSize(width=width, height=even_height(height))


def scaled_height(width: int, height: int, canonical_width: int = CANONICAL_WIDTH) -> int:
    """Height that keeps the ``width:height`` ratio at ``canonical_width``."""
    if width <= 0:
        raise ValueError("width must be positive")
    return math.ceil(canonical_width * height / width)


def raster_viewport(
    style: Optional[str],
    canonical_width: int = CANONICAL_WIDTH,
    default_height: int = DEFAULT_RASTER_HEIGHT,
) -> PageSize:
    """Viewport for screenshotting one page at the canonical width."""
    parsed = parse_style_dimensions(style)
    height = default_height
    if parsed and parsed[0] > 0:
        height = scaled_height(parsed[0], parsed[1], canonical_width)
    return PageSize(width=canonical_width, height=even_height(height))
