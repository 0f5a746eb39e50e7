"""
Highlight color palette.

The palette is process-wide static configuration: a read-only mapping from
color name to its hex value and fill opacity.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class HighlightColor:
    """A named palette entry"""
    name: str
    value: str
    opacity: float

    @property
    def rgb(self) -> Tuple[float, float, float]:
        return hex_to_rgb01(self.value)


PALETTE: Mapping[str, HighlightColor] = MappingProxyType({
    "yellow": HighlightColor("yellow", "#FFFF00", 0.4),
    "green": HighlightColor("green", "#00FF00", 0.3),
    "blue": HighlightColor("blue", "#00BFFF", 0.3),
    "pink": HighlightColor("pink", "#FF69B4", 0.3),
    "orange": HighlightColor("orange", "#FFA500", 0.4),
})

DEFAULT_COLOR = PALETTE["yellow"].value
DEFAULT_OPACITY = 0.3


def hex_to_rgb01(value: str) -> Tuple[float, float, float]:
    """
    Convert a ``#RRGGBB`` string to an RGB triple in the 0..1 range

    Raises:
        ValueError: if the string is not a 6-digit hex color
    """
    digits = value.lstrip("#")
    if len(digits) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    r = int(digits[0:2], 16) / 255
    g = int(digits[2:4], 16) / 255
    b = int(digits[4:6], 16) / 255
    return r, g, b


def rgb01_to_hex(rgb: Sequence[float]) -> str:
    """Convert an RGB triple in the 0..1 range to an upper-case ``#RRGGBB`` string"""
    def to255(channel: float) -> int:
        return max(0, min(255, round(float(channel) * 255)))

    r, g, b = (to255(c) for c in rgb[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


def normalize_color(value: Optional[str]) -> str:
    """Return the upper-case hex form of a color, or the default color when empty"""
    if not value:
        return DEFAULT_COLOR
    if value.lower() in PALETTE:
        return PALETTE[value.lower()].value
    return "#" + value.lstrip("#").upper()


def find_color(value: Optional[str]) -> Optional[HighlightColor]:
    """Look up a palette entry by hex value or by name"""
    if not value:
        return None
    normalized = normalize_color(value)
    for color in PALETTE.values():
        if color.value == normalized:
            return color
    return None


def opacity_for(value: Optional[str], default: float = DEFAULT_OPACITY) -> float:
    """Fill opacity of a palette color, ``default`` for colors outside the palette"""
    color = find_color(value)
    return color.opacity if color else default


def nearest_palette_color(rgb: Sequence[float]) -> HighlightColor:
    """Snap an RGB triple (0..1) to the closest palette entry (squared RGB distance)"""
    r, g, b = (float(c) for c in rgb[:3])

    def distance(color: HighlightColor) -> float:
        cr, cg, cb = color.rgb
        return (cr - r) ** 2 + (cg - g) ** 2 + (cb - b) ** 2

    return min(PALETTE.values(), key=distance)
