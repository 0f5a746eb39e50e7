"""
Coordinate conversion between the three spaces a highlight lives in.

- base space: logical CSS pixels at the page's natural size, origin top-left.
  This is the only space that is ever persisted.
- canvas space: physical pixels of the drawing surface (zoom and device
  pixel ratio applied), origin top-left.
- PDF space: points inside the PDF file, origin bottom-left.

Scaling is independent per axis; zoom and DPR may produce a non-uniform
scale. Everything here is a pure function.
"""

import logging
from typing import List, Optional

from .models import Highlight, Rect, Size

logger = logging.getLogger(__name__)

# Stored geometry exceeding its declared base size by more than this ratio
# was recorded before base_size was tracked reliably.
LEGACY_RATIO_THRESHOLD = 1.2


def _safe(value: float) -> float:
    return value if value else 1.0


def to_canvas(rect: Rect, base_size: Size, canvas_size: Size) -> Rect:
    """
    Convert a base-space rect to canvas space

    Args:
        rect: Rectangle in base space
        base_size: Logical page size the rect was captured at
        canvas_size: Current drawing surface size in physical pixels

    Returns:
        Rectangle in canvas space
    """
    sx = canvas_size.width / _safe(base_size.width)
    sy = canvas_size.height / _safe(base_size.height)
    return rect.scaled(sx, sy)


def to_base(rect: Rect, base_size: Size, canvas_size: Size) -> Rect:
    """Inverse of :func:`to_canvas`"""
    sx = base_size.width / _safe(canvas_size.width)
    sy = base_size.height / _safe(canvas_size.height)
    return rect.scaled(sx, sy)


def to_pdf_points(rect: Rect, base_size: Size, pdf_page_size: Size) -> Rect:
    """
    Convert a base-space rect (origin top-left) to PDF points (origin bottom-left)

    The returned rect's ``y`` is its lower edge in PDF space:
    ``pdf_y = page_height - (base_y + base_height) * scale_y``.
    """
    sx = pdf_page_size.width / _safe(base_size.width)
    sy = pdf_page_size.height / _safe(base_size.height)
    return Rect(
        rect.x * sx,
        pdf_page_size.height - (rect.y + rect.height) * sy,
        rect.width * sx,
        rect.height * sy,
    )


def from_pdf_points(rect: Rect, pdf_page_size: Size, base_size: Size) -> Rect:
    """Inverse of :func:`to_pdf_points`, undoing the y-flip"""
    sx = base_size.width / _safe(pdf_page_size.width)
    sy = base_size.height / _safe(pdf_page_size.height)
    y_top = pdf_page_size.height - (rect.y + rect.height)
    return Rect(rect.x * sx, y_top * sy, rect.width * sx, rect.height * sy)


def is_legacy_geometry(sample: Rect, base_size: Size,
                       threshold: float = LEGACY_RATIO_THRESHOLD) -> bool:
    """True when ``sample`` is larger than its declared base size by more than ``threshold``"""
    if not base_size.is_valid():
        return False
    return (sample.width / base_size.width > threshold or
            sample.height / base_size.height > threshold)


def effective_base_size(rects: List[Rect], base_size: Optional[Size], current_size: Size,
                        threshold: float = LEGACY_RATIO_THRESHOLD) -> Size:
    """
    Base size to scale stored geometry with.

    A missing or degenerate ``base_size`` is replaced with ``current_size``.
    So is one that the first stored rect overshoots by more than
    ``threshold``: such rows hold canvas-pixel geometry recorded before
    base_size was tracked. This is a heuristic; geometry that was wrong in a
    way the ratio does not reveal passes through unchanged.
    """
    if base_size is None or not base_size.is_valid():
        return current_size
    if rects and is_legacy_geometry(rects[0], base_size, threshold):
        logger.debug(f"Legacy geometry: rect {rects[0]} exceeds base size {base_size}, "
                     f"using current size {current_size}")
        return current_size
    return base_size


def normalize_base_size(highlight: Highlight, current_size: Size,
                        threshold: float = LEGACY_RATIO_THRESHOLD) -> Highlight:
    """Copy of ``highlight`` whose base_size has been corrected by :func:`effective_base_size`"""
    corrected = effective_base_size(highlight.rects, highlight.base_size, current_size, threshold)
    if corrected == highlight.base_size:
        return highlight
    return highlight.with_changes(base_size=corrected)


def highlight_rects_to_canvas(highlight: Highlight, canvas_size: Size,
                              threshold: float = LEGACY_RATIO_THRESHOLD) -> List[Rect]:
    """All of a highlight's rects in canvas space, with legacy correction applied"""
    base = effective_base_size(highlight.rects, highlight.base_size, canvas_size, threshold)
    return [to_canvas(r, base, canvas_size) for r in highlight.rects]
