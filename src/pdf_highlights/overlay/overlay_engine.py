"""
Overlay Engine Module

Per-page interaction state on top of a rendered PDF page: area drags, text
selection capture, hit-testing for deletion and the list of shapes to
paint. Input coordinates are canvas pixels (client CSS pixels for text
selection rectangles); everything handed to the repository is base space.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.coordinate_transform import (
    LEGACY_RATIO_THRESHOLD,
    effective_base_size,
    highlight_rects_to_canvas,
    to_base,
)
from ..core.models import Highlight, HighlightKind, Rect, Size
from ..core.palette import DEFAULT_COLOR, normalize_color, opacity_for
from ..storage.highlight_repository import HighlightRepository
from .page_surface import PageSurface

logger = logging.getLogger(__name__)

HighlightCallback = Callable[[Highlight], None]

# Fill opacity of the rectangle being dragged
DRAG_OPACITY = 0.2


class OverlayMode(str, Enum):
    TEXT = "text"
    AREA = "area"


@dataclass(frozen=True)
class DrawOp:
    """One shape to paint on the canvas"""
    rect: Rect
    color: str
    opacity: float
    stroke: bool = False
    highlight_id: Optional[str] = None


class OverlayEngine:
    """
    Interaction state of a single page.

    The page's highlight list and the in-progress drag rectangle belong to
    this instance only; other pages see changes through the shared
    repository.
    """

    def __init__(self, page: int, owner_key: str, repository: HighlightRepository,
                 surface: PageSurface, base_size: Size,
                 mode: OverlayMode = OverlayMode.AREA, color: str = DEFAULT_COLOR,
                 min_area_size: float = 10.0,
                 legacy_threshold: float = LEGACY_RATIO_THRESHOLD,
                 on_added: Optional[HighlightCallback] = None,
                 on_deleted: Optional[HighlightCallback] = None,
                 confirm_delete: Optional[Callable[[Highlight], bool]] = None,
                 clear_selection: Optional[Callable[[], None]] = None):
        self.page = page
        self.owner_key = owner_key
        self.repository = repository
        self.surface = surface
        self.base_size = base_size
        self.mode = OverlayMode(mode)
        self.color = normalize_color(color)
        self.min_area_size = min_area_size
        self.legacy_threshold = legacy_threshold
        self.on_added = on_added
        self.on_deleted = on_deleted
        self.confirm_delete = confirm_delete
        self.clear_selection = clear_selection

        self.is_drawing = False
        self.draw_start: Optional[Tuple[float, float]] = None
        self.draw_rect: Optional[Rect] = None
        self.selected: Optional[Highlight] = None
        self.highlights: List[Highlight] = []

        self._unsubscribe = surface.subscribe(self._on_resize)
        self.refresh()

    def refresh(self) -> List[Highlight]:
        """Reload this page's highlights from the repository"""
        self.highlights = self.repository.list_by_page(self.owner_key, self.page)
        return self.highlights

    def detach(self) -> None:
        """Stop listening to the surface"""
        self._unsubscribe()

    def set_mode(self, mode: OverlayMode) -> None:
        self.cancel_drawing()
        self.mode = OverlayMode(mode)

    def set_color(self, color: str) -> None:
        self.color = normalize_color(color)

    def _on_resize(self, size: Size) -> None:
        # stored geometry is base space; only the live drag is in canvas pixels
        self.cancel_drawing()
        self.refresh()

    # -- area mode -----------------------------------------------------------------

    def pointer_down(self, x: float, y: float) -> bool:
        """Start a drag; ignored outside area mode"""
        if self.mode is not OverlayMode.AREA:
            return False
        self.is_drawing = True
        self.draw_start = (x, y)
        self.draw_rect = Rect(x, y, 0, 0)
        return True

    def pointer_move(self, x: float, y: float) -> Optional[Rect]:
        if not self.is_drawing or self.draw_start is None:
            return None
        self.draw_rect = Rect.from_points(self.draw_start[0], self.draw_start[1], x, y)
        return self.draw_rect

    def pointer_up(self, x: float, y: float) -> Optional[Highlight]:
        """
        Finish a drag and store the rectangle as an area highlight

        Args:
            x: Pointer x in canvas pixels
            y: Pointer y in canvas pixels

        Returns:
            The stored highlight, or None when the drag was too small,
            not in progress, or a duplicate
        """
        if not self.is_drawing or self.draw_start is None:
            return None
        canvas_rect = Rect.from_points(self.draw_start[0], self.draw_start[1], x, y)
        self.cancel_drawing()

        if canvas_rect.width < self.min_area_size or canvas_rect.height < self.min_area_size:
            logger.debug(f"Ignoring drag of {canvas_rect.width:.0f}x{canvas_rect.height:.0f} px")
            return None

        base_rect = to_base(canvas_rect, self.base_size, self.surface.size())
        highlight = Highlight.create(
            owner_key=self.owner_key,
            page=self.page,
            kind=HighlightKind.AREA,
            rects=[base_rect],
            color=self.color,
            base_size=self.base_size,
        )
        return self._commit(highlight)

    def cancel_drawing(self) -> None:
        self.is_drawing = False
        self.draw_start = None
        self.draw_rect = None

    # -- text mode -----------------------------------------------------------------

    def text_selection(self, text: str, client_rects: Sequence[Rect]) -> Optional[Highlight]:
        """
        Store a native text selection as one multi-rectangle highlight.

        Only rectangles whose center lies on this page are kept; they are
        translated from client CSS pixels to page-relative canvas pixels
        and then to base space.

        Returns:
            The stored highlight, or None when nothing on this page was selected
        """
        if self.mode is not OverlayMode.TEXT or not text or not text.strip():
            return None

        bounds = self.surface.bounds()
        if not bounds.width or not bounds.height:
            return None
        canvas = self.surface.size()
        sx = canvas.width / bounds.width
        sy = canvas.height / bounds.height

        base_rects = []
        for r in client_rects:
            if r.width <= 0 or r.height <= 0:
                continue
            if not bounds.contains(r.x + r.width / 2, r.y + r.height / 2):
                continue
            canvas_rect = Rect((r.x - bounds.x) * sx, (r.y - bounds.y) * sy,
                               r.width * sx, r.height * sy)
            base_rects.append(to_base(canvas_rect, self.base_size, canvas))

        if not base_rects:
            return None

        highlight = Highlight.create(
            owner_key=self.owner_key,
            page=self.page,
            kind=HighlightKind.TEXT,
            rects=base_rects,
            color=self.color,
            base_size=self.base_size,
            text=text.strip(),
        )
        stored = self._commit(highlight)
        if self.clear_selection:
            self.clear_selection()
        return stored

    def _commit(self, highlight: Highlight) -> Optional[Highlight]:
        stored = self.repository.add(highlight, on_added=self.on_added)
        self.refresh()
        return stored

    # -- deletion ------------------------------------------------------------------

    def hit_test(self, x: float, y: float) -> Optional[Highlight]:
        """Topmost highlight under a canvas point, or None"""
        canvas = self.surface.size()
        for highlight in reversed(self.highlights):
            base = effective_base_size(highlight.rects, highlight.base_size, canvas,
                                       self.legacy_threshold)
            point = to_base(Rect(x, y, 0, 0), base, canvas)
            if any(r.contains(point.x, point.y) for r in highlight.rects):
                return highlight
        return None

    def context_menu(self, x: float, y: float) -> Optional[Highlight]:
        """
        Delete the highlight under a right-click, after confirmation

        Returns:
            The deleted highlight, or None if nothing was hit or the user declined
        """
        target = self.hit_test(x, y)
        if target is None:
            return None
        self.selected = target
        if self.confirm_delete and not self.confirm_delete(target):
            self.selected = None
            return None

        self.selected = None
        # stored row carries a remote id assigned after the last refresh
        target = self.repository.get(target.id) or target
        if not self.repository.remove(target.id):
            self.refresh()
            return None
        self.refresh()
        if self.on_deleted:
            self.on_deleted(target)
        return target

    def key_down(self, key: str) -> bool:
        """Escape cancels a drag and clears the selection; returns True if handled"""
        if key != "Escape":
            return False
        self.cancel_drawing()
        self.selected = None
        if self.clear_selection:
            self.clear_selection()
        return True

    # -- painting ------------------------------------------------------------------

    def render(self) -> List[DrawOp]:
        """Shapes to paint, committed highlights first, live drag rectangle last"""
        canvas = self.surface.size()
        ops = []
        for highlight in self.highlights:
            opacity = opacity_for(highlight.color)
            stroke = highlight.kind is HighlightKind.AREA
            for rect in highlight_rects_to_canvas(highlight, canvas, self.legacy_threshold):
                ops.append(DrawOp(rect, highlight.color, opacity, stroke, highlight.id))
        if self.is_drawing and self.draw_rect is not None:
            ops.append(DrawOp(self.draw_rect, self.color, DRAG_OPACITY, stroke=True))
        return ops
