"""
Page surface abstraction.

The overlay never looks at a rendering toolkit directly. A host hands it a
PageSurface that reports the physical canvas size, the page's client
rectangle (CSS pixels, viewport origin) and notifies listeners on resize.
"""

import logging
from typing import Callable, List, Optional

from ..core.models import Rect, Size

logger = logging.getLogger(__name__)

ResizeListener = Callable[[Size], None]


class PageSurface:
    """Base class for the drawing surface of one rendered page"""

    def __init__(self):
        self._listeners: List[ResizeListener] = []

    def size(self) -> Size:
        """Canvas size in physical pixels"""
        raise NotImplementedError

    def bounds(self) -> Rect:
        """Page rectangle in client (viewport) CSS pixels"""
        raise NotImplementedError

    def subscribe(self, listener: ResizeListener) -> Callable[[], None]:
        """
        Register a resize listener

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify_resize(self) -> None:
        size = self.size()
        for listener in list(self._listeners):
            listener(size)


class StaticPageSurface(PageSurface):
    """
    In-memory surface with explicit dimensions.

    ``width``/``height`` are the page's displayed CSS size; the canvas is
    that size times the device pixel ratio.
    """

    def __init__(self, width: float, height: float, left: float = 0.0, top: float = 0.0,
                 device_pixel_ratio: float = 1.0):
        super().__init__()
        self.width = width
        self.height = height
        self.left = left
        self.top = top
        self.device_pixel_ratio = device_pixel_ratio

    def size(self) -> Size:
        return Size(self.width * self.device_pixel_ratio, self.height * self.device_pixel_ratio)

    def bounds(self) -> Rect:
        return Rect(self.left, self.top, self.width, self.height)

    def resize(self, width: float, height: float,
               device_pixel_ratio: Optional[float] = None) -> None:
        """Change the displayed size (zoom) and/or DPR and notify listeners"""
        self.width = width
        self.height = height
        if device_pixel_ratio is not None:
            self.device_pixel_ratio = device_pixel_ratio
        logger.debug(f"Page surface resized to {self.size()}")
        self.notify_resize()
