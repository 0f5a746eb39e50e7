"""Per-page overlay: page surface abstraction and interaction engine"""

from .overlay_engine import DrawOp, OverlayEngine, OverlayMode
from .page_surface import PageSurface, StaticPageSurface

__all__ = ["DrawOp", "OverlayEngine", "OverlayMode", "PageSurface", "StaticPageSurface"]
