"""Highlight entities, palette and coordinate conversion"""

from .models import (
    EPHEMERAL_OWNER,
    Bookmark,
    Highlight,
    HighlightKind,
    Rect,
    Size,
    SyncAction,
    SyncQueueItem,
    SyncStatus,
    dedup_signature,
)
from .palette import PALETTE, HighlightColor

__all__ = [
    "EPHEMERAL_OWNER",
    "Bookmark",
    "Highlight",
    "HighlightColor",
    "HighlightKind",
    "PALETTE",
    "Rect",
    "Size",
    "SyncAction",
    "SyncQueueItem",
    "SyncStatus",
    "dedup_signature",
]
