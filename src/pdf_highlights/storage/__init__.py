"""Local persistence: SQLite store, highlight repository, sync queue, bookmarks"""

from .bookmark_repository import BookmarkRepository
from .highlight_repository import HighlightRepository
from .local_store import LocalStore
from .sync_queue import SyncQueue

__all__ = ["BookmarkRepository", "HighlightRepository", "LocalStore", "SyncQueue"]
