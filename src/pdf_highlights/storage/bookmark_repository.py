"""Page bookmarks kept next to the highlights of a document"""

import logging
from typing import List

from ..core.models import Bookmark
from .local_store import LocalStore

logger = logging.getLogger(__name__)


class BookmarkRepository:

    def __init__(self, store: LocalStore):
        self.store = store

    def add(self, bookmark: Bookmark) -> Bookmark:
        self.store.execute(
            "INSERT INTO bookmarks (id, owner_key, page, title, created_at) VALUES (?, ?, ?, ?, ?)",
            (bookmark.id, bookmark.owner_key, bookmark.page, bookmark.title, bookmark.created_at),
        )
        logger.info(f"Added bookmark '{bookmark.title}' for page {bookmark.page}")
        return bookmark

    def list_by_owner(self, owner_key: str) -> List[Bookmark]:
        """Bookmarks ordered by page, then creation time"""
        rows = self.store.fetch_all(
            "SELECT id, owner_key, page, title, created_at FROM bookmarks "
            "WHERE owner_key = ? ORDER BY page, created_at",
            (owner_key,),
        )
        return [Bookmark(**dict(row)) for row in rows]

    def remove(self, bookmark_id: str) -> bool:
        return bool(self.store.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,)))
