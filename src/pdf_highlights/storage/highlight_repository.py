"""
Highlight Repository Module

CRUD and indexed lookup of highlights in the local store. The repository
owns deduplication: a page never holds two highlights with the same
dedup signature.
"""

import json
import logging
import sqlite3
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.models import (
    Highlight,
    HighlightKind,
    Rect,
    Size,
    dedup_signature,
)
from .local_store import LocalStore

logger = logging.getLogger(__name__)

HighlightCallback = Callable[[Highlight], None]

_COLUMNS = (
    "id, owner_key, page, kind, rects, color, text, base_width, base_height, "
    "remote_id, created_at, synced, geometry_version"
)


def _row_to_highlight(row: sqlite3.Row) -> Highlight:
    base_size = None
    if row["base_width"] is not None and row["base_height"] is not None:
        base_size = Size(row["base_width"], row["base_height"])
    return Highlight(
        id=row["id"],
        owner_key=row["owner_key"],
        page=row["page"],
        kind=HighlightKind(row["kind"]),
        rects=[Rect.from_dict(r) for r in json.loads(row["rects"])],
        color=row["color"],
        base_size=base_size,
        text=row["text"] or "",
        remote_id=row["remote_id"],
        created_at=row["created_at"],
        synced=bool(row["synced"]),
        geometry_version=row["geometry_version"],
    )


def _highlight_params(highlight: Highlight) -> tuple:
    base = highlight.base_size
    return (
        highlight.id,
        highlight.owner_key,
        highlight.page,
        highlight.kind.value,
        json.dumps([r.to_dict() for r in highlight.rects]),
        highlight.color,
        highlight.text or "",
        base.width if base else None,
        base.height if base else None,
        highlight.remote_id,
        highlight.created_at,
        int(highlight.synced),
        highlight.geometry_version,
    )


def keep_most_recent(highlights: Iterable[Highlight]) -> List[Highlight]:
    """
    Collapse duplicates, keeping the most recently created highlight of each
    signature. The result is ordered oldest first, so the last element is
    the topmost one when drawn.
    """
    newest: Dict[str, Highlight] = {}
    for h in highlights:
        sig = dedup_signature(h)
        current = newest.get(sig)
        if current is None or h.created_at >= current.created_at:
            newest[sig] = h
    return sorted(newest.values(), key=lambda h: (h.created_at, h.id))


class HighlightRepository:
    """Highlights persisted in the local store, indexed by owner and page"""

    def __init__(self, store: LocalStore):
        self.store = store

    def get(self, highlight_id: str) -> Optional[Highlight]:
        row = self.store.fetch_one(
            f"SELECT {_COLUMNS} FROM highlights WHERE id = ?", (highlight_id,)
        )
        return _row_to_highlight(row) if row else None

    def list_by_owner(self, owner_key: str) -> List[Highlight]:
        """All highlights of a document ordered by page, then creation time"""
        rows = self.store.fetch_all(
            f"SELECT {_COLUMNS} FROM highlights WHERE owner_key = ? "
            f"ORDER BY page, created_at, id",
            (owner_key,),
        )
        return [_row_to_highlight(r) for r in rows]

    def list_by_page(self, owner_key: str, page: int) -> List[Highlight]:
        """
        Deduplicated highlights of one page, oldest first.

        Duplicates that slipped into the store resolve to the most recent one.
        """
        rows = self.store.fetch_all(
            f"SELECT {_COLUMNS} FROM highlights WHERE owner_key = ? AND page = ?",
            (owner_key, page),
        )
        return keep_most_recent(_row_to_highlight(r) for r in rows)

    def list_deduplicated(self, owner_key: str) -> List[Highlight]:
        """Every page's deduplicated working set, ordered by page then creation time"""
        by_page: Dict[int, List[Highlight]] = defaultdict(list)
        for h in self.list_by_owner(owner_key):
            by_page[h.page].append(h)
        result = []
        for page in sorted(by_page):
            result.extend(keep_most_recent(by_page[page]))
        return result

    def count_by_page(self, owner_key: str, page: int) -> int:
        return len(self.list_by_page(owner_key, page))

    def add(self, highlight: Highlight,
            on_added: Optional[HighlightCallback] = None) -> Optional[Highlight]:
        """
        Persist a highlight unless its page already holds a duplicate.

        The duplicate check and the insert run in one transaction.

        Args:
            highlight: Highlight to store
            on_added: Called with the stored highlight once it is persisted

        Returns:
            The stored highlight, or None when it was dropped as a duplicate
        """
        signature = dedup_signature(highlight)
        with self.store.transaction() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM highlights WHERE owner_key = ? AND page = ?",
                (highlight.owner_key, highlight.page),
            ).fetchall()
            if any(dedup_signature(_row_to_highlight(r)) == signature for r in rows):
                logger.warning(f"Skipped duplicate {highlight.kind.value} highlight "
                               f"on page {highlight.page}: {highlight.text[:30]!r}")
                return None
            conn.execute(
                f"INSERT INTO highlights ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _highlight_params(highlight),
            )

        logger.info(f"Stored {highlight.kind.value} highlight {highlight.id} on page {highlight.page}")
        if on_added:
            on_added(highlight)
        return highlight

    def remove(self, highlight_id: str) -> bool:
        """Delete a highlight; returns False if it did not exist"""
        deleted = self.store.execute("DELETE FROM highlights WHERE id = ?", (highlight_id,))
        if deleted:
            logger.info(f"Removed highlight {highlight_id}")
        return bool(deleted)

    def mark_synced(self, highlight_id: str, remote_id: Optional[str]) -> bool:
        """Record the remote id confirmed by the server"""
        updated = self.store.execute(
            "UPDATE highlights SET remote_id = ?, synced = 1 WHERE id = ?",
            (remote_id, highlight_id),
        )
        return bool(updated)

    def cleanup_duplicates(self, owner_key: str) -> List[str]:
        """
        Delete stored duplicates of a document, keeping the most recent
        highlight of each signature on each page.

        Returns:
            Ids of the deleted highlights
        """
        groups: Dict[str, List[Highlight]] = defaultdict(list)
        for h in self.list_by_owner(owner_key):
            groups[dedup_signature(h)].append(h)

        to_delete = []
        for members in groups.values():
            if len(members) < 2:
                continue
            members.sort(key=lambda h: h.created_at, reverse=True)
            to_delete.extend(h.id for h in members[1:])

        if to_delete:
            with self.store.transaction() as conn:
                conn.executemany("DELETE FROM highlights WHERE id = ?", [(i,) for i in to_delete])
            logger.info(f"Removed {len(to_delete)} duplicate highlights for {owner_key}")
        return to_delete

    def merge_remote(self, owner_key: str, annotations: Iterable[Dict[str, Any]]) -> List[Highlight]:
        """
        Insert server annotations that are not yet known locally.

        An annotation is known when its id matches a stored remote_id or id.

        Returns:
            The highlights that were inserted
        """
        known = set()
        for h in self.list_by_owner(owner_key):
            known.add(h.id)
            if h.remote_id:
                known.add(h.remote_id)

        inserted = []
        for annotation in annotations:
            server_id = annotation.get("id") or annotation.get("remote_id")
            if server_id is not None and str(server_id) in known:
                continue
            try:
                highlight = Highlight.from_remote(owner_key, annotation)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed server annotation {server_id}: {e}")
                continue
            if highlight is None:
                continue
            if self.add(highlight) is not None:
                inserted.append(highlight)
                known.add(highlight.id)
        return inserted
