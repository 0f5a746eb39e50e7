"""
Sync Queue Module

Durable, ordered outbox of remote operations that could not be delivered.
Items stay pending until a retry succeeds (they are then removed) or they
are cleared explicitly; failed retries only bump retry_count and record
the error.
"""

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from ..core.models import SyncAction, SyncQueueItem, SyncStatus, now_ms
from .local_store import LocalStore

logger = logging.getLogger(__name__)

_COLUMNS = "id, action, payload, local_id, target_id, retry_count, last_error, status, timestamp"


def _row_to_item(row: sqlite3.Row) -> SyncQueueItem:
    return SyncQueueItem(
        id=row["id"],
        action=SyncAction(row["action"]),
        payload=json.loads(row["payload"]) if row["payload"] else None,
        local_id=row["local_id"],
        target_id=row["target_id"],
        retry_count=row["retry_count"],
        last_error=row["last_error"],
        status=SyncStatus(row["status"]),
        timestamp=row["timestamp"],
    )


class SyncQueue:
    """Pending save/delete operations, drained oldest first"""

    def __init__(self, store: LocalStore):
        self.store = store

    def enqueue(self, action: SyncAction, payload: Optional[Dict[str, Any]] = None,
                local_id: Optional[str] = None, target_id: Optional[str] = None,
                last_error: Optional[str] = None) -> int:
        """
        Append an operation to the queue

        Args:
            action: SyncAction.SAVE or SyncAction.DELETE
            payload: Wire payload of a save
            local_id: Highlight to patch with the remote id once a save succeeds
            target_id: Remote id a delete targets
            last_error: Message of the failure that caused the item to be queued

        Returns:
            The new item's id
        """
        action = SyncAction(action)
        if action is SyncAction.SAVE and payload is None:
            raise ValueError("A queued save needs a payload")
        if action is SyncAction.DELETE and not target_id:
            raise ValueError("A queued delete needs a target_id")

        with self.store.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO sync_queue (action, payload, local_id, target_id, retry_count, "
                "last_error, status, timestamp) VALUES (?, ?, ?, ?, 0, ?, ?, ?)",
                (
                    action.value,
                    json.dumps(payload) if payload is not None else None,
                    local_id,
                    target_id,
                    last_error,
                    SyncStatus.PENDING.value,
                    now_ms(),
                ),
            )
            item_id = cursor.lastrowid
        logger.info(f"Queued remote {action.value} (item {item_id})")
        return item_id

    def get(self, item_id: int) -> Optional[SyncQueueItem]:
        row = self.store.fetch_one(f"SELECT {_COLUMNS} FROM sync_queue WHERE id = ?", (item_id,))
        return _row_to_item(row) if row else None

    def pending(self) -> List[SyncQueueItem]:
        """Pending items, oldest first"""
        rows = self.store.fetch_all(
            f"SELECT {_COLUMNS} FROM sync_queue WHERE status = ? ORDER BY timestamp, id",
            (SyncStatus.PENDING.value,),
        )
        return [_row_to_item(r) for r in rows]

    def pending_count(self) -> int:
        row = self.store.fetch_one(
            "SELECT COUNT(*) AS n FROM sync_queue WHERE status = ?", (SyncStatus.PENDING.value,)
        )
        return row["n"] if row else 0

    def record_failure(self, item_id: int, error: str) -> None:
        """Bump retry_count and store the error; the item stays pending"""
        self.store.execute(
            "UPDATE sync_queue SET retry_count = retry_count + 1, last_error = ? WHERE id = ?",
            (error, item_id),
        )

    def cancel_saves(self, local_id: str) -> int:
        """
        Drop pending saves of a highlight that was deleted before reaching the server

        Returns:
            Number of saves dropped
        """
        removed = self.store.execute(
            "DELETE FROM sync_queue WHERE action = ? AND status = ? AND local_id = ?",
            (SyncAction.SAVE.value, SyncStatus.PENDING.value, local_id),
        )
        if removed:
            logger.info(f"Cancelled {removed} queued save(s) of {local_id}")
        return removed

    def complete(self, item_id: int) -> None:
        """Remove an item whose remote call succeeded"""
        self.store.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))

    def clear(self, item_id: Optional[int] = None) -> int:
        """
        Drop one item, or every item when ``item_id`` is None.

        Returns:
            Number of items removed
        """
        if item_id is None:
            removed = self.store.execute("DELETE FROM sync_queue")
        else:
            removed = self.store.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))
        if removed:
            logger.warning(f"Dropped {removed} sync queue item(s) without delivering them")
        return removed
