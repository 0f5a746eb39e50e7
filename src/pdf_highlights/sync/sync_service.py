"""
Push path for newly added and deleted highlights.

A remote call is attempted right away; when it fails the operation goes
into the sync queue with the error recorded, and the caller gets a
RemoteResult instead of an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.models import Highlight, SyncAction
from ..storage.highlight_repository import HighlightRepository
from ..storage.sync_queue import SyncQueue
from .remote_client import RemoteAnnotationStore

logger = logging.getLogger(__name__)

REMOTE_DISABLED = "remote store not configured"


@dataclass
class RemoteResult:
    """Outcome of one push attempt"""
    ok: bool
    annotation: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    queued_item: Optional[int] = None
    skipped: bool = False


def remote_id_of(annotation: Optional[Dict[str, Any]]) -> Optional[str]:
    if not annotation or annotation.get("id") is None:
        return None
    return str(annotation["id"])


class HighlightSyncService:

    def __init__(self, repository: HighlightRepository, queue: SyncQueue,
                 remote: Optional[RemoteAnnotationStore] = None):
        self.repository = repository
        self.queue = queue
        self.remote = remote

    async def push_save(self, highlight: Highlight) -> RemoteResult:
        """Send a new highlight to the remote store, queueing it on failure"""
        if highlight.is_ephemeral:
            return RemoteResult(ok=True, skipped=True)

        payload = highlight.to_remote_payload()
        try:
            if self.remote is None:
                raise RuntimeError(REMOTE_DISABLED)
            annotation = await self.remote.save(payload)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(f"Remote save of {highlight.id} failed, queued for retry: {error}")
            item_id = self.queue.enqueue(SyncAction.SAVE, payload=payload,
                                         local_id=highlight.id, last_error=error)
            return RemoteResult(ok=False, error=error, queued_item=item_id)

        remote_id = remote_id_of(annotation)
        if remote_id and self.repository.get(highlight.id) is None:
            # deleted locally while the save was in flight
            self.queue.enqueue(SyncAction.DELETE, target_id=remote_id, local_id=highlight.id)
        elif remote_id:
            self.repository.mark_synced(highlight.id, remote_id)
        return RemoteResult(ok=True, annotation=annotation)

    async def push_delete(self, highlight: Highlight) -> RemoteResult:
        """
        Delete a highlight remotely, queueing the delete on failure

        A highlight without a remote id never reached the server: its queued
        save is cancelled and no remote call is made.
        """
        if highlight.is_ephemeral:
            return RemoteResult(ok=True, skipped=True)

        stored = self.repository.get(highlight.id)
        target_id = highlight.remote_id or (stored.remote_id if stored else None)
        if not target_id:
            self.queue.cancel_saves(highlight.id)
            return RemoteResult(ok=True, skipped=True)

        try:
            if self.remote is None:
                raise RuntimeError(REMOTE_DISABLED)
            await self.remote.delete(target_id)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(f"Remote delete of {target_id} failed, queued for retry: {error}")
            item_id = self.queue.enqueue(SyncAction.DELETE, target_id=target_id,
                                         local_id=highlight.id, last_error=error)
            return RemoteResult(ok=False, error=error, queued_item=item_id)
        return RemoteResult(ok=True)
