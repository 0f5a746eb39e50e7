"""
Sync Processor Module

Drains the sync queue against the remote store. Items are processed one at
a time, oldest first, so a save always reaches the server before a later
delete of the same highlight.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.models import SyncAction, SyncQueueItem
from ..storage.highlight_repository import HighlightRepository
from ..storage.sync_queue import SyncQueue
from .remote_client import RemoteAnnotationStore
from .sync_service import remote_id_of

logger = logging.getLogger(__name__)


@dataclass
class DrainReport:
    """Counts for one pass over the queue"""
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class SyncProcessor:

    def __init__(self, queue: SyncQueue, repository: HighlightRepository,
                 remote: Optional[RemoteAnnotationStore], poll_interval: float = 5.0):
        self.queue = queue
        self.repository = repository
        self.remote = remote
        self.poll_interval = poll_interval

    def pending_count(self) -> int:
        return self.queue.pending_count()

    async def _process(self, item: SyncQueueItem) -> None:
        if item.action is SyncAction.SAVE:
            annotation = await self.remote.save(item.payload or {})
            remote_id = remote_id_of(annotation)
            if item.local_id and self.repository.get(item.local_id) is None:
                # deleted locally while the save was pending or in flight
                if remote_id:
                    self.queue.enqueue(SyncAction.DELETE, target_id=remote_id, local_id=item.local_id)
                return
            if item.local_id and remote_id:
                self.repository.mark_synced(item.local_id, remote_id)
        else:
            await self.remote.delete(item.target_id)

    async def drain(self) -> DrainReport:
        """
        Attempt every item that is pending when the pass starts, once each.

        Successful items are removed from the queue. A failure increments
        the item's retry_count and stores the error; it never stops the
        pass and is never raised to the caller.

        Returns:
            DrainReport with attempted/succeeded/failed counts
        """
        report = DrainReport()
        if self.remote is None:
            logger.debug("No remote store configured, skipping sync pass")
            return report

        items = self.queue.pending()
        if not items:
            return report

        logger.info(f"Processing {len(items)} queued sync item(s)")
        for snapshot in items:
            # earlier items in this pass may have cancelled or cleared this one
            item = self.queue.get(snapshot.id)
            if item is None:
                continue
            report.attempted += 1
            try:
                await self._process(item)
            except Exception as e:
                error = str(e) or e.__class__.__name__
                logger.warning(f"Sync item {item.id} ({item.action.value}) failed "
                               f"after {item.retry_count + 1} attempt(s): {error}")
                self.queue.record_failure(item.id, error)
                report.failed += 1
                report.errors.append(error)
                continue
            self.queue.complete(item.id)
            report.succeeded += 1

        logger.info(f"Sync pass done: {report.succeeded} succeeded, {report.failed} failed")
        return report

    async def run_forever(self, stop_event: asyncio.Event,
                          interval: Optional[float] = None) -> None:
        """Drain the queue every ``interval`` seconds until ``stop_event`` is set"""
        interval = self.poll_interval if interval is None else interval
        while not stop_event.is_set():
            await self.drain()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
