"""Remote synchronization: REST client, push path and queue processor"""

from .remote_client import RemoteAnnotationClient, RemoteAnnotationStore
from .sync_processor import DrainReport, SyncProcessor
from .sync_service import HighlightSyncService, RemoteResult

__all__ = [
    "DrainReport",
    "HighlightSyncService",
    "RemoteAnnotationClient",
    "RemoteAnnotationStore",
    "RemoteResult",
    "SyncProcessor",
]
