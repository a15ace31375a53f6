from .write_behind import CoalescingWriteBehind
from .draft_sync import DraftSyncService, default_items
from ..storage import document_store

# Global instance (in production, use dependency injection)
draft_sync = DraftSyncService(document_store)

__all__ = ["CoalescingWriteBehind", "DraftSyncService", "default_items", "draft_sync"]
