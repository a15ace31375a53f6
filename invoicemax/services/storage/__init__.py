from ...core.config import settings
from .document_store_base import DocumentStoreBase
from .sqlite_store import SQLiteDocumentStore

# Global instance (in production, use dependency injection)
document_store = SQLiteDocumentStore(db_path=settings.database_path)

__all__ = ["DocumentStoreBase", "SQLiteDocumentStore", "document_store"]
