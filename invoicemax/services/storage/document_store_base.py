"""
Abstract base class for per-user document storage.

Defines the interface for profiles, the shared contact book, drafts, shared
line items and finalized records, so the SQLite backend can be swapped for a
hosted database without touching the API or sync layers.
"""

from abc import ABC, abstractmethod
from typing import Optional
from ...models.document import Document, DocumentKind, LineItem
from ...models.records import Client, Draft, InvoiceRecord, Profile


class DocumentStoreBase(ABC):
    """
    Every method takes the owning ``user_id`` and only ever touches that
    user's rows; a row belonging to another user behaves as if missing.
    """

    # -- profile ---------------------------------------------------------

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    def create_profile(self, profile: Profile) -> Profile:
        pass

    @abstractmethod
    def update_profile(self, user_id: str, updates: dict) -> Profile:
        """
        Apply a partial update, creating the profile if it does not exist.

        Args:
            user_id: Owner of the profile
            updates: Subset of profile fields to overwrite

        Returns:
            The stored profile after the update
        """
        pass

    # -- clients ---------------------------------------------------------

    @abstractmethod
    def get_latest_client(self, user_id: str) -> Optional[Client]:
        """Most recently updated client, or None."""
        pass

    @abstractmethod
    def list_clients(self, user_id: str) -> list[Client]:
        pass

    @abstractmethod
    def save_client(self, client: Client) -> Optional[Client]:
        """
        Update by id, or upsert on (user_id, name) when there is no id.

        Returns:
            The stored client, or None when it has neither id nor a name
        """
        pass

    # -- drafts ----------------------------------------------------------

    @abstractmethod
    def get_draft(self, user_id: str, kind: DocumentKind) -> Optional[Draft]:
        pass

    @abstractmethod
    def save_draft(self, draft: Draft) -> Draft:
        """Insert or update the single draft for (user_id, kind)."""
        pass

    # -- shared line items -------------------------------------------------

    @abstractmethod
    def get_shared_items(self, user_id: str) -> Optional[list[LineItem]]:
        pass

    @abstractmethod
    def save_shared_items(self, user_id: str, items: list[LineItem]) -> None:
        pass

    # -- finalized records -------------------------------------------------

    @abstractmethod
    def create_record(self, user_id: str, document: Document) -> str:
        """Store an immutable snapshot and return its generated id."""
        pass

    @abstractmethod
    def get_record(self, user_id: str, record_id: str) -> Optional[InvoiceRecord]:
        pass

    @abstractmethod
    def list_records(self, user_id: str) -> list[InvoiceRecord]:
        """Newest first."""
        pass

    @abstractmethod
    def delete_record(self, user_id: str, record_id: str) -> bool:
        """
        Returns:
            True if a row was deleted, False if not found
        """
        pass
