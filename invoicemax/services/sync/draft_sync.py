"""
Debounced persistence of in-progress editing state.

Edits are validated immediately, then buffered per (user, scope) and written
after a quiet period. Reads overlay whatever is still buffered on top of the
stored row, so a caller always sees its own latest edits. An edit whose write
failed stays buffered and is listed by ``save_failures`` until it is saved.
"""

import time
from datetime import date
from typing import Hashable
from loguru import logger
from .write_behind import CoalescingWriteBehind
from ..storage.document_store_base import DocumentStoreBase
from ...core.config import settings
from ...models.document import DocumentKind, LineItem
from ...models.records import Client, Draft, Profile, SharedLineItems
from ...models.validation import validate_model


def default_items() -> list[LineItem]:
    return [LineItem(id="1", description="", quantity=1, unit_price=0, tax_rate=0, discount=0)]


class DraftSyncService:
    def __init__(self, store: DocumentStoreBase, window: float | None = None):
        self.store = store
        if window is None:
            window = settings.autosave_debounce_seconds
        self.write_behind = CoalescingWriteBehind(self._persist, window)

    # -- keys ----------------------------------------------------------------

    @staticmethod
    def draft_key(user_id: str, kind: DocumentKind) -> tuple:
        return ("draft", user_id, DocumentKind(kind).value)

    @staticmethod
    def client_key(user_id: str) -> tuple:
        return ("client", user_id)

    @staticmethod
    def items_key(user_id: str) -> tuple:
        return ("shared_items", user_id)

    @staticmethod
    def profile_key(user_id: str) -> tuple:
        return ("profile", user_id)

    # -- defaults ------------------------------------------------------------

    def default_draft(self, user_id: str, kind: DocumentKind) -> Draft:
        kind = DocumentKind(kind)
        profile = self.store.get_profile(user_id)
        currency = (profile.default_currency if profile else None) or settings.default_currency
        return Draft(
            user_id=user_id,
            kind=kind,
            invoice_number=f"{kind.value.upper()}-{int(time.time() * 1000)}",
            invoice_date=date.today().isoformat(),
            currency=currency,
        )

    # -- queue edits ---------------------------------------------------------

    def queue_draft(self, user_id: str, kind: DocumentKind, updates: dict) -> Draft:
        """Validate the merged result now, persist after the debounce window."""
        merged = validate_model(Draft, {**self.load_draft(user_id, kind).model_dump(), **updates, "user_id": user_id, "kind": kind})
        # Queue the full merged view so a freshly defaulted number survives the write
        self.write_behind.submit(
            self.draft_key(user_id, kind),
            merged.model_dump(exclude={"id", "user_id", "kind"}),
            merge=True,
        )
        return merged

    def queue_client(self, user_id: str, updates: dict) -> Client:
        current = self.load_client(user_id) or Client(user_id=user_id)
        merged = validate_model(Client, {**current.model_dump(), **updates, "user_id": user_id})
        self.write_behind.submit(self.client_key(user_id), dict(updates), merge=True)
        return merged

    def queue_shared_items(self, user_id: str, items: list) -> list[LineItem]:
        validated = validate_model(SharedLineItems, {"user_id": user_id, "items": items}).items
        self.write_behind.submit(self.items_key(user_id), [item.model_dump() for item in validated])
        return validated

    def queue_profile(self, user_id: str, updates: dict) -> Profile:
        current = self.load_profile(user_id) or Profile(user_id=user_id)
        merged = validate_model(Profile, {**current.model_dump(), **updates, "user_id": user_id})
        self.write_behind.submit(self.profile_key(user_id), dict(updates), merge=True)
        return merged

    # -- reads (stored row + pending overlay) --------------------------------

    def load_draft(self, user_id: str, kind: DocumentKind) -> Draft:
        stored = self.store.get_draft(user_id, kind) or self.default_draft(user_id, kind)
        pending = self.write_behind.pending(self.draft_key(user_id, kind))
        if not pending:
            return stored
        return Draft(**{**stored.model_dump(), **pending})

    def load_client(self, user_id: str) -> Client | None:
        stored = self.store.get_latest_client(user_id)
        pending = self.write_behind.pending(self.client_key(user_id))
        if not pending:
            return stored
        base = stored.model_dump() if stored else {"user_id": user_id}
        return Client(**{**base, **pending})

    def load_shared_items(self, user_id: str) -> list[LineItem]:
        pending = self.write_behind.pending(self.items_key(user_id))
        if pending is not None:
            return [LineItem(**item) for item in pending]
        stored = self.store.get_shared_items(user_id)
        return stored if stored else default_items()

    def load_profile(self, user_id: str) -> Profile | None:
        stored = self.store.get_profile(user_id)
        pending = self.write_behind.pending(self.profile_key(user_id))
        if not pending:
            return stored
        base = stored.model_dump() if stored else {"user_id": user_id}
        return Profile(**{**base, **pending})

    # -- write-back ----------------------------------------------------------

    def _persist(self, key: Hashable, value) -> None:
        scope, user_id = key[0], key[1]
        if scope == "draft":
            kind = DocumentKind(key[2])
            current = self.store.get_draft(user_id, kind) or self.default_draft(user_id, kind)
            self.store.save_draft(Draft(**{**current.model_dump(), **value, "user_id": user_id, "kind": kind}))
        elif scope == "client":
            current = self.store.get_latest_client(user_id)
            base = current.model_dump() if current else {"user_id": user_id}
            saved = self.store.save_client(Client(**{**base, **value, "user_id": user_id}))
            if saved is None:
                logger.debug("Client not persisted: no id and blank name", user_id=user_id)
        elif scope == "shared_items":
            self.store.save_shared_items(user_id, [LineItem(**item) for item in value])
        elif scope == "profile":
            self.store.update_profile(user_id, value)
        else:
            raise ValueError(f"Unknown sync scope: {scope}")

    # -- failures ------------------------------------------------------------

    @staticmethod
    def _target(key: tuple) -> str:
        return f"{key[0]}:{key[2]}" if key[0] == "draft" else key[0]

    def save_failures(self, user_id: str) -> list[dict]:
        """Writes for this user that failed and have not succeeded since."""
        return [
            {"target": self._target(key), "detail": str(exc) or exc.__class__.__name__}
            for key, exc in self.write_behind.failures.items()
            if key[1] == user_id
        ]

    async def flush(self, user_id: str | None = None) -> list[dict]:
        """
        Write buffered edits now, including ones whose last write failed.

        With ``user_id`` only that user's keys are written, and the failures
        still outstanding for the user are returned. Without it everything is
        written and nothing is returned.
        """
        if user_id is None:
            await self.write_behind.flush()
            return []
        await self.write_behind.flush_keys([key for key in self.write_behind.pending_keys() if key[1] == user_id])
        return self.save_failures(user_id)

    async def close(self) -> None:
        pending = len(self.write_behind.pending_keys())
        await self.write_behind.close()
        logger.info("Draft sync closed", flushed=pending)
