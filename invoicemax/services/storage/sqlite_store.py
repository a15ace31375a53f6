"""
SQLite-backed document store.

Tables mirror the hosted schema: profiles, clients, invoice_drafts,
shared_items and invoices. Finalized documents are kept as a JSON snapshot.
"""

import sqlite3
import json
import uuid
from datetime import datetime, UTC
from typing import Optional
from loguru import logger
from .document_store_base import DocumentStoreBase
from ...models.document import Document, DocumentKind, LineItem
from ...models.records import Client, Draft, InvoiceRecord, Profile

PROFILE_FIELDS = (
    "business_name", "business_logo", "business_address", "business_phone",
    "business_email", "business_website", "default_currency",
)
DRAFT_FIELDS = (
    "invoice_number", "invoice_date", "due_date", "payment_date", "payment_method",
    "currency", "notes", "terms", "amount_paid",
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteDocumentStore(DocumentStoreBase):
    """
    SQLite-backed store with persistent storage across restarts.

    One connection per operation; SQLite's own locking serializes writers.
    """

    def __init__(self, db_path: str = "invoicemax.db"):
        """
        Args:
            db_path: Path to SQLite database file (default: invoicemax.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create tables if they don't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                user_id TEXT PRIMARY KEY,
                business_name TEXT,
                business_logo TEXT,
                business_address TEXT,
                business_phone TEXT,
                business_email TEXT,
                business_website TEXT,
                default_currency TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS clients (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                address TEXT,
                phone TEXT,
                email TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (user_id, name)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS invoice_drafts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                invoice_number TEXT,
                invoice_date TEXT,
                due_date TEXT,
                payment_date TEXT,
                payment_method TEXT,
                currency TEXT,
                notes TEXT,
                terms TEXT,
                amount_paid REAL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (user_id, type),
                CHECK (type IN ('invoice', 'receipt'))
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS shared_items (
                user_id TEXT PRIMARY KEY,
                items TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS invoices (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                invoice_number TEXT NOT NULL,
                type TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK (type IN ('invoice', 'receipt'))
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_invoices_user_created
            ON invoices(user_id, created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_clients_user_updated
            ON clients(user_id, updated_at)
        """)

        conn.commit()
        conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # -- profile ---------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None
        return Profile(user_id=row["user_id"], **{name: row[name] for name in PROFILE_FIELDS})

    def create_profile(self, profile: Profile) -> Profile:
        now = _now()
        values = [getattr(profile, name) for name in PROFILE_FIELDS]

        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(f"""
            INSERT INTO profiles (user_id, {", ".join(PROFILE_FIELDS)}, created_at, updated_at)
            VALUES (?, {", ".join("?" for _ in PROFILE_FIELDS)}, ?, ?)
        """, (profile.user_id, *values, now, now))
        conn.commit()
        conn.close()

        logger.info("Profile created", user_id=profile.user_id)
        return profile

    def update_profile(self, user_id: str, updates: dict) -> Profile:
        current = self.get_profile(user_id)
        if current is None:
            return self.create_profile(Profile(**{**updates, "user_id": user_id}))

        merged = Profile(**{**current.model_dump(), **updates, "user_id": user_id})
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(f"""
            UPDATE profiles
            SET {", ".join(f"{name} = ?" for name in PROFILE_FIELDS)}, updated_at = ?
            WHERE user_id = ?
        """, (*[getattr(merged, name) for name in PROFILE_FIELDS], _now(), user_id))
        conn.commit()
        conn.close()
        return merged

    # -- clients ---------------------------------------------------------

    @staticmethod
    def _client_from_row(row: sqlite3.Row) -> Client:
        return Client(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            address=row["address"] or "",
            phone=row["phone"] or "",
            email=row["email"] or "",
        )

    def get_latest_client(self, user_id: str) -> Optional[Client]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM clients
            WHERE user_id = ?
            ORDER BY updated_at DESC, rowid DESC
            LIMIT 1
        """, (user_id,))
        row = cursor.fetchone()
        conn.close()
        return self._client_from_row(row) if row else None

    def list_clients(self, user_id: str) -> list[Client]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM clients
            WHERE user_id = ?
            ORDER BY name COLLATE NOCASE
        """, (user_id,))
        rows = cursor.fetchall()
        conn.close()
        return [self._client_from_row(row) for row in rows]

    def save_client(self, client: Client) -> Optional[Client]:
        now = _now()
        conn = self._get_connection()
        cursor = conn.cursor()

        if client.id:
            cursor.execute("""
                UPDATE clients
                SET name = ?, address = ?, phone = ?, email = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
            """, (client.name, client.address, client.phone, client.email, now, client.id, client.user_id))
            updated = cursor.rowcount > 0
            conn.commit()
            conn.close()
            return client if updated else None

        if not client.name.strip():
            # Nothing identifies this contact yet
            conn.close()
            return None

        cursor.execute("""
            INSERT INTO clients (id, user_id, name, address, phone, email, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, name) DO UPDATE SET
                address = excluded.address,
                phone = excluded.phone,
                email = excluded.email,
                updated_at = excluded.updated_at
        """, (str(uuid.uuid4()), client.user_id, client.name, client.address, client.phone, client.email, now, now))
        cursor.execute("SELECT * FROM clients WHERE user_id = ? AND name = ?", (client.user_id, client.name))
        row = cursor.fetchone()
        conn.commit()
        conn.close()
        return self._client_from_row(row)

    # -- drafts ----------------------------------------------------------

    def get_draft(self, user_id: str, kind: DocumentKind) -> Optional[Draft]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM invoice_drafts
            WHERE user_id = ? AND type = ?
        """, (user_id, DocumentKind(kind).value))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None
        return Draft(
            id=row["id"],
            user_id=row["user_id"],
            kind=row["type"],
            invoice_number=row["invoice_number"] or "",
            invoice_date=row["invoice_date"] or "",
            due_date=row["due_date"] or "",
            payment_date=row["payment_date"] or "",
            payment_method=row["payment_method"] or "",
            currency=row["currency"] or "",
            notes=row["notes"] or "",
            terms=row["terms"] or "",
            amount_paid=row["amount_paid"] or 0,
        )

    def save_draft(self, draft: Draft) -> Draft:
        now = _now()
        draft_id = draft.id or str(uuid.uuid4())
        values = [getattr(draft, name) for name in DRAFT_FIELDS]

        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(f"""
            INSERT INTO invoice_drafts (id, user_id, type, {", ".join(DRAFT_FIELDS)}, created_at, updated_at)
            VALUES (?, ?, ?, {", ".join("?" for _ in DRAFT_FIELDS)}, ?, ?)
            ON CONFLICT (user_id, type) DO UPDATE SET
                {", ".join(f"{name} = excluded.{name}" for name in DRAFT_FIELDS)},
                updated_at = excluded.updated_at
        """, (draft_id, draft.user_id, draft.kind.value, *values, now, now))
        cursor.execute(
            "SELECT id FROM invoice_drafts WHERE user_id = ? AND type = ?",
            (draft.user_id, draft.kind.value),
        )
        stored_id = cursor.fetchone()["id"]
        conn.commit()
        conn.close()
        return draft.model_copy(update={"id": stored_id})

    # -- shared line items -------------------------------------------------

    def get_shared_items(self, user_id: str) -> Optional[list[LineItem]]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT items FROM shared_items WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None
        return [LineItem(**item) for item in json.loads(row["items"])]

    def save_shared_items(self, user_id: str, items: list[LineItem]) -> None:
        payload = json.dumps([item.model_dump() for item in items])
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO shared_items (user_id, items, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                items = excluded.items,
                updated_at = excluded.updated_at
        """, (user_id, payload, _now()))
        conn.commit()
        conn.close()

    # -- finalized records -------------------------------------------------

    @staticmethod
    def _record_from_row(row: sqlite3.Row) -> InvoiceRecord:
        return InvoiceRecord(
            id=row["id"],
            user_id=row["user_id"],
            invoice_number=row["invoice_number"],
            kind=row["type"],
            data=Document.model_validate_json(row["data"]),
            created_at=row["created_at"],
        )

    def create_record(self, user_id: str, document: Document) -> str:
        record_id = str(uuid.uuid4())
        created_at = _now()

        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO invoices (id, user_id, invoice_number, type, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            record_id, user_id, document.invoice_number, document.kind.value,
            document.model_dump_json(), created_at, created_at,
        ))
        conn.commit()
        conn.close()

        logger.info("Document saved", record_id=record_id, kind=document.kind.value, number=document.invoice_number)
        return record_id

    def get_record(self, user_id: str, record_id: str) -> Optional[InvoiceRecord]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT id, user_id, invoice_number, type, data, created_at
            FROM invoices
            WHERE id = ? AND user_id = ?
        """, (record_id, user_id))
        row = cursor.fetchone()
        conn.close()
        return self._record_from_row(row) if row else None

    def list_records(self, user_id: str) -> list[InvoiceRecord]:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT id, user_id, invoice_number, type, data, created_at
            FROM invoices
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
        """, (user_id,))
        rows = cursor.fetchall()
        conn.close()
        return [self._record_from_row(row) for row in rows]

    def delete_record(self, user_id: str, record_id: str) -> bool:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM invoices WHERE id = ? AND user_id = ?", (record_id, user_id))
        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()
        return rows_affected > 0
