from fastapi import Header, HTTPException, status
from pydantic import BaseModel, Field
from ..models.document import Document
from ..services.email import EmailDispatcher, email_dispatcher
from ..services.export import DocumentExporter, PreviewBoards, document_exporter, preview_boards
from ..services.storage import DocumentStoreBase, document_store
from ..services.sync import DraftSyncService, draft_sync


def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity; the auth proxy in front of the API sets X-User-Id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_store() -> DocumentStoreBase:
    return document_store


def get_sync() -> DraftSyncService:
    return draft_sync


def get_boards() -> PreviewBoards:
    return preview_boards


def get_exporter() -> DocumentExporter:
    return document_exporter


def get_dispatcher() -> EmailDispatcher:
    return email_dispatcher


class ExportRequest(BaseModel):
    document: Document
    markup: str | None = None  # replaces the board contents when supplied


class EmailDocumentRequest(BaseModel):
    recipient_email: str = Field(max_length=255)
    recipient_name: str = Field(default="", max_length=200)
    document: Document
    markup: str | None = None


class InlineExportResponse(BaseModel):
    filename: str
    data_url: str
    page_count: int
    record_id: str | None = None


class EmailResponse(BaseModel):
    success: bool
    message: str
    email_id: str | None = None
    record_id: str | None = None


class RecordSummary(BaseModel):
    id: str
    invoice_number: str
    kind: str
    client_name: str
    total: float
    currency: str
    created_at: str


class RecordCreated(BaseModel):
    id: str
