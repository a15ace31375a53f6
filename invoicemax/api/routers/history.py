from fastapi import APIRouter, Depends, status
from loguru import logger
from ..deps import RecordCreated, RecordSummary, get_current_user, get_store
from ...core.errors import RecordNotFound
from ...models.document import Document
from ...models.records import InvoiceRecord
from ...services.storage import DocumentStoreBase
from ...services.totals import calculate_totals

router = APIRouter(prefix="/history", tags=["history"])


def _summary(record: InvoiceRecord) -> RecordSummary:
    document = record.data
    return RecordSummary(
        id=record.id,
        invoice_number=record.invoice_number,
        kind=record.kind.value,
        client_name=document.client_name,
        total=calculate_totals(document.items).total,
        currency=document.currency,
        created_at=record.created_at,
    )


@router.get("", response_model=list[RecordSummary])
async def list_history(user_id: str = Depends(get_current_user), store: DocumentStoreBase = Depends(get_store)):
    """Finalized documents, newest first."""
    return [_summary(record) for record in store.list_records(user_id)]


@router.post("", response_model=RecordCreated, status_code=status.HTTP_201_CREATED)
async def create_history(
    document: Document,
    user_id: str = Depends(get_current_user),
    store: DocumentStoreBase = Depends(get_store),
):
    return RecordCreated(id=store.create_record(user_id, document))


@router.get("/{record_id}", response_model=InvoiceRecord)
async def get_history(record_id: str, user_id: str = Depends(get_current_user), store: DocumentStoreBase = Depends(get_store)):
    record = store.get_record(user_id, record_id)
    if record is None:
        raise RecordNotFound("Record not found", record_id=record_id)
    return record


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history(record_id: str, user_id: str = Depends(get_current_user), store: DocumentStoreBase = Depends(get_store)):
    if not store.delete_record(user_id, record_id):
        raise RecordNotFound("Record not found", record_id=record_id)
    logger.info("Record deleted", user_id=user_id, record_id=record_id)
