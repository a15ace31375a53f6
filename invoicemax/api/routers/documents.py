from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, Response
from loguru import logger
from ..deps import (
    EmailDocumentRequest,
    EmailResponse,
    ExportRequest,
    InlineExportResponse,
    get_boards,
    get_current_user,
    get_dispatcher,
    get_exporter,
    get_store,
)
from ...core.errors import ExportInProgress
from ...models.document import Document
from ...models.validation import validate_model
from ...services.email import EmailDispatcher, EmailRequest
from ...services.export import (
    DocumentExporter,
    EncodedBlob,
    ExportDestination,
    PreviewBoard,
    PreviewBoards,
    content_disposition,
)
from ...services.preview import render_preview
from ...services.storage import DocumentStoreBase
from ...services.totals import DocumentTotals, calculate_totals

router = APIRouter(prefix="/documents", tags=["documents"])


def _load_board(boards: PreviewBoards, user_id: str, markup: str | None) -> PreviewBoard:
    board = boards.get(user_id)
    if markup is not None:
        if board.exporting:
            raise ExportInProgress(user_id=user_id)
        board.load(markup)
    return board


@router.post("/totals", response_model=DocumentTotals)
async def totals(document: Document):
    return calculate_totals(document.items, document.amount_paid if document.is_receipt else None)


@router.post("/preview", response_class=HTMLResponse)
async def preview(
    document: Document,
    user_id: str = Depends(get_current_user),
    boards: PreviewBoards = Depends(get_boards),
):
    """
    Render the document and place the page on the caller's preview board.

    The board is what a later export rasterizes, so preview must run first
    (or the export request must carry its own markup).
    """
    page = render_preview(document)
    _load_board(boards, user_id, page)
    logger.info("Preview rendered", user_id=user_id, kind=document.kind.value, items=len(document.items))
    return HTMLResponse(page)


@router.post("/export")
async def export(
    req: ExportRequest,
    destination: ExportDestination = Query(ExportDestination.FILE),
    save: bool = Query(False),
    user_id: str = Depends(get_current_user),
    boards: PreviewBoards = Depends(get_boards),
    exporter: DocumentExporter = Depends(get_exporter),
    store: DocumentStoreBase = Depends(get_store),
):
    """
    Export the rendered preview as a legal-size PDF.

    - destination=file: PDF download (Content-Disposition: attachment)
    - destination=inline: JSON with a base64 data URL
    - save=true: snapshot the document into history before exporting
    """
    board = _load_board(boards, user_id, req.markup)
    record_id = store.create_record(user_id, req.document) if save else None

    result = await exporter.export(req.document, board, destination)

    if isinstance(result, EncodedBlob):
        return InlineExportResponse(
            filename=result.filename,
            data_url=result.data_url,
            page_count=result.page_count,
            record_id=record_id,
        )

    headers = {
        "Content-Disposition": content_disposition(result.filename),
        "X-Page-Count": str(result.page_count),
    }
    if record_id:
        headers["X-Record-Id"] = record_id
    return Response(content=result.content, media_type=result.media_type, headers=headers)


@router.post("/email", response_model=EmailResponse)
async def email(
    req: EmailDocumentRequest,
    user_id: str = Depends(get_current_user),
    boards: PreviewBoards = Depends(get_boards),
    exporter: DocumentExporter = Depends(get_exporter),
    store: DocumentStoreBase = Depends(get_store),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
):
    """Save to history, export inline, then send the PDF to the recipient."""
    document = req.document
    email_request = validate_model(EmailRequest, {
        "recipient_email": req.recipient_email,
        "recipient_name": req.recipient_name or document.client_name,
        "sender_business_name": document.business_name,
        "document_number": document.invoice_number,
        "document_kind": document.kind,
        "attachment_data": "pending",
    })

    board = _load_board(boards, user_id, req.markup)
    record_id = store.create_record(user_id, document)
    blob = await exporter.export(document, board, ExportDestination.INLINE)

    receipt = await dispatcher.send(email_request.model_copy(update={"attachment_data": blob.data_url}))
    return EmailResponse(
        success=receipt.success,
        message=receipt.message,
        email_id=receipt.email_id,
        record_id=record_id,
    )
