"""Tests for the document exporter pipeline."""

import asyncio
import base64
import re
import pytest
from PIL import Image
from invoicemax.core.errors import CanvasContextUnavailable, ExportFailed, ExportInProgress, PreviewNotFound
from invoicemax.models.document import Document, DocumentKind, LineItem
from invoicemax.services.export import (
    DocumentExporter,
    EncodedBlob,
    ExportDestination,
    FileResult,
    PreviewBoard,
    content_disposition,
    export_filename,
)
from invoicemax.services.export.board import OFFSCREEN_ATTR
from invoicemax.services.preview import render_preview

PAGE_RE = re.compile(rb"/Type /Page\b")


class FixedRasterizer:
    """Returns a solid bitmap of a chosen height and records what it saw."""

    def __init__(self, height: int):
        self.height = height
        self.surfaces = []

    def rasterize(self, surface, *, width_px, scale, background="#ffffff"):
        self.surfaces.append(str(surface))
        return Image.new("RGB", (round(width_px * scale), self.height), background)


class BrokenRasterizer:
    def rasterize(self, surface, **kwargs):
        raise RuntimeError("tainted canvas")


def test_export_filename():
    assert export_filename(Document(kind=DocumentKind.RECEIPT, invoice_number="REC-42")) == "receipt-REC-42.pdf"
    assert export_filename(Document(kind=DocumentKind.INVOICE, invoice_number="")) == "invoice-document.pdf"


def test_content_disposition_strips_header_breaking_characters():
    header = content_disposition("invoice-A\r\nSet-Cookie: x\\y.pdf")

    assert "\r" not in header and "\n" not in header
    assert header.startswith('attachment; filename="invoice-A_Set-Cookie_x_y.pdf"; ')
    assert header.endswith("filename*=UTF-8''invoice-A%0D%0ASet-Cookie%3A%20x%5Cy.pdf")
    header.encode("latin-1")


def test_export_to_file(invoice, exporter):
    board = PreviewBoard(render_preview(invoice))

    result = asyncio.run(exporter.export(invoice, board, ExportDestination.FILE))

    assert isinstance(result, FileResult)
    assert result.filename == "invoice-INV-1001.pdf"
    assert result.media_type == "application/pdf"
    assert result.content.startswith(b"%PDF")
    assert result.page_count >= 1
    assert len(PAGE_RE.findall(result.content)) == result.page_count


def test_offscreen_container_removed_and_board_released(invoice, exporter):
    board = PreviewBoard(render_preview(invoice))
    before = board.markup

    asyncio.run(exporter.export(invoice, board))

    assert board.markup == before
    assert OFFSCREEN_ATTR not in board.markup
    assert board.exporting is False


def test_rasterizer_sees_reset_clone(invoice):
    rasterizer = FixedRasterizer(height=500)
    exporter = DocumentExporter(rasterizer=rasterizer, settle_seconds=0)

    asyncio.run(exporter.export(invoice, PreviewBoard(render_preview(invoice))))

    surface = rasterizer.surfaces[0]
    assert OFFSCREEN_ATTR in surface
    assert "transform: none" in surface
    assert "width: 816px" in surface


def test_tall_document_spans_multiple_pages(invoice):
    # 1224 px wide at 1.5x -> scale 0.5 -> 2016 px per page
    exporter = DocumentExporter(rasterizer=FixedRasterizer(height=5000), settle_seconds=0)

    result = asyncio.run(exporter.export(invoice, PreviewBoard(render_preview(invoice))))

    assert result.page_count == 3
    assert len(PAGE_RE.findall(result.content)) == 3


def test_many_items_paginate_with_real_rasterizer(exporter):
    doc = Document(
        invoice_number="INV-BIG",
        items=[LineItem(description=f"Line item {i}", quantity=1, unit_price=i) for i in range(150)],
    )

    result = asyncio.run(exporter.export(doc, PreviewBoard(render_preview(doc))))

    assert result.page_count >= 2


def test_file_and_inline_outputs_are_identical(receipt, exporter):
    board = PreviewBoard(render_preview(receipt))

    file_result = asyncio.run(exporter.export(receipt, board, ExportDestination.FILE))
    blob = asyncio.run(exporter.export(receipt, board, ExportDestination.INLINE))

    assert isinstance(blob, EncodedBlob)
    assert blob.filename == file_result.filename == "receipt-REC-42.pdf"
    assert blob.page_count == file_result.page_count
    prefix = "data:application/pdf;base64,"
    assert blob.data_url.startswith(prefix)
    assert base64.b64decode(blob.data_url[len(prefix):]) == file_result.content


def test_missing_preview_raises_and_leaves_board_untouched(invoice, exporter):
    board = PreviewBoard("<div><p>Editor only</p></div>")
    before = board.markup

    with pytest.raises(PreviewNotFound) as exc_info:
        asyncio.run(exporter.export(invoice, board))

    assert exc_info.value.status_code == 404
    assert board.markup == before
    assert board.exporting is False


def test_rasterization_failure_is_wrapped(invoice):
    exporter = DocumentExporter(rasterizer=BrokenRasterizer(), settle_seconds=0)
    board = PreviewBoard(render_preview(invoice))
    before = board.markup

    with pytest.raises(ExportFailed) as exc_info:
        asyncio.run(exporter.export(invoice, board))

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert "tainted canvas" in exc_info.value.to_dict()["cause"]
    assert board.markup == before


def test_remote_logo_fails_export(exporter):
    doc = Document(business_name="Acme", items=[LineItem(description="x")])
    board = PreviewBoard(render_preview(doc).replace("<h1", '<img src="https://cdn.example.com/l.png"><h1', 1))

    with pytest.raises(ExportFailed):
        asyncio.run(exporter.export(doc, board))


def test_surface_failure_aborts_whole_export(invoice):
    def no_surface(*args):
        raise MemoryError

    exporter = DocumentExporter(rasterizer=FixedRasterizer(height=3000), settle_seconds=0, new_surface=no_surface)
    board = PreviewBoard(render_preview(invoice))
    before = board.markup

    with pytest.raises(CanvasContextUnavailable):
        asyncio.run(exporter.export(invoice, board))

    assert board.markup == before


def test_concurrent_export_on_same_board_is_rejected(invoice):
    exporter = DocumentExporter(rasterizer=FixedRasterizer(height=200), settle_seconds=0.05)
    board = PreviewBoard(render_preview(invoice))

    async def run_both():
        return await asyncio.gather(
            exporter.export(invoice, board),
            exporter.export(invoice, board),
            return_exceptions=True,
        )

    first, second = asyncio.run(run_both())

    assert isinstance(first, FileResult)
    assert isinstance(second, ExportInProgress)
    assert board.exporting is False
