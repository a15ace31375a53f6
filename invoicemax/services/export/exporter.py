"""
Document exporter: rendered preview -> paginated legal-size PDF.

Pipeline:
1. locate the preview node on the user's board (PreviewNotFound if absent)
2. clone it into an off-screen container at the reference width, transform reset
3. wait one bounded settle delay
4. rasterize at the oversampling factor, transparency resolved to white
5. compute page geometry (never upscale)
6. slice into page-height strips (CanvasContextUnavailable aborts everything)
7. emit one PDF page per strip
8. remove the off-screen container (always)
9. return the file, or a base64 data URL for email attachments

Only one export may run per board at a time.
"""

import asyncio
import base64
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from urllib.parse import quote
from loguru import logger
from PIL import Image
from reportlab.lib.pagesizes import LEGAL
from .board import PreviewBoard
from .pagination import RasterPage, PageGeometry, compute_geometry, render_pdf, slice_bitmap
from .rasterizer import MarkupRasterizer, Rasterizer
from ...core.config import settings
from ...core.errors import CanvasContextUnavailable, ExportFailed, ExportInProgress, PreviewNotFound
from ...models.document import Document

PDF_MEDIA_TYPE = "application/pdf"
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ExportDestination(str, Enum):
    FILE = "file"
    INLINE = "inline"


@dataclass
class FileResult:
    filename: str
    content: bytes
    page_count: int
    media_type: str = PDF_MEDIA_TYPE


@dataclass
class EncodedBlob:
    filename: str
    data_url: str
    page_count: int


def export_filename(document: Document) -> str:
    return f"{document.kind.value}-{document.invoice_number or 'document'}.pdf"


def to_data_url(content: bytes) -> str:
    return f"data:{PDF_MEDIA_TYPE};base64,{base64.b64encode(content).decode('ascii')}"


def _ascii_filename(filename: str) -> str:
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    stem = unicodedata.normalize("NFKD", stem).encode("ascii", "ignore").decode("ascii")
    stem = UNSAFE_FILENAME_CHARS.sub("_", stem).strip("._- ") or "document"
    return f"{stem}.{ext.lower()}" if dot else stem


def content_disposition(filename: str) -> str:
    """
    Attachment header for ``filename``.

    Header values go out as latin-1, so non-ASCII names travel percent-encoded
    in ``filename*`` (RFC 5987) next to an ASCII ``filename`` fallback.
    """
    fallback = _ascii_filename(filename)
    if fallback == filename:
        return f'attachment; filename="{fallback}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class DocumentExporter:
    def __init__(
        self,
        rasterizer: Rasterizer | None = None,
        page_size: tuple[float, float] = LEGAL,
        reference_width_px: int | None = None,
        oversample: float | None = None,
        settle_seconds: float | None = None,
        new_surface: Callable[..., Image.Image] = Image.new,
    ):
        self.rasterizer = rasterizer or MarkupRasterizer()
        self.page_size = page_size
        self.reference_width_px = reference_width_px or settings.export_reference_width_px
        self.oversample = oversample or settings.export_oversample
        self.settle_seconds = settings.export_settle_seconds if settle_seconds is None else settle_seconds
        self.new_surface = new_surface

    async def export(
        self,
        document: Document,
        board: PreviewBoard,
        destination: ExportDestination = ExportDestination.FILE,
    ) -> FileResult | EncodedBlob:
        if board.exporting:
            raise ExportInProgress(document_number=document.invoice_number)

        board.exporting = True
        try:
            pages, geometry = await self.paginate(document, board)
            try:
                content = render_pdf(pages, geometry)
            except Exception as exc:
                logger.error("PDF encoding failed", document_number=document.invoice_number, error=repr(exc))
                raise ExportFailed(cause=exc, document_number=document.invoice_number) from exc
        finally:
            board.exporting = False

        filename = export_filename(document)
        logger.info(
            "Document exported",
            filename=filename,
            pages=len(pages),
            size_bytes=len(content),
            destination=destination.value,
        )

        if destination == ExportDestination.INLINE:
            return EncodedBlob(filename=filename, data_url=to_data_url(content), page_count=len(pages))
        return FileResult(filename=filename, content=content, page_count=len(pages))

    async def paginate(self, document: Document, board: PreviewBoard) -> tuple[list[RasterPage], PageGeometry]:
        """Run steps 1-6 and 8; returns the page strips and their geometry."""
        node = board.find_preview()
        if node is None:
            logger.warning("Export aborted: no rendered preview", kind=document.kind.value)
            raise PreviewNotFound(kind=document.kind.value, document_number=document.invoice_number)

        container = board.attach_offscreen(node, self.reference_width_px)
        try:
            await asyncio.sleep(self.settle_seconds)

            try:
                bitmap = await asyncio.to_thread(
                    self.rasterizer.rasterize,
                    container,
                    width_px=self.reference_width_px,
                    scale=self.oversample,
                    background="#ffffff",
                )
            except Exception as exc:
                logger.error("Rasterization failed", document_number=document.invoice_number, error=repr(exc))
                raise ExportFailed(cause=exc, document_number=document.invoice_number) from exc

            geometry = compute_geometry(bitmap.width, self.page_size)
            pages = slice_bitmap(bitmap, geometry, self.new_surface)
            logger.debug(
                "Bitmap paginated",
                bitmap_size=bitmap.size,
                scale=geometry.scale,
                page_height_px=geometry.page_height_px,
                pages=len(pages),
            )
            return pages, geometry
        except CanvasContextUnavailable:
            logger.error("Export aborted: page surface unavailable", document_number=document.invoice_number)
            raise
        finally:
            board.detach(container)


# Global instance (in production, use dependency injection)
document_exporter = DocumentExporter()
