"""
Slice a tall bitmap into page-sized strips and emit them as a PDF.

Geometry (1 bitmap pixel maps to 1 pt at natural size):
    scale          = min(1, page_width / bitmap_width)    # never upscale
    page_height_px = floor(page_height / scale)
    offset_x       = (page_width - bitmap_width * scale) / 2

Slicing is a single sequential pass; strips are not aligned to table rows,
so a row can straddle two pages.
"""

import io
import math
from dataclasses import dataclass
from typing import Callable
from PIL import Image
from reportlab.lib.pagesizes import LEGAL
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from ...core.errors import CanvasContextUnavailable


@dataclass(frozen=True)
class PageGeometry:
    page_width: float
    page_height: float
    scale: float
    page_height_px: int
    image_width: float
    offset_x: float


@dataclass
class RasterPage:
    index: int
    image: Image.Image

    @property
    def height_px(self) -> int:
        return self.image.height


def compute_geometry(bitmap_width: int, page_size: tuple[float, float] = LEGAL) -> PageGeometry:
    page_width, page_height = page_size
    scale = min(1.0, page_width / bitmap_width) if bitmap_width > 0 else 1.0
    image_width = bitmap_width * scale
    return PageGeometry(
        page_width=page_width,
        page_height=page_height,
        scale=scale,
        page_height_px=max(1, math.floor(page_height / scale)),
        image_width=image_width,
        offset_x=(page_width - image_width) / 2,
    )


def slice_bitmap(
    bitmap: Image.Image,
    geometry: PageGeometry,
    new_surface: Callable[..., Image.Image] = Image.new,
) -> list[RasterPage]:
    """
    Cut ``bitmap`` into consecutive strips of ``geometry.page_height_px``.

    Every strip but the last is exactly one page tall. Each strip is copied
    onto a freshly allocated surface; if allocation fails the whole export is
    abandoned with CanvasContextUnavailable.
    """
    page_count = max(1, math.ceil(bitmap.height / geometry.page_height_px))
    pages = []
    for index in range(page_count):
        top = index * geometry.page_height_px
        bottom = min(top + geometry.page_height_px, bitmap.height)
        try:
            surface = new_surface("RGB", (bitmap.width, bottom - top), "white")
        except (MemoryError, OSError, ValueError) as exc:
            raise CanvasContextUnavailable(
                f"Could not allocate a drawing surface for page {index + 1} of {page_count}",
                page=index + 1,
                page_count=page_count,
            ) from exc
        if surface is None:
            raise CanvasContextUnavailable(
                f"Could not allocate a drawing surface for page {index + 1} of {page_count}",
                page=index + 1,
                page_count=page_count,
            )
        surface.paste(bitmap.crop((0, top, bitmap.width, bottom)), (0, 0))
        pages.append(RasterPage(index=index, image=surface))
    return pages


def render_pdf(pages: list[RasterPage], geometry: PageGeometry) -> bytes:
    """Draw each strip on its own page, centred horizontally and top-aligned."""
    buffer = io.BytesIO()
    # invariant=1 drops timestamps/ids so identical pages give identical bytes
    pdf = canvas.Canvas(buffer, pagesize=(geometry.page_width, geometry.page_height), invariant=1)
    for page in pages:
        height = page.height_px * geometry.scale
        pdf.drawImage(
            ImageReader(page.image),
            geometry.offset_x,
            geometry.page_height - height,
            width=geometry.image_width,
            height=height,
        )
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()
