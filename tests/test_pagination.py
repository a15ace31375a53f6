"""Tests for page geometry, bitmap slicing and PDF emission."""

import math
import re
import pytest
from PIL import Image
from reportlab.lib.pagesizes import LEGAL
from invoicemax.core.errors import CanvasContextUnavailable
from invoicemax.services.export.pagination import compute_geometry, render_pdf, slice_bitmap

PAGE_RE = re.compile(rb"/Type /Page\b")


def test_wide_bitmap_is_scaled_to_page_width():
    geometry = compute_geometry(1224, LEGAL)

    assert geometry.scale == pytest.approx(0.5)
    assert geometry.page_height_px == 2016
    assert geometry.image_width == pytest.approx(612)
    assert geometry.offset_x == pytest.approx(0)


def test_narrow_bitmap_is_centered_not_upscaled():
    geometry = compute_geometry(400, LEGAL)

    assert geometry.scale == 1.0
    assert geometry.page_height_px == 1008
    assert geometry.offset_x == pytest.approx((612 - 400) / 2)


def test_tall_bitmap_slices_into_full_pages_plus_remainder():
    bitmap = Image.new("RGB", (1224, 5000), "white")
    geometry = compute_geometry(bitmap.width)

    pages = slice_bitmap(bitmap, geometry)

    assert len(pages) == math.ceil(5000 / geometry.page_height_px)
    assert all(page.height_px == geometry.page_height_px for page in pages[:-1])
    assert sum(page.height_px for page in pages) == 5000
    assert [page.index for page in pages] == list(range(len(pages)))


def test_short_bitmap_is_a_single_page():
    bitmap = Image.new("RGB", (600, 300), "white")

    pages = slice_bitmap(bitmap, compute_geometry(bitmap.width))

    assert len(pages) == 1
    assert pages[0].height_px == 300


def test_strips_preserve_pixels():
    bitmap = Image.new("RGB", (100, 2100), "white")
    bitmap.putpixel((10, 1008), (255, 0, 0))

    pages = slice_bitmap(bitmap, compute_geometry(bitmap.width))

    assert pages[1].image.getpixel((10, 0)) == (255, 0, 0)


def test_surface_allocation_failure_aborts():
    bitmap = Image.new("RGB", (612, 3000), "white")
    calls = []

    def flaky_surface(mode, size, color):
        calls.append(size)
        if len(calls) == 2:
            raise MemoryError("out of memory")
        return Image.new(mode, size, color)

    with pytest.raises(CanvasContextUnavailable) as exc_info:
        slice_bitmap(bitmap, compute_geometry(bitmap.width), flaky_surface)

    assert exc_info.value.context["page"] == 2
    assert exc_info.value.status_code == 500


def test_missing_surface_aborts():
    bitmap = Image.new("RGB", (612, 100), "white")

    with pytest.raises(CanvasContextUnavailable):
        slice_bitmap(bitmap, compute_geometry(bitmap.width), lambda *args: None)


def test_render_pdf_emits_one_page_per_strip():
    bitmap = Image.new("RGB", (1224, 4500), "white")
    geometry = compute_geometry(bitmap.width)
    pages = slice_bitmap(bitmap, geometry)

    pdf = render_pdf(pages, geometry)

    assert pdf.startswith(b"%PDF")
    assert len(PAGE_RE.findall(pdf)) == len(pages) == 3
    assert b"/MediaBox [ 0 0 612 1008 ]" in pdf


def test_render_pdf_is_deterministic():
    bitmap = Image.new("RGB", (800, 1500), "#abcdef")
    geometry = compute_geometry(bitmap.width)

    first = render_pdf(slice_bitmap(bitmap, geometry), geometry)
    second = render_pdf(slice_bitmap(bitmap, geometry), geometry)

    assert first == second
