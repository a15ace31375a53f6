"""
Rasterize a rendered preview surface into a single bitmap.

The exporter only depends on the ``Rasterizer`` protocol: given an opaque
surface (a parsed HTML element), produce a true-size bitmap of a fixed width.
``MarkupRasterizer`` is the built-in implementation. It lays out the block
subset produced by the preview renderer with Pillow:

- ``h1``/``h2``/``h3``/``p`` text blocks (inline ``color`` and ``text-align``)
- ``table`` rows with optional row ``background-color``
- ``hr`` rules
- ``img`` with a ``data:image/...;base64`` source
- ``div`` containers (``background-color`` and ``transform: scale()``)
- watermark marker divs, tiled behind the content

Transparent regions are resolved against an opaque background colour.
"""

import base64
import io
import math
from dataclasses import dataclass, field
from typing import Callable, Protocol
from bs4 import NavigableString, Tag
from bs4.element import Comment
from PIL import Image, ImageColor, ImageDraw, ImageFont
from .style import parse_style, transform_scale
from ..preview import WATERMARK_ATTR

FONT_SIZES = {"h1": 24, "h2": 30, "h3": 16, "p": 13, "cell": 12, "watermark": 28}
PADDING = 32
BLOCK_GAP = 6
CELL_PADDING = 6
RULE_COLOR = "#d1d5db"
DEFAULT_TEXT = "#111827"
TEXT_TAGS = {"h1", "h2", "h3", "h4", "p", "li", "span", "strong", "em", "b", "i", "label"}


class RasterizationError(Exception):
    """Content on the surface cannot be painted (e.g. an image from another origin)."""


class Rasterizer(Protocol):
    def rasterize(self, surface: Tag, *, width_px: int, scale: float, background: str = "#ffffff") -> Image.Image:
        ...


@dataclass
class _Block:
    height: int
    paint: Callable[[Image.Image, ImageDraw.ImageDraw, int], None]


@dataclass
class _Watermark:
    text: str
    color: str
    opacity: float
    density: int


@dataclass
class _Context:
    factor: float
    left: int
    width: int
    color: str
    watermarks: list[_Watermark] = field(default_factory=list)

    def child(self, factor: float, color: str) -> "_Context":
        return _Context(factor, self.left, self.width, color, self.watermarks)


def _rgba(value: str | None, default: str, alpha: int = 255) -> tuple[int, int, int, int]:
    try:
        rgb = ImageColor.getrgb(value or default)
    except ValueError:
        rgb = ImageColor.getrgb(default)
    return rgb[0], rgb[1], rgb[2], alpha


def wrap_text(text: str, font, max_width: float, measure: ImageDraw.ImageDraw) -> list[str]:
    """Greedy word wrap; words wider than the line are split into chunks."""
    def fits(candidate: str) -> bool:
        return measure.textlength(candidate, font=font) <= max_width

    words = []
    for word in text.split():
        while len(word) > 1 and not fits(word):
            cut = len(word) - 1
            while cut > 1 and not fits(word[:cut]):
                cut -= 1
            words.append(word[:cut])
            word = word[cut:]
        words.append(word)

    lines, current = [], ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if fits(candidate) or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or [""]


class MarkupRasterizer:
    def __init__(self):
        self._fonts: dict[int, ImageFont.ImageFont] = {}
        self._measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))

    def _font(self, size: float):
        size = max(1, round(size))
        if size not in self._fonts:
            self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]

    def _line_height(self, font) -> int:
        left, top, right, bottom = font.getbbox("Ag")
        return max(1, math.ceil((bottom - top) * 1.4))

    def rasterize(self, surface: Tag, *, width_px: int, scale: float, background: str = "#ffffff") -> Image.Image:
        style = parse_style(surface.get("style"))
        factor = scale * transform_scale(style)
        width = max(1, round(width_px * scale))
        pad = round(PADDING * factor)
        ctx = _Context(factor, pad, max(1, round(width_px * factor) - 2 * pad), style.get("color", DEFAULT_TEXT))

        blocks = self._layout_children(surface, ctx)
        height = max(1, 2 * pad + sum(block.height for block in blocks))

        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        if style.get("background-color"):
            layer.paste(_rgba(style["background-color"], "#ffffff"), (0, 0, width, height))
        draw = ImageDraw.Draw(layer)
        y = pad
        for block in blocks:
            block.paint(layer, draw, y)
            y += block.height
        # Marks overlay the content; container fills would otherwise hide them
        for mark in ctx.watermarks:
            self._paint_watermark(layer, mark, factor)

        flattened = Image.new("RGB", layer.size, _rgba(background, "#ffffff")[:3])
        flattened.paste(layer, (0, 0), layer)
        return flattened

    # -- layout --------------------------------------------------------------

    def _layout_children(self, node: Tag, ctx: _Context) -> list[_Block]:
        blocks = []
        for child in node.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                text = str(child).strip()
                if text:
                    blocks.append(self._text_block(text, FONT_SIZES["p"], ctx.color, "left", ctx))
                continue
            if isinstance(child, Tag):
                blocks.extend(self._layout_element(child, ctx))
        return blocks

    def _layout_element(self, node: Tag, ctx: _Context) -> list[_Block]:
        style = parse_style(node.get("style"))
        color = style.get("color", ctx.color)
        align = style.get("text-align", "left")
        name = node.name

        if name in ("script", "style", "head", "title", "meta"):
            return []
        if name == "div" and node.has_attr(WATERMARK_ATTR):
            ctx.watermarks.append(_Watermark(
                text=node[WATERMARK_ATTR],
                color=node.get("data-color", "#9ca3af"),
                opacity=float(node.get("data-opacity", 20)),
                density=int(node.get("data-density", 30)),
            ))
            return []
        if name == "hr":
            return [self._rule_block(ctx)]
        if name == "img":
            return [self._image_block(node, ctx)]
        if name == "table":
            return [self._table_block(node, color, ctx)]
        if name in TEXT_TAGS or not node.find(True):
            size = FONT_SIZES.get(name, FONT_SIZES["p"])
            text = node.get_text(" ", strip=True)
            return [self._text_block(text, size, color, align, ctx)] if text else []

        child_ctx = ctx.child(ctx.factor * transform_scale(style), color)
        blocks = self._layout_children(node, child_ctx)
        if style.get("background-color") and blocks:
            return [self._filled_block(blocks, style["background-color"], ctx)]
        return blocks

    def _text_block(self, text: str, size: int, color: str, align: str, ctx: _Context) -> _Block:
        font = self._font(size * ctx.factor)
        lines = []
        for raw in text.splitlines() or [text]:
            lines.extend(wrap_text(raw, font, ctx.width, self._measure))
        line_height = self._line_height(font)
        gap = round(BLOCK_GAP * ctx.factor)
        fill = _rgba(color, DEFAULT_TEXT)

        def paint(image, draw, y):
            for index, line in enumerate(lines):
                line_width = draw.textlength(line, font=font)
                x = ctx.left
                if align == "right":
                    x += ctx.width - line_width
                elif align == "center":
                    x += (ctx.width - line_width) / 2
                draw.text((x, y + index * line_height), line, fill=fill, font=font)

        return _Block(line_height * len(lines) + gap, paint)

    def _rule_block(self, ctx: _Context) -> _Block:
        height = max(1, round(16 * ctx.factor))
        thickness = max(1, round(ctx.factor))

        def paint(image, draw, y):
            middle = y + height // 2
            draw.line([(ctx.left, middle), (ctx.left + ctx.width, middle)], fill=_rgba(RULE_COLOR, RULE_COLOR), width=thickness)

        return _Block(height, paint)

    def _image_block(self, node: Tag, ctx: _Context) -> _Block:
        src = node.get("src", "")
        if not src.startswith("data:image/"):
            raise RasterizationError(f"Image source cannot be rasterized: {src[:80]}")
        header, _, payload = src.partition(",")
        if ";base64" not in header:
            raise RasterizationError("Only base64 data URL images are supported")
        picture = Image.open(io.BytesIO(base64.b64decode(payload, validate=True))).convert("RGBA")
        picture.thumbnail((ctx.width, max(1, round(64 * ctx.factor))))
        gap = round(BLOCK_GAP * ctx.factor)

        def paint(image, draw, y):
            image.alpha_composite(picture, (ctx.left, y))

        return _Block(picture.height + gap, paint)

    def _table_block(self, node: Tag, color: str, ctx: _Context) -> _Block:
        rows = node.find_all("tr")
        columns = max((len(row.find_all(["td", "th"])) for row in rows), default=0)
        if not rows or not columns:
            return _Block(0, lambda image, draw, y: None)

        font = self._font(FONT_SIZES["cell"] * ctx.factor)
        line_height = self._line_height(font)
        cell_pad = round(CELL_PADDING * ctx.factor)
        if columns == 1:
            widths = [ctx.width]
        else:
            first = ctx.width * 0.4
            widths = [first] + [(ctx.width - first) / (columns - 1)] * (columns - 1)

        laid_out = []
        for row in rows:
            row_style = parse_style(row.get("style"))
            cells = []
            for index, cell in enumerate(row.find_all(["td", "th"])[:columns]):
                text = cell.get_text(" ", strip=True)
                cells.append(wrap_text(text, font, max(1, widths[index] - 2 * cell_pad), self._measure))
            height = max(len(lines) for lines in cells) * line_height + 2 * cell_pad if cells else line_height
            laid_out.append((row_style, cells, height))

        def paint(image, draw, y):
            top = y
            for row_style, cells, height in laid_out:
                if row_style.get("background-color"):
                    draw.rectangle(
                        [ctx.left, top, ctx.left + ctx.width, top + height],
                        fill=_rgba(row_style["background-color"], "#ffffff"),
                    )
                fill = _rgba(row_style.get("color", color), DEFAULT_TEXT)
                x = ctx.left
                for index, lines in enumerate(cells):
                    for number, line in enumerate(lines):
                        offset = cell_pad
                        if index > 0:
                            offset = widths[index] - cell_pad - draw.textlength(line, font=font)
                        draw.text((x + offset, top + cell_pad + number * line_height), line, fill=fill, font=font)
                    x += widths[index]
                draw.line([(ctx.left, top + height), (ctx.left + ctx.width, top + height)], fill=_rgba(RULE_COLOR, RULE_COLOR))
                top += height

        return _Block(sum(height for _, _, height in laid_out) + round(BLOCK_GAP * ctx.factor), paint)

    def _filled_block(self, blocks: list[_Block], background: str, ctx: _Context) -> _Block:
        height = sum(block.height for block in blocks)

        def paint(image, draw, y):
            draw.rectangle([ctx.left, y, ctx.left + ctx.width, y + height], fill=_rgba(background, "#ffffff"))
            top = y
            for block in blocks:
                block.paint(image, draw, top)
                top += block.height

        return _Block(height, paint)

    # -- decoration ----------------------------------------------------------

    def _paint_watermark(self, layer: Image.Image, mark: _Watermark, factor: float) -> None:
        if mark.density <= 0 or mark.opacity <= 0:
            return
        overlay = Image.new("RGBA", layer.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        font = self._font(FONT_SIZES["watermark"] * factor)
        fill = _rgba(mark.color, "#9ca3af", round(255 * min(mark.opacity, 100) / 100))

        columns = math.ceil(math.sqrt(mark.density))
        rows = math.ceil(mark.density / columns)
        cell_width = layer.width / columns
        cell_height = layer.height / rows
        text_width = draw.textlength(mark.text, font=font)
        left, top, right, bottom = font.getbbox(mark.text)
        for index in range(mark.density):
            row, column = divmod(index, columns)
            x = column * cell_width + (cell_width - text_width) / 2
            y = row * cell_height + (cell_height - (bottom - top)) / 2
            draw.text((x, y), mark.text, fill=fill, font=font)

        layer.alpha_composite(overlay)
