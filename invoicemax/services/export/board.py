"""
Preview boards: the server-side stand-in for the browser page that holds the
rendered preview.

A board owns one parsed HTML page per user. The exporter searches it for the
preview node and temporarily appends an off-screen container to its body
while rasterizing; the container is always removed again.
"""

import copy
from collections import OrderedDict
from bs4 import BeautifulSoup, Tag
from .style import format_style, parse_style
from ..preview import PREVIEW_ATTR, PREVIEW_CLASS
from ...core.config import settings

OFFSCREEN_ATTR = "data-offscreen-export"


class PreviewBoard:
    def __init__(self, markup: str = ""):
        self.exporting = False
        self.load(markup)

    def load(self, markup: str) -> None:
        """Replace the board contents with freshly rendered markup."""
        self.soup = BeautifulSoup(markup or "", "html.parser")

    @property
    def markup(self) -> str:
        return str(self.soup)

    @property
    def body(self) -> Tag:
        # Fragments parsed without <body> attach to the document root instead
        return self.soup.body or self.soup

    def find_preview(self) -> Tag | None:
        """
        Locate the rendered preview node. First match wins:

        1. element with class ``invoice-preview-container``
        2. element with a ``data-document-preview`` attribute
        3. first ``div`` that contains a ``table`` (outermost first)
        """
        node = self.soup.select_one(f".{PREVIEW_CLASS}")
        if node is None:
            node = self.soup.select_one(f"[{PREVIEW_ATTR}]")
        if node is None:
            node = next(
                (
                    div for div in self.soup.find_all("div")
                    if not div.has_attr(OFFSCREEN_ATTR) and div.find("table") is not None
                ),
                None,
            )
        return node

    def attach_offscreen(self, node: Tag, width_px: int) -> Tag:
        """
        Clone ``node`` into a detached container positioned off-screen.

        The clone's transform is reset to identity so it renders at true size.
        """
        clone = copy.copy(node)
        declarations = parse_style(clone.get("style"))
        declarations["transform"] = "none"
        clone["style"] = format_style(declarations)

        container = self.soup.new_tag("div")
        container[OFFSCREEN_ATTR] = "true"
        container["style"] = format_style({
            "position": "absolute",
            "left": "-9999px",
            "top": "0",
            "width": f"{width_px}px",
            "background-color": "white",
        })
        container.append(clone)
        self.body.append(container)
        return container

    def detach(self, container: Tag) -> None:
        container.decompose()


class PreviewBoards:
    """
    Boards keyed by user id (in production, one per editing session).

    At most ``limit`` boards are kept. Touching a board marks it recently
    used; the least recently used idle board is dropped when the limit is
    exceeded. A board in the middle of an export is never dropped.
    """

    def __init__(self, limit: int | None = None):
        self.limit = limit or settings.preview_board_limit
        self._boards: OrderedDict[str, PreviewBoard] = OrderedDict()

    def get(self, user_id: str) -> PreviewBoard:
        board = self._boards.get(user_id)
        if board is None:
            board = self._boards[user_id] = PreviewBoard()
            self._evict()
        else:
            self._boards.move_to_end(user_id)
        return board

    def _evict(self) -> None:
        # The newest board (just handed out) is never a candidate
        for user_id in list(self._boards)[:-1]:
            if len(self._boards) <= self.limit:
                return
            if not self._boards[user_id].exporting:
                del self._boards[user_id]

    def __len__(self) -> int:
        return len(self._boards)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._boards

    def clear(self) -> None:
        self._boards.clear()


# Global instance (in production, use dependency injection)
preview_boards = PreviewBoards()
