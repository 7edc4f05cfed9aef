"""Display surfaces the cursor navigator drives: page jumps, cursor box, page preview."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import click

from scoresync.layout_models import PageData


@dataclass(frozen=True)
class CursorRect:
    """On-screen cursor rectangle in pixels."""

    x: float
    y: float
    width: float
    height: float


class DisplaySurface(ABC):
    """Abstract display surface: owns page geometry and paints the cursor."""

    @property
    @abstractmethod
    def zoom(self) -> float:
        """Current zoom factor applied to unscaled page coordinates."""

    @property
    @abstractmethod
    def pages(self) -> list[PageData]:
        """Rendered pages, laid out left to right in index order."""

    @abstractmethod
    def jump_to_page(self, page_index: int) -> bool:
        """Scroll the viewport to ``page_index``; False if there is no such page."""

    @abstractmethod
    def place_cursor(self, rect: CursorRect) -> None:
        """Redraw the cursor at ``rect``."""

    @abstractmethod
    def set_cursor_visible(self, visible: bool) -> None:
        """Show or hide the cursor without moving it."""

    @abstractmethod
    def show_page_preview(self, current_page_index: int, next_page_index: int) -> bool:
        """Overlay a preview of ``next_page_index``; False if either page is missing."""

    @abstractmethod
    def hide_page_preview(self) -> None:
        """Hide the page preview if it is shown."""

    def page_data(self, page_index: int) -> PageData | None:
        pages = self.pages
        if 0 <= page_index < len(pages):
            return pages[page_index]
        return None

    def page_at(self, x: float) -> int | None:
        """Index of the page whose horizontal span contains ``x``."""
        for page_index, page in enumerate(self.pages):
            if page.left > x:
                break
            if x < page.left + page.width:
                return page_index
        return None


class ConsoleSurface(DisplaySurface):
    """
    Surface that reports every display effect as a line of text.

    Used by the CLI to follow a playback clock without a GUI. Output goes
    through ``click.echo`` unless another ``echo`` callable is given.
    """

    def __init__(
        self,
        pages: list[PageData],
        zoom: float = 1.0,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self._pages = list(pages)
        self._zoom = zoom
        self._echo = echo
        self.current_page_index = 0 if pages else -1
        self.cursor_rect: CursorRect | None = None
        self.cursor_visible = True
        self.preview_page_index: int | None = None

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def pages(self) -> list[PageData]:
        return self._pages

    def jump_to_page(self, page_index: int) -> bool:
        if not 0 <= page_index < len(self._pages):
            return False
        if page_index != self.current_page_index:
            self.current_page_index = page_index
            self._echo(f"  page   -> {page_index + 1}/{len(self._pages)}")
        return True

    def place_cursor(self, rect: CursorRect) -> None:
        self.cursor_rect = rect
        self._echo(
            f"  cursor -> x={rect.x:.1f} y={rect.y:.1f} w={rect.width:.1f} h={rect.height:.1f}"
        )

    def set_cursor_visible(self, visible: bool) -> None:
        self.cursor_visible = visible
        self._echo(f"  cursor {'shown' if visible else 'hidden'}")

    def show_page_preview(self, current_page_index: int, next_page_index: int) -> bool:
        page_count = len(self._pages)
        if not (0 <= current_page_index < page_count and 0 <= next_page_index < page_count):
            return False
        if self.preview_page_index != next_page_index:
            self.preview_page_index = next_page_index
            self._echo(f"  preview page {next_page_index + 1}")
        return True

    def hide_page_preview(self) -> None:
        if self.preview_page_index is not None:
            self.preview_page_index = None
            self._echo("  preview hidden")
