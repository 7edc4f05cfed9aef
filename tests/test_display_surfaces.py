"""Unit tests for ConsoleSurface and the shared DisplaySurface helpers."""

from scoresync.display_surfaces import ConsoleSurface, CursorRect
from scoresync.layout_models import PageData


def _surface(lines: list[str]) -> ConsoleSurface:
    pages = [PageData(left=i * 500.0, top=0.0, width=500.0, height=700.0) for i in range(3)]
    return ConsoleSurface(pages, echo=lines.append)


def test_page_at_finds_page_under_x() -> None:
    surface = _surface([])
    assert surface.page_at(0.0) == 0
    assert surface.page_at(499.9) == 0
    assert surface.page_at(500.0) == 1
    assert surface.page_at(1499.0) == 2
    assert surface.page_at(1500.0) is None
    assert surface.page_at(-1.0) is None


def test_page_data_bounds() -> None:
    surface = _surface([])
    assert surface.page_data(1) == PageData(left=500.0, top=0.0, width=500.0, height=700.0)
    assert surface.page_data(3) is None
    assert surface.page_data(-1) is None


def test_jump_reports_only_page_changes() -> None:
    lines: list[str] = []
    surface = _surface(lines)
    assert surface.jump_to_page(0)
    assert surface.jump_to_page(2)
    assert not surface.jump_to_page(5)
    assert lines == ["  page   -> 3/3"]
    assert surface.current_page_index == 2


def test_preview_is_reported_once_and_hidden() -> None:
    lines: list[str] = []
    surface = _surface(lines)
    assert surface.show_page_preview(0, 1)
    assert surface.show_page_preview(0, 1)
    assert not surface.show_page_preview(2, 3)
    surface.hide_page_preview()
    surface.hide_page_preview()
    assert lines == ["  preview page 2", "  preview hidden"]


def test_place_cursor_records_rect() -> None:
    lines: list[str] = []
    surface = _surface(lines)
    rect = CursorRect(x=10.0, y=20.0, width=5.0, height=80.0)
    surface.place_cursor(rect)
    surface.set_cursor_visible(False)
    assert surface.cursor_rect == rect
    assert not surface.cursor_visible
    assert lines == ["  cursor -> x=10.0 y=20.0 w=5.0 h=80.0", "  cursor hidden"]
