"""CursorNavigator: answers time and click queries against a merged cursor timeline."""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Sequence

import numpy as np

from scoresync.display_surfaces import CursorRect, DisplaySurface
from scoresync.timeline_models import UNPLACED, CursorStop, CursorSystemData

logger = logging.getLogger(__name__)


class NavigatorStateError(RuntimeError):
    """Raised when the navigator is queried before it has any timeline."""


class CursorNavigator:
    """
    Holds the current cursor timeline and the cursor's position within it.

    The navigator owns ``current_position_index``; it survives timeline
    rebuilds (clamped to the new length). Display effects (page jumps,
    cursor rectangle, page preview) are delegated to a
    :class:`DisplaySurface`.

    Page behaviour
    --------------
    - In play mode, or when a caller forces it, moving the cursor also
      jumps the viewport to the cursor's page. Clicks outside play mode
      never move the viewport.
    - In play mode, once the cursor passes the middle of its page
      (plus ``PREVIEW_X_CORRECTION``) the next page is previewed. Pages
      holding several systems wait until the cursor reaches the last
      system of the page.
    """

    PREVIEW_X_CORRECTION: float = 0.0  # px

    def __init__(self, surface: DisplaySurface, data: CursorSystemData | None = None) -> None:
        self.surface = surface
        self._data: CursorSystemData | None = None
        self._current_position_index = -1
        self.play_mode = False
        self.cursor_rect: CursorRect | None = None
        self._placed_data: CursorSystemData | None = None
        self.preview_visible = False
        if data is not None:
            self.set_cursor_system_data(data)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def cursor_system_data(self) -> CursorSystemData:
        """
        The current timeline snapshot.

        Raises:
            NavigatorStateError: If no timeline has been supplied yet.
        """
        if self._data is None:
            raise NavigatorStateError(
                "No cursor timeline has been built yet; call set_cursor_system_data() first."
            )
        return self._data

    @property
    def current_position_index(self) -> int:
        return self._current_position_index

    @property
    def current_position(self) -> CursorStop | None:
        positions = self.cursor_system_data.positions
        if 0 <= self._current_position_index < len(positions):
            return positions[self._current_position_index]
        return None

    def set_cursor_system_data(self, data: CursorSystemData) -> None:
        """Swap in a freshly built timeline, keeping the current index in range."""
        self._data = data
        self._current_position_index = min(self._current_position_index, len(data.positions) - 1)
        logger.debug(
            "timeline replaced: %d stops, current index %d",
            len(data.positions),
            self._current_position_index,
        )
        if self._current_position_index >= 0:
            self._move_to(self._current_position_index)

    def set_play_mode(self, play_mode: bool) -> None:
        self.play_mode = play_mode
        if not play_mode:
            self._hide_preview()

    def show_cursor(self) -> None:
        self.surface.set_cursor_visible(True)

    def hide_cursor(self) -> None:
        self.surface.set_cursor_visible(False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def find_position(positions: Sequence[CursorStop], time: float) -> CursorStop | None:
        """Return the last stop whose time is ``<= time``, or None if ``time`` precedes all stops."""
        index = bisect_right(positions, time, key=lambda stop: stop.time) - 1
        return positions[index] if index >= 0 else None

    def set_time(self, time: float) -> CursorStop | None:
        """
        Move the cursor to the stop playing at ``time`` (ms).

        Returns the stop found by :meth:`find_position`; the displayed stop
        may be a visible neighbour of it when the found stop is hidden.
        """
        stop = self.find_position(self.cursor_system_data.positions, time)
        if stop is None:
            return None
        self._move_to(stop.index)
        return stop

    def set_position_index(self, index: int, force_page_jump: bool = False) -> CursorStop | None:
        """Jump to the stop at ``index``; out-of-range indices are ignored."""
        positions = self.cursor_system_data.positions
        if not 0 <= index < len(positions):
            return None
        return self._move_to(index, force_page_jump=force_page_jump)

    def nearest_stop(self, page_index: int, x: float, y: float) -> tuple[CursorStop, float] | None:
        """
        Find the stop on ``page_index`` nearest to the page-local point (x, y).

        Distances are squared point-to-rectangle distances in unscaled page
        units: zero inside a stop's box, else the distance to its nearest
        edge. Ties resolve to the earlier stop.
        """
        candidates: list[CursorStop] = []
        for stop in self.cursor_system_data.positions:
            if stop.page_index == UNPLACED:
                continue
            if stop.page_index > page_index:
                break
            if stop.page_index == page_index:
                candidates.append(stop)

        if not candidates:
            return None

        left = np.array([stop.box.start_x for stop in candidates])
        right = left + np.array([stop.box.width for stop in candidates])
        top = np.array([stop.box.start_y for stop in candidates])
        bottom = np.array([stop.box.end_y for stop in candidates])

        dx = np.maximum(np.maximum(left - x, 0.0), x - right)
        dy = np.maximum(np.maximum(top - y, 0.0), y - bottom)
        distances = dx * dx + dy * dy

        best = int(np.argmin(distances))
        return candidates[best], float(distances[best])

    def on_click(self, x: float, y: float) -> CursorStop | None:
        """Move the cursor to the stop nearest a click at screen point (x, y)."""
        if not self.cursor_system_data.positions:
            return None
        page_index = self.surface.page_at(x)
        if page_index is None:
            return None

        page = self.surface.pages[page_index]
        zoom = self.surface.zoom
        found = self.nearest_stop(page_index, (x - page.left) / zoom, (y - page.top) / zoom)
        if found is None:
            return None

        stop, _distance = found
        return self._move_to(stop.index)

    def resolve_visible_index(self, index: int) -> int | None:
        """
        Return ``index`` if its stop is visible, else the nearest visible neighbour.

        Scans backward first, then forward; None when no stop is visible or
        ``index`` is out of range.
        """
        positions = self.cursor_system_data.positions
        if not 0 <= index < len(positions):
            return None
        for candidate in range(index, -1, -1):
            if positions[candidate].is_visible:
                return candidate
        for candidate in range(index + 1, len(positions)):
            if positions[candidate].is_visible:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _move_to(self, index: int, force_page_jump: bool = False) -> CursorStop | None:
        resolved = self.resolve_visible_index(index)
        if resolved is None:
            logger.debug("no visible stop around index %d, cursor left unchanged", index)
            return None

        stop = self.cursor_system_data.positions[resolved]
        # an unchanged stop on the same timeline keeps its drawn cursor
        redraw = (
            resolved != self._current_position_index
            or self._placed_data is not self._data
            or self.cursor_rect is None
        )
        self._current_position_index = resolved
        if self.play_mode or force_page_jump:
            self.surface.jump_to_page(stop.page_index)
        if redraw:
            self._place_cursor(stop)
        self._update_preview(stop)
        return stop

    def _place_cursor(self, stop: CursorStop) -> None:
        page = self.surface.page_data(stop.page_index)
        if page is None:
            logger.warning("stop %d refers to missing page %d", stop.index, stop.page_index)
            return

        zoom = self.surface.zoom
        rect = CursorRect(
            x=page.left + stop.box.start_x * zoom,
            y=page.top + stop.box.start_y * zoom,
            width=stop.box.width * zoom,
            height=stop.box.height * zoom,
        )
        self.cursor_rect = rect
        self._placed_data = self._data
        self.surface.place_cursor(rect)

    def _update_preview(self, stop: CursorStop) -> None:
        page = self.surface.page_data(stop.page_index)
        if not self.play_mode or page is None or self.cursor_rect is None:
            self._hide_preview()
            return

        systems_per_page = self.cursor_system_data.number_of_systems_per_page
        systems = systems_per_page[stop.page_index] if stop.page_index < len(systems_per_page) else 1
        midline = page.left + page.width / 2 + self.PREVIEW_X_CORRECTION
        past_midline = self.cursor_rect.x > midline
        in_last_system = systems <= 1 or stop.system_index == systems - 1

        if past_midline and in_last_system:
            if self.surface.show_page_preview(stop.page_index, stop.page_index + 1):
                self.preview_visible = True
                return
        self._hide_preview()

    def _hide_preview(self) -> None:
        if self.preview_visible:
            self.surface.hide_page_preview()
            self.preview_visible = False
