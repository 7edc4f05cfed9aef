"""TimelineMerger: K-way merge of per-stave timelines into one cursor timeline."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from scoresync.layout_models import ScoreLayout
from scoresync.stave_timeline import StaveTimeline
from scoresync.timeline_models import (
    UNPLACED,
    BoundingBox,
    CursorStop,
    CursorSystemData,
    Instrument,
    NoteEvent,
)

logger = logging.getLogger(__name__)


@dataclass
class _StaveIterator:
    """Read cursor into one stave's stops."""

    stops: list[CursorStop]
    index: int = 0
    last: CursorStop | None = None

    @property
    def current(self) -> CursorStop | None:
        return self.stops[self.index] if self.index < len(self.stops) else None


@dataclass
class _StopAccumulator:
    """The merged stop under construction during a single wavefront step."""

    index: int
    time: float = 0.0
    measure_index: int = 0
    page_index: int = UNPLACED
    system_index: int = UNPLACED
    notes: list[NoteEvent] = field(default_factory=list)
    start_x: float = float("inf")
    width: float = -1.0
    start_y: float = float("inf")
    end_y: float = -1.0
    has_contributor: bool = False

    def add(self, stop: CursorStop) -> None:
        if not self.has_contributor:
            self.time = stop.time
            self.measure_index = stop.measure_index
            self.page_index = stop.page_index
            self.system_index = stop.system_index
            self.has_contributor = True
        self.notes.extend(stop.notes)
        self.extend_vertically(stop)
        if stop.box.start_x < self.start_x:
            self.start_x = stop.box.start_x
            self.width = stop.box.width

    def extend_vertically(self, stop: CursorStop) -> None:
        self.start_y = min(self.start_y, stop.box.start_y)
        self.end_y = max(self.end_y, stop.box.end_y)

    def freeze(self) -> CursorStop:
        return CursorStop(
            index=self.index,
            time=self.time,
            measure_index=self.measure_index,
            page_index=self.page_index,
            system_index=self.system_index,
            notes=tuple(self.notes),
            box=BoundingBox(
                start_x=self.start_x,
                width=self.width,
                start_y=self.start_y,
                end_y=self.end_y,
            ),
        )


class TimelineMerger:
    """
    Merges one :class:`StaveTimeline` per stave into a :class:`CursorSystemData`.

    Algorithm overview
    ------------------
    1. **Wavefront** – the minimum time among the current stop of every
       stave (exhausted staves are skipped).

    2. **Coalescing** – every stave whose current stop lies within
       ``epsilon`` ms of the wavefront contributes to one merged stop.
       Proportional timing accumulates rounding differently per signature,
       so equality is approximate.

    3. **Union** – the merged stop takes the first contributor's time,
       measure and placement, all contributors' notes, the vertical union
       of their boxes and the left-most ``start_x`` (with its width).
       Staves that contribute nothing but have already produced a stop
       still extend the vertical union, so the cursor height does not snap
       to a single voice.

    4. **Advance** – only the contributing staves move forward. The merge
       ends when every stave is exhausted.
    """

    DEFAULT_EPSILON = 0.001  # ms

    def __init__(self, epsilon: float = DEFAULT_EPSILON) -> None:
        if epsilon < 0:
            raise ValueError(f"epsilon must be non-negative, got {epsilon}.")
        self.epsilon = epsilon

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _contributors(self, iterators: list[_StaveIterator]) -> list[int]:
        """Return the stave indices whose current stop sits on the wavefront."""
        current = [(stave, iterator.current) for stave, iterator in enumerate(iterators)]
        times = [(stave, stop.time) for stave, stop in current if stop is not None]
        if not times:
            return []

        min_time = min(time for _stave, time in times)
        return [stave for stave, time in times if time == min_time or time - min_time < self.epsilon]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def merge(self, timelines: Sequence[StaveTimeline]) -> list[CursorStop]:
        """Merge the stops of all staves into one time-ordered sequence."""
        iterators = [_StaveIterator(stops=timeline.positions) for timeline in timelines]
        positions: list[CursorStop] = []

        while True:
            included = self._contributors(iterators)
            if not included:
                break

            accumulator = _StopAccumulator(index=len(positions))
            for stave, iterator in enumerate(iterators):
                if stave in included:
                    stop = iterator.stops[iterator.index]
                    accumulator.add(stop)
                    iterator.last = stop
                    iterator.index += 1
                elif iterator.last is not None:
                    accumulator.extend_vertically(iterator.last)
            positions.append(accumulator.freeze())

        return positions

    def calculate(
        self,
        timelines: Sequence[StaveTimeline],
        instruments: Sequence[Instrument],
        number_of_systems_per_page: Sequence[int],
        beat_duration_in_milis: float,
    ) -> CursorSystemData:
        """
        Assemble the score-wide cursor timeline.

        Args:
            timelines:                  One built timeline per stave, in stave order.
            instruments:                One instrument per stave.
            number_of_systems_per_page: Rendered systems on each page.
            beat_duration_in_milis:     Beat duration the timelines were built with.

        Raises:
            ValueError: If the instrument count does not match the stave count.
        """
        if len(instruments) != len(timelines):
            raise ValueError(
                f"Expected one instrument per stave ({len(timelines)}), got {len(instruments)}."
            )

        positions = self.merge(timelines)
        logger.debug("merged %d staves into %d cursor stops", len(timelines), len(positions))

        return CursorSystemData(
            beat_duration_in_milis=beat_duration_in_milis,
            bars_count=timelines[0].total_bars_count if timelines else 0,
            metronome=[timeline.time_signatures for timeline in timelines],
            positions=positions,
            duration=max((timeline.total_duration for timeline in timelines), default=0.0),
            instrument_per_stave=list(instruments),
            number_of_systems_per_page=list(number_of_systems_per_page),
        )

    def build(self, layout: ScoreLayout, beat_duration_in_milis: float) -> CursorSystemData:
        """
        Build every stave timeline from ``layout`` and merge them.

        A stave that fails to build is logged and replaced by an empty
        timeline; the remaining staves are still merged.
        """
        timelines: list[StaveTimeline] = []
        for stave_index, stave in enumerate(layout.staves):
            try:
                timeline = StaveTimeline(
                    stave_index,
                    stave.measures,
                    layout.system_bounds,
                    beat_duration_in_milis,
                )
            except ValueError as exc:
                logger.warning("stave %d could not be built, using an empty timeline: %s", stave_index, exc)
                timeline = StaveTimeline.empty(stave_index)
            timelines.append(timeline)

        return self.calculate(
            timelines,
            [stave.instrument for stave in layout.staves],
            layout.number_of_systems_per_page,
            beat_duration_in_milis,
        )
