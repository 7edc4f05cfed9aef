"""StaveTimeline: builds the time-stamped cursor stops of a single stave."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

from scoresync.layout_models import LayoutMeasure, StaffEntry, SystemBounds
from scoresync.timeline_models import (
    DEFAULT_TIME_SIGNATURE,
    REST_PITCH,
    BoundingBox,
    CursorStop,
    NoteEvent,
    TimeSignature,
)

logger = logging.getLogger(__name__)


class StaveTimeline:
    """
    Ordered cursor stops, time signature history and duration of one stave.

    Built once from the layout's measures and never mutated afterwards; a
    re-render produces a new instance.

    Timing
    ------
    Every measure lasts ``beat_duration_in_milis * beats_per_bar`` where::

        beats_per_bar = signature.beats_per_measure
                        * (measure_duration / signature.real_value)

    so pickup bars and other short measures get a proportional duration.
    Bar start times accumulate; staff entries map linearly into their bar.
    """

    def __init__(
        self,
        stave_index: int,
        measures: Sequence[LayoutMeasure],
        system_bounds: Mapping[int, SystemBounds],
        beat_duration_in_milis: float,
    ) -> None:
        if beat_duration_in_milis < 0:
            raise ValueError(f"beat_duration_in_milis must be non-negative, got {beat_duration_in_milis}.")

        self._stave_index = stave_index
        self._measures = list(measures)
        self._system_bounds = system_bounds
        self._time_signatures: list[TimeSignature] = []
        self._positions: list[CursorStop] = []
        self._total_duration = 0.0

        self._process(beat_duration_in_milis)

    @classmethod
    def empty(cls, stave_index: int) -> StaveTimeline:
        """Timeline of a stave with no bars."""
        return cls(stave_index, [], {}, 0.0)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def stave_index(self) -> int:
        return self._stave_index

    @property
    def total_bars_count(self) -> int:
        return len(self._measures)

    @property
    def total_duration(self) -> float:
        return self._total_duration

    @property
    def time_signatures(self) -> list[TimeSignature]:
        return list(self._time_signatures)

    @property
    def last_time_signature(self) -> TimeSignature | None:
        return self._time_signatures[-1] if self._time_signatures else None

    @property
    def positions(self) -> list[CursorStop]:
        return list(self._positions)

    @property
    def last_position(self) -> CursorStop | None:
        return self._positions[-1] if self._positions else None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _process(self, beat_duration_in_milis: float) -> None:
        for bar_index, measure in enumerate(self._measures):
            self._update_time_signatures_if_needed(bar_index, measure)
            if not self._time_signatures:
                self._time_signatures.append(DEFAULT_TIME_SIGNATURE)

            signature = self._time_signatures[-1]
            measure_duration = measure.duration
            if measure_duration <= 0:
                measure_duration = signature.real_value

            beats_per_bar = signature.beats_per_measure * (measure_duration / signature.real_value)
            bar_duration = beat_duration_in_milis * beats_per_bar
            bar_time = self._total_duration
            self._total_duration += bar_duration

            system = None
            if measure.system_id is not None:
                system = self._system_bounds.get(measure.system_id)

            for entry in measure.staff_entries:
                stop = self._build_stop(
                    entry,
                    bar_index=bar_index,
                    bar_time=bar_time,
                    bar_duration=bar_duration,
                    beats_per_bar=beats_per_bar,
                    measure_duration=measure_duration,
                    system=system,
                )
                if stop is not None:
                    self._positions.append(stop)

        logger.debug(
            "stave %d: %d bars, %d stops, %.1f ms",
            self._stave_index,
            len(self._measures),
            len(self._positions),
            self._total_duration,
        )

    def _update_time_signatures_if_needed(self, bar_index: int, measure: LayoutMeasure) -> None:
        rhythm = measure.rhythm
        if rhythm is None:
            return
        self._time_signatures.append(
            TimeSignature(
                bar_index=bar_index,
                beats_per_measure=rhythm.numerator,
                note_duration=rhythm.denominator,
                real_value=rhythm.real_value,
            )
        )

    def _build_stop(
        self,
        entry: StaffEntry,
        *,
        bar_index: int,
        bar_time: float,
        bar_duration: float,
        beats_per_bar: float,
        measure_duration: float,
        system: SystemBounds | None,
    ) -> CursorStop | None:
        """
        Build the stop for one staff entry, or ``None`` if nothing in it prints.

        Horizontal bounds come from the left-most visible note head and are
        only resolved for placed measures.
        """
        if entry.timestamp < 0:
            raise ValueError(
                f"Staff entry at {entry.timestamp} precedes the start of bar {bar_index} "
                f"on stave {self._stave_index}."
            )

        visible = [note for note in entry.notes if note.print_object]
        if not visible:
            return None

        relative = entry.timestamp / measure_duration
        time = bar_time + relative * bar_duration
        beat_index = math.floor(beats_per_bar * entry.timestamp / measure_duration) if entry.timestamp != 0 else 0

        notes = tuple(
            NoteEvent(
                stave_index=self._stave_index,
                bar_index=bar_index,
                beat_index=beat_index,
                time=time,
                pitch=REST_PITCH if note.pitch is None else note.pitch,
                duration=note.length / measure_duration * bar_duration,
            )
            for note in visible
        )

        if system is None:
            return CursorStop(
                index=len(self._positions),
                time=time,
                measure_index=bar_index,
                notes=notes,
            )

        start_x = float("inf")
        width = float("inf")
        for note in visible:
            for glyph in note.glyphs:
                if glyph.x < start_x:
                    start_x = glyph.x
                    width = glyph.width

        return CursorStop(
            index=len(self._positions),
            time=time,
            measure_index=bar_index,
            page_index=system.page_index,
            system_index=system.index,
            notes=notes,
            box=BoundingBox(
                start_x=start_x,
                width=width,
                start_y=system.start_y,
                end_y=system.end_y,
            ),
        )
