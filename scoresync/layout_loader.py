"""LayoutLoader: builds a ScoreLayout from a MusicXML or MIDI file via music21."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

from scoresync.layout_models import (
    GlyphBox,
    LayoutMeasure,
    LayoutNote,
    PageData,
    RhythmInstruction,
    ScoreLayout,
    StaffEntry,
    StaveLayout,
    SystemBounds,
)
from scoresync.timeline_models import Instrument

logger = logging.getLogger(__name__)

QUARTERS_PER_WHOLE = 4


@dataclass(frozen=True)
class GridLayoutOptions:
    """
    Fixed-grid geometry standing in for a real engraver.

    Measures are spread evenly over systems, systems are stacked on pages,
    pages sit side by side. All lengths are unscaled page units except
    ``zoom``, which maps them to screen pixels.
    """

    measures_per_system: int = 4
    systems_per_page: int = 3
    page_width: float = 800.0
    page_height: float = 1100.0
    margin_left: float = 60.0
    margin_right: float = 40.0
    margin_top: float = 80.0
    stave_height: float = 80.0
    system_gap: float = 60.0
    glyph_width: float = 12.0
    zoom: float = 1.0

    def __post_init__(self) -> None:
        if self.measures_per_system < 1 or self.systems_per_page < 1:
            raise ValueError("measures_per_system and systems_per_page must be at least 1.")
        if self.zoom <= 0:
            raise ValueError(f"zoom must be positive, got {self.zoom}.")

    @property
    def measure_width(self) -> float:
        usable = self.page_width - self.margin_left - self.margin_right
        return usable / self.measures_per_system


class LayoutLoader:
    """
    Convert a music21 score into the per-stave layout the timeline builders read.

    Each part becomes one stave. Notes and rests are grouped into staff
    entries by their offset inside the measure; chords contribute one
    note per pitch. Notes hidden from print (``style.hideObjectOnPrint``)
    keep their timing but do not print.
    """

    DEFAULT_VOLUME = 100
    DEFAULT_TEMPO = 120.0  # BPM
    DEFAULT_PROGRAM = 0    # Acoustic Grand Piano

    def __init__(self, options: GridLayoutOptions | None = None) -> None:
        self.options = options or GridLayoutOptions()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _parse_score(self, path: str) -> Any:
        from music21 import converter

        return converter.parse(path)

    def _extract_measures(self, part: Any) -> list[Any]:
        measures = list(part.getElementsByClass("Measure"))
        if not measures:
            measures = list(part.makeMeasures().getElementsByClass("Measure"))
        return measures

    def _extract_tempo(self, score: Any) -> float:
        for mark in score.recurse().getElementsByClass("MetronomeMark"):
            number = getattr(mark, "number", None)
            if isinstance(number, (int, float)) and number > 0:
                return float(number)
        return self.DEFAULT_TEMPO

    def _extract_instrument(self, part: Any, tempo: float) -> Instrument:
        instrument = part.getInstrument(returnDefault=True)
        program = getattr(instrument, "midiProgram", None)
        return Instrument(
            midi_id=program if isinstance(program, int) else self.DEFAULT_PROGRAM,
            volume=self.DEFAULT_VOLUME,
            tempo_in_bpm=tempo,
        )

    def _extract_rhythm(self, measure: Any) -> RhythmInstruction | None:
        time_signature = measure.timeSignature
        if time_signature is None:
            return None
        return RhythmInstruction(time_signature.numerator, time_signature.denominator)

    def _element_pitches(self, element: Any) -> list[int | None]:
        if element.isRest:
            return [None]
        if element.isChord:
            return [pitch.midi for pitch in element.pitches]
        return [element.pitch.midi]

    def _is_printed(self, element: Any) -> bool:
        return not bool(getattr(element.style, "hideObjectOnPrint", False))

    def _glyph_x(self, measure_number: int, timestamp: float, duration: float) -> float:
        opts = self.options
        slot = measure_number % opts.measures_per_system
        measure_left = opts.margin_left + slot * opts.measure_width
        relative = timestamp / duration if duration > 0 else 0.0
        return measure_left + opts.glyph_width + relative * (opts.measure_width - 2 * opts.glyph_width)

    def _layout_measure(self, measure_number: int, measure: Any) -> LayoutMeasure:
        duration = float(Fraction(measure.duration.quarterLength)) / QUARTERS_PER_WHOLE
        entries: dict[Fraction, list[LayoutNote]] = {}

        for element in measure.flatten().notesAndRests:
            offset = Fraction(element.offset)
            timestamp = float(offset) / QUARTERS_PER_WHOLE
            length = float(Fraction(element.duration.quarterLength)) / QUARTERS_PER_WHOLE
            glyph = GlyphBox(
                x=self._glyph_x(measure_number, timestamp, duration),
                width=self.options.glyph_width,
            )
            printed = self._is_printed(element)
            for pitch in self._element_pitches(element):
                entries.setdefault(offset, []).append(
                    LayoutNote(length=length, pitch=pitch, print_object=printed, glyphs=(glyph,))
                )

        return LayoutMeasure(
            duration=duration,
            staff_entries=[
                StaffEntry(timestamp=float(offset) / QUARTERS_PER_WHOLE, notes=notes)
                for offset, notes in sorted(entries.items())
            ],
            rhythm=self._extract_rhythm(measure),
            system_id=measure_number // self.options.measures_per_system,
        )

    def _layout_systems(
        self, measure_count: int, stave_count: int
    ) -> tuple[dict[int, SystemBounds], list[PageData], list[int]]:
        opts = self.options
        system_count = math.ceil(measure_count / opts.measures_per_system)
        system_height = stave_count * opts.stave_height

        bounds: dict[int, SystemBounds] = {}
        systems_per_page: list[int] = []
        for system_id in range(system_count):
            page_index, index = divmod(system_id, opts.systems_per_page)
            start_y = opts.margin_top + index * (system_height + opts.system_gap)
            bounds[system_id] = SystemBounds(
                index=index,
                page_index=page_index,
                start_y=start_y,
                end_y=start_y + system_height,
            )
            if page_index == len(systems_per_page):
                systems_per_page.append(0)
            systems_per_page[page_index] += 1

        pages = [
            PageData(
                left=page_index * opts.page_width * opts.zoom,
                top=0.0,
                width=opts.page_width * opts.zoom,
                height=opts.page_height * opts.zoom,
            )
            for page_index in range(len(systems_per_page))
        ]
        return bounds, pages, systems_per_page

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def layout_score(self, score: Any) -> ScoreLayout:
        """Lay out an already parsed music21 score."""
        tempo = self._extract_tempo(score)
        staves: list[StaveLayout] = []
        for part in score.parts:
            measures = [
                self._layout_measure(number, measure)
                for number, measure in enumerate(self._extract_measures(part))
            ]
            staves.append(StaveLayout(measures=measures, instrument=self._extract_instrument(part, tempo)))

        measure_count = max((len(stave.measures) for stave in staves), default=0)
        bounds, pages, systems_per_page = self._layout_systems(measure_count, len(staves))
        logger.debug(
            "laid out %d staves, %d measures on %d pages", len(staves), measure_count, len(pages)
        )

        return ScoreLayout(
            staves=staves,
            system_bounds=bounds,
            pages=pages,
            number_of_systems_per_page=systems_per_page,
        )

    def load(self, path: str) -> ScoreLayout:
        """
        Parse a MusicXML or MIDI file and lay it out on the grid.

        Raises:
            ValueError: If music21 cannot parse the file.
        """
        try:
            score = self._parse_score(path)
        except Exception as exc:
            raise ValueError(f"Could not parse '{path}': {exc}") from exc
        return self.layout_score(score)


def beat_duration_for(layout: ScoreLayout) -> float:
    """Beat duration in ms implied by the first stave's tempo."""
    if not layout.staves:
        return 60000.0 / LayoutLoader.DEFAULT_TEMPO
    return 60000.0 / layout.staves[0].instrument.tempo_in_bpm
