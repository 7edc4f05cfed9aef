"""Value types produced by the timeline builders and consumed by the navigator."""

from dataclasses import dataclass, field
from typing import Final

#: Pitch value used for rests in :class:`NoteEvent`.
REST_PITCH: Final[int] = -1

#: Page/system index of a stop with no graphical placement.
UNPLACED: Final[int] = -1


@dataclass(frozen=True)
class TimeSignature:
    """
    A time signature taking effect at ``bar_index``.

    Attributes:
        bar_index:         First bar (inclusive) the signature applies to.
        beats_per_measure: Numerator, e.g. 3 for 3/4.
        note_duration:     Denominator, e.g. 4 for 3/4.
        real_value:        Whole-note length of one measure (3/4 -> 0.75).
    """

    bar_index: int
    beats_per_measure: int
    note_duration: int
    real_value: float


DEFAULT_TIME_SIGNATURE: Final[TimeSignature] = TimeSignature(
    bar_index=0,
    beats_per_measure=4,
    note_duration=4,
    real_value=1.0,
)


@dataclass(frozen=True)
class NoteEvent:
    """A single sounding (or resting) note, timed in milliseconds."""

    stave_index: int
    bar_index: int
    beat_index: int
    time: float
    pitch: int
    duration: float

    @property
    def is_rest(self) -> bool:
        return self.pitch == REST_PITCH


@dataclass(frozen=True)
class BoundingBox:
    """Unscaled, page-local extent of a cursor stop."""

    start_x: float = float("inf")
    width: float = float("inf")
    start_y: float = float("inf")
    end_y: float = -1.0

    @property
    def height(self) -> float:
        return self.end_y - self.start_y


@dataclass(frozen=True)
class CursorStop:
    """
    A discrete, time-stamped position the playback cursor can occupy.

    A stop with ``page_index == -1`` exists in time but has no visible
    placement; it answers time queries but is never displayed.
    """

    index: int
    time: float
    measure_index: int
    page_index: int = UNPLACED
    system_index: int = UNPLACED
    notes: tuple[NoteEvent, ...] = ()
    box: BoundingBox = field(default_factory=BoundingBox)

    @property
    def is_visible(self) -> bool:
        return self.page_index != UNPLACED


@dataclass(frozen=True)
class Instrument:
    """Playback metadata for one stave."""

    midi_id: int
    volume: int
    tempo_in_bpm: float


@dataclass(frozen=True)
class CursorSystemData:
    """
    Merged, time-ordered cursor timeline for a whole score.

    Rebuilt wholesale on every layout change, never patched.
    """

    beat_duration_in_milis: float
    bars_count: int
    metronome: list[list[TimeSignature]]
    positions: list[CursorStop]
    duration: float
    instrument_per_stave: list[Instrument]
    number_of_systems_per_page: list[int]
