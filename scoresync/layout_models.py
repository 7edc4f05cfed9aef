"""Input data supplied by the layout engine and the rendering backend."""

from dataclasses import dataclass, field

from scoresync.timeline_models import Instrument


@dataclass(frozen=True)
class RhythmInstruction:
    """A time signature declared in a measure's first instructions."""

    numerator: int
    denominator: int

    def __post_init__(self) -> None:
        if self.numerator <= 0 or self.denominator <= 0:
            raise ValueError(
                f"Invalid rhythm instruction {self.numerator}/{self.denominator}: "
                "both terms must be positive."
            )

    @property
    def real_value(self) -> float:
        """Whole-note length of one measure under this signature."""
        return self.numerator / self.denominator


@dataclass(frozen=True)
class GlyphBox:
    """Horizontal extent of one rendered note head, in unscaled page units."""

    x: float
    width: float


@dataclass(frozen=True)
class LayoutNote:
    """
    A note as laid out by the engraver.

    Attributes:
        length:       Duration as a whole-note fraction (quarter = 0.25).
        pitch:        MIDI half-tone, or ``None`` for a rest.
        print_object: False when the note is hidden from print.
        glyphs:       Rendered note-head boxes; empty when not rendered.
    """

    length: float
    pitch: int | None = None
    print_object: bool = True
    glyphs: tuple[GlyphBox, ...] = ()

    @property
    def is_rest(self) -> bool:
        return self.pitch is None


@dataclass(frozen=True)
class StaffEntry:
    """Notes sharing one onset, ``timestamp`` relative to the measure start."""

    timestamp: float
    notes: list[LayoutNote] = field(default_factory=list)


@dataclass(frozen=True)
class LayoutMeasure:
    """
    One measure of one stave.

    ``system_id`` keys into the score's system bounds and is ``None`` for
    measures that were not rendered.
    """

    duration: float
    staff_entries: list[StaffEntry] = field(default_factory=list)
    rhythm: RhythmInstruction | None = None
    system_id: int | None = None


@dataclass(frozen=True)
class SystemBounds:
    """Vertical bounds of a rendered system; ``index`` is its position on the page."""

    index: int
    page_index: int
    start_y: float
    end_y: float


@dataclass(frozen=True)
class PageData:
    """Screen geometry of one rendered page, in pixels."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class StaveLayout:
    """Measures of one stave plus its instrument metadata."""

    measures: list[LayoutMeasure]
    instrument: Instrument


@dataclass(frozen=True)
class ScoreLayout:
    """Everything the core needs from one layout/render pass."""

    staves: list[StaveLayout]
    system_bounds: dict[int, SystemBounds] = field(default_factory=dict)
    pages: list[PageData] = field(default_factory=list)
    number_of_systems_per_page: list[int] = field(default_factory=list)
