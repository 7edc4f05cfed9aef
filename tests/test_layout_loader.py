"""Tests for LayoutLoader using in-memory music21 scores (no files needed)."""

from pathlib import Path
from typing import Any

import pytest

from scoresync.layout_loader import GridLayoutOptions, LayoutLoader, beat_duration_for
from scoresync.timeline_merger import TimelineMerger


def _sample_score(bars: int = 2, hide_last: bool = False) -> Any:
    from music21 import chord, instrument, meter, note, stream, tempo

    score = stream.Score()
    part = stream.Part()
    part.insert(0, instrument.Violin())
    for number in range(1, bars + 1):
        measure = stream.Measure(number=number)
        if number == 1:
            measure.insert(0, meter.TimeSignature("3/4"))
            measure.insert(0, tempo.MetronomeMark(number=100))
        measure.append(note.Note("C4", quarterLength=1.0))
        measure.append(chord.Chord(["E4", "G4"], quarterLength=1.0))
        last = note.Rest(quarterLength=1.0)
        if hide_last:
            last.style.hideObjectOnPrint = True
        measure.append(last)
        part.append(measure)
    score.insert(0, part)
    return score


def test_measures_become_staff_entries() -> None:
    layout = LayoutLoader().layout_score(_sample_score())
    assert len(layout.staves) == 1

    measure = layout.staves[0].measures[0]
    assert measure.duration == pytest.approx(0.75)
    assert measure.rhythm is not None
    assert (measure.rhythm.numerator, measure.rhythm.denominator) == (3, 4)
    assert [entry.timestamp for entry in measure.staff_entries] == pytest.approx([0.0, 0.25, 0.5])
    assert layout.staves[0].measures[1].rhythm is None


def test_chords_rests_and_hidden_notes() -> None:
    layout = LayoutLoader().layout_score(_sample_score(hide_last=True))
    entries = layout.staves[0].measures[0].staff_entries

    assert [n.pitch for n in entries[0].notes] == [60]
    assert sorted(n.pitch for n in entries[1].notes) == [64, 67]
    assert entries[2].notes[0].is_rest
    assert not entries[2].notes[0].print_object
    assert entries[1].notes[0].length == pytest.approx(0.25)


def test_instrument_and_tempo_are_harvested() -> None:
    layout = LayoutLoader().layout_score(_sample_score())
    instrument = layout.staves[0].instrument
    assert instrument.midi_id == 40
    assert instrument.volume == LayoutLoader.DEFAULT_VOLUME
    assert instrument.tempo_in_bpm == pytest.approx(100.0)
    assert beat_duration_for(layout) == pytest.approx(600.0)


def test_grid_places_systems_on_pages() -> None:
    options = GridLayoutOptions(measures_per_system=1, systems_per_page=2, page_width=500.0)
    layout = LayoutLoader(options).layout_score(_sample_score(bars=3))

    assert layout.number_of_systems_per_page == [2, 1]
    assert len(layout.pages) == 2
    assert layout.pages[1].left == pytest.approx(500.0)
    assert layout.system_bounds[1].page_index == 0
    assert layout.system_bounds[1].index == 1
    assert layout.system_bounds[2].page_index == 1
    assert layout.system_bounds[2].index == 0
    assert [m.system_id for m in layout.staves[0].measures] == [0, 1, 2]


def test_glyphs_advance_through_the_measure() -> None:
    layout = LayoutLoader().layout_score(_sample_score())
    entries = layout.staves[0].measures[0].staff_entries
    xs = [entry.notes[0].glyphs[0].x for entry in entries]
    assert xs == sorted(xs)
    assert len(set(xs)) == 3


def test_loaded_score_builds_a_visible_timeline() -> None:
    layout = LayoutLoader().layout_score(_sample_score(bars=2, hide_last=True))
    data = TimelineMerger().build(layout, beat_duration_for(layout))

    # the hidden rest of each bar is suppressed
    assert len(data.positions) == 4
    assert all(stop.is_visible for stop in data.positions)
    assert data.positions[2].time == pytest.approx(1800.0)
    assert data.duration == pytest.approx(3600.0)


def test_empty_score_yields_empty_layout() -> None:
    from music21 import stream

    layout = LayoutLoader().layout_score(stream.Score())
    assert layout.staves == []
    assert layout.pages == []
    assert beat_duration_for(layout) == pytest.approx(500.0)


def test_invalid_grid_options_rejected() -> None:
    with pytest.raises(ValueError):
        GridLayoutOptions(measures_per_system=0)
    with pytest.raises(ValueError):
        GridLayoutOptions(zoom=0.0)


def test_load_unparseable_file_raises_value_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.musicxml"
    path.write_text("this is not a score", encoding="utf-8")
    with pytest.raises(ValueError, match="Could not parse"):
        LayoutLoader().load(str(path))
