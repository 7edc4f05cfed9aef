"""MidiExporter: Writes a merged cursor timeline as a multi-track MIDI file."""

from midiutil import MIDIFile

from scoresync.timeline_models import CursorSystemData

# In Format 1 files midiutil adds its own conductor track in front of the
# user tracks and routes every addTempo call to it, so user track n is stave n.
TRACK_CONDUCTOR = 0

# General MIDI reserves channel 10 (index 9) for percussion.
PERCUSSION_CHANNEL = 9
MIDI_CHANNELS = 16


def stave_channel(stave_index: int) -> int:
    """Map a stave to a melodic MIDI channel, skipping the percussion channel."""
    channel = stave_index % (MIDI_CHANNELS - 1)
    return channel + 1 if channel >= PERCUSSION_CHANNEL else channel


class MidiExporter:
    """
    Writes the notes of a :class:`CursorSystemData` to a Standard MIDI File.

    Track layout (Format 1, conductor plus one track per stave)
    -----------------------------------------------------------
    Conductor: tempo only, written by midiutil ahead of the stave tracks.

    Track n: stave n, with a program change to the stave instrument's
        ``midi_id`` and its ``volume`` as note velocity.

    Timing
    ------
    Note times are milliseconds derived from a fixed beat duration, so the
    conductor tempo is ``60000 / beat_duration_in_milis`` BPM and a note at
    ``t`` ms starts on beat ``t / beat_duration_in_milis``. The MIDI file
    therefore plays back in step with the cursor timeline.
    """

    MAX_VELOCITY = 127

    def __init__(self, track_name_prefix: str = "Stave") -> None:
        """
        Args:
            track_name_prefix: Track names are ``"<prefix> <n>"`` (1-based).
        """
        self.track_name_prefix = track_name_prefix

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _velocity(self, volume: int) -> int:
        return max(0, min(self.MAX_VELOCITY, int(volume)))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, data: CursorSystemData) -> MIDIFile:
        """
        Build the in-memory MIDI file for ``data``.

        Raises:
            ValueError: If the timeline has no positive beat duration.
        """
        beat_ms = data.beat_duration_in_milis
        if beat_ms <= 0:
            raise ValueError(f"Cannot export a timeline with beat duration {beat_ms} ms.")

        stave_count = len(data.instrument_per_stave)
        midi = MIDIFile(
            numTracks=max(stave_count, 1),
            removeDuplicates=False,
            deinterleave=False,
        )

        # --- Conductor: tempo only ---
        midi.addTempo(TRACK_CONDUCTOR, 0, 60000.0 / beat_ms)

        for stave_index, instrument in enumerate(data.instrument_per_stave):
            midi.addTrackName(stave_index, 0, f"{self.track_name_prefix} {stave_index + 1}")
            midi.addProgramChange(stave_index, stave_channel(stave_index), 0, instrument.midi_id)

        for position in data.positions:
            for note in position.notes:
                if note.is_rest or note.duration <= 0:
                    continue
                instrument = data.instrument_per_stave[note.stave_index]
                midi.addNote(
                    track=note.stave_index,
                    channel=stave_channel(note.stave_index),
                    pitch=note.pitch,
                    time=note.time / beat_ms,
                    duration=note.duration / beat_ms,
                    volume=self._velocity(instrument.volume),
                )

        return midi

    def export(self, data: CursorSystemData, output_path: str) -> None:
        """
        Render the timeline's notes to ``output_path``.

        Raises:
            ValueError: If the timeline cannot be expressed in beats.
            OSError: If the output file cannot be opened for writing.
        """
        midi = self.build(data)
        with open(output_path, "wb") as f:
            midi.writeFile(f)
