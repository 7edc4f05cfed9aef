"""scoresync CLI entry point."""

import logging
import sys
from pathlib import Path

import click

from scoresync import __version__
from scoresync.cursor_navigator import CursorNavigator
from scoresync.display_surfaces import ConsoleSurface
from scoresync.layout_loader import GridLayoutOptions, LayoutLoader, beat_duration_for
from scoresync.layout_models import ScoreLayout
from scoresync.timeline_merger import TimelineMerger
from scoresync.timeline_models import CursorStop, CursorSystemData


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_timeline(
    score_file: str,
    measures_per_system: int,
    systems_per_page: int,
    beat_ms: float | None,
) -> tuple[ScoreLayout, CursorSystemData]:
    """Parse, lay out and merge a score, exiting with status 1 on failure."""
    try:
        options = GridLayoutOptions(
            measures_per_system=measures_per_system,
            systems_per_page=systems_per_page,
        )
        layout = LayoutLoader(options).load(score_file)
    except ValueError as exc:
        click.echo(f"  ERROR: Could not load score — {exc}", err=True)
        sys.exit(1)

    beat_duration = beat_ms if beat_ms is not None else beat_duration_for(layout)
    data = TimelineMerger().build(layout, beat_duration)
    return layout, data


def _describe_stop(stop: CursorStop) -> str:
    pitches = " ".join("rest" if note.is_rest else str(note.pitch) for note in stop.notes)
    placement = f"p{stop.page_index + 1} s{stop.system_index + 1}" if stop.is_visible else "hidden"
    return (
        f"{stop.index:5d}  {stop.time:10.1f} ms  bar {stop.measure_index + 1:<4d} "
        f"{placement:<8}  {pitches}"
    )


def _layout_options(func):
    """Shared score/layout options of every subcommand."""
    func = click.option(
        "--beat-ms",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        metavar="MS",
        help="Beat duration in milliseconds. Defaults to the score's first tempo mark.",
    )(func)
    func = click.option(
        "--systems-per-page",
        type=click.IntRange(min=1),
        default=3,
        show_default=True,
        help="Systems stacked on each page.",
    )(func)
    func = click.option(
        "--measures-per-system",
        type=click.IntRange(min=1),
        default=4,
        show_default=True,
        help="Measures laid out on each system.",
    )(func)
    func = click.argument(
        "score_file", type=click.Path(exists=True, dir_okay=False, readable=True)
    )(func)
    return func


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="scoresync")
@click.option("--verbose", "-v", is_flag=True, help="Log timeline construction details.")
def main(verbose: bool) -> None:
    """scoresync: playback cursor timelines for paginated scores."""
    _configure_logging(verbose)


# ── timeline subcommand ────────────────────────────────────────────────────────

@main.command()
@_layout_options
def timeline(
    score_file: str,
    measures_per_system: int,
    systems_per_page: int,
    beat_ms: float | None,
) -> None:
    """
    Print the merged cursor stops of a score.

    SCORE_FILE is a MusicXML or MIDI file.

    \b
    Examples:
      scoresync timeline song.musicxml
      scoresync timeline song.mid --beat-ms 400 --measures-per-system 3
    """
    layout, data = _load_timeline(score_file, measures_per_system, systems_per_page, beat_ms)

    click.echo(f"scoresync v{__version__}")
    click.echo(f"  Score    : {score_file}")
    click.echo(f"  Staves   : {len(layout.staves)}  |  Bars: {data.bars_count}")
    click.echo(f"  Pages    : {len(layout.pages)}  |  Systems: {data.number_of_systems_per_page}")
    click.echo(f"  Beat     : {data.beat_duration_in_milis:.1f} ms  |  Duration: {data.duration:.1f} ms")
    click.echo()

    for stop in data.positions:
        click.echo(_describe_stop(stop))


# ── locate subcommand ──────────────────────────────────────────────────────────

@main.command()
@_layout_options
@click.option("--time", "time_ms", type=float, required=True, metavar="MS", help="Playback time.")
def locate(
    score_file: str,
    measures_per_system: int,
    systems_per_page: int,
    beat_ms: float | None,
    time_ms: float,
) -> None:
    """
    Show the cursor stop playing at a given time.

    \b
    Examples:
      scoresync locate song.musicxml --time 4000
    """
    layout, data = _load_timeline(score_file, measures_per_system, systems_per_page, beat_ms)
    navigator = CursorNavigator(ConsoleSurface(layout.pages), data)

    stop = navigator.set_time(time_ms)
    if stop is None:
        click.echo(f"No cursor stop at {time_ms:.1f} ms (before the first note).")
        return
    click.echo(_describe_stop(stop))


# ── follow subcommand ──────────────────────────────────────────────────────────

@main.command()
@_layout_options
@click.option(
    "--step",
    type=click.FloatRange(min=0, min_open=True),
    default=250.0,
    show_default=True,
    metavar="MS",
    help="Playback clock resolution.",
)
def follow(
    score_file: str,
    measures_per_system: int,
    systems_per_page: int,
    beat_ms: float | None,
    step: float,
) -> None:
    """
    Simulate playback and report every cursor move, page jump and preview.

    \b
    Examples:
      scoresync follow song.musicxml --step 100
    """
    layout, data = _load_timeline(score_file, measures_per_system, systems_per_page, beat_ms)
    navigator = CursorNavigator(ConsoleSurface(layout.pages), data)
    navigator.set_play_mode(True)

    ticks = int(data.duration // step) + 1
    last_index = -1
    for tick in range(ticks):
        now = tick * step
        navigator.set_time(now)
        if navigator.current_position_index != last_index:
            last_index = navigator.current_position_index
            stop = navigator.current_position
            if stop is not None:
                click.echo(f"[{now:10.1f} ms] {_describe_stop(stop)}")

    navigator.set_play_mode(False)
    click.echo()
    click.echo(f"Done!  Followed {len(data.positions)} cursor stops over {data.duration:.1f} ms.")


# ── midi subcommand ────────────────────────────────────────────────────────────

@main.command()
@_layout_options
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination MIDI file path. Defaults to the score path with a .mid suffix.",
)
def midi(
    score_file: str,
    measures_per_system: int,
    systems_per_page: int,
    beat_ms: float | None,
    output: str | None,
) -> None:
    """
    Export the cursor timeline's notes as MIDI, in step with the cursor.

    \b
    Examples:
      scoresync midi song.musicxml -o song.mid
    """
    from scoresync.midi_exporter import MidiExporter

    score_path = Path(score_file)
    if output is not None:
        resolved_output = output
    elif score_path.suffix.lower() in {".mid", ".midi"}:
        resolved_output = str(score_path.with_name(f"{score_path.stem}_cursor.mid"))
    else:
        resolved_output = str(score_path.with_suffix(".mid"))
    _layout, data = _load_timeline(score_file, measures_per_system, systems_per_page, beat_ms)

    click.echo(f"Writing MIDI file → '{resolved_output}'...")
    try:
        MidiExporter().export(data, resolved_output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write MIDI file — {exc}", err=True)
        sys.exit(1)
    except ValueError as exc:
        click.echo(f"  ERROR: Could not export timeline — {exc}", err=True)
        sys.exit(1)

    click.echo(f"Done!  Open '{resolved_output}' in any MIDI player.")
