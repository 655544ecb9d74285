"""Command Line Interface"""

from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from tjatools.analysis import DensityTable, Statistics, analyse
from tjatools.analysis.schema import dump_report
from tjatools.errors import AnalysisError, ParseError
from tjatools.song import Course, Difficulty, NoteType, Song
from tjatools.tja import load_tja_file

from .helpers import DifficultyType, PositiveDecimal, analysis_option

# The usual suspects for TJA files
ENCODINGS = ["utf-8-sig", "shift-jis", "gb18030"]

GRAPH_WIDTH = 40


def encoding_option(f: Any) -> Any:
    return click.option(
        "--encoding",
        type=click.Choice(ENCODINGS, case_sensitive=False),
        default="utf-8-sig",
        show_default=True,
        help="Text encoding of the chart file",
    )(f)


def load(src: str, encoding: str) -> Song:
    try:
        return load_tja_file(Path(src), encoding=encoding)
    except UnicodeDecodeError:
        raise click.ClickException(
            f"Could not decode {src} as {encoding}, try another --encoding"
        ) from None
    except ParseError as e:
        raise click.ClickException(str(e)) from None


@click.group()
def tjatools() -> None:
    """Parse TJA charts and compute statistics about their courses"""


@tjatools.command()
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@encoding_option
def courses(src: str, encoding: str) -> None:
    """List the courses found in SRC"""
    song = load(src, encoding)
    if not song.courses:
        click.echo("No course found")
        return

    for course in song.courses.values():
        note_count = sum(1 for _ in course.notes())
        click.echo(f"{course_name(course)} : {note_count} notes")


@tjatools.command()
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-c",
    "--course",
    "difficulty",
    required=True,
    prompt="Choose a course",
    type=DifficultyType(),
    help="Course to analyse (Easy, Normal, Hard, Oni, Edit or 0 to 4)",
)
@click.option(
    "--player",
    type=click.IntRange(min=1, max=2),
    help="For double play charts, which player side to analyse",
)
@analysis_option(
    "--bin-width",
    "bin_width",
    type=PositiveDecimal(),
    help="Width of the density graph bins, in seconds",
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@encoding_option
def stats(
    src: str,
    difficulty: Difficulty,
    player: Optional[int],
    as_json: bool,
    encoding: str,
    analysis_options: Optional[Dict[str, Any]] = None,
) -> None:
    """Print statistics about one course of SRC"""
    song = load(src, encoding)
    analysis_options = analysis_options or {}
    try:
        statistics, density = analyse(
            song, difficulty, player=player, **analysis_options
        )
    except AnalysisError as e:
        raise click.ClickException(str(e)) from None

    course = song.course(difficulty, player)
    if as_json:
        click.echo(dump_report(course, statistics, density))
    else:
        click.echo("\n".join(format_report(course, statistics, density)))


def course_name(course: Course) -> str:
    name = course.difficulty.value
    if course.player is not None:
        name += f" P{course.player}"
    if course.headers.level is not None:
        name += f" ★{course.headers.level}"
    return name


def percent(ratio: Optional[Fraction]) -> str:
    if ratio is None:
        return "-"
    return f"{float(ratio * 100):.2f}%"


def seconds(duration: Fraction) -> str:
    return f"{float(duration):.3f}s"


def format_report(
    course: Course, statistics: Statistics, density: DensityTable
) -> List[str]:
    notes = statistics.notes
    max_score = f"{statistics.max_score}"
    if statistics.rolls:
        # rolls aren't counted in the max score
        max_score += " + rolls"

    lines = [
        course_name(course),
        f"Total combo : {statistics.total_combo}",
        f"Max score   : {max_score}",
        f"Don         : {statistics.don} ({percent(statistics.don_ratio)})",
        f"  small/big : {notes[NoteType.DON]} / {notes[NoteType.DON_BIG]}",
        f"Kat         : {statistics.kat} ({percent(statistics.kat_ratio)})",
        f"  small/big : {notes[NoteType.KAT]} / {notes[NoteType.KAT_BIG]}",
    ]
    if statistics.density is not None:
        lines.append(f"Density     : {float(statistics.density):.3f} hit/s")
    lines.append(f"Length      : {float(statistics.length):.2f}s")

    if statistics.rolls:
        durations = " + ".join(seconds(d) for d in statistics.roll_durations)
        lines.append(f"Rolls       : {durations} = {seconds(statistics.roll_total)}")

    if statistics.balloons:
        lines.append("Balloons    :")
        for balloon in statistics.balloons:
            line = f"  {balloon.hits} hit(s) / {seconds(balloon.duration)}"
            if balloon.hit_rate is not None:
                line += f" = {float(balloon.hit_rate):.3f} hit/s"
            lines.append(line)

    lines.append(f"Density graph ({seconds(density.bin_width)} bins) :")
    lines.extend(format_graph(density))
    return lines


def format_graph(density: DensityTable) -> List[str]:
    """One text bar per bin, don as 'o' and kat as 'x'"""
    scale = Fraction(GRAPH_WIDTH, density.max) if density.max > GRAPH_WIDTH else 1
    lines = []
    for b in density.bins:
        bar = "o" * round(b.don * scale) + "x" * round(b.kat * scale)
        lines.append(f"{float(b.start):8.2f}s | {bar} {b.total}")
    return lines


if __name__ == "__main__":
    tjatools()
