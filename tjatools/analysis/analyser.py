from decimal import Decimal
from fractions import Fraction
from typing import Optional, Tuple, Union

from tjatools.errors import UnknownCourse
from tjatools.song import Difficulty, Song

from .density import DEFAULT_BIN_WIDTH, DensityTable, bin_notes
from .stats import Statistics, compute_statistics


def analyse(
    song: Song,
    course_id: Union[Difficulty, str],
    bin_width: Union[int, Decimal, Fraction] = DEFAULT_BIN_WIDTH,
    player: Optional[int] = None,
) -> Tuple[Statistics, DensityTable]:
    """Statistics and density table of one course of the song. Raises
    UnknownCourse if the song has no such course"""
    try:
        course = song.course(course_id, player)
    except (KeyError, ValueError):
        name = course_id.value if isinstance(course_id, Difficulty) else course_id
        if player is not None:
            name += f" P{player}"
        raise UnknownCourse(name) from None

    statistics = compute_statistics(course)
    density = bin_notes(course.notes(), statistics.length, bin_width)
    return statistics, density
