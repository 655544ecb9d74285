from decimal import Decimal
from fractions import Fraction

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tjatools.song import Note, NoteType
from tjatools.testutils.strategies import chart
from tjatools.tja import load_tja
from tjatools.tja.tests import examples

from ..density import DensityBin, bin_notes


def test_density_of_a_hand_written_chart() -> None:
    course = load_tja(examples.FULL).course("Oni")
    table = bin_notes(course.notes(), course.length, bin_width=1)
    assert table.bins == (
        DensityBin(0, don=2),
        DensityBin(1, don=2),
        DensityBin(2, don=1),
        DensityBin(3, kat=1),
        DensityBin(4),
        DensityBin(5),
        DensityBin(6),
        DensityBin(7),
    )
    assert table.max == 2


def test_that_notes_on_the_end_of_the_chart_land_in_the_last_bin() -> None:
    notes = [
        Note(time=Fraction(0), beat=Fraction(0), type=NoteType.DON),
        Note(time=Fraction(2), beat=Fraction(4), type=NoteType.KAT_BIG),
    ]
    table = bin_notes(notes, Fraction(2), bin_width=1)
    assert table.bins == (DensityBin(0, don=1), DensityBin(1, kat=1))


def test_that_an_empty_course_still_has_one_bin() -> None:
    table = bin_notes([], Fraction(0))
    assert table.bins == (DensityBin(0),)
    assert table.max == 0


@pytest.mark.parametrize("width", [0, -1, Decimal("-0.5")])
def test_that_the_bin_width_must_be_positive(width: Decimal) -> None:
    with pytest.raises(ValueError):
        bin_notes([], Fraction(1), bin_width=width)


@given(
    chart(),
    st.decimals(min_value="0.05", max_value=10, places=2),
)
def test_that_binning_keeps_every_note(text: str, width: Decimal) -> None:
    (course,) = load_tja(text).courses.values()
    notes = list(course.notes())
    table = bin_notes(notes, course.length, width)
    assert sum(b.total for b in table.bins) == len(notes)
    assert sum(b.don for b in table.bins) == sum(
        1 for n in notes if n.type.base == NoteType.DON
    )
    assert table.max == max(b.total for b in table.bins)
    assert [b.start for b in table.bins] == [
        i * Fraction(width) for i in range(len(table.bins))
    ]
