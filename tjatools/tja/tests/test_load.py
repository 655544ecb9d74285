from decimal import Decimal
from fractions import Fraction
from pathlib import Path
from typing import List

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tjatools.errors import ParseError
from tjatools.song import (
    Balloon,
    Barline,
    Branch,
    BranchPoint,
    CourseEnd,
    Delay,
    Difficulty,
    GogoChange,
    MeasureChange,
    Note,
    NoteType,
    Rest,
    RollType,
    SecondsTime,
    SustainEnd,
    SustainStart,
    TempoChange,
)
from tjatools.testutils.strategies import TIME_SIGNATURES, bpms, chart, measure_codes

from ..command import parse_measure
from ..load import load_tja, select_branch
from . import examples


def test_that_notes_split_the_measure_evenly() -> None:
    song = load_tja(examples.SIMPLE)
    course = song.course(Difficulty.ONI)
    assert [(n.time, n.beat, n.type) for n in course.notes()] == [
        (0, 0, NoteType.DON),
        (Fraction(1, 2), 1, NoteType.KAT),
        (1, 2, NoteType.DON),
        (Fraction(3, 2), 3, NoteType.KAT),
    ]
    assert course.events[0] == Barline(time=0, beat=0)
    assert course.events[-1] == CourseEnd(time=2, beat=4)
    assert course.length == 2


def test_song_metadata() -> None:
    song = load_tja(examples.FULL)
    assert song.metadata.title == "Full"
    assert song.metadata.subtitle == "Tester"
    assert song.metadata.localized_titles == {"JA": "フル"}
    assert song.metadata.audio == Path("full.ogg")
    assert song.metadata.offset == Decimal("-1.5")
    assert song.metadata.demo_start == Decimal(10)
    assert song.metadata.genre == "Test"


def test_course_headers() -> None:
    course = load_tja(examples.FULL).course("Oni")
    assert course.headers.level == 8
    assert course.headers.balloons == (10,)
    assert course.headers.score_init == 100
    assert course.headers.score_diff == 20
    assert course.headers.bpm == Decimal(120)


def test_timing_commands() -> None:
    course = load_tja(examples.FULL).course("Oni")
    timed = [
        (type(e), e.time, e.beat)
        for e in course.events
        if not isinstance(e, (Rest, Barline))
    ]
    assert timed == [
        (Note, 0, 0),
        (Note, Fraction(1, 2), 1),
        (Note, 1, 2),
        (Note, Fraction(3, 2), 3),
        (GogoChange, 2, 4),
        (Note, 2, 4),
        (Note, 3, 6),
        (GogoChange, 4, 8),
        (TempoChange, 4, 8),
        (SustainStart, 4, 8),
        (SustainEnd, Fraction(79, 16), Fraction(47, 4)),
        (MeasureChange, 5, 12),
        (Balloon, 5, 12),
        (SustainEnd, Fraction(43, 8), Fraction(27, 2)),
        (MeasureChange, Fraction(11, 2), 14),
        (TempoChange, Fraction(11, 2), 14),
        (CourseEnd, Fraction(15, 2), 18),
    ]


def test_that_barlines_mark_every_measure() -> None:
    course = load_tja(examples.FULL).course("Oni")
    barlines = [e.time for e in course.events if isinstance(e, Barline)]
    assert barlines == [0, 2, 4, 5, Fraction(11, 2)]


def test_roll_and_balloon_types() -> None:
    course = load_tja(examples.FULL).course("Oni")
    (roll,) = [e for e in course.events if isinstance(e, SustainStart)]
    assert roll.type == RollType.ROLL
    (balloon,) = [e for e in course.events if isinstance(e, Balloon)]
    assert balloon.hits == 10
    assert not balloon.big


def test_that_a_tempo_change_only_affects_the_following_notes() -> None:
    text = "\n".join(["BPM:120", "#START", "11", "#BPMCHANGE 60", "11,", "#END"])
    course = load_tja(text).course("Oni")
    assert [n.time for n in course.notes()] == [0, Fraction(1, 2), 1, 2]
    assert [n.beat for n in course.notes()] == [0, 1, 2, 3]
    (tempo_change,) = [e for e in course.events if isinstance(e, TempoChange)]
    assert tempo_change.time == 1
    assert course.length == 3


def test_that_a_measure_change_mid_measure_applies_to_the_next_one() -> None:
    text = "\n".join(["BPM:120", "#START", "1", "#MEASURE 3/4", "1,", "1,", "#END"])
    course = load_tja(text).course("Oni")
    assert [n.time for n in course.notes()] == [0, 1, 2]
    assert course.length == Fraction(7, 2)


def test_that_delay_shifts_the_following_notes() -> None:
    text = "\n".join(["BPM:120", "#START", "1,", "#DELAY 0.5", "1,", "#END"])
    course = load_tja(text).course("Oni")
    assert [n.time for n in course.notes()] == [0, Fraction(5, 2)]
    assert [n.beat for n in course.notes()] == [0, 4]
    (delay,) = [e for e in course.events if isinstance(e, Delay)]
    assert delay.seconds == Fraction(1, 2)
    assert course.length == Fraction(9, 2)


@given(bpms(), st.sampled_from(TIME_SIGNATURES), st.lists(measure_codes(), min_size=1))
def test_that_course_length_only_depends_on_tempo_and_measure_count(
    bpm: Decimal, signature: str, measures: List[str]
) -> None:
    balloons = sum(codes.count("7") + codes.count("9") for codes in measures)
    lines = [f"BPM:{bpm}", "BALLOON:" + ",".join("1" * balloons), "#START"]
    lines += [f"#MEASURE {signature}"] + [codes + "," for codes in measures]
    lines.append("#END")
    course = load_tja("\n".join(lines)).course("Oni")
    seconds_per_measure = 4 * parse_measure(signature) * 60 / Fraction(bpm)
    assert course.length == len(measures) * seconds_per_measure
    barlines = [e.time for e in course.events if isinstance(e, Barline)]
    assert barlines == [i * seconds_per_measure for i in range(len(measures))]


@given(chart())
def test_that_events_are_sorted_by_time(text: str) -> None:
    (course,) = load_tja(text).courses.values()
    times = [e.time for e in course.events]
    assert times == sorted(times)
    assert isinstance(course.events[-1], CourseEnd)


@given(chart())
def test_that_rolls_and_balloons_are_closed(text: str) -> None:
    (course,) = load_tja(text).courses.values()
    depth = 0
    for event in course.events:
        if isinstance(event, (SustainStart, Balloon)):
            assert depth == 0
            depth += 1
        elif isinstance(event, SustainEnd):
            assert depth == 1
            depth -= 1
    assert depth == 0


def test_courses_and_difficulty_aliases() -> None:
    song = load_tja(examples.TWO_COURSES)
    assert list(song.difficulties()) == [Difficulty.EASY, Difficulty.ONI]
    easy = song.course("0")
    assert easy.headers.level == 2
    assert easy.headers.score_init == 0
    oni = song.course(Difficulty.ONI)
    assert oni.headers.level == 9
    assert oni.headers.score_init == 500
    assert oni.headers.bpm == Decimal(150)


def test_that_a_missing_course_raises_key_error() -> None:
    song = load_tja(examples.SIMPLE)
    with pytest.raises(KeyError):
        song.course(Difficulty.EASY)


def test_double_play_courses() -> None:
    song = load_tja(examples.DOUBLE)
    assert len(song.courses.getall("Oni")) == 2
    p1 = song.course("Oni", player=1)
    p2 = song.course("Oni", player=2)
    assert [n.type for n in p1.notes()] == [NoteType.DON]
    assert [n.type for n in p2.notes()] == [NoteType.KAT]
    assert p1.headers.style == "Double"


class TestBranches:
    def test_that_master_is_selected(self) -> None:
        course = load_tja(examples.BRANCHES).course("Oni")
        (point,) = [e for e in course.events if isinstance(e, BranchPoint)]
        assert point.time == 4
        assert point.declared == frozenset(Branch)
        assert point.selected == Branch.MASTER
        assert point.condition == "p,10,20"

    def test_that_only_the_selected_branch_is_kept(self) -> None:
        course = load_tja(examples.BRANCHES).course("Oni")
        assert [(n.time, n.type) for n in course.notes()] == [
            (0, NoteType.DON),
            (4, NoteType.DON),
            (Fraction(16, 3), NoteType.DON),
            (Fraction(20, 3), NoteType.DON),
            (16, NoteType.KAT),
        ]
        assert course.length == 20

    def test_that_balloon_counts_are_consumed_in_file_order(self) -> None:
        course = load_tja(examples.BRANCHES).course("Oni")
        (balloon,) = [e for e in course.events if isinstance(e, Balloon)]
        assert balloon.hits == 4

    def test_per_branch_balloon_counts(self) -> None:
        text = examples.BRANCHES.replace("BALLOON:3,4", "BALLOONEXP:3\nBALLOONMAS:9")
        course = load_tja(text).course("Oni")
        (balloon,) = [e for e in course.events if isinstance(e, Balloon)]
        assert balloon.hits == 9

    def test_that_branch_resolution_is_deterministic(self) -> None:
        first = load_tja(examples.BRANCHES).course("Oni")
        second = load_tja(examples.BRANCHES).course("Oni")
        assert first.events == second.events

    @pytest.mark.parametrize(
        "declared, expected",
        [
            ({Branch.NORMAL}, Branch.NORMAL),
            ({Branch.NORMAL, Branch.EXPERT}, Branch.EXPERT),
            ({Branch.EXPERT, Branch.MASTER}, Branch.MASTER),
            (set(Branch), Branch.MASTER),
        ],
    )
    def test_branch_priority(self, declared: set, expected: Branch) -> None:
        assert select_branch(declared) == expected

    def test_that_a_block_without_sections_is_rejected(self) -> None:
        text = "\n".join(["#START", "#BRANCHSTART p,0,0", "#BRANCHEND", "#END"])
        with pytest.raises(ParseError):
            load_tja(text)


def test_that_an_unmatched_end_of_roll_becomes_a_rest() -> None:
    text = "\n".join(["#START", "1,", "8,", "#END"])
    with pytest.warns(UserWarning):
        course = load_tja(text).course("Oni")
    assert Rest(time=SecondsTime(2), beat=4) in course.events
    assert not any(isinstance(e, SustainEnd) for e in course.events)


def test_that_a_balloon_without_hit_count_defaults_to_5() -> None:
    text = "\n".join(["#START", "7008,", "#END"])
    with pytest.warns(UserWarning):
        course = load_tja(text).course("Oni")
    (balloon,) = [e for e in course.events if isinstance(e, Balloon)]
    assert balloon.hits == 5


def test_that_a_missing_end_closes_the_course() -> None:
    text = "\n".join(["#START", "1,"])
    with pytest.warns(UserWarning):
        song = load_tja(text)
    assert song.course("Oni").length == 2


def test_that_the_byte_order_mark_is_ignored() -> None:
    song = load_tja("\ufeff" + examples.SIMPLE)
    assert song.metadata.title == "Simple"


def test_that_ignored_headers_and_cosmetic_commands_are_accepted() -> None:
    text = "\n".join(
        [
            "SONGVOL:100",
            "EXAM1:g,80,100,m",
            "#START",
            "#SECTION",
            "#LYRIC hello",
            "#JPOSSCROLL 1 1 1",
            "1,",
            "#END",
        ]
    )
    assert len(load_tja(text).course("Oni").events) == 3


@pytest.mark.parametrize(
    "text, line",
    [
        ("FOO:bar", 1),
        ("COURSE:Impossible", 1),
        ("BPM:-10", 1),
        ("BPM:fast", 1),
        ("#START\n#FOO\n#END", 2),
        ("#START\n1x,\n#END", 2),
        ("#END", 1),
        ("1010,", 1),
        ("#START\n1,\nLEVEL:3\n#END", 3),
        ("#START\n#START\n#END", 2),
        ("#START P3\n1,\n#END", 1),
        ("#START\n11\n#END", 3),
        ("#START\n11", 2),
        ("#START\n5000,\n#END", 3),
        ("#START\n50,\n60,\n8,\n#END", 3),
        ("#START\n#DELAY -1\n1,\n#END", 2),
        ("#START\n#BPMCHANGE 0\n1,\n#END", 2),
        ("#START\n#MEASURE 4\n1,\n#END", 2),
        ("#START\n1\n#BRANCHSTART p,1,1\n#END", 3),
        ("#START\n#N\n1,\n#END", 2),
        ("#START\n#BRANCHSTART p,1,1\n1,\n#END", 3),
        ("#START\n#BRANCHSTART p,1,1\n#N\n1,\n#N\n#END", 5),
        ("#START\n#BRANCHEND\n#END", 2),
    ],
)
def test_that_errors_point_to_the_offending_line(text: str, line: int) -> None:
    with pytest.raises(ParseError) as exc_info:
        load_tja(text)
    assert exc_info.value.line == line
    assert str(exc_info.value).startswith(f"On line {line} : ")
