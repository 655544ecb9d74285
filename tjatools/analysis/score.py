"""Theoretical maximum score of a course

This is the scoring that goes with the SCOREINIT / SCOREDIFF headers : each
note is worth SCOREINIT plus SCOREDIFF times a multiplier that grows with the
combo, truncated to a multiple of 10. Gogo-time raises note values by 20%,
truncated again.
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from fractions import Fraction
from typing import List, Union

from tjatools.song import CourseHeaders

MULTIPLIERS = (0, 1, 2, 4, 8)

# combo at which each multiplier kicks in
COMBO_THRESHOLDS = (0, 10, 30, 50, 100)

GOGO_BONUS = Fraction(6, 5)

BALLOON_HIT = 300
BALLOON_POP = 5000

COMBO_MILESTONE = 100
COMBO_MILESTONE_BONUS = 10000


def drop_ones(n: Union[int, Fraction]) -> int:
    """Truncate to the nearest lower multiple of 10"""
    return int(n // 10) * 10


def tier(combo: int) -> int:
    """Index in MULTIPLIERS for the note that brings the combo to this value"""
    return bisect_right(COMBO_THRESHOLDS, combo) - 1


def note_value(score_init: int, score_diff: int, tier_index: int) -> int:
    return drop_ones(score_init + score_diff * MULTIPLIERS[tier_index])


def gogo_value(value: int) -> int:
    return drop_ones(value * GOGO_BONUS)


@dataclass
class ScoreTally:
    """Scoring opportunities found in a course.

    notes[gogo][tier] is the number of note hits worth the value of that
    multiplier tier, in or out of gogo-time. Big notes are hit with both
    hands and count twice. balloon_hits and balloon_pops are split the same
    way : index 0 outside of gogo-time, index 1 inside.
    """

    notes: List[List[int]] = field(
        default_factory=lambda: [[0] * len(MULTIPLIERS) for _ in range(2)]
    )
    balloon_hits: List[int] = field(default_factory=lambda: [0, 0])
    balloon_pops: List[int] = field(default_factory=lambda: [0, 0])

    def add_note(self, combo: int, big: bool, gogo: bool) -> None:
        self.notes[gogo][tier(combo)] += 2 if big else 1

    def add_balloon(self, hits: int, gogo: bool) -> None:
        self.balloon_hits[gogo] += hits
        self.balloon_pops[gogo] += 1


def max_score(headers: CourseHeaders, tally: ScoreTally, total_combo: int) -> int:
    """Every value is truncated before being summed, the order matters"""
    values = [
        note_value(headers.score_init, headers.score_diff, i)
        for i in range(len(MULTIPLIERS))
    ]
    gogo_values = [gogo_value(v) for v in values]
    notes = sum(count * v for count, v in zip(tally.notes[False], values))
    gogo_notes = sum(count * v for count, v in zip(tally.notes[True], gogo_values))
    balloons = (
        tally.balloon_hits[False] * BALLOON_HIT
        + tally.balloon_hits[True] * gogo_value(BALLOON_HIT)
        + tally.balloon_pops[False] * BALLOON_POP
        + tally.balloon_pops[True] * gogo_value(BALLOON_POP)
    )
    milestones = (total_combo // COMBO_MILESTONE) * COMBO_MILESTONE_BONUS
    return notes + gogo_notes + balloons + milestones
