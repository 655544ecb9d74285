"""Aggregate statistics of a course, computed in a single pass over its
events"""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Optional, Union

from tjatools.song import (
    Balloon,
    Course,
    GogoChange,
    Note,
    NoteType,
    Rest,
    SecondsTime,
    SustainEnd,
    SustainStart,
)

from .score import ScoreTally, max_score


@dataclass(frozen=True)
class RollRecord:
    duration: SecondsTime
    big: bool = False


@dataclass(frozen=True)
class BalloonRecord:
    duration: SecondsTime
    hits: int
    big: bool = False

    @property
    def hit_rate(self) -> Optional[Fraction]:
        """Hits per second needed to pop the balloon in time"""
        if self.duration == 0:
            return None
        return self.hits / self.duration


@dataclass
class Statistics:
    notes: Dict[NoteType, int]
    # notes + roll ticks + balloon hits
    total_combo: int
    roll_ticks: int
    max_score: int
    length: SecondsTime
    rolls: List[RollRecord] = field(default_factory=list)
    balloons: List[BalloonRecord] = field(default_factory=list)
    score: ScoreTally = field(default_factory=ScoreTally)

    @property
    def don(self) -> int:
        return self.notes[NoteType.DON] + self.notes[NoteType.DON_BIG]

    @property
    def kat(self) -> int:
        return self.notes[NoteType.KAT] + self.notes[NoteType.KAT_BIG]

    @property
    def note_count(self) -> int:
        return self.don + self.kat

    @property
    def don_ratio(self) -> Optional[Fraction]:
        if not self.note_count:
            return None
        return Fraction(self.don, self.note_count)

    @property
    def kat_ratio(self) -> Optional[Fraction]:
        if not self.note_count:
            return None
        return Fraction(self.kat, self.note_count)

    @property
    def density(self) -> Optional[Fraction]:
        """Combo per second"""
        if self.length == 0:
            return None
        return self.total_combo / self.length

    @property
    def roll_durations(self) -> List[SecondsTime]:
        return [r.duration for r in self.rolls]

    @property
    def roll_total(self) -> SecondsTime:
        return sum(self.roll_durations, start=SecondsTime(0))


def compute_statistics(course: Course) -> Statistics:
    notes = {t: 0 for t in NoteType}
    tally = ScoreTally()
    total_combo = 0
    note_combo = 0
    roll_ticks = 0
    gogo = False
    region: Optional[Union[SustainStart, Balloon]] = None
    rolls: List[RollRecord] = []
    balloons: List[BalloonRecord] = []

    for event in course.events:
        if isinstance(event, GogoChange):
            gogo = event.active
        elif isinstance(event, Note):
            notes[event.type] += 1
            note_combo += 1
            total_combo += 1
            tally.add_note(note_combo, event.type.big, gogo)
        elif isinstance(event, SustainStart):
            region = event
            roll_ticks += 1
            total_combo += 1
        elif isinstance(event, Balloon):
            region = event
            total_combo += event.hits
            tally.add_balloon(event.hits, gogo)
        elif isinstance(event, Rest):
            # each subdivision of an open roll is one more hit
            if isinstance(region, SustainStart):
                roll_ticks += 1
                total_combo += 1
        elif isinstance(event, SustainEnd):
            if region is None:
                continue
            duration = event.time - region.time
            if isinstance(region, SustainStart):
                rolls.append(RollRecord(duration, region.type.big))
            else:
                balloons.append(BalloonRecord(duration, region.hits, region.big))
            region = None

    return Statistics(
        notes=notes,
        total_combo=total_combo,
        roll_ticks=roll_ticks,
        max_score=max_score(course.headers, tally, total_combo),
        length=course.length,
        rolls=rolls,
        balloons=balloons,
        score=tally,
    )
