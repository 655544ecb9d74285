"""Provides the Song class, the central model for TJA chart sets.
The parser produces a Song instance, the analyser and the cli consume it.

Symbolic positions are stored as beat fractions, clock time as an exact
fraction of seconds since the start of the course"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Dict, FrozenSet, Iterator, Mapping, Optional, Tuple, Union

from multidict import MultiDict

BeatsTime = Fraction
SecondsTime = Fraction


class Difficulty(str, Enum):
    EASY = "Easy"
    NORMAL = "Normal"
    HARD = "Hard"
    ONI = "Oni"
    EDIT = "Edit"

    @classmethod
    def from_tja(cls, raw: str) -> Difficulty:
        """Understands both the names and the numeric values allowed by the
        COURSE: header"""
        value = raw.strip().lower()
        try:
            return DIFFICULTY_ALIASES[value]
        except KeyError:
            raise ValueError(f"Unknown course : {raw!r}") from None


DIFFICULTY_ORDER = list(Difficulty)

DIFFICULTY_ALIASES = {
    **{d.value.lower(): d for d in Difficulty},
    **{str(i): d for i, d in enumerate(Difficulty)},
    "ura": Difficulty.EDIT,
    "extreme": Difficulty.EDIT,
}


class Branch(str, Enum):
    NORMAL = "N"
    EXPERT = "E"
    MASTER = "M"


# Highest first
BRANCH_PRIORITY = (Branch.MASTER, Branch.EXPERT, Branch.NORMAL)


class NoteType(Enum):
    DON = "don"
    KAT = "kat"
    DON_BIG = "don-big"
    KAT_BIG = "kat-big"

    @property
    def big(self) -> bool:
        return self in (NoteType.DON_BIG, NoteType.KAT_BIG)

    @property
    def base(self) -> NoteType:
        """don-big counts as a don and kat-big as a kat"""
        if self in (NoteType.DON, NoteType.DON_BIG):
            return NoteType.DON
        else:
            return NoteType.KAT


class RollType(Enum):
    ROLL = "roll"
    ROLL_BIG = "roll-big"

    @property
    def big(self) -> bool:
        return self is RollType.ROLL_BIG


@dataclass(frozen=True)
class Note:
    time: SecondsTime
    beat: BeatsTime
    type: NoteType


@dataclass(frozen=True)
class SustainStart:
    time: SecondsTime
    beat: BeatsTime
    type: RollType


@dataclass(frozen=True)
class Balloon:
    """Opens a balloon region, hits is the number of strikes required to pop
    it, big balloons are the kusudama ones"""

    time: SecondsTime
    beat: BeatsTime
    hits: int
    big: bool = False


@dataclass(frozen=True)
class SustainEnd:
    time: SecondsTime
    beat: BeatsTime


@dataclass(frozen=True)
class Rest:
    time: SecondsTime
    beat: BeatsTime


@dataclass(frozen=True)
class TempoChange:
    time: SecondsTime
    beat: BeatsTime
    bpm: Decimal


@dataclass(frozen=True)
class MeasureChange:
    time: SecondsTime
    beat: BeatsTime
    # fraction of a 4/4 measure
    measure: Fraction


@dataclass(frozen=True)
class ScrollChange:
    time: SecondsTime
    beat: BeatsTime
    scroll: Decimal


@dataclass(frozen=True)
class GogoChange:
    time: SecondsTime
    beat: BeatsTime
    active: bool


@dataclass(frozen=True)
class BarlineChange:
    time: SecondsTime
    beat: BeatsTime
    visible: bool


@dataclass(frozen=True)
class Barline:
    time: SecondsTime
    beat: BeatsTime
    visible: bool = True


@dataclass(frozen=True)
class Delay:
    time: SecondsTime
    beat: BeatsTime
    seconds: SecondsTime


@dataclass(frozen=True)
class BranchPoint:
    """Only the events of the selected branch follow this one"""

    time: SecondsTime
    beat: BeatsTime
    declared: FrozenSet[Branch]
    selected: Branch
    condition: Optional[str] = None


@dataclass(frozen=True)
class CourseEnd:
    time: SecondsTime
    beat: BeatsTime


Event = Union[
    Note,
    SustainStart,
    Balloon,
    SustainEnd,
    Rest,
    TempoChange,
    MeasureChange,
    ScrollChange,
    GogoChange,
    BarlineChange,
    Barline,
    Delay,
    BranchPoint,
    CourseEnd,
]


@dataclass(frozen=True)
class CourseHeaders:
    bpm: Decimal = Decimal(120)
    measure: Fraction = Fraction(1)
    scroll: Decimal = Decimal(1)
    score_init: int = 0
    score_diff: int = 0
    level: Optional[int] = None
    balloons: Tuple[int, ...] = ()
    branch_balloons: Mapping[Branch, Tuple[int, ...]] = field(default_factory=dict)
    style: Optional[str] = None


@dataclass(frozen=True)
class Course:
    difficulty: Difficulty
    headers: CourseHeaders
    events: Tuple[Event, ...]
    player: Optional[int] = None

    def notes(self) -> Iterator[Note]:
        return (e for e in self.events if isinstance(e, Note))

    @property
    def length(self) -> SecondsTime:
        if not self.events:
            return SecondsTime(0)
        return self.events[-1].time


@dataclass
class Metadata:
    title: Optional[str] = None
    subtitle: Optional[str] = None
    # language suffix (JA, EN ...) to title
    localized_titles: Dict[str, str] = field(default_factory=dict)
    localized_subtitles: Dict[str, str] = field(default_factory=dict)
    audio: Optional[Path] = None
    offset: Decimal = Decimal(0)
    demo_start: Optional[Decimal] = None
    genre: Optional[str] = None
    maker: Optional[str] = None


@dataclass
class Song:
    """The parsed form of a TJA file : metadata and every course it declares,
    keyed by difficulty name. Double play files declare two courses (one per
    player) for the same difficulty, hence the MultiDict"""

    metadata: Metadata
    courses: MultiDict[Course] = field(default_factory=MultiDict)

    def course(
        self, difficulty: Union[Difficulty, str], player: Optional[int] = None
    ) -> Course:
        """Raises KeyError if no course matches"""
        if not isinstance(difficulty, Difficulty):
            difficulty = Difficulty.from_tja(difficulty)

        candidates = self.courses.getall(difficulty.value, [])
        if player is not None:
            candidates = [c for c in candidates if c.player == player]
        if not candidates:
            raise KeyError(difficulty)

        return candidates[0]

    def difficulties(self) -> Iterator[Difficulty]:
        """Difficulties present in the song, easiest first, without repeats"""
        present = set(self.courses.keys())
        return (d for d in DIFFICULTY_ORDER if d.value in present)
