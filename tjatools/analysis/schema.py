"""JSON export of the analysis results"""

from dataclasses import dataclass, field
from decimal import Decimal
from fractions import Fraction
from typing import Any, List, Optional

import simplejson as json
from marshmallow import Schema, post_dump, validate
from marshmallow_dataclass import class_schema

from tjatools import song as tja
from tjatools.utils import fraction_to_decimal, none_or

from .density import DensityTable
from .stats import Statistics

PRECISION = Decimal("0.000001")


def to_decimal(frac: Fraction) -> Decimal:
    return fraction_to_decimal(frac).quantize(PRECISION)


@dataclass
class NoteCounts:
    don: int
    kat: int
    don_big: int
    kat_big: int


@dataclass
class Roll:
    duration: Decimal
    big: bool


@dataclass
class Balloon:
    duration: Decimal
    hits: int
    big: bool
    hit_rate: Optional[Decimal]


@dataclass
class Stats:
    total_combo: int = field(metadata={"validate": validate.Range(min=0)})
    roll_ticks: int
    max_score: int
    length: Decimal
    density: Optional[Decimal]
    notes: NoteCounts
    rolls: List[Roll]
    balloons: List[Balloon]


@dataclass
class DensityBin:
    start: Decimal
    don: int
    kat: int


@dataclass
class Density:
    bin_width: Decimal
    max: int
    bins: List[DensityBin]


@dataclass
class Report:
    difficulty: str
    player: Optional[int]
    level: Optional[int]
    statistics: Stats
    density: Density


class BaseSchema(Schema):
    class Meta:
        ordered = True

    @post_dump
    def _remove_none_values(self, data: dict, **kwargs: Any) -> dict:
        return {key: value for key, value in data.items() if value is not None}


REPORT_SCHEMA = class_schema(Report, base_schema=BaseSchema)()


def dump_statistics(stats: Statistics) -> Stats:
    return Stats(
        total_combo=stats.total_combo,
        roll_ticks=stats.roll_ticks,
        max_score=stats.max_score,
        length=to_decimal(stats.length),
        density=none_or(to_decimal, stats.density),
        notes=NoteCounts(
            don=stats.notes[tja.NoteType.DON],
            kat=stats.notes[tja.NoteType.KAT],
            don_big=stats.notes[tja.NoteType.DON_BIG],
            kat_big=stats.notes[tja.NoteType.KAT_BIG],
        ),
        rolls=[Roll(to_decimal(r.duration), r.big) for r in stats.rolls],
        balloons=[
            Balloon(
                duration=to_decimal(b.duration),
                hits=b.hits,
                big=b.big,
                hit_rate=none_or(to_decimal, b.hit_rate),
            )
            for b in stats.balloons
        ],
    )


def dump_density(density: DensityTable) -> Density:
    return Density(
        bin_width=to_decimal(density.bin_width),
        max=density.max,
        bins=[DensityBin(to_decimal(b.start), b.don, b.kat) for b in density.bins],
    )


def dump_report(course: tja.Course, stats: Statistics, density: DensityTable) -> str:
    report = Report(
        difficulty=course.difficulty.value,
        player=course.player,
        level=course.headers.level,
        statistics=dump_statistics(stats),
        density=dump_density(density),
    )
    return json.dumps(REPORT_SCHEMA.dump(report), indent=4, use_decimal=True)
