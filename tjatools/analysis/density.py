"""Note density over time, as fixed width bins of don and kat counts, meant
to be drawn as a stacked bar chart"""

import math
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Optional, Tuple, Union

from sortedcontainers import SortedKeyList

from tjatools.song import Note, NoteType, SecondsTime

DEFAULT_BIN_WIDTH = SecondsTime(1)


@dataclass(frozen=True)
class DensityBin:
    start: SecondsTime
    don: int = 0
    kat: int = 0

    @property
    def total(self) -> int:
        return self.don + self.kat


@dataclass(frozen=True)
class DensityTable:
    bin_width: SecondsTime
    bins: Tuple[DensityBin, ...]
    # largest don + kat total, for axis scaling
    max: int


def bin_notes(
    notes: Iterable[Note],
    length: SecondsTime,
    bin_width: Union[int, Decimal, Fraction] = DEFAULT_BIN_WIDTH,
) -> DensityTable:
    """A note at time t lands in bin floor(t / bin_width). The last bin also
    gets the notes that fall exactly on the end of the chart"""
    width = Fraction(bin_width)
    if width <= 0:
        raise ValueError(f"Bin width must be strictly positive : {bin_width}")

    bin_count = max(1, math.ceil(length / width))
    by_time = SortedKeyList(notes, key=lambda n: n.time)
    bins = []
    for i in range(bin_count):
        start = i * width
        end: Optional[Fraction] = None if i == bin_count - 1 else start + width
        counts = Counter(
            note.type.base
            for note in by_time.irange_key(start, end, inclusive=(True, False))
        )
        bins.append(DensityBin(start, counts[NoteType.DON], counts[NoteType.KAT]))

    return DensityTable(
        bin_width=width,
        bins=tuple(bins),
        max=max(b.total for b in bins),
    )
