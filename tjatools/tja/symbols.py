"""Note codes found in the data lines of a TJA course"""

from tjatools.song import NoteType, RollType

REST = "0"
SUSTAIN_END = "8"

NOTE_CODES = {
    "1": NoteType.DON,
    "2": NoteType.KAT,
    "3": NoteType.DON_BIG,
    "4": NoteType.KAT_BIG,
    # two-handed notes from TJAPlayer charts, scored like big notes
    "A": NoteType.DON_BIG,
    "B": NoteType.KAT_BIG,
}

ROLL_CODES = {
    "5": RollType.ROLL,
    "6": RollType.ROLL_BIG,
}

# code -> is it a big balloon (kusudama) ?
BALLOON_CODES = {
    "7": False,
    "9": True,
}

ALL_CODES = frozenset(
    [REST, SUSTAIN_END, *NOTE_CODES, *ROLL_CODES, *BALLOON_CODES]
)

MEASURE_END = ","
