"""
Useful things to parse the lines of a TJA file

Every non-empty line (once comments are removed) is one of :
  - a header      KEY:value        (TITLE:..., BPM:..., COURSE:..., etc.)
  - a command     #NAME [argument] (#START, #BPMCHANGE 180, #MEASURE 3/4, etc.)
  - note data     note codes, a comma ends the current measure

Known song headers :
  - TITLE, SUBTITLE, TITLExx, SUBTITLExx   # xx is a language code (JA, EN ...)
  - BPM=<decimal>                          # starting tempo of every course
  - WAVE=<path>                            # music file
  - OFFSET=<decimal>                       # in seconds
  - DEMOSTART=<decimal>                    # preview start, in seconds
  - GENRE, MAKER

Known course headers (reset by each COURSE header) :
  - COURSE={Easy, Normal, Hard, Oni, Edit, 0 ... 4}
  - LEVEL=<int>
  - BALLOON=<int>,<int>,...                # required hits of each balloon
  - BALLOONNOR, BALLOONEXP, BALLOONMAS     # same, per branch
  - SCOREINIT=<int>[,<int>]
  - SCOREDIFF=<int>
  - STYLE={Single, Double}
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any, List, Optional, Tuple, Union

from parsimonious import Grammar, NodeVisitor
from parsimonious.nodes import Node

COMMENT = re.compile(r"//.*")
WHITESPACE = re.compile(r"\s+")

line_grammar = Grammar(
    r"""
    line            = command / header / note_data
    command         = "#" name argument
    name            = ~r"[A-Z]+"i
    argument        = ~r".*"
    header          = key ws ":" ws value
    key             = ~r"[A-Z][A-Z0-9]*"i
    value           = ~r".*"
    note_data       = ended_chunk* codes
    ended_chunk     = codes ","
    codes           = ~r"[^,]*"
    ws              = ~r"[\t \u3000]*" # U+3000 : IDEOGRAPHIC SPACE
    """
)


@dataclass(frozen=True)
class Command:
    name: str
    argument: Optional[str] = None


@dataclass(frozen=True)
class Header:
    key: str
    value: str


@dataclass(frozen=True)
class MeasureChunk:
    """Note codes found on a line, up to a comma if there is one"""

    codes: str
    ends_measure: bool


@dataclass(frozen=True)
class NoteData:
    chunks: Tuple[MeasureChunk, ...]


Line = Union[Command, Header, NoteData]


class LineVisitor(NodeVisitor):

    """Returns a Command, a Header or a NoteData instance"""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.chunks: List[MeasureChunk] = []

    def visit_line(self, node: Node, visited_children: List[Line]) -> Line:
        return visited_children[0]

    def visit_command(self, node: Node, visited_children: list) -> Command:
        _, name, argument = node.children
        return Command(name.text.upper(), argument.text.strip() or None)

    def visit_header(self, node: Node, visited_children: list) -> Header:
        key, _, _, _, value = node.children
        return Header(key.text.upper(), value.text.strip())

    def visit_ended_chunk(self, node: Node, visited_children: list) -> None:
        codes, _ = node.children
        self.chunks.append(MeasureChunk(remove_whitespace(codes.text), True))

    def visit_note_data(self, node: Node, visited_children: list) -> NoteData:
        _, trailing = node.children
        codes = remove_whitespace(trailing.text)
        if codes:
            self.chunks.append(MeasureChunk(codes, False))
        return NoteData(tuple(self.chunks))

    def generic_visit(self, node: Node, visited_children: list) -> None:
        ...


def remove_whitespace(text: str) -> str:
    return WHITESPACE.sub("", text)


def strip_comment(raw_line: str) -> str:
    return COMMENT.sub("", raw_line).strip()


def parse_line(raw_line: str) -> Optional[Line]:
    """Returns None for lines with nothing but whitespace and comments"""
    line = strip_comment(raw_line)
    if not line:
        return None

    return LineVisitor().visit(line_grammar.parse(line))  # type: ignore


def parse_decimal(value: str, what: str) -> Decimal:
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        raise ValueError(f"Invalid {what} : {value!r}") from None

    if not number.is_finite():
        raise ValueError(f"Invalid {what} : {value!r}")

    return number


def parse_positive_decimal(value: str, what: str) -> Decimal:
    number = parse_decimal(value, what)
    if number <= 0:
        raise ValueError(f"{what.capitalize()} must be strictly positive : {value}")
    return number


def parse_int(value: str, what: str) -> int:
    """Accepts decimal notation, some charts have LEVEL:7.0"""
    return int(parse_decimal(value, what))


def parse_first_int(value: str, what: str) -> int:
    """SCOREINIT can hold two comma separated values, the second one is for
    another scoring mode we don't care about"""
    first, *_ = value.split(",")
    if not first.strip():
        return 0
    return parse_int(first, what)


def parse_int_list(value: str, what: str) -> Tuple[int, ...]:
    """Blanks are skipped : BALLOON:5,10, is a two element list"""
    return tuple(parse_int(v, what) for v in value.split(",") if v.strip())


def parse_measure(value: str) -> Fraction:
    """Turn a time signature into a fraction of a 4/4 measure"""
    numerator, slash, denominator = value.partition("/")
    if not slash:
        raise ValueError(f"Invalid measure, expected <beats>/<note value> : {value!r}")

    beats = Fraction(parse_positive_decimal(numerator, "measure numerator"))
    note_value = Fraction(parse_positive_decimal(denominator, "measure denominator"))
    return beats / note_value
