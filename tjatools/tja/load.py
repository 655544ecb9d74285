"""TJA loader

TJA is the chart format used by Taiko no Tatsujin simulators. A file holds
song-wide headers followed by one or more courses, each course being a block
of note data between #START and #END, with headers that apply to it
declared right before.

Note data is split in measures by commas, every note code present in a
measure gets an equal share of it, so the number of codes sets the
subdivision. Timing commands (#BPMCHANGE, #MEASURE, #DELAY ...) can appear
between data lines, including in the middle of a measure.

Branches (#BRANCHSTART / #N / #E / #M / #BRANCHEND) are resolved statically :
only the hardest declared branch is kept. In game the branch is picked during
play depending on the player's accuracy, which can't be reproduced without a
player.
"""

import warnings
from dataclasses import dataclass, field, replace
from decimal import Decimal
from fractions import Fraction
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from more_itertools import before_and_after
from multidict import MultiDict

from tjatools.errors import ParseError
from tjatools.song import (
    BRANCH_PRIORITY,
    Balloon,
    Barline,
    BarlineChange,
    BeatsTime,
    Branch,
    BranchPoint,
    Course,
    CourseEnd,
    CourseHeaders,
    Delay,
    Difficulty,
    Event,
    GogoChange,
    MeasureChange,
    Metadata,
    Note,
    Rest,
    ScrollChange,
    SecondsTime,
    Song,
    SustainEnd,
    SustainStart,
    TempoChange,
)
from tjatools.utils import none_or

from .command import (
    Command,
    Header,
    NoteData,
    parse_decimal,
    parse_first_int,
    parse_int,
    parse_int_list,
    parse_line,
    parse_measure,
    parse_positive_decimal,
)
from .symbols import (
    ALL_CODES,
    BALLOON_CODES,
    NOTE_CODES,
    ROLL_CODES,
    SUSTAIN_END,
)

DEFAULT_BALLOON_HITS = 5

LOCALIZED_TITLE_PREFIXES = ("SUBTITLE", "TITLE")

# Headers that only matter to a game or a simulator's UI
IGNORED_HEADERS = {
    "SCOREMODE",
    "SONGVOL",
    "SEVOL",
    "SIDE",
    "LIFE",
    "GAME",
    "HEADSCROLL",
    "BGIMAGE",
    "BGMOVIE",
    "MOVIEOFFSET",
    "PREIMAGE",
    "TAIKOWEBSKIN",
    "TOTAL",
    "GAUGEINCR",
    "HIDDENBRANCH",
    "LYRICS",
    "SCENEPRESET",
    "BGOFFSET",
}

IGNORED_NUMBERED_HEADERS = ("EXAM", "NOTESDESIGNER")

PLAYERS = {"P1": 1, "P2": 2}


def select_branch(declared: Iterable[Branch]) -> Branch:
    """Stand-in for the accuracy based branch switching : master if declared,
    else expert, else normal"""
    present = set(declared)
    for branch in BRANCH_PRIORITY:
        if branch in present:
            return branch

    raise ValueError("Branch block has no #N, #E or #M section")


@dataclass(frozen=True)
class BufferedCode:
    symbol: str
    line: int


@dataclass(frozen=True)
class OpenRegion:
    start: Union[SustainStart, Balloon]
    line: int


@dataclass
class Cursor:
    """Everything the scan carries from one note code to the next"""

    time: SecondsTime
    beat: BeatsTime
    bpm: Decimal
    measure: Fraction
    scroll: Decimal
    gogo: bool = False
    barline: bool = True
    open_region: Optional[OpenRegion] = None

    def advance(self, beats: BeatsTime) -> None:
        self.time += beats * 60 / Fraction(self.bpm)
        self.beat += beats


@dataclass
class BranchSection:
    events: List[Event] = field(default_factory=list)
    end: Optional[Cursor] = None


@dataclass
class BranchBlock:
    start: Cursor
    trunk: List[Event]
    condition: Optional[str]
    sections: Dict[Branch, BranchSection] = field(default_factory=dict)
    current: Optional[Branch] = None


MeasureElement = Union[BufferedCode, Callable[[], None]]


class CourseBuilder:
    """Parsing state for the body of a course, between #START and #END"""

    def __init__(
        self, difficulty: Difficulty, headers: CourseHeaders, player: Optional[int]
    ) -> None:
        self.difficulty = difficulty
        self.headers = headers
        self.player = player
        self.cursor = Cursor(
            time=SecondsTime(0),
            beat=BeatsTime(0),
            bpm=headers.bpm,
            measure=headers.measure,
            scroll=headers.scroll,
        )
        # events go to the trunk or to the branch section being read
        self.events: List[Event] = []
        self.measure_buffer: List[MeasureElement] = []
        self.branch_block: Optional[BranchBlock] = None
        self.balloon_index = 0
        self.branch_balloon_index = {b: 0 for b in Branch}

    def emit(self, event_type: Callable[..., Event], **kwargs: object) -> Event:
        event = event_type(time=self.cursor.time, beat=self.cursor.beat, **kwargs)
        self.events.append(event)
        return event

    def has_pending_notes(self) -> bool:
        return any(isinstance(e, BufferedCode) for e in self.measure_buffer)

    def _raise_if_outside_of_section(self, what: str) -> None:
        if self.branch_block is not None and self.branch_block.current is None:
            raise SyntaxError(
                f"{what} found between #BRANCHSTART and the first #N, #E or #M"
            )

    def add_codes(self, codes: str, ends_measure: bool, line: int) -> None:
        self._raise_if_outside_of_section("Note data")
        for symbol in codes:
            if symbol not in ALL_CODES:
                raise SyntaxError(f"Unrecognized note code : {symbol!r}")
            self.measure_buffer.append(BufferedCode(symbol, line))

        if ends_measure:
            self.end_measure()

    def queue(self, change: Callable[[], None]) -> None:
        """Timing commands take effect at their position in the measure, which
        is only known once the measure is complete"""
        self._raise_if_outside_of_section("Timing command")
        self.measure_buffer.append(change)

    def settle(self, what: str) -> None:
        """Apply queued commands for things that can only happen between
        measures"""
        if self.has_pending_notes():
            raise SyntaxError(f"{what} found in the middle of a measure")

        for change in self.measure_buffer:
            change()  # type: ignore
        self.measure_buffer = []

    def end_measure(self) -> None:
        buffer, self.measure_buffer = self.measure_buffer, []
        code_count = sum(1 for e in buffer if isinstance(e, BufferedCode))
        leading, rest = before_and_after(
            lambda e: not isinstance(e, BufferedCode), buffer
        )
        # commands found before the first note code, #MEASURE in particular,
        # apply to the measure itself
        for change in leading:
            change()  # type: ignore

        self.emit(Barline, visible=self.cursor.barline)
        measure_beats = 4 * self.cursor.measure
        if code_count == 0:
            self.cursor.advance(measure_beats)
            return

        beats_per_code = measure_beats / code_count
        for element in rest:
            if isinstance(element, BufferedCode):
                self.play(element)
                self.cursor.advance(beats_per_code)
            else:
                element()

    def play(self, code: BufferedCode) -> None:
        symbol = code.symbol
        if symbol in NOTE_CODES:
            self.emit(Note, type=NOTE_CODES[symbol])
        elif symbol in ROLL_CODES:
            self._raise_if_region_open(code)
            start = self.emit(SustainStart, type=ROLL_CODES[symbol])
            self.cursor.open_region = OpenRegion(start, code.line)  # type: ignore
        elif symbol in BALLOON_CODES:
            self._raise_if_region_open(code)
            start = self.emit(
                Balloon,
                hits=self.next_balloon_hits(code.line),
                big=BALLOON_CODES[symbol],
            )
            self.cursor.open_region = OpenRegion(start, code.line)  # type: ignore
        elif symbol == SUSTAIN_END:
            self.close_region(code)
        else:
            self.emit(Rest)

    def _raise_if_region_open(self, code: BufferedCode) -> None:
        region = self.cursor.open_region
        if region is not None:
            raise SyntaxError(
                f"Roll or balloon (code {code.symbol!r}) starts while the one "
                f"started on line {region.line} is still open"
            )

    def close_region(self, code: BufferedCode) -> None:
        if self.cursor.open_region is None:
            warnings.warn(
                f"Ignoring the end of roll marker ({SUSTAIN_END}) on line "
                f"{code.line}, there is no roll or balloon to close"
            )
            self.emit(Rest)
        else:
            self.emit(SustainEnd)
            self.cursor.open_region = None

    def next_balloon_hits(self, line: int) -> int:
        block = self.branch_block
        branch = block.current if block is not None else None
        if branch is not None and branch in self.headers.branch_balloons:
            counts = self.headers.branch_balloons[branch]
            index = self.branch_balloon_index[branch]
            self.branch_balloon_index[branch] += 1
        else:
            counts = self.headers.balloons
            index = self.balloon_index
            self.balloon_index += 1

        try:
            return counts[index]
        except IndexError:
            warnings.warn(
                f"The balloon on line {line} has no matching BALLOON value, "
                f"assuming {DEFAULT_BALLOON_HITS} hits"
            )
            return DEFAULT_BALLOON_HITS

    def change_tempo(self, bpm: Decimal) -> None:
        self.cursor.bpm = bpm
        self.emit(TempoChange, bpm=bpm)

    def change_measure(self, measure: Fraction) -> None:
        self.cursor.measure = measure
        self.emit(MeasureChange, measure=measure)

    def change_scroll(self, scroll: Decimal) -> None:
        self.cursor.scroll = scroll
        self.emit(ScrollChange, scroll=scroll)

    def set_gogo(self, active: bool) -> None:
        self.cursor.gogo = active
        self.emit(GogoChange, active=active)

    def set_barline(self, visible: bool) -> None:
        self.cursor.barline = visible
        self.emit(BarlineChange, visible=visible)

    def delay(self, seconds: SecondsTime) -> None:
        self.emit(Delay, seconds=seconds)
        self.cursor.time += seconds

    def start_branch_block(self, condition: Optional[str]) -> None:
        self.settle("#BRANCHSTART")
        if self.branch_block is not None:
            self.close_branch_block()

        self.branch_block = BranchBlock(
            start=replace(self.cursor), trunk=self.events, condition=condition
        )

    def open_branch_section(self, branch: Branch) -> None:
        block = self.branch_block
        if block is None:
            raise SyntaxError(f"#{branch.value} found outside of a branch block")

        self.settle(f"#{branch.value}")
        if branch in block.sections:
            raise SyntaxError(f"#{branch.value} appears twice in the same branch block")

        if block.current is not None:
            block.sections[block.current].end = self.cursor

        section = BranchSection()
        block.sections[branch] = section
        block.current = branch
        self.cursor = replace(block.start)
        self.events = section.events

    def close_branch_block(self) -> None:
        block = self.branch_block
        if block is None:
            raise SyntaxError("#BRANCHEND found outside of a branch block")

        self.settle("#BRANCHEND")
        if block.current is not None:
            block.sections[block.current].end = self.cursor

        selected = select_branch(block.sections.keys())
        section = block.sections[selected]
        block.trunk.append(
            BranchPoint(
                time=block.start.time,
                beat=block.start.beat,
                declared=frozenset(block.sections.keys()),
                selected=selected,
                condition=block.condition,
            )
        )
        block.trunk.extend(section.events)
        self.events = block.trunk
        assert section.end is not None
        self.cursor = section.end
        self.branch_block = None

    def finish(self) -> Course:
        if self.has_pending_notes():
            raise SyntaxError(
                "Unterminated measure, the last measure of a course must end "
                "with a comma"
            )

        self.settle("#END")
        if self.branch_block is not None:
            self.close_branch_block()

        region = self.cursor.open_region
        if region is not None:
            raise SyntaxError(
                f"The roll or balloon started on line {region.line} is never closed"
            )

        self.emit(CourseEnd)
        return Course(
            difficulty=self.difficulty,
            headers=self.headers,
            events=tuple(self.events),
            player=self.player,
        )


class TJAParser:
    def __init__(self) -> None:
        self.metadata = Metadata()
        self.courses: MultiDict[Course] = MultiDict()
        self.bpm = Decimal(120)
        self.difficulty = Difficulty.ONI
        self._reset_course_headers()
        self.body: Optional[CourseBuilder] = None
        self.line_number = 0

    def _reset_course_headers(self) -> None:
        self.level: Optional[int] = None
        self.balloons: Tuple[int, ...] = ()
        self.branch_balloons: Dict[Branch, Tuple[int, ...]] = {}
        self.score_init = 0
        self.score_diff = 0
        self.style: Optional[str] = None

    def load_line(self, raw_line: str) -> None:
        line = parse_line(raw_line)
        if line is None:
            return
        elif isinstance(line, Command):
            self.handle_command(line)
        elif isinstance(line, Header):
            self.handle_header(line)
        else:
            self.handle_note_data(line)

    def finish(self) -> None:
        """Call this once the end of the file is reached"""
        if self.body is None:
            return

        if self.body.has_pending_notes():
            raise SyntaxError("Unterminated measure at the end of the file")

        warnings.warn("Missing #END at the end of the file, closing the course")
        self.command_end(None)

    def song(self) -> Song:
        return Song(metadata=self.metadata, courses=self.courses)

    def handle_note_data(self, data: NoteData) -> None:
        if self.body is None:
            raise SyntaxError("Note data found outside of a #START ... #END block")

        for chunk in data.chunks:
            self.body.add_codes(chunk.codes, chunk.ends_measure, self.line_number)

    # Headers

    def handle_header(self, header: Header) -> None:
        if self.body is not None:
            raise SyntaxError(
                f"Header {header.key} found inside a #START ... #END block"
            )

        key = header.key
        if key in IGNORED_HEADERS or self._is_ignored_numbered_header(key):
            return

        for prefix in LOCALIZED_TITLE_PREFIXES:
            language = key[len(prefix) :]
            if key.startswith(prefix) and len(language) == 2 and language.isalpha():
                self._localized_title(prefix, language, header.value)
                return

        try:
            method = getattr(self, f"header_{key.lower()}")
        except AttributeError:
            raise SyntaxError(f"Unknown TJA header : {key}") from None

        method(header.value)

    def _is_ignored_numbered_header(self, key: str) -> bool:
        return any(
            key.startswith(prefix) and key[len(prefix) :].isdigit()
            for prefix in IGNORED_NUMBERED_HEADERS
        )

    def _localized_title(self, prefix: str, language: str, value: str) -> None:
        if prefix == "TITLE":
            self.metadata.localized_titles[language] = value
        else:
            self.metadata.localized_subtitles[language] = strip_subtitle(value)

    def header_title(self, value: str) -> None:
        self.metadata.title = value

    def header_subtitle(self, value: str) -> None:
        self.metadata.subtitle = strip_subtitle(value)

    def header_bpm(self, value: str) -> None:
        self.bpm = parse_positive_decimal(value, "BPM")

    def header_wave(self, value: str) -> None:
        self.metadata.audio = Path(value) if value else None

    def header_offset(self, value: str) -> None:
        self.metadata.offset = parse_decimal(value, "offset") if value else Decimal(0)

    def header_demostart(self, value: str) -> None:
        self.metadata.demo_start = none_or(
            partial(parse_decimal, what="demo start"), value or None
        )

    def header_genre(self, value: str) -> None:
        self.metadata.genre = value or None

    def header_maker(self, value: str) -> None:
        self.metadata.maker = value or None

    def header_course(self, value: str) -> None:
        self.difficulty = Difficulty.from_tja(value)
        self._reset_course_headers()

    def header_level(self, value: str) -> None:
        self.level = parse_int(value, "level") if value else None

    def header_balloon(self, value: str) -> None:
        self.balloons = parse_int_list(value, "balloon hit count")

    def _branch_balloons(self, branch: Branch, value: str) -> None:
        self.branch_balloons[branch] = parse_int_list(value, "balloon hit count")

    def header_balloonnor(self, value: str) -> None:
        self._branch_balloons(Branch.NORMAL, value)

    def header_balloonexp(self, value: str) -> None:
        self._branch_balloons(Branch.EXPERT, value)

    def header_balloonmas(self, value: str) -> None:
        self._branch_balloons(Branch.MASTER, value)

    def header_scoreinit(self, value: str) -> None:
        self.score_init = parse_first_int(value, "SCOREINIT")

    def header_scorediff(self, value: str) -> None:
        self.score_diff = parse_first_int(value, "SCOREDIFF")

    def header_style(self, value: str) -> None:
        self.style = value or None

    # Commands

    def handle_command(self, command: Command) -> None:
        try:
            method = getattr(self, f"command_{command.name.lower()}")
        except AttributeError:
            raise SyntaxError(f"Unknown TJA command : #{command.name}") from None

        method(command.argument)

    def _body(self, command: str) -> CourseBuilder:
        if self.body is None:
            raise SyntaxError(f"#{command} found outside of a #START ... #END block")
        return self.body

    def command_start(self, argument: Optional[str]) -> None:
        if self.body is not None:
            raise SyntaxError("#START found inside a course, is #END missing ?")

        if argument is None:
            player = None
        else:
            try:
                player = PLAYERS[argument.upper()]
            except KeyError:
                raise ValueError(f"Unknown player for #START : {argument}") from None

        headers = CourseHeaders(
            bpm=self.bpm,
            score_init=self.score_init,
            score_diff=self.score_diff,
            level=self.level,
            balloons=self.balloons,
            branch_balloons=dict(self.branch_balloons),
            style=self.style,
        )
        self.body = CourseBuilder(self.difficulty, headers, player)

    def command_end(self, argument: Optional[str]) -> None:
        if self.body is None:
            raise SyntaxError("#END found without a matching #START")

        course = self.body.finish()
        self.courses.add(course.difficulty.value, course)
        self.body = None

    def command_bpmchange(self, argument: Optional[str]) -> None:
        body = self._body("BPMCHANGE")
        bpm = parse_positive_decimal(argument or "", "BPM")
        body.queue(partial(body.change_tempo, bpm))

    def command_measure(self, argument: Optional[str]) -> None:
        body = self._body("MEASURE")
        measure = parse_measure(argument or "")
        body.queue(partial(body.change_measure, measure))

    def command_scroll(self, argument: Optional[str]) -> None:
        body = self._body("SCROLL")
        scroll = parse_decimal(argument or "", "scroll speed")
        body.queue(partial(body.change_scroll, scroll))

    def command_gogostart(self, argument: Optional[str]) -> None:
        body = self._body("GOGOSTART")
        body.queue(partial(body.set_gogo, True))

    def command_gogoend(self, argument: Optional[str]) -> None:
        body = self._body("GOGOEND")
        body.queue(partial(body.set_gogo, False))

    def command_barlineon(self, argument: Optional[str]) -> None:
        body = self._body("BARLINEON")
        body.queue(partial(body.set_barline, True))

    def command_barlineoff(self, argument: Optional[str]) -> None:
        body = self._body("BARLINEOFF")
        body.queue(partial(body.set_barline, False))

    def command_delay(self, argument: Optional[str]) -> None:
        body = self._body("DELAY")
        seconds = parse_decimal(argument or "", "delay")
        if seconds < 0:
            raise ValueError("Negative #DELAY values are not supported")
        body.queue(partial(body.delay, SecondsTime(seconds)))

    def command_branchstart(self, argument: Optional[str]) -> None:
        self._body("BRANCHSTART").start_branch_block(argument)

    def command_n(self, argument: Optional[str]) -> None:
        self._body("N").open_branch_section(Branch.NORMAL)

    def command_e(self, argument: Optional[str]) -> None:
        self._body("E").open_branch_section(Branch.EXPERT)

    def command_m(self, argument: Optional[str]) -> None:
        self._body("M").open_branch_section(Branch.MASTER)

    def command_branchend(self, argument: Optional[str]) -> None:
        self._body("BRANCHEND").close_branch_block()

    def _no_effect(self, argument: Optional[str]) -> None:
        """Commands that only change what is displayed"""

    command_section = _no_effect
    command_levelhold = _no_effect
    command_lyric = _no_effect
    command_sudden = _no_effect
    command_direction = _no_effect
    command_jposscroll = _no_effect
    command_bmscroll = _no_effect
    command_hbscroll = _no_effect
    command_nextsong = _no_effect
    command_senotechange = _no_effect


def strip_subtitle(value: str) -> str:
    """A leading -- or ++ only tells the game whether to show the subtitle"""
    if value.startswith(("--", "++")):
        return value[2:]
    return value


def load_tja(text: str) -> Song:
    """Parse the (already decoded) text of a TJA file"""
    parser = TJAParser()
    lines = text.lstrip("\ufeff").splitlines()
    for i, raw_line in enumerate(lines, start=1):
        parser.line_number = i
        try:
            parser.load_line(raw_line)
        except (SyntaxError, ValueError) as e:
            raise ParseError(i, str(e)) from None

    try:
        parser.finish()
    except (SyntaxError, ValueError) as e:
        raise ParseError(len(lines), str(e)) from None

    return parser.song()


def load_tja_file(path: Path, encoding: str = "utf-8-sig") -> Song:
    return load_tja(path.read_text(encoding=encoding))
