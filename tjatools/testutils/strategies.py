"""
Hypothesis strategies to generate TJA courses
"""

from decimal import Decimal
from typing import List, Optional

import hypothesis.strategies as st

from tjatools.song import Difficulty

NOTES = "01234"
TIME_SIGNATURES = ["4/4", "3/4", "2/4", "5/4", "7/8", "6/8", "9/16"]


@st.composite
def bpms(draw: st.DrawFn) -> Decimal:
    d: Decimal = draw(st.decimals(min_value=30, max_value=400, places=2))
    return d


@st.composite
def measure_codes(
    draw: st.DrawFn,
    max_codes: int = 16,
    sustains: bool = True,
) -> str:
    """Codes of a single measure, at most one roll or balloon which is closed
    within the measure"""
    codes = list(draw(st.text(alphabet=NOTES, max_size=max_codes)))
    if sustains and len(codes) >= 2 and draw(st.booleans()):
        start = draw(st.integers(min_value=0, max_value=len(codes) - 2))
        end = draw(st.integers(min_value=start + 1, max_value=len(codes) - 1))
        codes[start] = draw(st.sampled_from("5679"))
        codes[start + 1 : end] = "0" * (end - start - 1)
        codes[end] = "8"
    return "".join(codes)


@st.composite
def timing_commands(draw: st.DrawFn) -> List[str]:
    commands = []
    if draw(st.booleans()):
        commands.append(f"#BPMCHANGE {draw(bpms())}")
    if draw(st.booleans()):
        commands.append(f"#MEASURE {draw(st.sampled_from(TIME_SIGNATURES))}")
    if draw(st.booleans()):
        commands.append(draw(st.sampled_from(["#GOGOSTART", "#GOGOEND"])))
    if draw(st.booleans()):
        scroll = draw(st.decimals(min_value="0.5", max_value=4, places=1))
        commands.append(f"#SCROLL {scroll}")
    return commands


@st.composite
def course_body(
    draw: st.DrawFn,
    max_measures: int = 12,
    with_timing_commands: bool = True,
) -> List[str]:
    lines = []
    measure_count = draw(st.integers(min_value=1, max_value=max_measures))
    for _ in range(measure_count):
        if with_timing_commands:
            lines.extend(draw(timing_commands()))
        lines.append(draw(measure_codes()) + ",")
    return lines


@st.composite
def chart(
    draw: st.DrawFn,
    body_strat: Optional[st.SearchStrategy[List[str]]] = None,
) -> str:
    """Text of a TJA file with a single course, every balloon gets a hit
    count"""
    body = draw(body_strat if body_strat is not None else course_body())
    balloon_count = sum(line.count("7") + line.count("9") for line in body)
    balloons = draw(
        st.lists(
            st.integers(min_value=1, max_value=100),
            min_size=balloon_count,
            max_size=balloon_count,
        )
    )
    difficulty = draw(st.sampled_from(list(Difficulty)))
    score_init = draw(st.integers(min_value=0, max_value=2000))
    score_diff = draw(st.integers(min_value=0, max_value=500))
    headers = [
        "TITLE:Hypothesis",
        f"BPM:{draw(bpms())}",
        f"COURSE:{difficulty.value}",
        f"BALLOON:{','.join(map(str, balloons))}",
        f"SCOREINIT:{score_init}",
        f"SCOREDIFF:{score_diff}",
    ]
    return "\n".join(headers + ["#START"] + body + ["#END"])
