"""Exceptions raised by the parser and the analyser"""

from typing import Any


class ParseError(SyntaxError):
    """Malformed chart text"""

    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"On line {line} : {reason}")
        self.line = line
        self.reason = reason


class AnalysisError(ValueError):
    pass


class UnknownCourse(AnalysisError):
    def __init__(self, course: Any) -> None:
        super().__init__(f"No such course in this song : {course}")
        self.course = course
