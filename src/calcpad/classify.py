import re
from enum import Enum
from typing import NamedTuple, Optional


class LineKind(Enum):
    DEFINITION = "definition"
    EXPRESSION = "expression"
    TEXT = "text"


class Definition(NamedTuple):
    name: str
    rhs: str


TRAILING_EQUALS_REGEX = re.compile(r"\s*=\s*$")
DEFINITION_REGEX = re.compile(r"^\s*([A-Za-z_][A-Za-z_']*)\s*=\s*(.+?)\s*$")
OPERATOR_REGEX = re.compile(r"[+\-*/^]")
FUNCTION_CALL_REGEX = re.compile(r"\b[A-Za-z_]\w*\s*\(")
CELL_REF_REGEX = re.compile(r"\b[A-Z]+[1-9][0-9]*\b")


def trim_trailing_equals(raw: str) -> str:
    """Drop one trailing '=' so that ``A + B =`` reads as ``A + B``."""
    return TRAILING_EQUALS_REGEX.sub("", raw, count=1)


def try_parse_definition(raw: str) -> Optional[Definition]:
    match = DEFINITION_REGEX.match(trim_trailing_equals(raw))
    if match is None:
        return None
    return Definition(match.group(1), match.group(2))


def classify_line(text: str) -> LineKind:
    """Classify a line from its text alone, without parsing it.

    A definition is ``NAME = REST``. An expression contains an operator, a
    function-call-like token or a cell reference such as ``B12``. Anything
    else is text and is never evaluated.
    """
    trimmed = trim_trailing_equals(text)
    if try_parse_definition(trimmed) is not None:
        return LineKind.DEFINITION
    if (
        OPERATOR_REGEX.search(trimmed)
        or FUNCTION_CALL_REGEX.search(trimmed)
        or CELL_REF_REGEX.search(trimmed)
    ):
        return LineKind.EXPRESSION
    return LineKind.TEXT
