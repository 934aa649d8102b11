"""Canonicalize typed or pasted text so that parsing is stable."""

import re

from calcpad.units import UNIT_PATTERN, UNIT_REGISTRY, is_unit

ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")
UNICODE_SPACES = re.compile("[\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")
DASHES = re.compile("[\u2212\u2013\u2014]")
MULTIPLY = re.compile(r"\\cdot|\\times|\u00d7|\s+\u00b7\s+")
DIVIDE = re.compile(r"\\div|\u00f7")
EQUALS = re.compile(r"\s*=\s*")
NUMBER_UNIT = re.compile(rf"(\d[\d.,]*)\s*({UNIT_PATTERN})\b")
NUMBER_WORD = re.compile(r"(\d[\d.,]*)\s*([A-Za-z]+)\b")
SPACED_REPEAT = re.compile(rf"\b({UNIT_PATTERN})(?:\s+\1)+\b")

QUOTES = str.maketrans({"\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"'})

UNITS_LONGEST_FIRST = sorted(UNIT_REGISTRY, key=len, reverse=True)


def normalize_for_parser(raw: str) -> str:
    """Fold unicode spacing, operator glyphs and LaTeX operators to plain ASCII.

    >>> normalize_for_parser("5\\u00a0in + 3in = 8\\u00a0in")
    '5 in + 3 in = 8 in'
    """
    if not raw:
        return ""
    s = ZERO_WIDTH.sub("", raw)
    s = UNICODE_SPACES.sub(" ", s)
    s = re.sub(r"\s+", " ", s)
    s = s.translate(QUOTES)
    s = NUMBER_UNIT.sub(r"\1 \2", s)
    s = MULTIPLY.sub(" * ", s)
    s = DIVIDE.sub("/", s)
    s = DASHES.sub("-", s)
    s = EQUALS.sub(" = ", s)
    return re.sub(r"\s+", " ", s).strip()


def _collapse_word(word: str) -> str:
    if is_unit(word):
        return word
    for unit in UNITS_LONGEST_FIRST:
        count, rest = divmod(len(word), len(unit))
        if rest == 0 and count > 1 and word == unit * count:
            return unit
    return word


def collapse_duplicate_units(raw: str) -> str:
    """Fold accidental repeats such as ``5 inin`` or ``5 in in`` to ``5 in``."""
    if not raw:
        return ""

    def glued(match: re.Match) -> str:
        word = _collapse_word(match.group(2))
        if word == match.group(2):
            return match.group(0)
        return f"{match.group(1)} {word}"

    s = NUMBER_WORD.sub(glued, raw)
    return SPACED_REPEAT.sub(r"\1", s)
