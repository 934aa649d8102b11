import re
from enum import Enum, auto
from typing import List, NamedTuple

from calcpad.errors import LexIssue
from calcpad.types import parse_number


class TokenType(Enum):
    NUMBER = auto()
    UNIT = auto()
    IDENTIFIER = auto()
    CELL_REF = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    CARET = auto()
    EQUAL = auto()
    LPAREN = auto()
    RPAREN = auto()
    WHITESPACE = auto()


class Token(NamedTuple):
    type: TokenType
    value: str
    position: int
    number: float | None = None


NUMBER_REGEX = re.compile(
    r"[+-]?(?:(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d+)?"
)
# Letters, then optionally one interior separator for composite units.
UNIT_REGEX = re.compile(
    r"[A-Za-z]+(?:\^-?\d+)?(?:[/·][A-Za-z]+(?:\^-?\d+)?)?"
)
CELL_REF_REGEX = re.compile(r"[A-Za-z]+\d+")
IDENTIFIER_REGEX = re.compile(r"[A-Za-z_][A-Za-z_']*")
WHITESPACE_REGEX = re.compile(r"\s+")

ASCII_LETTERS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
ASCII_DIGITS = frozenset("0123456789")


class CalcTokenizer:
    OPERATORS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "^": TokenType.CARET,
        "=": TokenType.EQUAL,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
    }
    # A '+' or '-' right after one of these belongs to the number that follows.
    SIGN_CONTEXT = {
        TokenType.PLUS,
        TokenType.MINUS,
        TokenType.STAR,
        TokenType.SLASH,
        TokenType.CARET,
        TokenType.EQUAL,
        TokenType.LPAREN,
    }

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.length = len(text)
        self.tokens: List[Token] = []
        self.issues: List[LexIssue] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the text. Unrecognized characters are skipped and recorded
        in ``self.issues``; this never raises."""
        while self.pos < self.length:
            char = self.text[self.pos]

            if char.isspace():
                self._tokenize_whitespace()
            elif self._at_number():
                self._tokenize_number()
            elif char in self.OPERATORS:
                self.tokens.append(Token(self.OPERATORS[char], char, self.pos))
                self.pos += 1
            elif char in ASCII_LETTERS:
                self._tokenize_word()
            else:
                self.issues.append(LexIssue(char, self.pos))
                self.pos += 1

        return self.tokens

    def _previous_significant(self) -> Token | None:
        for token in reversed(self.tokens):
            if token.type != TokenType.WHITESPACE:
                return token
        return None

    def _at_number(self) -> bool:
        char = self.text[self.pos]
        if char in ASCII_DIGITS:
            return True
        if char == "." or char in "+-":
            match = NUMBER_REGEX.match(self.text, self.pos)
            if match is None:
                return False
            if char == ".":
                return True
            previous = self._previous_significant()
            return previous is None or previous.type in self.SIGN_CONTEXT
        return False

    def _tokenize_whitespace(self) -> None:
        match = WHITESPACE_REGEX.match(self.text, self.pos)
        assert match is not None
        self.tokens.append(Token(TokenType.WHITESPACE, match.group(), self.pos))
        self.pos = match.end()

    def _tokenize_number(self) -> None:
        """Tokenize a number and the unit written right after it, if any."""
        match = NUMBER_REGEX.match(self.text, self.pos)
        assert match is not None
        lexeme = match.group()
        self.tokens.append(
            Token(TokenType.NUMBER, lexeme, self.pos, parse_number(lexeme))
        )
        self.pos = match.end()

        # Look past optional whitespace for a unit
        unit_start = self.pos
        ws = WHITESPACE_REGEX.match(self.text, unit_start)
        if ws:
            unit_start = ws.end()
        if CELL_REF_REGEX.match(self.text, unit_start):
            # "2 A1" is a number followed by a cell reference, not a unit
            return
        unit = UNIT_REGEX.match(self.text, unit_start)
        if unit is None:
            return
        if ws:
            self.tokens.append(Token(TokenType.WHITESPACE, ws.group(), ws.start()))
        self.tokens.append(Token(TokenType.UNIT, unit.group(), unit_start))
        self.pos = unit.end()

    def _tokenize_word(self) -> None:
        """Tokenize a cell reference (letters then digits) or an identifier."""
        start = self.pos
        cell = CELL_REF_REGEX.match(self.text, start)
        if cell:
            self.tokens.append(Token(TokenType.CELL_REF, cell.group(), start))
            self.pos = cell.end()
            return
        ident = IDENTIFIER_REGEX.match(self.text, start)
        assert ident is not None
        self.tokens.append(Token(TokenType.IDENTIFIER, ident.group(), start))
        self.pos = ident.end()


def tokenize(text: str) -> List[Token]:
    """Helper function to tokenize a line of text."""
    return CalcTokenizer(text).tokenize()


def significant(tokens: List[Token]) -> List[Token]:
    """Drop whitespace tokens, as both parsers do before grammar analysis."""
    return [t for t in tokens if t.type != TokenType.WHITESPACE]
