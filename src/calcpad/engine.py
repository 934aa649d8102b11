import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from calcpad.a1 import CellAddress, parse_address
from calcpad.ast import Assignment, Parsed, ParseFailure, Statement
from calcpad.classify import LineKind, classify_line, trim_trailing_equals
from calcpad.errors import CalcError
from calcpad.evaluator import AddressParser, CellLookup, Evaluator, no_cells
from calcpad.formatter import UnitPreferences, format_quantity
from calcpad.namespace import NamespaceStore
from calcpad.normalize import collapse_duplicate_units, normalize_for_parser
from calcpad.parser import parse_unified
from calcpad.restricted import evaluate_restricted, parse_restricted
from calcpad.tokenizer import CalcTokenizer
from calcpad.types import Quantity


class Layout(Enum):
    PAD = "pad"  # lines in the order given
    CANVAS = "canvas"  # boxes read top to bottom, then left to right
    GRID = "grid"  # cells in row-major order


@dataclass
class Line:
    id: str
    text: str
    kind: LineKind = LineKind.TEXT
    result: Optional[Quantity] = None
    formatted: Optional[str] = None
    error: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    address: Optional[CellAddress] = None


@dataclass
class Document:
    lines: List[Line] = field(default_factory=list)
    layout: Layout = Layout.PAD
    namespace: NamespaceStore = field(default_factory=NamespaceStore)

    def ordered_lines(self) -> List[Line]:
        """Lines in reading order for this document's layout."""
        match self.layout:
            case Layout.CANVAS:
                return sorted(self.lines, key=lambda line: (line.y, line.x))
            case Layout.GRID:
                return sorted(
                    self.lines,
                    key=lambda line: (
                        line.address is None,
                        line.address or CellAddress(0, 0),
                    ),
                )
        return list(self.lines)

    def get_line(self, line_id: str) -> Line:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise KeyError(f"No line with id {line_id}")

    def remove_line(self, line_id: str) -> Line:
        """Remove a line along with every name it defined."""
        line = self.get_line(line_id)
        self.lines.remove(line)
        self.namespace.clear_variables_in_cell(line_id)
        return line


class RecomputeEngine:
    """Evaluates every line of a document in a single top-to-bottom pass.

    Each line is classified from its text. Text lines are left alone. Other
    lines go through the restricted grammar first and fall back to the unified
    grammar when it cannot answer. Definitions are stored in the namespace
    under the line's id, so only later lines can see them. Any error is kept
    on the line that raised it.
    """

    def __init__(
        self,
        cell_lookup: Optional[CellLookup] = None,
        address_parser: Optional[AddressParser] = None,
        *,
        strict_units: bool = True,
        preferences: Optional[UnitPreferences] = None,
    ):
        self.cell_lookup = cell_lookup or no_cells
        self.address_parser = address_parser or parse_address
        self.strict_units = strict_units
        self.preferences = preferences

    def recompute(
        self, document: Document, namespace: Optional[NamespaceStore] = None
    ) -> Document:
        if namespace is None or namespace is document.namespace:
            # Rebuilt from scratch, including names of lines dropped since the last pass
            namespace = document.namespace
            namespace.clear()
        else:
            for line in document.lines:
                namespace.clear_variables_in_cell(line.id)

        evaluator = Evaluator(namespace, self.cell_lookup, self.address_parser)
        for line in document.ordered_lines():
            self._recompute_line(line, evaluator)
        return document

    def _recompute_line(self, line: Line, evaluator: Evaluator) -> None:
        line.result = None
        line.formatted = None
        line.error = None
        line.kind = classify_line(normalize_for_parser(line.text))
        if line.kind == LineKind.TEXT:
            return

        try:
            statement, value = self.evaluate_text(line.text, evaluator)
            formatted = format_quantity(value, preferences=self.preferences)
        except CalcError as e:
            logging.debug(f"Line {line.id} failed: {e}")
            line.error = str(e)
            return

        line.result = value
        line.formatted = formatted
        if isinstance(statement, Assignment):
            evaluator.namespace.define_variable(statement.name, value, line.id)

    def evaluate_text(
        self, text: str, evaluator: Evaluator
    ) -> Tuple[Statement, Quantity]:
        """Parse and evaluate one line of text. Raises CalcError."""
        text = collapse_duplicate_units(normalize_for_parser(trim_trailing_equals(text)))
        tokenizer = CalcTokenizer(text)
        tokens = tokenizer.tokenize()
        if tokenizer.issues:
            raise tokenizer.issues[0]

        parsed = parse_restricted(tokens)
        if not isinstance(parsed, Parsed):
            logging.debug(f"Falling back to the full grammar for {text!r}: {parsed}")
            parsed = parse_unified(tokens)
            if isinstance(parsed, ParseFailure):
                raise parsed.error

        if parsed.grammar == "restricted":
            value = evaluate_restricted(parsed.statement, self.strict_units)
        else:
            value = evaluator.evaluate_statement(parsed.statement)
        return parsed.statement, value


def recompute(
    document: Document,
    cell_lookup: Optional[CellLookup] = None,
    address_parser: Optional[AddressParser] = None,
    *,
    namespace: Optional[NamespaceStore] = None,
    strict_units: bool = True,
    preferences: Optional[UnitPreferences] = None,
) -> Document:
    """Recompute every line of ``document`` in place and return it."""
    engine = RecomputeEngine(
        cell_lookup,
        address_parser,
        strict_units=strict_units,
        preferences=preferences,
    )
    return engine.recompute(document, namespace=namespace)
