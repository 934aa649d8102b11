from typing import Literal, NamedTuple

from calcpad.errors import ParseError


class QuantityLiteral(NamedTuple):
    value: float
    unit: str | None = None


class Variable(NamedTuple):
    name: str


class CellReference(NamedTuple):
    label: str


class BinaryOperation(NamedTuple):
    left: "Node"
    operator: str
    right: "Node"


class UnaryOperation(NamedTuple):
    operator: str
    operand: "Node"


# Type alias for all possible expression nodes
Node = QuantityLiteral | Variable | CellReference | BinaryOperation | UnaryOperation


class Assignment(NamedTuple):
    name: str
    expr: Node


class ExpressionStatement(NamedTuple):
    expr: Node


Statement = Assignment | ExpressionStatement


# Parse outcomes. The restricted grammar answers NeedsFullGrammar for input it
# is not allowed to handle; callers branch on the value instead of catching.
class Parsed(NamedTuple):
    statement: Statement
    grammar: Literal["restricted", "unified"]


class NeedsFullGrammar(NamedTuple):
    reason: str


class ParseFailure(NamedTuple):
    error: ParseError


ParseResult = Parsed | NeedsFullGrammar | ParseFailure
