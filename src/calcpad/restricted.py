"""Restricted grammar: sums and differences of written quantities.

    Stmt := IDENTIFIER '=' Expr | Expr
    Expr := Term (('+'|'-') Term)*
    Term := NUMBER [UNIT]

Input that needs multiplication, division or powers is handed back as
NeedsFullGrammar so the caller can retry with the unified parser.
"""

from typing import List, Optional

from calcpad import operators
from calcpad.ast import (
    Assignment,
    BinaryOperation,
    ExpressionStatement,
    NeedsFullGrammar,
    Node,
    Parsed,
    ParseFailure,
    ParseResult,
    QuantityLiteral,
    Statement,
)
from calcpad.errors import EvalError, ParseError
from calcpad.parser import describe_token
from calcpad.tokenizer import Token, TokenType, significant
from calcpad.types import Quantity
from calcpad.units import quantity_from_unit

FULL_GRAMMAR_TOKENS = {TokenType.STAR, TokenType.SLASH, TokenType.CARET}


class RestrictedParser:
    def __init__(self, tokens: List[Token]):
        self.tokens = significant(tokens)
        self.current = 0

    def peek(self) -> Optional[Token]:
        if self.current >= len(self.tokens):
            return None
        return self.tokens[self.current]

    def read(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("Unexpected end of input", self._end_position())
        self.current += 1
        return token

    def read_if_match(self, *types: TokenType) -> Optional[Token]:
        token = self.peek()
        if token is not None and token.type in types:
            self.current += 1
            return token
        return None

    def _end_position(self) -> int:
        if not self.tokens:
            return 0
        last = self.tokens[-1]
        return last.position + len(last.value)

    def parse(self) -> Statement:
        self.current = 0
        if not self.tokens:
            raise ParseError("Empty expression", 0)

        if (
            len(self.tokens) > 1
            and self.tokens[0].type == TokenType.IDENTIFIER
            and self.tokens[1].type == TokenType.EQUAL
        ):
            name = self.tokens[0].value
            self.current = 2
            statement: Statement = Assignment(name, self.parse_expression())
        else:
            statement = ExpressionStatement(self.parse_expression())

        trailing = self.peek()
        if trailing is not None:
            raise ParseError(
                f"Unexpected token: {describe_token(trailing)}", trailing.position
            )
        return statement

    def parse_expression(self) -> Node:
        left = self.parse_term()
        while True:
            op = self.read_if_match(TokenType.PLUS, TokenType.MINUS)
            if op is None:
                return left
            left = BinaryOperation(left, op.value, self.parse_term())

    def parse_term(self) -> Node:
        token = self.read()
        if token.type in (TokenType.IDENTIFIER, TokenType.CELL_REF):
            raise ParseError(
                f"Unknown identifier '{token.value}' at position {token.position}",
                token.position,
            )
        if token.type != TokenType.NUMBER:
            raise ParseError(
                f"Unexpected token: {describe_token(token)}", token.position
            )
        assert token.number is not None
        unit = self.read_if_match(TokenType.UNIT)
        return QuantityLiteral(token.number, unit.value if unit else None)


def parse_restricted(tokens: List[Token]) -> ParseResult:
    """Parse with the restricted grammar.

    Returns NeedsFullGrammar as soon as a ``*``, ``/`` or ``^`` token is seen,
    without building anything.
    """
    tokens = significant(tokens)
    for token in tokens:
        if token.type in FULL_GRAMMAR_TOKENS:
            return NeedsFullGrammar(
                f"'{token.value}' at position {token.position} needs the full grammar"
            )
    try:
        statement = RestrictedParser(tokens).parse()
    except ParseError as e:
        return ParseFailure(e)
    return Parsed(statement, "restricted")


def evaluate_restricted(
    target: Node | Statement, strict_units: bool = True
) -> Quantity:
    """Evaluate a restricted parse.

    With ``strict_units`` the written unit strings of both operands of ``+``
    and ``-`` must match exactly, so ``5 ft + 12 in`` is rejected even though
    both are lengths.
    """
    if isinstance(target, (Assignment, ExpressionStatement)):
        target = target.expr

    if isinstance(target, QuantityLiteral):
        return quantity_from_unit(target.value, target.unit)

    if isinstance(target, BinaryOperation):
        left = evaluate_restricted(target.left, strict_units)
        right = evaluate_restricted(target.right, strict_units)
        if strict_units:
            operators.ensure_same_unit(left, right)
        match target.operator:
            case "+":
                return operators.add(left, right)
            case "-":
                return operators.subtract(left, right)
        raise EvalError(f"Unsupported operator in restricted grammar: {target.operator}")

    raise EvalError(f"Unsupported node in restricted grammar: {type(target).__name__}")
