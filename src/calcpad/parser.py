from typing import Callable, List, Optional

from calcpad.errors import ParseError
from calcpad.tokenizer import Token, TokenType, significant, tokenize
from calcpad.ast import (
    Assignment,
    BinaryOperation,
    CellReference,
    ExpressionStatement,
    Node,
    Parsed,
    ParseFailure,
    ParseResult,
    QuantityLiteral,
    Statement,
    UnaryOperation,
    Variable,
)


def parse_statement(text: str) -> Statement:
    """Helper function to parse a line of text into a statement. Raises ParseError."""
    return CalcParser(tokenize(text)).parse()


def parse_unified(source: str | List[Token]) -> ParseResult:
    """Parse with the full grammar, returning Parsed or ParseFailure."""
    tokens = tokenize(source) if isinstance(source, str) else source
    try:
        statement = CalcParser(tokens).parse()
    except ParseError as e:
        return ParseFailure(e)
    return Parsed(statement, "unified")


def describe_token(token: Token) -> str:
    return f"{token.type.name} '{token.value}' at position {token.position}"


class CalcParser:
    """Precedence-climbing parser for the full expression grammar.

    AddSub := MulDiv (('+'|'-') MulDiv)*
    MulDiv := Power (('*'|'/') Power)*
    Power  := Unary ['^' Power]
    Unary  := ('+'|'-') Unary | Primary
    Primary := NUMBER [UNIT] | CELL_REF | IDENTIFIER | '(' AddSub ')'

    A statement is an assignment only when it starts with IDENTIFIER '='.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = significant(tokens)
        self.current = 0
        if self.tokens:
            last = self.tokens[-1]
            self.end_position = last.position + len(last.value)
        else:
            self.end_position = 0

    def parse(self) -> Statement:
        """Parse tokens into a statement."""
        self.current = 0
        if not self.tokens:
            raise ParseError("Empty expression", 0)

        first = self.tokens[0]
        second = self.tokens[1] if len(self.tokens) > 1 else None
        if (
            first.type == TokenType.IDENTIFIER
            and second is not None
            and second.type == TokenType.EQUAL
        ):
            self.current = 2
            statement: Statement = Assignment(first.value, self.parse_expression())
        else:
            statement = ExpressionStatement(self.parse_expression())

        trailing = self.peek()
        if trailing is not None:
            raise ParseError(
                f"Unexpected token: {describe_token(trailing)}", trailing.position
            )
        return statement

    def peek(self) -> Optional[Token]:
        """Look at the current token without consuming it."""
        if self.current >= len(self.tokens):
            return None
        return self.tokens[self.current]

    def read(self) -> Token:
        """Consume and return the current token."""
        if self.current >= len(self.tokens):
            raise ParseError("Unexpected end of input", self.end_position)
        tok = self.tokens[self.current]
        self.current += 1
        return tok

    def read_if_match(self, *types: TokenType) -> Optional[Token]:
        """Consume and return current token if it matches any of the given types."""
        token = self.peek()
        if token is not None and token.type in types:
            self.current += 1
            return token
        return None

    def _parse_binary_operation(
        self, parse_operand: Callable[[], Node], valid_operators: set[TokenType]
    ) -> Node:
        """Parse a left-associative chain of the given operators."""
        left = parse_operand()

        while True:
            next_tok = self.peek()
            if not next_tok or next_tok.type not in valid_operators:
                break

            self.read()  # consume operator
            right = parse_operand()
            left = BinaryOperation(left=left, operator=next_tok.value, right=right)

        return left

    def parse_expression(self) -> Node:
        """Parse addition/subtraction (lowest precedence)."""
        return self._parse_binary_operation(
            self.parse_term, {TokenType.PLUS, TokenType.MINUS}
        )

    def parse_term(self) -> Node:
        """Parse multiplication/division (*, /)."""
        return self._parse_binary_operation(
            self.parse_power, {TokenType.STAR, TokenType.SLASH}
        )

    def parse_power(self) -> Node:
        """Parse exponentiation (^), which is right-associative."""
        base = self.parse_unary()
        caret = self.read_if_match(TokenType.CARET)
        if caret is None:
            return base
        return BinaryOperation(left=base, operator=caret.value, right=self.parse_power())

    def parse_unary(self) -> Node:
        sign = self.read_if_match(TokenType.PLUS, TokenType.MINUS)
        if sign is not None:
            return UnaryOperation(operator=sign.value, operand=self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Node:
        """Parse a quantity, reference, name or parenthesized expression."""
        token = self.peek()
        if token is None:
            raise ParseError("Unexpected end of input", self.end_position)

        if token.type == TokenType.NUMBER:
            self.read()
            assert token.number is not None
            unit = self.read_if_match(TokenType.UNIT)
            return QuantityLiteral(token.number, unit.value if unit else None)

        if token.type == TokenType.CELL_REF:
            self.read()
            return CellReference(token.value)

        if token.type == TokenType.IDENTIFIER:
            self.read()
            return Variable(token.value)

        if token.type == TokenType.LPAREN:
            self.read()  # consume '('
            expr = self.parse_expression()
            if not self.read_if_match(TokenType.RPAREN):
                curr = self.peek()
                position = curr.position if curr else self.end_position
                raise ParseError(
                    f"Expected closing parenthesis ')' at position {position}",
                    position,
                )
            return expr

        raise ParseError(f"Unexpected token: {describe_token(token)}", token.position)
