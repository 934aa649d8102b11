import math
from typing import Iterable, Mapping, Optional

from rapidfuzz import fuzz, process

import calcpad.ast as ast


def suggest_name(name: str, candidates: Iterable[str], similarity: float = 0.6) -> str | None:
    """Return the closest candidate to ``name``, if any is similar enough."""
    choices = [c for c in candidates if c != name]
    if not choices:
        return None
    match = process.extractOne(
        name, choices, scorer=fuzz.ratio, score_cutoff=similarity * 100
    )
    if match is None:
        return None
    return match[0]


def format_number_literal(value: float) -> str:
    if math.isfinite(value) and value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def format_expression(node: ast.Node, values: Optional[Mapping[str, str]] = None) -> str:
    """Render an expression tree back to text, fully parenthesized.

    Names and cell labels found in ``values`` are written as their mapped text.
    """
    values = values or {}
    if isinstance(node, ast.QuantityLiteral):
        number = format_number_literal(node.value)
        return f"{number} {node.unit}" if node.unit else number
    if isinstance(node, ast.Variable):
        return values.get(node.name, node.name)
    if isinstance(node, ast.CellReference):
        return values.get(node.label.upper(), node.label)
    if isinstance(node, ast.UnaryOperation):
        return f"{node.operator}{format_expression(node.operand, values)}"
    if isinstance(node, ast.BinaryOperation):
        left = format_expression(node.left, values)
        right = format_expression(node.right, values)
        return f"({left} {node.operator} {right})"
    raise ValueError(f"Unknown node type: {type(node)}")


def format_statement(statement: ast.Statement) -> str:
    if isinstance(statement, ast.Assignment):
        return f"{statement.name} = {format_expression(statement.expr)}"
    return format_expression(statement.expr)
