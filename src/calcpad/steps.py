"""Calculation steps for one line: its equation and inputs, then the same
equation with the input values substituted, then the result.
"""

import logging
from typing import Dict, List, NamedTuple, Optional

from calcpad.ast import (
    Assignment,
    BinaryOperation,
    CellReference,
    Node,
    ParseFailure,
    UnaryOperation,
    Variable,
)
from calcpad.classify import trim_trailing_equals
from calcpad.errors import CalcError
from calcpad.evaluator import Evaluator
from calcpad.formatter import UnitPreferences, format_quantity
from calcpad.normalize import collapse_duplicate_units, normalize_for_parser
from calcpad.parser import parse_unified
from calcpad.tokenizer import CalcTokenizer
from calcpad.types import Quantity
from calcpad.utils import format_expression


class StepInput(NamedTuple):
    name: str  # variable name or A1 label
    display: str
    source: Optional[str] = None  # id of the defining line, or the cell label


class Steps(NamedTuple):
    equation: str
    inputs: List[StepInput]
    substitution: str
    result: Optional[str] = None
    value: Optional[Quantity] = None
    error: Optional[str] = None


def _references(node: Node) -> List[Node]:
    """Variables and cell references in reading order, each listed once."""
    if isinstance(node, (Variable, CellReference)):
        return [node]
    if isinstance(node, UnaryOperation):
        return _references(node.operand)
    if isinstance(node, BinaryOperation):
        found = _references(node.left)
        for ref in _references(node.right):
            if ref not in found:
                found.append(ref)
        return found
    return []


def build_steps(
    text: str,
    evaluator: Optional[Evaluator] = None,
    preferences: Optional[UnitPreferences] = None,
) -> Steps:
    """Break a line down into the steps of its calculation.

    Names resolve through the evaluator's namespace as it stands, so after a
    recompute a name redefined further down shows its latest value. Errors
    never escape: they end up in ``Steps.error``.
    """
    evaluator = evaluator or Evaluator()
    text = collapse_duplicate_units(normalize_for_parser(trim_trailing_equals(text)))

    tokenizer = CalcTokenizer(text)
    tokens = tokenizer.tokenize()
    if tokenizer.issues:
        return Steps(text, [], text, error=str(tokenizer.issues[0]))
    parsed = parse_unified(tokens)
    if isinstance(parsed, ParseFailure):
        return Steps(text, [], text, error=str(parsed.error))

    statement = parsed.statement
    inputs: List[StepInput] = []
    values: Dict[str, str] = {}
    for ref in _references(statement.expr):
        if isinstance(ref, Variable):
            # Bare unit names are not inputs
            if ref.name not in evaluator.namespace:
                continue
            name = ref.name
            source = evaluator.namespace.get_defining_cell(name)
        else:
            name = source = ref.label.upper()
        if name in values:
            continue
        try:
            display = format_quantity(evaluator.evaluate(ref), preferences=preferences)
        except CalcError as e:
            logging.debug(f"No value for step input {name}: {e}")
            continue
        values[name] = display
        inputs.append(StepInput(name, display, source))

    equation = format_expression(statement.expr)
    substitution = format_expression(statement.expr, values)
    if isinstance(statement, Assignment):
        equation = f"{statement.name} = {equation}"
        substitution = f"{statement.name} = {substitution}"

    try:
        value = evaluator.evaluate_statement(statement)
        result = format_quantity(value, preferences=preferences)
    except CalcError as e:
        return Steps(equation, inputs, substitution, error=str(e))
    return Steps(equation, inputs, substitution, result, value)
