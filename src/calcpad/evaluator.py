import logging
from typing import Callable, List, Optional, Tuple, Union

from calcpad import operators
from calcpad.a1 import CellAddress, format_address
from calcpad.ast import (
    Assignment,
    BinaryOperation,
    CellReference,
    ExpressionStatement,
    Node,
    ParseFailure,
    QuantityLiteral,
    Statement,
    UnaryOperation,
    Variable,
)
from calcpad.errors import (
    CircularCellReference,
    EvalError,
    UnknownIdentifier,
    UnresolvedCellReference,
)
from calcpad.namespace import NamespaceStore
from calcpad.normalize import normalize_for_parser
from calcpad.parser import parse_statement, parse_unified
from calcpad.tokenizer import CalcTokenizer
from calcpad.types import Quantity
from calcpad.units import is_unit, quantity_from_unit
from calcpad.utils import suggest_name

CellLookup = Callable[[int, int], str]
AddressParser = Callable[[str], Union[CellAddress, Tuple[int, int], None]]


def no_cells(row: int, col: int) -> str:
    return ""


def no_addresses(label: str) -> None:
    return None


class EvaluationStack:
    """Cells currently being evaluated, innermost last."""

    def __init__(self):
        self.stack: List[Tuple[int, int]] = []

    def push(self, cell: Tuple[int, int]) -> None:
        self.stack.append(cell)

    def pop(self) -> None:
        self.stack.pop()

    def contains(self, cell: Tuple[int, int]) -> bool:
        return cell in self.stack

    def format_cycle_path(self, cell: Tuple[int, int]) -> str:
        path = [format_address(row, col) for row, col in self.stack]
        path.append(format_address(*cell))
        return " -> ".join(path)


class Evaluator:
    """Evaluates expression trees to Quantities.

    Variables resolve through ``namespace``. Cell references go through
    ``address_parser`` to a (row, col) pair, then ``cell_lookup`` for the
    cell's text, which is parsed and evaluated in turn.
    """

    def __init__(
        self,
        namespace: Optional[NamespaceStore] = None,
        cell_lookup: Optional[CellLookup] = None,
        address_parser: Optional[AddressParser] = None,
    ):
        self.namespace = namespace if namespace is not None else NamespaceStore()
        self.cell_lookup = cell_lookup or no_cells
        self.address_parser = address_parser or no_addresses
        self.evaluation_stack = EvaluationStack()

    def evaluate(self, node_or_text: Union[str, Node]) -> Quantity:
        """Evaluate an expression node, or parse and evaluate a line of text."""
        if isinstance(node_or_text, str):
            return self.evaluate_statement(parse_statement(node_or_text))
        return self._evaluate_node(node_or_text)

    def evaluate_statement(self, statement: Statement) -> Quantity:
        """Value of an assignment's right-hand side or of a bare expression.

        Assignments are not stored here; the caller owns the namespace writes.
        """
        if isinstance(statement, (Assignment, ExpressionStatement)):
            return self._evaluate_node(statement.expr)
        raise ValueError(f"Unknown statement type: {type(statement)}")

    def _evaluate_node(self, node: Node) -> Quantity:
        if isinstance(node, QuantityLiteral):
            return quantity_from_unit(node.value, node.unit)

        elif isinstance(node, Variable):
            return self._evaluate_variable(node)

        elif isinstance(node, CellReference):
            return self._evaluate_cell_ref(node)

        elif isinstance(node, BinaryOperation):
            return self._evaluate_binary_op(node)

        elif isinstance(node, UnaryOperation):
            return self._evaluate_unary_op(node)

        raise ValueError(f"Unknown node type: {type(node)}")

    def _evaluate_binary_op(self, node: BinaryOperation) -> Quantity:
        left = self._evaluate_node(node.left)
        right = self._evaluate_node(node.right)

        match node.operator:
            case "+":
                return operators.add(left, right)
            case "-":
                return operators.subtract(left, right)
            case "*":
                return operators.multiply(left, right)
            case "/":
                return operators.divide(left, right)
            case "^":
                return operators.power(left, right)
            case _:
                raise EvalError(f"Unknown operator: {node.operator}")

    def _evaluate_unary_op(self, node: UnaryOperation) -> Quantity:
        value = self._evaluate_node(node.operand)

        match node.operator:
            case "+":
                return value
            case "-":
                return operators.negate(value)
            case _:
                raise EvalError(f"Unknown unary operator: {node.operator}")

    def _evaluate_variable(self, node: Variable) -> Quantity:
        value = self.namespace.resolve_variable(node.name)
        if value is not None:
            return value
        if is_unit(node.name):
            # A bare unit name stands for one of that unit
            return quantity_from_unit(1.0, node.name)

        message = f"Unknown identifier '{node.name}'"
        hint = suggest_name(node.name, self.namespace.names())
        if hint:
            message += f" (did you mean '{hint}'?)"
        raise UnknownIdentifier(message, name=node.name)

    def _resolve_address(self, label: str) -> Tuple[int, int]:
        try:
            address = self.address_parser(label)
        except Exception as e:
            raise UnresolvedCellReference(
                f"Cannot resolve cell {label}: {e}", label=label
            ) from e
        if address is None:
            raise UnresolvedCellReference(f"Invalid cell reference: {label}", label=label)
        row, col = address
        return row, col

    def _read_cell(self, label: str, row: int, col: int) -> str:
        try:
            text = self.cell_lookup(row, col)
        except Exception as e:
            raise UnresolvedCellReference(
                f"Cannot read cell {label}: {e}", label=label
            ) from e
        text = normalize_for_parser(str(text or ""))
        if text.startswith("="):
            text = text[1:].strip()
        if not text:
            raise UnresolvedCellReference(f"Cell {label} is empty", label=label)
        return text

    def _evaluate_cell_ref(self, node: CellReference) -> Quantity:
        label = node.label.upper()
        cell = self._resolve_address(label)

        if self.evaluation_stack.contains(cell):
            cycle_path = self.evaluation_stack.format_cycle_path(cell)
            raise CircularCellReference(
                f"Circular cell reference: {cycle_path}", label=label
            )

        self.evaluation_stack.push(cell)
        try:
            text = self._read_cell(label, *cell)
            tokenizer = CalcTokenizer(text)
            tokens = tokenizer.tokenize()
            if tokenizer.issues:
                raise UnresolvedCellReference(
                    f"Cannot parse cell {label}: {tokenizer.issues[0]}", label=label
                )
            parsed = parse_unified(tokens)
            if isinstance(parsed, ParseFailure):
                raise UnresolvedCellReference(
                    f"Cannot parse cell {label}: {parsed.error}", label=label
                )
            logging.debug(f"Evaluating cell {label}: {text}")
            try:
                return self.evaluate_statement(parsed.statement)
            except UnresolvedCellReference:
                raise
            except EvalError as e:
                raise UnresolvedCellReference(
                    f"Cell {label} failed: {e}", label=label
                ) from e
        finally:
            self.evaluation_stack.pop()
