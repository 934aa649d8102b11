"""Run documents over spreadsheet data held in openpyxl worksheets or pandas frames."""

from typing import Any, Optional

import pandas as pd
from openpyxl.cell.rich_text import CellRichText
from openpyxl.worksheet.formula import ArrayFormula
from openpyxl.worksheet.worksheet import Worksheet

from calcpad.a1 import CellAddress, format_address
from calcpad.engine import Document, Layout, Line, recompute
from calcpad.evaluator import CellLookup
from calcpad.formatter import UnitPreferences
from calcpad.utils import format_number_literal


def cell_text(value: Any) -> str:
    """Text of a raw cell value, "" for empty cells."""
    if value is None:
        return ""
    if isinstance(value, ArrayFormula):
        value = value.text
    if isinstance(value, CellRichText):
        value = str(value)
    if isinstance(value, str):
        return value.strip()
    if pd.isna(value):
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number_literal(float(value))
    return str(value).strip()


def _line_text(value: Any) -> str:
    text = cell_text(value)
    if text.startswith("="):
        text = text[1:].strip()
    return text


def worksheet_lookup(ws: Worksheet) -> CellLookup:
    """Cell lookup over a worksheet, with zero-based row and column."""

    def lookup(row: int, col: int) -> str:
        if row < 0 or col < 0 or row >= ws.max_row or col >= ws.max_column:
            return ""
        return cell_text(ws.cell(row=row + 1, column=col + 1).value)

    return lookup


def frame_lookup(df: pd.DataFrame) -> CellLookup:
    """Cell lookup over a frame by position: A1 is ``df.iat[0, 0]``."""

    def lookup(row: int, col: int) -> str:
        n_rows, n_cols = df.shape
        if row < 0 or col < 0 or row >= n_rows or col >= n_cols:
            return ""
        return cell_text(df.iat[row, col])

    return lookup


def document_from_worksheet(ws: Worksheet) -> Document:
    """A GRID document with one line per non-empty cell, ids being A1 labels."""
    lines = []
    for row in ws.iter_rows():
        for cell in row:
            text = _line_text(cell.value)
            if not text:
                continue
            address = CellAddress(cell.row - 1, cell.column - 1)
            lines.append(Line(id=address.label, text=text, address=address))
    return Document(lines=lines, layout=Layout.GRID)


def document_from_frame(df: pd.DataFrame) -> Document:
    lines = []
    n_rows, n_cols = df.shape
    for row in range(n_rows):
        for col in range(n_cols):
            text = _line_text(df.iat[row, col])
            if not text:
                continue
            lines.append(
                Line(id=format_address(row, col), text=text, address=CellAddress(row, col))
            )
    return Document(lines=lines, layout=Layout.GRID)


def recompute_worksheet(
    ws: Worksheet,
    *,
    strict_units: bool = True,
    preferences: Optional[UnitPreferences] = None,
) -> Document:
    return recompute(
        document_from_worksheet(ws),
        worksheet_lookup(ws),
        strict_units=strict_units,
        preferences=preferences,
    )


def recompute_frame(
    df: pd.DataFrame,
    *,
    strict_units: bool = True,
    preferences: Optional[UnitPreferences] = None,
) -> Document:
    return recompute(
        document_from_frame(df),
        frame_lookup(df),
        strict_units=strict_units,
        preferences=preferences,
    )


def results_to_frame(document: Document) -> pd.DataFrame:
    """One row per line in reading order, indexed by line id."""
    records = []
    for line in document.ordered_lines():
        records.append(
            {
                "id": line.id,
                "text": line.text,
                "kind": line.kind.value,
                "magnitude": line.result.magnitude if line.result is not None else None,
                "unit": line.result.unit if line.result is not None else None,
                "formatted": line.formatted,
                "error": line.error,
            }
        )
    columns = ["id", "text", "kind", "magnitude", "unit", "formatted", "error"]
    return pd.DataFrame.from_records(records, columns=columns).set_index("id")
