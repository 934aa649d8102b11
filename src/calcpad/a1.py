import re
from typing import NamedTuple, Optional

from openpyxl.utils import column_index_from_string, get_column_letter

ADDRESS_REGEX = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


def col_label_to_index(label: str) -> int:
    """Zero-based column index of a column label: A -> 0, Z -> 25, AA -> 26."""
    if not label or not label.isascii() or not label.isalpha():
        raise ValueError(f"Invalid column label: {label!r}")
    return column_index_from_string(label.upper()) - 1


def index_to_col(index: int) -> str:
    """Column label of a zero-based column index. Inverse of col_label_to_index."""
    if index < 0:
        raise ValueError(f"Invalid column index: {index}")
    return get_column_letter(index + 1)


def format_address(row: int, col: int) -> str:
    return f"{index_to_col(col)}{row + 1}"


class CellAddress(NamedTuple):
    row: int  # zero-based
    col: int  # zero-based

    @property
    def label(self) -> str:
        return format_address(self.row, self.col)

    @property
    def key(self) -> str:
        return f"{self.row}:{self.col}"


def parse_address(text: str) -> Optional[CellAddress]:
    """Parse an A1 label such as ``Z10`` (case-insensitive). Returns None if invalid."""
    if not isinstance(text, str):
        return None
    match = ADDRESS_REGEX.match(text.strip().upper())
    if match is None:
        return None
    try:
        col = col_label_to_index(match.group(1))
    except ValueError:
        # Beyond the last spreadsheet column
        return None
    return CellAddress(int(match.group(2)) - 1, col)
