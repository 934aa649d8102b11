import logging
from typing import Dict, Iterator, List, NamedTuple, Optional

from calcpad.types import Quantity


class NamespaceEntry(NamedTuple):
    name: str
    value: Quantity
    cell_key: str


class NamespaceStore:
    """Variables defined by a document, each owned by the line that defined it.

    Names are case-sensitive, so ``a`` and ``A`` are distinct. A name has at
    most one owning cell: defining it again from another cell moves ownership
    there.
    """

    def __init__(self):
        self._entries: Dict[str, NamespaceEntry] = {}

    def define_variable(self, name: str, value: Quantity, cell_key: str) -> None:
        previous = self._entries.get(name)
        if previous is not None and previous.cell_key != cell_key:
            logging.debug(
                f"'{name}' moves from cell {previous.cell_key} to cell {cell_key}"
            )
        self._entries[name] = NamespaceEntry(name, value, cell_key)

    def resolve_variable(self, name: str) -> Optional[Quantity]:
        entry = self._entries.get(name)
        return entry.value if entry else None

    def get_defining_cell(self, name: str) -> Optional[str]:
        entry = self._entries.get(name)
        return entry.cell_key if entry else None

    def clear_variables_in_cell(self, cell_key: str) -> List[str]:
        """Remove every name owned by ``cell_key`` and return them."""
        removed = [e.name for e in self._entries.values() if e.cell_key == cell_key]
        for name in removed:
            del self._entries[name]
        if removed:
            logging.debug(f"Cleared {removed} owned by cell {cell_key}")
        return removed

    def get_variables_defined_by_cell(self, cell_key: str) -> List[str]:
        return [e.name for e in self._entries.values() if e.cell_key == cell_key]

    def get_dependents(self, cell_key: str) -> List[str]:
        """Names that may depend on ``cell_key``.

        No reference graph is kept, so this is every name the cell does not
        own itself.
        """
        return [e.name for e in self._entries.values() if e.cell_key != cell_key]

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[NamespaceEntry]:
        return list(self._entries.values())

    def names(self) -> List[str]:
        return [e.name for e in self._entries.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[NamespaceEntry]:
        return iter(self.entries())
