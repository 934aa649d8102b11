from calcpad.engine import Document, Layout, Line, RecomputeEngine, recompute
from calcpad.formatter import UnitPreferences, format_quantity
from calcpad.namespace import NamespaceStore
from calcpad.steps import Steps, build_steps
from calcpad.types import Quantity

__all__ = [
    "Document",
    "Layout",
    "Line",
    "NamespaceStore",
    "Quantity",
    "RecomputeEngine",
    "Steps",
    "UnitPreferences",
    "build_steps",
    "format_quantity",
    "recompute",
]
