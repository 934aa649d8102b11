import math
from typing import Sequence, Union

import numpy as np
from typing_extensions import Self

# Order of the entries of every dims vector.
DIMENSIONS = ("length", "mass", "time", "force", "angle")

DimsLike = Union[np.ndarray, Sequence[int]]


def _freeze(dims: np.ndarray) -> np.ndarray:
    dims.flags.writeable = False
    return dims


def make_dims(
    length: int = 0, mass: int = 0, time: int = 0, force: int = 0, angle: int = 0
) -> np.ndarray:
    """Build a read-only dims vector from named exponents."""
    return _freeze(np.array([length, mass, time, force, angle], dtype=np.int64))


DIMENSIONLESS = make_dims()


def as_dims(dims: DimsLike) -> np.ndarray:
    """Validate and freeze a dims vector. Entries must be integral."""
    if isinstance(dims, np.ndarray) and dims.dtype == np.int64 and not dims.flags.writeable:
        if dims.shape != DIMENSIONLESS.shape:
            raise ValueError(f"Expected {len(DIMENSIONS)} dimensions, got {dims.shape}")
        return dims

    arr = np.asarray(dims, dtype=np.float64)
    if arr.shape != DIMENSIONLESS.shape:
        raise ValueError(f"Expected {len(DIMENSIONS)} dimensions, got {arr.shape}")
    if not np.all(np.isfinite(arr)) or not np.all(arr == np.round(arr)):
        raise ValueError(f"Dimension exponents must be integers: {list(arr)}")
    return _freeze(arr.astype(np.int64))


def dims_equal(left: np.ndarray, right: np.ndarray) -> bool:
    return bool(np.array_equal(left, right))


def describe_dims(dims: np.ndarray) -> str:
    """Human readable dims, e.g. 'length^-2·force'."""
    parts = []
    for name, exponent in zip(DIMENSIONS, dims.tolist()):
        if exponent == 0:
            continue
        parts.append(name if exponent == 1 else f"{name}^{exponent}")
    return "·".join(parts) or "dimensionless"


class Quantity:
    """A physical value: magnitude in canonical SI units plus a dims vector.

    ``unit`` is the unit the value was written in, if any. It only affects
    display; arithmetic is done on ``magnitude`` and ``dims``. Quantities are
    immutable, every operation returns a new instance.
    """

    __slots__ = ("_magnitude", "_dims", "_unit")

    def __init__(
        self,
        magnitude: float,
        dims: DimsLike | None = None,
        unit: str | None = None,
    ):
        object.__setattr__(self, "_magnitude", float(magnitude))
        object.__setattr__(
            self, "_dims", DIMENSIONLESS if dims is None else as_dims(dims)
        )
        object.__setattr__(self, "_unit", unit or None)

    def __setattr__(self, name, value):
        raise AttributeError("Quantity is immutable")

    @classmethod
    def scalar(cls, value: float) -> Self:
        return cls(value)

    @property
    def magnitude(self) -> float:
        return self._magnitude

    @property
    def dims(self) -> np.ndarray:
        return self._dims

    @property
    def unit(self) -> str | None:
        return self._unit

    @property
    def is_dimensionless(self) -> bool:
        return not self._dims.any()

    def is_compatible(self, other: "Quantity") -> bool:
        return dims_equal(self._dims, other._dims)

    def with_unit(self, unit: str | None) -> Self:
        return type(self)(self._magnitude, self._dims, unit)

    def isclose(self, other: "Quantity", rel_tol: float = 1e-9, abs_tol: float = 0.0) -> bool:
        return self.is_compatible(other) and math.isclose(
            self._magnitude, other._magnitude, rel_tol=rel_tol, abs_tol=abs_tol
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return (
            self._magnitude == other._magnitude
            and self.is_compatible(other)
            and self._unit == other._unit
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        unit = f", unit={self._unit!r}" if self._unit else ""
        return f"Quantity({self._magnitude!r}, dims={self._dims.tolist()}{unit})"


def parse_number(val: str) -> float:
    """Parse a numeric lexeme, allowing comma digit grouping ("12,500")."""
    return float(val.replace(",", ""))
