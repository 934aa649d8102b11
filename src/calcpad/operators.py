import math

from calcpad.errors import DivisionByZero, EvalError, UnitMismatch
from calcpad.types import Quantity, describe_dims
from calcpad.units import format_unit, unit_exponents

MAX_UNIT_POWER = 64


def _describe(q: Quantity) -> str:
    if q.unit:
        return f"{describe_dims(q.dims)} ({q.unit})"
    return describe_dims(q.dims)


def combine_units(operator: str, left: str | None, right: str | None) -> str | None:
    """Display unit of a product or quotient, with like units collected.

    ``in * in`` -> ``in^2``, ``kip/ft * ft`` -> ``kip``, ``in / in`` -> None.
    """
    if left is None and right is None:
        return None
    exponents = unit_exponents(left) if left else {}
    sign = 1 if operator == "*" else -1
    if right:
        for name, power in unit_exponents(right).items():
            exponents[name] = exponents.get(name, 0) + sign * power
    return format_unit({n: p for n, p in exponents.items() if p != 0})


def scale_unit(unit: str | None, power: int) -> str | None:
    if unit is None:
        return None
    return format_unit({n: p * power for n, p in unit_exponents(unit).items()})


def add(left: Quantity, right: Quantity) -> Quantity:
    if not left.is_compatible(right):
        raise UnitMismatch(
            f"Cannot add incompatible units: {_describe(left)} and {_describe(right)}"
        )
    return Quantity(
        left.magnitude + right.magnitude, left.dims, left.unit or right.unit
    )


def subtract(left: Quantity, right: Quantity) -> Quantity:
    if not left.is_compatible(right):
        raise UnitMismatch(
            f"Cannot subtract incompatible units: {_describe(left)} and {_describe(right)}"
        )
    return Quantity(
        left.magnitude - right.magnitude, left.dims, left.unit or right.unit
    )


def _product_unit(operator: str, left: Quantity, right: Quantity, dims) -> str | None:
    # Labels such as in/ft cancel by dimension even though the names differ
    if not dims.any():
        return None
    return combine_units(operator, left.unit, right.unit)


def multiply(left: Quantity, right: Quantity) -> Quantity:
    dims = left.dims + right.dims
    return Quantity(
        left.magnitude * right.magnitude, dims, _product_unit("*", left, right, dims)
    )


def divide(left: Quantity, right: Quantity) -> Quantity:
    """Quotient of two quantities.

    Any zero-magnitude divisor is rejected, whatever its dimensions, so
    ``1 kip / 0 ft`` fails the same way as ``1 / 0``.
    """
    if right.magnitude == 0:
        raise DivisionByZero("Division by zero")
    dims = left.dims - right.dims
    return Quantity(
        left.magnitude / right.magnitude, dims, _product_unit("/", left, right, dims)
    )


def power(base: Quantity, exponent: Quantity) -> Quantity:
    if not exponent.is_dimensionless:
        raise UnitMismatch(
            f"Exponent must be dimensionless, got {_describe(exponent)}"
        )
    n = exponent.magnitude
    if not math.isfinite(n):
        raise EvalError(f"Exponent must be finite, got {n}")
    if not base.is_dimensionless and n != round(n):
        raise UnitMismatch(
            f"Cannot raise {_describe(base)} to the non-integer power {n}"
        )
    if not base.is_dimensionless and abs(n) > MAX_UNIT_POWER:
        raise EvalError(f"Exponent {n} is too large for a value with units")
    try:
        magnitude = base.magnitude**n
    except ZeroDivisionError:
        raise DivisionByZero("Division by zero")
    except OverflowError:
        raise EvalError("Numeric overflow")
    if isinstance(magnitude, complex) or math.isnan(magnitude):
        raise EvalError(f"{base.magnitude} ^ {n} is not a real number")

    if n != round(n):
        return Quantity(magnitude, base.dims)
    whole = int(round(n))
    return Quantity(magnitude, base.dims * whole, scale_unit(base.unit, whole))


def negate(value: Quantity) -> Quantity:
    return Quantity(-value.magnitude, value.dims, value.unit)


def ensure_same_unit(left: Quantity, right: Quantity) -> None:
    """The restricted grammar's rule: written unit strings must be identical."""
    if left.unit != right.unit:
        raise UnitMismatch(
            f"Unit mismatch: {left.unit or '(none)'} vs {right.unit or '(none)'}"
        )
