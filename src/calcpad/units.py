import math
import re
from functools import lru_cache
from typing import NamedTuple

import numpy as np

from calcpad.errors import UnknownUnit
from calcpad.types import DIMENSIONLESS, Quantity, as_dims, make_dims
from calcpad.utils import suggest_name


class UnitDefinition(NamedTuple):
    factor: float  # multiply by this to get the canonical SI magnitude
    dims: np.ndarray


LENGTH = make_dims(length=1)
MASS = make_dims(mass=1)
TIME = make_dims(time=1)
FORCE = make_dims(force=1)
ANGLE = make_dims(angle=1)
STRESS = make_dims(length=-2, force=1)

UNIT_REGISTRY: dict[str, UnitDefinition] = {
    # Length
    "in": UnitDefinition(0.0254, LENGTH),
    "ft": UnitDefinition(0.3048, LENGTH),
    "yd": UnitDefinition(0.9144, LENGTH),
    "mm": UnitDefinition(0.001, LENGTH),
    "cm": UnitDefinition(0.01, LENGTH),
    "m": UnitDefinition(1.0, LENGTH),
    "km": UnitDefinition(1000.0, LENGTH),
    "mil": UnitDefinition(0.0000254, LENGTH),
    # Force
    "N": UnitDefinition(1.0, FORCE),
    "kN": UnitDefinition(1000.0, FORCE),
    "lb": UnitDefinition(4.4482216153, FORCE),
    "lbs": UnitDefinition(4.4482216153, FORCE),
    "kip": UnitDefinition(4448.2216153, FORCE),
    # Mass
    "kg": UnitDefinition(1.0, MASS),
    # Pressure / stress
    "Pa": UnitDefinition(1.0, STRESS),
    "kPa": UnitDefinition(1000.0, STRESS),
    "MPa": UnitDefinition(1_000_000.0, STRESS),
    "GPa": UnitDefinition(1_000_000_000.0, STRESS),
    "psi": UnitDefinition(6894.75729, STRESS),
    "psf": UnitDefinition(47.8802589, STRESS),
    "ksi": UnitDefinition(6_894_757.29, STRESS),
    # Time
    "s": UnitDefinition(1.0, TIME),
    "sec": UnitDefinition(1.0, TIME),
    # Angle
    "deg": UnitDefinition(math.pi / 180, ANGLE),
    "rad": UnitDefinition(1.0, ANGLE),
}

# Longest first so that e.g. "kPa" wins over "Pa" in an alternation.
UNIT_PATTERN = "|".join(sorted(UNIT_REGISTRY, key=len, reverse=True))

UNIT_FACTOR_REGEX = re.compile(r"^([A-Za-z]+)(?:\^(-?\d+))?$")
PRODUCT_SEPARATORS = re.compile(r"[·*]")


def is_unit(name: str) -> bool:
    return name in UNIT_REGISTRY


def _apply(chunk: str, sign: int, factor: float, dims: np.ndarray, full: str):
    for part in PRODUCT_SEPARATORS.split(chunk):
        part = part.strip()
        if not part or part == "1":
            continue
        match = UNIT_FACTOR_REGEX.match(part)
        if not match:
            raise UnknownUnit(f"Unknown unit: {full}", name=full)
        name, exponent = match.groups()
        unit = UNIT_REGISTRY.get(name)
        if unit is None:
            hint = suggest_name(name, UNIT_REGISTRY.keys())
            message = f"Unknown unit: {name}"
            if hint:
                message += f" (did you mean '{hint}'?)"
            raise UnknownUnit(message, name=name)
        power = (int(exponent) if exponent else 1) * sign
        factor *= unit.factor**power
        dims = dims + unit.dims * power
    return factor, dims


@lru_cache(maxsize=256)
def resolve_unit(unit: str) -> UnitDefinition:
    """Resolve a simple or composite unit string such as ``kip/ft`` or ``ft^2``."""
    if unit in UNIT_REGISTRY:
        return UNIT_REGISTRY[unit]

    numerator, _, denominator = unit.partition("/")
    if "/" in denominator:
        raise UnknownUnit(f"Unknown unit: {unit}", name=unit)
    factor, dims = _apply(numerator, 1, 1.0, DIMENSIONLESS, unit)
    if denominator:
        factor, dims = _apply(denominator, -1, factor, dims, unit)
    return UnitDefinition(factor, as_dims(dims))


def unit_exponents(unit: str) -> dict[str, int]:
    """Split a unit string into base unit names and exponents.

    ``"kip·ft/in^2"`` -> ``{"kip": 1, "ft": 1, "in": -2}``. Names are not
    checked against the registry here.
    """
    exponents: dict[str, int] = {}
    numerator, _, denominator = unit.partition("/")
    for chunk, sign in ((numerator, 1), (denominator, -1)):
        for part in PRODUCT_SEPARATORS.split(chunk):
            part = part.strip()
            if not part or part == "1":
                continue
            match = UNIT_FACTOR_REGEX.match(part)
            if not match:
                raise UnknownUnit(f"Unknown unit: {unit}", name=unit)
            name, exponent = match.groups()
            power = (int(exponent) if exponent else 1) * sign
            exponents[name] = exponents.get(name, 0) + power
    return {name: power for name, power in exponents.items() if power != 0}


def _format_power(name: str, power: int) -> str:
    return name if power == 1 else f"{name}^{power}"


def format_unit(exponents: dict[str, int]) -> str | None:
    """Inverse of unit_exponents. Returns None when everything cancels out."""
    numerator = [_format_power(n, p) for n, p in exponents.items() if p > 0]
    denominator = [_format_power(n, -p) for n, p in exponents.items() if p < 0]
    if not numerator and not denominator:
        return None
    text = "·".join(numerator) or "1"
    if denominator:
        text += "/" + "·".join(denominator)
    return text


def quantity_from_unit(value: float, unit: str | None = None) -> Quantity:
    """Canonicalize a written value, e.g. ``(5, "in")`` -> 0.127 m of length."""
    if not unit:
        return Quantity(value)
    definition = resolve_unit(unit)
    return Quantity(value * definition.factor, definition.dims, unit)


def unit_factor(unit: str) -> float:
    return resolve_unit(unit).factor
