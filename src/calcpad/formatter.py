import math
from dataclasses import dataclass
from typing import Literal, NamedTuple, Optional

from typing_extensions import Self

from calcpad.errors import UnitMismatch
from calcpad.types import Quantity, describe_dims
from calcpad.units import format_unit, resolve_unit

THIN_SPACE = "\u2009"

LENGTH, MASS, TIME, FORCE, ANGLE = range(5)

UnitSystem = Literal["imperial_in", "imperial_ft", "metric_mm", "metric_m"]


@dataclass(frozen=True)
class UnitPreferences:
    """Units used to display values that carry no unit of their own."""

    length_base: Literal["in", "ft", "mm", "m"] = "in"
    force_base: Literal["lb", "kip", "N", "kN"] = "lb"
    time_base: Literal["s"] = "s"
    stress_scale: Literal["psi/ksi", "Pa/kPa/MPa"] = "psi/ksi"

    @classmethod
    def for_system(cls, system: UnitSystem) -> Self:
        match system:
            case "imperial_in":
                return cls("in", "lb", "s", "psi/ksi")
            case "imperial_ft":
                return cls("ft", "lb", "s", "psi/ksi")
            case "metric_mm":
                return cls("mm", "N", "s", "Pa/kPa/MPa")
            case "metric_m":
                return cls("m", "N", "s", "Pa/kPa/MPa")
        raise ValueError(f"Unknown unit system: {system}")


DEFAULT_PREFERENCES = UnitPreferences()


class DisplayQuantity(NamedTuple):
    value: float
    unit: Optional[str]


def format_number(value: float) -> str:
    """Fixed notation with up to 3 decimals for magnitudes in [1e-3, 1e6),
    scientific notation with 3 decimals otherwise.

    >>> format_number(9.0)
    '9'
    >>> format_number(0.0003)
    '3.000e-4'
    """
    if not math.isfinite(value):
        return str(value)
    if value == 0:
        return "0"
    magnitude = abs(value)
    if 1e-3 <= magnitude < 1e6:
        text = f"{value:.3f}"
        return text.rstrip("0").rstrip(".")
    mantissa, exponent = f"{value:.3e}".split("e")
    return f"{mantissa}e{int(exponent):+d}"


def convert_to_unit(q: Quantity, unit: str) -> float:
    """Magnitude of ``q`` expressed in ``unit``."""
    definition = resolve_unit(unit)
    if not q.is_compatible(Quantity(1.0, definition.dims)):
        raise UnitMismatch(
            f"Cannot display {describe_dims(q.dims)} in {unit} ({describe_dims(definition.dims)})"
        )
    return q.magnitude / definition.factor


def auto_display(
    q: Quantity, preferences: Optional[UnitPreferences] = None
) -> DisplayQuantity:
    """Pick a display unit for a value from its dimensions alone."""
    prefs = preferences or DEFAULT_PREFERENCES
    d = [int(x) for x in q.dims]

    if not any(d):
        return DisplayQuantity(q.magnitude, None)

    others_zero = d[MASS] == 0 and d[TIME] == 0 and d[ANGLE] == 0

    # Stress
    if others_zero and d[FORCE] == 1 and d[LENGTH] == -2:
        if prefs.stress_scale == "psi/ksi":
            value = convert_to_unit(q, "psi")
            if abs(value) >= 1000:
                return DisplayQuantity(value / 1000, "ksi")
            return DisplayQuantity(value, "psi")
        value = q.magnitude
        if abs(value) >= 1_000_000:
            return DisplayQuantity(value / 1_000_000, "MPa")
        if abs(value) >= 1000:
            return DisplayQuantity(value / 1000, "kPa")
        return DisplayQuantity(value, "Pa")

    # Moment
    if others_zero and d[FORCE] == 1 and d[LENGTH] == 1:
        if prefs.force_base == "lb":
            value = convert_to_unit(q, "lb·in")
            if abs(value) >= 1200:
                return DisplayQuantity(convert_to_unit(q, "lb·ft"), "lb·ft")
            return DisplayQuantity(value, "lb·in")
        return DisplayQuantity(convert_to_unit(q, "N·m"), "N·m")

    exponents = {
        prefs.length_base: d[LENGTH],
        prefs.force_base: d[FORCE],
        prefs.time_base: d[TIME],
        "kg": d[MASS],
        "rad": d[ANGLE],
    }
    unit = format_unit({name: p for name, p in exponents.items() if p != 0})
    assert unit is not None
    return DisplayQuantity(convert_to_unit(q, unit), unit)


def format_quantity(
    q: Quantity,
    preferred_unit: Optional[str] = None,
    preferences: Optional[UnitPreferences] = None,
) -> str:
    """Display text for a value: number, thin space, unit.

    The unit is ``preferred_unit`` if given, else the unit the value was
    written with, else one chosen by ``auto_display``. Dimensionless values
    render as the bare number.
    """
    if q.is_dimensionless and not preferred_unit:
        return format_number(q.magnitude)

    unit = preferred_unit or q.unit
    if unit:
        display = DisplayQuantity(convert_to_unit(q, unit), unit)
    else:
        display = auto_display(q, preferences)

    number = format_number(display.value)
    if display.unit is None or q.is_dimensionless:
        return number
    return f"{number}{THIN_SPACE}{display.unit}"
