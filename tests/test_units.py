import math

import numpy as np
import pytest

from calcpad import operators
from calcpad.errors import DivisionByZero, EvalError, UnitMismatch, UnknownIdentifier, UnknownUnit
from calcpad.types import DIMENSIONLESS, Quantity, as_dims, describe_dims, make_dims
from calcpad.units import (
    FORCE,
    LENGTH,
    STRESS,
    format_unit,
    quantity_from_unit,
    resolve_unit,
    unit_exponents,
)


class TestQuantity:
    def test_scalar(self):
        q = Quantity.scalar(3)
        assert q.magnitude == 3.0
        assert q.is_dimensionless
        assert q.unit is None

    def test_immutable(self):
        q = quantity_from_unit(5, "in")
        with pytest.raises(AttributeError):
            q.magnitude = 1.0
        with pytest.raises(ValueError):
            q.dims[0] = 2

    def test_dims_must_be_integral(self):
        with pytest.raises(ValueError, match="must be integers"):
            as_dims([0.5, 0, 0, 0, 0])
        with pytest.raises(ValueError, match="Expected 5 dimensions"):
            as_dims([1, 0])

    def test_compatibility(self):
        assert quantity_from_unit(1, "ft").is_compatible(quantity_from_unit(1, "mm"))
        assert not quantity_from_unit(1, "ft").is_compatible(quantity_from_unit(1, "kN"))

    def test_equality_is_exact(self):
        assert quantity_from_unit(5, "in") == quantity_from_unit(5, "in")
        assert quantity_from_unit(12, "in") != quantity_from_unit(1, "ft")
        assert quantity_from_unit(12, "in").isclose(quantity_from_unit(1, "ft"))

    def test_with_unit(self):
        q = quantity_from_unit(12, "in").with_unit("ft")
        assert q.unit == "ft"
        assert q.magnitude == pytest.approx(0.3048)

    def test_describe_dims(self):
        assert describe_dims(STRESS) == "length^-2·force"
        assert describe_dims(DIMENSIONLESS) == "dimensionless"
        assert describe_dims(make_dims(angle=1)) == "angle"


class TestUnits:
    def test_simple_units(self):
        assert resolve_unit("in").factor == 0.0254
        assert np.array_equal(resolve_unit("kN").dims, FORCE)
        assert np.array_equal(resolve_unit("ksi").dims, STRESS)

    def test_composite_units(self):
        """Test a/b, a·b and a^n units."""
        kip_per_ft = resolve_unit("kip/ft")
        assert kip_per_ft.factor == pytest.approx(4448.2216153 / 0.3048)
        assert np.array_equal(kip_per_ft.dims, make_dims(length=-1, force=1))

        area = resolve_unit("ft^2")
        assert area.factor == pytest.approx(0.3048**2)
        assert np.array_equal(area.dims, make_dims(length=2))

        moment = resolve_unit("lb·in")
        assert moment.factor == pytest.approx(4.4482216153 * 0.0254)
        assert np.array_equal(moment.dims, make_dims(length=1, force=1))

        assert np.array_equal(resolve_unit("lb/in^2").dims, STRESS)

    def test_unknown_unit(self):
        with pytest.raises(UnknownUnit, match="did you mean 'in'"):
            resolve_unit("inch")
        with pytest.raises(UnknownIdentifier):
            resolve_unit("furlong")
        with pytest.raises(UnknownUnit):
            resolve_unit("kip/ft/s")

    def test_quantity_from_unit(self):
        q = quantity_from_unit(5, "in")
        assert q.magnitude == pytest.approx(0.127)
        assert np.array_equal(q.dims, LENGTH)
        assert q.unit == "in"

        angle = quantity_from_unit(180, "deg")
        assert angle.magnitude == pytest.approx(math.pi)

    def test_unit_exponents(self):
        assert unit_exponents("kip·ft/in^2") == {"kip": 1, "ft": 1, "in": -2}
        assert unit_exponents("in/in") == {}

    def test_format_unit(self):
        assert format_unit({"in": 2}) == "in^2"
        assert format_unit({"kip": 1, "ft": -1}) == "kip/ft"
        assert format_unit({"s": -1}) == "1/s"
        assert format_unit({}) is None


class TestOperators:
    def test_add_converts_through_canonical_magnitude(self):
        total = operators.add(quantity_from_unit(5, "ft"), quantity_from_unit(12, "in"))
        assert total.isclose(quantity_from_unit(6, "ft"))
        assert total.unit == "ft"

    def test_add_incompatible(self):
        with pytest.raises(UnitMismatch, match="Cannot add incompatible units"):
            operators.add(quantity_from_unit(5, "in"), quantity_from_unit(4, "kN"))
        with pytest.raises(UnitMismatch, match="Cannot subtract incompatible units"):
            operators.subtract(quantity_from_unit(5, "in"), Quantity(4))

    def test_multiply_collects_units(self):
        area = operators.multiply(quantity_from_unit(2, "in"), quantity_from_unit(3, "in"))
        assert area.unit == "in^2"
        assert np.array_equal(area.dims, make_dims(length=2))
        assert area.magnitude == pytest.approx(6 * 0.0254**2)

        load = operators.multiply(quantity_from_unit(2, "kip/ft"), quantity_from_unit(10, "ft"))
        assert load.unit == "kip"
        assert load.isclose(quantity_from_unit(20, "kip"))

    def test_divide(self):
        ratio = operators.divide(quantity_from_unit(6, "in"), quantity_from_unit(2, "in"))
        assert ratio.is_dimensionless
        assert ratio.unit is None
        assert ratio.magnitude == pytest.approx(3)

        with pytest.raises(DivisionByZero):
            operators.divide(quantity_from_unit(6, "in"), quantity_from_unit(0, "ft"))

    def test_cancelled_units_drop_their_label(self):
        ratio = operators.divide(quantity_from_unit(12, "in"), quantity_from_unit(1, "ft"))
        assert ratio.unit is None
        assert ratio.magnitude == pytest.approx(1)

        scalar = operators.multiply(quantity_from_unit(2, "kip/ft"), quantity_from_unit(3, "ft/kip"))
        assert scalar.unit is None
        assert scalar.magnitude == pytest.approx(6)

    def test_power(self):
        area = operators.power(quantity_from_unit(3, "ft"), Quantity(2))
        assert area.unit == "ft^2"
        assert area.isclose(quantity_from_unit(9, "ft^2"))

        root = operators.power(Quantity(2), Quantity(0.5))
        assert root.magnitude == pytest.approx(math.sqrt(2))

    def test_power_errors(self):
        with pytest.raises(UnitMismatch, match="Exponent must be dimensionless"):
            operators.power(Quantity(2), quantity_from_unit(1, "in"))
        with pytest.raises(UnitMismatch, match="non-integer power"):
            operators.power(quantity_from_unit(4, "in"), Quantity(0.5))
        with pytest.raises(DivisionByZero):
            operators.power(Quantity(0), Quantity(-1))
        with pytest.raises(EvalError, match="not a real number"):
            operators.power(Quantity(-8), Quantity(1 / 3))

    def test_negate(self):
        q = operators.negate(quantity_from_unit(2, "in"))
        assert q.unit == "in"
        assert q.magnitude == pytest.approx(-0.0508)

    def test_ensure_same_unit(self):
        operators.ensure_same_unit(quantity_from_unit(1, "in"), quantity_from_unit(2, "in"))
        with pytest.raises(UnitMismatch, match="Unit mismatch: ft vs in"):
            operators.ensure_same_unit(quantity_from_unit(1, "ft"), quantity_from_unit(2, "in"))
