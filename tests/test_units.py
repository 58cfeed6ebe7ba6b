"""
Tests for length unit conversion.
"""
import pytest

from lettergen.units import Unit, convert, css_length, from_mm, to_mm


class TestConversion:

    def test_to_mm(self):
        assert to_mm(4, "cm") == 40.0
        assert to_mm(1, Unit.INCH) == 25.4

    def test_from_mm_rounds_per_unit(self):
        assert from_mm(100, Unit.INCH) == 3.937
        assert from_mm(12.3456, Unit.MM) == 12.35
        assert from_mm(123.456, Unit.CM) == 12.35

    @pytest.mark.parametrize("unit", list(Unit))
    def test_round_trip_through_mm(self, unit):
        there = convert(4.0, unit, Unit.MM)
        back = convert(there, Unit.MM, unit)
        assert back == pytest.approx(4.0, abs=0.01)

    def test_cm_mm_cm_exact(self):
        assert convert(convert(4.0, "cm", "mm"), "mm", "cm") == 4.0

    def test_repeated_round_trips_do_not_drift(self):
        value = 21.0
        for _ in range(20):
            value = convert(convert(value, Unit.CM, Unit.INCH), Unit.INCH, Unit.CM)
        assert value == pytest.approx(21.0, abs=0.01)

    def test_unknown_unit_rejected(self):
        with pytest.raises(ValueError):
            convert(1, "pt", "mm")


class TestCssLength:

    def test_trims_trailing_zeros(self):
        assert css_length(4.0, Unit.CM) == "4cm"
        assert css_length(8.5, "in") == "8.5in"
        assert css_length(29.7, "cm") == "29.7cm"
