"""
Length units for page geometry. Every conversion goes through millimetres and is rounded
to a fixed precision per unit, so switching units back and forth never drifts.
"""
from enum import Enum


class Unit(str, Enum):
    MM = "mm"
    CM = "cm"
    INCH = "in"


MM_PER_UNIT = {
    Unit.MM: 1.0,
    Unit.CM: 10.0,
    Unit.INCH: 25.4,
}

# Decimal places kept after converting into a unit
PRECISION = {
    Unit.MM: 2,
    Unit.CM: 2,
    Unit.INCH: 3,
}


def to_mm(value: float, unit: Unit | str) -> float:
    return float(value) * MM_PER_UNIT[Unit(unit)]


def from_mm(value_mm: float, unit: Unit | str) -> float:
    unit = Unit(unit)
    return round(float(value_mm) / MM_PER_UNIT[unit], PRECISION[unit])


def convert(value: float, from_unit: Unit | str, to_unit: Unit | str) -> float:
    """Convert a length between mm, cm and in. Same-unit conversion only re-rounds."""
    return from_mm(to_mm(value, from_unit), to_unit)


def css_length(value: float, unit: Unit | str) -> str:
    """Format a length for CSS: 4.0 cm -> '4cm', 8.5 in -> '8.5in'."""
    return f"{float(value):g}{Unit(unit).value}"
