"""Unit conversion into catalog units.

Health exports record each sample in the unit the writing app chose
(``lb`` from a US scale, ``cm`` from a manual entry). Values are converted to
the catalog's canonical unit before formatting.
"""

import re
from collections.abc import Callable

# Spellings seen in export.xml and Health Auto Export payloads
_ALIASES = {
    "kilogram": "kg",
    "kgs": "kg",
    "lbs": "lb",
    "pound": "lb",
    "bpm": "count/min",
    "beats/min": "count/min",
    "breaths/min": "count/min",
    "count": "count",
    "steps": "count",
    "percent": "%",
    "°c": "degC",
    "ºc": "degC",
    "c": "degC",
    "°f": "degF",
    "ºf": "degF",
    "f": "degF",
    "cal": "kcal",
    "mcg": "mcg",
    "µg": "mcg",
    "ug": "mcg",
    "ml": "mL",
    "l": "L",
    "fl_oz_us": "fl_oz_us",
    "db": "dBASPL",
    "dbaspl": "dBASPL",
    "ms": "ms",
    "min": "min",
    "hr": "hr",
    "s": "s",
    "µs": "mcS",
    "mcs": "mcS",
    "ml/(kg*min)": "mL/min·kg",
    "ml/min·kg": "mL/min·kg",
    "ml/kg/min": "mL/min·kg",
    "km/hr": "km/hr",
    "mi/hr": "mi/hr",
}

_FACTORS: dict[tuple[str, str], float] = {
    # mass
    ("lb", "kg"): 0.45359237,
    ("g", "kg"): 0.001,
    ("st", "kg"): 6.35029318,
    ("kg", "g"): 1000.0,
    ("oz", "g"): 28.349523125,
    ("mg", "g"): 0.001,
    ("g", "mg"): 1000.0,
    ("mcg", "mg"): 0.001,
    ("mg", "mcg"): 1000.0,
    # length
    ("cm", "m"): 0.01,
    ("mm", "m"): 0.001,
    ("km", "m"): 1000.0,
    ("in", "m"): 0.0254,
    ("ft", "m"): 0.3048,
    ("yd", "m"): 0.9144,
    ("mi", "m"): 1609.344,
    # volume
    ("mL", "L"): 0.001,
    ("fl_oz_us", "L"): 0.0295735295625,
    # energy
    ("kJ", "kcal"): 1 / 4.184,
    ("Cal", "kcal"): 1.0,
    # time
    ("s", "ms"): 1000.0,
    ("s", "min"): 1 / 60,
    ("hr", "min"): 60.0,
    # speed
    ("km/hr", "m/s"): 1000 / 3600,
    ("mi/hr", "m/s"): 1609.344 / 3600,
    # conductance
    ("mcS", "S"): 1e-6,
    ("mS", "S"): 0.001,
    # blood glucose (mmol/L -> mg/dL)
    ("mmol/L", "mg/dL"): 18.015588,
    # flow
    ("L/s", "L/min"): 60.0,
}

_FUNCTIONS: dict[tuple[str, str], Callable[[float], float]] = {
    ("degF", "degC"): lambda v: (v - 32.0) * 5.0 / 9.0,
    ("K", "degC"): lambda v: v - 273.15,
}


# Exact spellings are kept as-is; ms and mS differ only by case
_KNOWN_UNITS = frozenset(
    {unit for pair in (*_FACTORS, *_FUNCTIONS) for unit in pair}
    | set(_ALIASES.values())
)

_MOLAR_MASS_RE = re.compile(r"<[^>]*>")


class UnitConversionError(ValueError):
    """Raised when a value cannot be converted to the requested unit."""

    def __init__(self, source: str, target: str) -> None:
        super().__init__(f"Cannot convert '{source}' to '{target}'")
        self.source = source
        self.target = target


def normalize_unit(unit: str | None) -> str:
    """Normalize a unit spelling to HealthKit notation."""
    if not unit:
        return ""
    # export.xml embeds molar mass: "mmol<180.1558800000541>/L"
    stripped = _MOLAR_MASS_RE.sub("", unit.strip())
    if stripped in _KNOWN_UNITS:
        return stripped
    return _ALIASES.get(stripped.lower(), stripped)


def convert(value: float, source: str | None, target: str | None) -> float:
    """Convert ``value`` from ``source`` unit to ``target`` unit.

    A missing source unit is taken to already be in the target unit.

    Raises:
        UnitConversionError: If no conversion is known.
    """
    if target is None:
        return value
    src = normalize_unit(source)
    dst = normalize_unit(target)
    if not src or src == dst:
        return value
    if (src, dst) in _FACTORS:
        return value * _FACTORS[(src, dst)]
    if (src, dst) in _FUNCTIONS:
        return _FUNCTIONS[(src, dst)](value)
    raise UnitConversionError(src, dst)
