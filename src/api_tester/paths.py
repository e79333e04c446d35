"""Dotted-path resolution over parsed JSON values.

Paths look like ``user.address.city``. Every non-empty segment is used as a
key into the current mapping. Lists are not indexable through a path: a
segment such as ``0`` or ``items[0]`` is an ordinary key and therefore only
matches mappings that literally contain it.
"""

import math
from typing import Any

JsonValue = Any


class _Missing:
    """Sentinel for a path that does not resolve (JavaScript ``undefined``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve(root: JsonValue, path: str) -> JsonValue:
    """Follow ``path`` through ``root``.

    Returns the value found, or ``MISSING`` as soon as a step hits a
    non-mapping value or an absent key. An empty path returns ``root``.
    """
    current = root
    for segment in path.split("."):
        if not segment:
            continue
        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def is_absent(value: JsonValue) -> bool:
    """True for JSON null and for unresolved paths."""
    return value is None or value is MISSING


def js_string(value: JsonValue) -> str:
    """Stringify a JSON value the way a browser's ``String()`` would."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number_string(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if is_absent(item) else js_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def _number_string(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        power = int(exponent)
        text = f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"
    return text
