"""
Field validation helpers for outline configs.

Each helper takes the dotted config path of the value it checks, so a
failure points at the exact offending location
(``outlines.plate.0.size[1]``).
"""
from typing import Any, Iterable, List, Mapping, Sequence

from plategen.errors import ValidationError
from plategen.units import Units

_KINDS = {
    "object": (dict,),
    "array": (list, tuple),
    "string": (str,),
    "boolean": (bool,),
}

ASYM_ALIASES = {
    "source": ["source", "origin", "base", "primary", "left"],
    "clone": ["clone", "image", "derived", "secondary", "right"],
    "both": ["both", "full", "all"],
}


def type_of(value: Any) -> str:
    """Config-level type name of ``value``."""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def sane(value: Any, name: str, kind: str) -> Any:
    """Require ``value`` to be of config type ``kind``."""
    if kind == "object":
        ok = isinstance(value, Mapping)
    else:
        ok = isinstance(value, _KINDS[kind]) and not (kind != "boolean" and isinstance(value, bool))
    if not ok:
        raise ValidationError(name, f"should be of type {kind}, got {type_of(value)}")
    return value


def in_set(value: Any, name: str, choices: Sequence[Any]) -> Any:
    if value not in choices:
        options = ", ".join(repr(c) for c in choices)
        raise ValidationError(name, f"should be one of [{options}], got {value!r}")
    return value


def unexpected(config: Mapping[str, Any], name: str, expected: Iterable[str]) -> None:
    """Reject keys of ``config`` that are not in ``expected``."""
    sane(config, name, "object")
    allowed = set(expected)
    for key in config:
        if key not in allowed:
            raise ValidationError(f"{name}.{key}", "unexpected key")


def number(value: Any, name: str, units: Units) -> float:
    return units.evaluate(value, name)


def numarr(value: Any, name: str, length: int, units: Units) -> List[float]:
    sane(value, name, "array")
    if len(value) != length:
        raise ValidationError(name, f"should have exactly {length} elements, got {len(value)}")
    return [units.evaluate(v, f"{name}[{i}]") for i, v in enumerate(value)]


def strarr(value: Any, name: str) -> List[str]:
    sane(value, name, "array")
    for i, v in enumerate(value):
        sane(v, f"{name}[{i}]", "string")
    return list(value)


def wh(value: Any, name: str, units: Units) -> List[float]:
    """Width/height pair: a single number means a square."""
    if type_of(value) != "array":
        n = number(value, name, units)
        return [n, n]
    return numarr(value, name, 2, units)


def xy(value: Any, name: str, units: Units) -> List[float]:
    return numarr(value, name, 2, units)


def trbl(value: Any, name: str, units: Units) -> List[float]:
    """Top/right/bottom/left 4-tuple, CSS style shorthands allowed."""
    if type_of(value) != "array":
        n = number(value, name, units)
        return [n, n, n, n]
    if len(value) == 2:
        top, right = numarr(value, name, 2, units)
        return [top, right, top, right]
    return numarr(value, name, 4, units)


def asym(value: Any, name: str) -> str:
    """Normalise an asymmetry setting to ``source``, ``clone`` or ``both``."""
    choices = [alias for aliases in ASYM_ALIASES.values() for alias in aliases]
    in_set(value, name, choices)
    for canonical, aliases in ASYM_ALIASES.items():
        if value in aliases:
            return canonical
    return value
