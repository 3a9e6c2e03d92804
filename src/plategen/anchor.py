"""
Anchor frames and anchor expressions.

An Anchor is a position + rotation + free-form metadata. Points produced by
the layout adapter are Anchors; so is every intermediate frame used to place
a shape. Anchors are values: every operation returns a new one.
"""
import copy
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from shapely import affinity
from shapely.geometry.base import BaseGeometry

from plategen import assertions as a
from plategen.errors import ValidationError
from plategen.units import Units

MIRROR_PREFIX = "mirror_"


def rotate_vector(vec: Tuple[float, float], angle_deg: float) -> Tuple[float, float]:
    rad = math.radians(angle_deg)
    c, s = math.cos(rad), math.sin(rad)
    return (vec[0] * c - vec[1] * s, vec[0] * s + vec[1] * c)


def mirror_name(name: str) -> str:
    """``foo`` <-> ``mirror_foo``."""
    if name.startswith(MIRROR_PREFIX):
        return name[len(MIRROR_PREFIX):]
    return MIRROR_PREFIX + name


class Anchor:
    """A named reference frame: ``x``, ``y``, rotation ``r`` (degrees) and ``meta``."""

    __slots__ = ("x", "y", "r", "meta")

    def __init__(self, x: float = 0.0, y: float = 0.0, r: float = 0.0,
                 meta: Optional[Dict[str, Any]] = None):
        self.x = float(x)
        self.y = float(y)
        self.r = float(r)
        self.meta = meta if meta is not None else {}

    def __repr__(self):
        name = self.meta.get("name")
        label = f" {name!r}" if name else ""
        return f"Anchor{label}(x={self.x:.3f}, y={self.y:.3f}, r={self.r:.3f})"

    @property
    def p(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def mirrored(self) -> bool:
        return bool(self.meta.get("mirrored"))

    def clone(self) -> "Anchor":
        return Anchor(self.x, self.y, self.r, copy.deepcopy(self.meta))

    def shift(self, vec, relative: bool = True, resist: bool = False) -> "Anchor":
        """Move by ``vec``; relative shifts follow the anchor's rotation.

        Mirrored anchors shift the other way along x unless ``resist`` is set.
        """
        dx, dy = float(vec[0]), float(vec[1])
        if self.mirrored and not resist:
            dx = -dx
        if relative:
            dx, dy = rotate_vector((dx, dy), self.r)
        result = self.clone()
        result.x += dx
        result.y += dy
        return result

    def rotate(self, angle: float, origin: Optional[Tuple[float, float]] = None,
               resist: bool = False) -> "Anchor":
        """Turn by ``angle`` degrees, orbiting ``origin`` when one is given."""
        if self.mirrored and not resist:
            angle = -angle
        result = self.clone()
        if origin is not None:
            ox, oy = origin
            rx, ry = rotate_vector((self.x - ox, self.y - oy), angle)
            result.x, result.y = ox + rx, oy + ry
        result.r += angle
        return result

    def angle_to(self, other: "Anchor") -> float:
        """Rotation that makes this anchor's up direction face ``other``."""
        dx = other.x - self.x
        dy = other.y - self.y
        return -math.degrees(math.atan2(dx, dy))

    def equals(self, other: "Anchor", tolerance: float = 1e-9) -> bool:
        return (
            abs(self.x - other.x) <= tolerance
            and abs(self.y - other.y) <= tolerance
            and abs(self.r - other.r) <= tolerance
        )

    def position(self, geometry: BaseGeometry) -> BaseGeometry:
        """Bake this frame into ``geometry`` built at the local origin."""
        rotated = affinity.rotate(geometry, self.r, origin=(0, 0))
        return affinity.translate(rotated, self.x, self.y)

    def unposition(self, geometry: BaseGeometry) -> BaseGeometry:
        """Inverse of :meth:`position`."""
        moved = affinity.translate(geometry, -self.x, -self.y)
        return affinity.rotate(moved, -self.r, origin=(0, 0))


def points_from_mapping(raw: Mapping[str, Any]) -> Dict[str, Anchor]:
    """Build named anchors from ``{name: {x, y, r, meta}}``.

    This is the structure a layout adapter hands over; ``meta.name`` is
    stamped with the point's key.
    """
    a.sane(raw, "points", "object")
    points: Dict[str, Anchor] = {}
    for name, spec in raw.items():
        path = f"points.{name}"
        a.unexpected(spec, path, ["x", "y", "r", "meta"])
        meta = dict(a.sane(spec.get("meta", {}), f"{path}.meta", "object"))
        meta["name"] = name
        points[name] = Anchor(
            _plain_number(spec.get("x", 0), f"{path}.x"),
            _plain_number(spec.get("y", 0), f"{path}.y"),
            _plain_number(spec.get("r", 0), f"{path}.r"),
            meta,
        )
    return points


def parse_anchor(
    raw: Any,
    name: str,
    points: Mapping[str, Anchor],
    start: Optional[Anchor] = None,
    mirror: bool = False,
) -> Callable[[Units], Anchor]:
    """Deferred anchor expression; call the result with a units context.

    ``start`` is the frame relative to which the expression is evaluated
    (the origin by default). Points are never modified.
    """
    if start is None:
        start = Anchor()

    def resolve(units: Units) -> Anchor:
        return _resolve(raw, name, points, start, mirror, units)

    return resolve


# ─── Internal helpers ────────────────────────────────────────────────────────

def _plain_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(name, f"should be of type number, got {a.type_of(value)}")
    return float(value)


def _resolve(raw, name, points, start, mirror, units) -> Anchor:
    if raw is None:
        return start.clone()

    if a.type_of(raw) == "array":
        current = start.clone()
        for index, step in enumerate(raw):
            current = _resolve(step, f"{name}[{index}]", points, current, mirror, units)
        return current

    if a.type_of(raw) == "string":
        raw = {"ref": raw}

    a.unexpected(raw, name, ["ref", "aggregate", "orient", "shift", "rotate", "affect", "resist"])
    if "ref" in raw and "aggregate" in raw:
        raise ValidationError(name, "fields 'ref' and 'aggregate' cannot appear together")

    resist = bool(a.sane(raw.get("resist", False), f"{name}.resist", "boolean"))
    point = start.clone()

    if "ref" in raw:
        point = _reference(raw["ref"], f"{name}.ref", points, start, mirror, units)
    if "aggregate" in raw:
        point = _aggregate(raw["aggregate"], f"{name}.aggregate", points, start, mirror, units)

    if "orient" in raw:
        point = _rotator(raw["orient"], f"{name}.orient", point, points, start, mirror, resist, units)
    if "shift" in raw:
        offset = a.xy(raw["shift"], f"{name}.shift", units)
        point = point.shift(offset, relative=True, resist=resist)
    if "rotate" in raw:
        point = _rotator(raw["rotate"], f"{name}.rotate", point, points, start, mirror, resist, units)

    if "affect" in raw:
        affect = raw["affect"]
        if a.type_of(affect) == "string":
            affect = list(affect)
        affect = a.strarr(affect, f"{name}.affect")
        candidate = point
        point = start.clone()
        point.meta = candidate.meta
        for index, component in enumerate(affect):
            a.in_set(component, f"{name}.affect[{index}]", ["x", "y", "r"])
            setattr(point, component, getattr(candidate, component))

    return point


def _reference(ref, name, points, start, mirror, units) -> Anchor:
    kind = a.type_of(ref)
    if kind == "array":
        parts = [_resolve(r, f"{name}[{i}]", points, start, mirror, units) for i, r in enumerate(ref)]
        return _average(parts, name)
    if kind == "string":
        target = mirror_name(ref) if mirror else ref
        if target not in points:
            raise ValidationError(name, f"unknown point reference {target!r}")
        return points[target].clone()
    return _resolve(ref, name, points, start, mirror, units)


def _aggregate(config, name, points, start, mirror, units) -> Anchor:
    a.unexpected(config, name, ["parts", "method"])
    a.in_set(config.get("method", "average"), f"{name}.method", ["average"])
    raw_parts = a.sane(config.get("parts", []), f"{name}.parts", "array")
    parts = [_resolve(p, f"{name}.parts[{i}]", points, start, mirror, units) for i, p in enumerate(raw_parts)]
    return _average(parts, name)


def _average(parts: List[Anchor], name: str) -> Anchor:
    if not parts:
        raise ValidationError(name, "cannot aggregate an empty list of anchors")
    n = len(parts)
    return Anchor(
        sum(p.x for p in parts) / n,
        sum(p.y for p in parts) / n,
        sum(p.r for p in parts) / n,
    )


def _rotator(config, name, point, points, start, mirror, resist, units) -> Anchor:
    if a.type_of(config) in ("number", "string") and not _names_point(config, points):
        angle = a.number(config, name, units)
        return point.rotate(angle, resist=resist)
    target = _resolve(config, name, points, start, mirror, units)
    result = point.clone()
    result.r = point.angle_to(target)
    return result


def _names_point(value, points) -> bool:
    return isinstance(value, str) and value in points
