"""
Shape generators.

Each shape kind parses and validates its own config fields into a plan once
per part. ``plan.units`` is the units context extended with the shape's own
bases (where-selectors and adjustments are resolved against it), and
``plan.build(anchor)`` returns ``(Model, BBox)`` built at the local origin for
each placement frame. The anchor is only consulted for metadata (mirroring,
key size); positioning happens in the pipeline.
"""
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from shapely.geometry import LineString, Point
from shapely.geometry import box as shapely_box

from plategen import assertions as a
from plategen import kernel
from plategen.anchor import Anchor, parse_anchor, rotate_vector
from plategen.contracts import BBox, OutlineSettings, PathSegment, Vec2
from plategen.errors import GeometryError, ValidationError
from plategen.hull import concave_hull
from plategen.kernel import Model
from plategen.paths import CONTROL_POINTS, arc_through, bezier, close_chain, s_curve
from plategen.units import Units

logger = logging.getLogger(__name__)

SEGMENT_TYPES = ("line", "arc", "s_curve", "bezier")


class ShapePlan(ABC):
    """Validated, unit-bound recipe for one part's shape."""

    def __init__(self, name: str, units: Units, settings: OutlineSettings):
        self.name = name
        self.units = units
        self.settings = settings

    @classmethod
    @abstractmethod
    def parse(cls, config: Mapping[str, Any], name: str, points: Mapping[str, Anchor],
              registry, units: Units, settings: OutlineSettings) -> "ShapePlan":
        ...

    @abstractmethod
    def build(self, anchor: Anchor) -> Tuple[Model, BBox]:
        ...


class RectanglePlan(ShapePlan):
    def __init__(self, name, units, settings, size, corner, bevel):
        super().__init__(name, units, settings)
        self.size = size
        self.corner = corner
        self.bevel = bevel

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["size", "corner", "bevel"])
        if "size" not in config:
            raise ValidationError(f"{name}.size", "missing required field")
        size = a.wh(config["size"], f"{name}.size", units)
        rect_units = units.extend({"sx": size[0], "sy": size[1]})
        corner = a.number(config.get("corner", 0), f"{name}.corner", rect_units)
        bevel = a.number(config.get("bevel", 0), f"{name}.bevel", rect_units)
        if corner < 0:
            raise ValidationError(f"{name}.corner", "should not be negative")
        if bevel < 0:
            raise ValidationError(f"{name}.bevel", "should not be negative")

        w, h = size
        mod = 2 * (corner + bevel)
        for dim, value in (("wide", w), ("tall", h)):
            if value - mod < 0:
                raise GeometryError(
                    name,
                    f"rectangle isn't {dim} enough for its corner and bevel "
                    f"({value:g} - 2 * {corner:g} - 2 * {bevel:g} < 0)",
                )
        return cls(name, rect_units, settings, (w, h), corner, bevel)

    def build(self, anchor):
        w, h = self.size
        bevel, corner = self.bevel, self.corner
        cw = w - 2 * (corner + bevel)
        ch = h - 2 * (corner + bevel)
        x0, y0 = -cw / 2, -ch / 2

        if bevel > 0:
            shape = kernel.poly([
                (x0 - bevel, y0),
                (x0 - bevel, y0 + ch),
                (x0, y0 + ch + bevel),
                (x0 + cw, y0 + ch + bevel),
                (x0 + cw + bevel, y0 + ch),
                (x0 + cw + bevel, y0),
                (x0 + cw, y0 - bevel),
                (x0, y0 - bevel),
            ])
        elif cw > 0 and ch > 0:
            shape = shapely_box(x0, y0, -x0, -y0)
        elif cw > 0 or ch > 0:
            shape = LineString([(x0, y0), (-x0, -y0)])
        else:
            shape = Point(0, 0)

        if corner > 0:
            shape = shape.buffer(corner, quad_segs=self.settings.quad_segs, join_style="round")
        return Model.of(shape), BBox.symmetric(w / 2, h / 2)


class CirclePlan(ShapePlan):
    def __init__(self, name, units, settings, radius):
        super().__init__(name, units, settings)
        self.radius = radius

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["radius"])
        if "radius" not in config:
            raise ValidationError(f"{name}.radius", "missing required field")
        radius = a.number(config["radius"], f"{name}.radius", units)
        if radius <= 0:
            raise ValidationError(f"{name}.radius", "should be positive")
        return cls(name, units.extend({"r": radius}), settings, radius)

    def build(self, anchor):
        shape = kernel.circle((0, 0), self.radius, self.settings)
        return Model.of(shape), BBox.symmetric(self.radius, self.radius)


class PolygonPlan(ShapePlan):
    def __init__(self, name, units, settings, points, raw_points):
        super().__init__(name, units, settings)
        self.points = points
        self.raw_points = raw_points

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["points"])
        raw_points = a.sane(config.get("points"), f"{name}.points", "array")
        if len(raw_points) < 3:
            raise ValidationError(f"{name}.points", f"a polygon needs at least 3 points, got {len(raw_points)}")
        return cls(name, units, settings, points, list(raw_points))

    def resolve(self, anchor: Anchor) -> List[Vec2]:
        return [p.p for p in _chain(self.raw_points, f"{self.name}.points", self.points, anchor, self.units)]

    def build(self, anchor):
        coords = self.resolve(anchor)
        return Model.of(kernel.poly(coords)), BBox.from_points(coords)


class OutlinePlan(ShapePlan):
    def __init__(self, name, units, settings, source, origin):
        super().__init__(name, units, settings)
        self.source = source
        self.origin = origin

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["name", "origin"])
        if "name" not in config:
            raise ValidationError(f"{name}.name", "missing required field")
        target = a.sane(config["name"], f"{name}.name", "string")
        source = registry.get(target, f"{name}.name")
        origin = parse_anchor(config.get("origin"), f"{name}.origin", points)(units)
        return cls(name, units, settings, source, origin)

    def build(self, anchor):
        shape = self.source.map(self.origin.unposition)
        bbox = shape.bbox() or BBox((0.0, 0.0), (0.0, 0.0))
        return shape, bbox


class PathPlan(ShapePlan):
    def __init__(self, name, units, settings, points, segments):
        super().__init__(name, units, settings)
        self.points = points
        self.segments = segments

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["segments"])
        raw_segments = a.sane(config.get("segments"), f"{name}.segments", "array")
        if not raw_segments:
            raise ValidationError(f"{name}.segments", "a path needs at least one segment")
        segments = []
        for index, segment in enumerate(raw_segments):
            segments.append(_parse_segment(segment, f"{name}.segments.{index}", units, settings))
        return cls(name, units, settings, points, segments)

    def trace(self, anchor: Anchor) -> List[PathSegment]:
        """Resolve and tessellate every segment, plus the closing line if one is needed."""
        traced: List[PathSegment] = []
        first = None
        last = Anchor(0, 0, 0, anchor.meta)
        step_deg = self.settings.arc_step_deg
        for index, segment in enumerate(self.segments):
            path = f"{self.name}.segments.{index}"
            resolved = _chain(segment["points"], f"{path}.points", self.points, anchor, self.units, start=last)
            if first is None:
                first = resolved[0]
            last = resolved[-1]
            coords = [p.p for p in resolved]

            kind = segment["type"]
            if kind == "arc":
                coords = arc_through(coords[0], coords[1], coords[2], step_deg, path)
            elif kind == "s_curve":
                coords = s_curve(coords[0], coords[1], step_deg, path)
            elif kind == "bezier":
                coords = bezier(coords, segment["order"], segment["step"])
            traced.append(PathSegment(kind, tuple(coords)))

        if first.x != last.x or first.y != last.y:
            traced.append(PathSegment("closing_line", (last.p, first.p)))
        return traced

    def build(self, anchor):
        shape = close_chain(self.trace(anchor), self.settings.point_tolerance, self.name)
        return Model.of(shape), BBox.from_bounds(shape.bounds)


class HullPlan(ShapePlan):
    def __init__(self, name, units, settings, points, raw_points, concavity, extend):
        super().__init__(name, units, settings)
        self.points = points
        self.raw_points = raw_points
        self.concavity = concavity
        self.extend = extend

    @classmethod
    def parse(cls, config, name, points, registry, units, settings):
        a.unexpected(config, name, ["concavity", "extend", "points"])
        concavity = a.number(config.get("concavity", settings.default_concavity), f"{name}.concavity", units)
        if concavity <= 0:
            raise ValidationError(f"{name}.concavity", "should be positive")
        extend = a.sane(config.get("extend", True), f"{name}.extend", "boolean")
        raw_points = a.sane(config.get("points"), f"{name}.points", "array")
        if not raw_points:
            raise ValidationError(f"{name}.points", "a hull needs at least one point")
        return cls(name, units, settings, points, list(raw_points), concavity, extend)

    def hull_cloud(self, anchor: Anchor) -> List[Vec2]:
        """Points the hull is computed over.

        With ``extend``, every point is replaced by the corners of its key
        rectangle, plus evenly spaced points along long sides so the hull
        cannot cut across a long key.
        """
        cloud: List[Vec2] = []
        chained = _chain(self.raw_points, f"{self.name}.points", self.points, anchor, self.units)
        for index, point in enumerate(chained):
            if self.extend:
                cloud.extend(self._key_outline(point, f"{self.name}.points[{index}]"))
            else:
                cloud.append(point.p)
        return cloud

    def build(self, anchor):
        shape = concave_hull(self.hull_cloud(anchor), self.concavity, self.name)
        return Model.of(shape), BBox.from_bounds(shape.bounds)

    def _key_outline(self, point: Anchor, name: str) -> List[Vec2]:
        w = self._key_dimension(point, "width", name)
        h = self._key_dimension(point, "height", name)
        top_left, top_right = (-w / 2, h / 2), (w / 2, h / 2)
        bottom_left, bottom_right = (-w / 2, -h / 2), (w / 2, -h / 2)
        local = [top_left, top_right, bottom_left, bottom_right]

        spacing = self.settings.hull_spacing
        sides = []
        if w > spacing:
            count = 2 + math.floor(w / spacing)
            sides += [(top_left, top_right, count), (bottom_left, bottom_right, count)]
        if h > spacing:
            count = 2 + math.floor(h / spacing)
            sides += [(bottom_left, top_left, count), (bottom_right, top_right, count)]
        for start, end, count in sides:
            # endpoints are the corners already added
            for t in np.linspace(0.0, 1.0, count)[1:-1]:
                local.append((start[0] + t * (end[0] - start[0]), start[1] + t * (end[1] - start[1])))

        result = []
        for x, y in local:
            rx, ry = rotate_vector((x, y), point.r)
            result.append((point.x + rx, point.y + ry))
        return result

    def _key_dimension(self, point: Anchor, key: str, name: str) -> float:
        value = point.meta.get(key, self.units.get("u"))
        if value is None:
            raise ValidationError(f"{name}.{key}", "point has no key size and no 'u' unit to fall back on")
        return a.number(value, f"{name}.{key}", self.units)


SHAPES: Dict[str, type] = {
    "rectangle": RectanglePlan,
    "circle": CirclePlan,
    "polygon": PolygonPlan,
    "outline": OutlinePlan,
    "path": PathPlan,
    "hull": HullPlan,
}


def plan_shape(what: str, config: Mapping[str, Any], name: str, points: Mapping[str, Anchor],
               registry, units: Units, settings: OutlineSettings) -> ShapePlan:
    """Build the plan for a part of kind ``what``."""
    a.in_set(what, f"{name}.what", list(SHAPES))
    plan = SHAPES[what].parse(config, name, points, registry, units, settings)
    logger.debug("Planned %s for %s", what, name)
    return plan


# ─── Internal helpers ────────────────────────────────────────────────────────

def _chain(raw_points, name: str, points, anchor: Anchor, units: Units,
           start: Optional[Anchor] = None) -> List[Anchor]:
    """Resolve anchor expressions, each relative to the previous result.

    Without ``start`` the chain begins at the local origin but keeps the
    placement anchor's metadata for mirroring.
    """
    last = start if start is not None else Anchor(0, 0, 0, anchor.meta)
    resolved = []
    for index, raw in enumerate(raw_points):
        last = parse_anchor(raw, f"{name}[{index}]", points, last)(units)
        resolved.append(last)
    return resolved


def _parse_segment(segment, name: str, units: Units, settings: OutlineSettings) -> Dict[str, Any]:
    a.sane(segment, name, "object")
    kind = a.in_set(segment.get("type"), f"{name}.type", SEGMENT_TYPES)
    if kind == "bezier":
        a.unexpected(segment, name, ["type", "points", "accuracy", "order"])
    else:
        a.unexpected(segment, name, ["type", "points"])
    raw_points = a.sane(segment.get("points"), f"{name}.points", "array")
    count = len(raw_points)
    plural = "was" if count == 1 else "were"

    parsed = {"type": kind, "points": list(raw_points)}
    if kind == "line" and count < 2:
        raise GeometryError(name, f"a line needs at least 2 points, but {count} {plural} provided")
    if kind == "arc" and count != 3:
        raise GeometryError(name, f"an arc needs exactly 3 points, but {count} {plural} provided")
    if kind == "s_curve" and count != 2:
        raise GeometryError(name, f"an S-curve needs exactly 2 points, but {count} {plural} provided")
    if kind == "bezier":
        order = a.in_set(segment.get("order", "cubic" if count == 4 else "quadratic"),
                         f"{name}.order", list(CONTROL_POINTS))
        stride = CONTROL_POINTS[order] + 1
        if count <= 2 or (count - 1) % stride != 0:
            raise ValidationError(
                f"{name}.points",
                f"a {order} bezier chain needs 1 + a multiple of {stride} points, got {count}",
            )
        accuracy = a.number(segment.get("accuracy", -1), f"{name}.accuracy", units)
        parsed["order"] = order
        parsed["step"] = settings.bezier_step if accuracy <= 0 else accuracy
    return parsed
