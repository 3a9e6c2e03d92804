"""
Geometry kernel for outline composition.

Built on Shapely. A Model is an ordered set of named polygonal layers:
boolean union merges everything into one layer, while ``stack`` keeps the
operands as separate layers so their boundaries are not merged. Subtract and
intersect cut every layer.

Stacked layers only stay apart until the next union: a later ``add`` folds
every layer, stacked ones included, back into the single ``body`` layer.
"""
import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import shapely
from shapely import affinity
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from plategen.contracts import BBox, OutlineSettings

# joints index -> Shapely join style
JOIN_STYLES = ("round", "mitre", "bevel")

UNION_LAYER = "body"


class Model:
    """Immutable ordered mapping of layer name -> polygonal geometry."""

    __slots__ = ("_layers",)

    def __init__(self, layers: Iterable[Tuple[str, BaseGeometry]] = ()):
        self._layers = tuple(
            (name, geom) for name, geom in ((n, polygonal(g)) for n, g in layers)
            if not geom.is_empty
        )

    @classmethod
    def empty(cls) -> "Model":
        return cls()

    @classmethod
    def of(cls, geometry: BaseGeometry, name: str = "shape") -> "Model":
        return cls([(name, geometry)])

    def __repr__(self):
        names = ", ".join(name for name, _ in self._layers)
        return f"Model([{names}])"

    @property
    def layers(self) -> Dict[str, BaseGeometry]:
        return dict(self._layers)

    @property
    def is_empty(self) -> bool:
        return not self._layers

    @property
    def geometry(self) -> BaseGeometry:
        """All layers merged into one geometry."""
        if not self._layers:
            return Polygon()
        return polygonal(unary_union([g for _, g in self._layers]))

    def bbox(self) -> Optional[BBox]:
        if not self._layers:
            return None
        boxes = [BBox.from_bounds(g.bounds) for _, g in self._layers]
        result = boxes[0]
        for box in boxes[1:]:
            result = result.union(box)
        return result

    def chains(self) -> List[Polygon]:
        """Every closed chain (polygon with its holes), layer order."""
        result = []
        for _, geom in self._layers:
            result.extend(_polygons(geom))
        return result

    def map(self, fn: Callable[[BaseGeometry], BaseGeometry]) -> "Model":
        return Model((name, fn(geom)) for name, geom in self._layers)

    # ─── Boolean operators ──────────────────────────────────────────────────

    def union(self, other: "Model") -> "Model":
        geoms = [g for _, g in self._layers] + [g for _, g in other._layers]
        if not geoms:
            return Model()
        return Model.of(unary_union(geoms), UNION_LAYER)

    def subtract(self, other: "Model") -> "Model":
        if other.is_empty:
            return self
        cutter = other.geometry
        return self.map(lambda geom: geom.difference(cutter))

    def intersect(self, other: "Model") -> "Model":
        mask = other.geometry
        return self.map(lambda geom: geom.intersection(mask))

    def stack(self, other: "Model") -> "Model":
        taken = {name for name, _ in self._layers}
        layers = list(self._layers)
        for name, geom in other._layers:
            unique = _unique_name(name, taken)
            taken.add(unique)
            layers.append((unique, geom))
        return Model(layers)

    # ─── Post-processing ────────────────────────────────────────────────────

    def scaled(self, factor: float) -> "Model":
        return self.map(lambda geom: affinity.scale(geom, factor, factor, origin=(0, 0)))

    def expanded(self, distance: float, joints: int, settings: OutlineSettings) -> "Model":
        """Offset every layer outward (``distance > 0``) or inward."""
        return self.map(lambda geom: geom.buffer(
            distance,
            quad_segs=settings.quad_segs,
            join_style=JOIN_STYLES[joints],
            mitre_limit=settings.mitre_limit,
        ))

    def filleted(self, radius: float, part_name: str, settings: OutlineSettings) -> "Model":
        """Round every corner of every chain; chain ``i`` becomes layer ``fillet_<part>_<i>``."""
        layers = []
        for index, chain in enumerate(self.chains()):
            layers.append((f"fillet_{part_name}_{index}", fillet_polygon(chain, radius, settings)))
        return Model(layers)

    def normalized(self, tolerance: float = 0.0) -> "Model":
        """Canonical ring orientation and start points, degenerate pieces dropped."""
        def clean(geom: BaseGeometry) -> BaseGeometry:
            geom = shapely.remove_repeated_points(geom, tolerance)
            parts = [p for p in _polygons(geom) if p.area > tolerance]
            if not parts:
                return Polygon()
            merged = parts[0] if len(parts) == 1 else MultiPolygon(parts)
            return shapely.normalize(merged)

        return self.map(clean)


def fillet_polygon(polygon: Polygon, radius: float, settings: OutlineSettings) -> BaseGeometry:
    """Round every corner of every ring of ``polygon`` with an arc of ``radius``.

    A corner whose tangent points would not fit on half of either adjacent
    edge is left sharp, so neighbouring fillets never overlap and the shape
    keeps its topology.
    """
    radius = abs(radius)
    exterior = _fillet_ring(list(polygon.exterior.coords)[:-1], radius, settings)
    holes = [_fillet_ring(list(ring.coords)[:-1], radius, settings) for ring in polygon.interiors]
    result = Polygon(exterior, holes)
    if not result.is_valid:
        result = polygonal(shapely.make_valid(result))
    return result


def polygonal(geom: BaseGeometry) -> BaseGeometry:
    """Keep only the areal parts of ``geom``."""
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    parts = _polygons(geom)
    if not parts:
        return Polygon()
    return parts[0] if len(parts) == 1 else MultiPolygon(parts)


# ─── Primitive shapes ────────────────────────────────────────────────────────

def rect(width: float, height: float, origin: Tuple[float, float] = (0.0, 0.0)) -> Polygon:
    """Axis-aligned rectangle with its lower-left corner at ``origin``."""
    x, y = origin
    return Polygon([(x, y), (x + width, y), (x + width, y + height), (x, y + height)])


def circle(center: Tuple[float, float], radius: float, settings: OutlineSettings) -> Polygon:
    return shapely.Point(center).buffer(radius, quad_segs=settings.quad_segs)


def poly(points: List[Tuple[float, float]]) -> BaseGeometry:
    """Closed polygon through ``points``; self-intersections are repaired."""
    if len(points) < 3:
        return Polygon()
    shape = Polygon(points)
    if not shape.is_valid:
        shape = shapely.make_valid(shape)
    return polygonal(shape)


# ─── Internal helpers ────────────────────────────────────────────────────────

def _polygons(geom: BaseGeometry) -> List[Polygon]:
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        result = []
        for part in geom.geoms:
            result.extend(_polygons(part))
        return result
    return []


def _unique_name(name: str, taken) -> str:
    if name not in taken:
        return name
    index = 1
    while f"{name}_{index}" in taken:
        index += 1
    return f"{name}_{index}"


def _fillet_ring(coords: List[Tuple[float, float]], radius: float,
                 settings: OutlineSettings) -> List[Tuple[float, float]]:
    count = len(coords)
    if count < 3 or radius <= 0:
        return coords
    step = (math.pi / 2) / settings.quad_segs
    result = []
    for index, (vx, vy) in enumerate(coords):
        px, py = coords[index - 1]
        nx, ny = coords[(index + 1) % count]
        ux, uy = px - vx, py - vy
        wx, wy = nx - vx, ny - vy
        lu, lw = math.hypot(ux, uy), math.hypot(wx, wy)
        if lu == 0 or lw == 0:
            result.append((vx, vy))
            continue
        ux, uy, wx, wy = ux / lu, uy / lu, wx / lw, wy / lw
        # angle between the two edges at this corner
        angle = math.acos(max(-1.0, min(1.0, ux * wx + uy * wy)))
        if angle < 1e-9 or math.pi - angle < 1e-9:
            result.append((vx, vy))
            continue
        tangent = radius / math.tan(angle / 2)
        if tangent > lu / 2 or tangent > lw / 2:
            result.append((vx, vy))
            continue

        bx, by = ux + wx, uy + wy
        norm = math.hypot(bx, by)
        offset = radius / math.sin(angle / 2)
        cx, cy = vx + bx / norm * offset, vy + by / norm * offset
        start = math.atan2(vy + uy * tangent - cy, vx + ux * tangent - cx)
        end = math.atan2(vy + wy * tangent - cy, vx + wx * tangent - cx)
        sweep = (end - start + math.pi) % (2 * math.pi) - math.pi
        steps = max(1, int(math.ceil(abs(sweep) / step)))
        for i in range(steps + 1):
            t = start + sweep * i / steps
            result.append((cx + radius * math.cos(t), cy + radius * math.sin(t)))
    return result
