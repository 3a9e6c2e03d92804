"""
Curve tessellation and chain closure for multi-segment paths.

Segments are tessellated into polylines; the polylines must then merge into
exactly one closed chain to form a shape.
"""
import math
from typing import List, Sequence, Tuple

import numpy as np
import shapely
from shapely.geometry import LineString, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import linemerge

from plategen.contracts import PathSegment, Vec2
from plategen.errors import GeometryError
from plategen.kernel import polygonal

CONTROL_POINTS = {"quadratic": 1, "cubic": 2}


def arc_through(p1: Vec2, p2: Vec2, p3: Vec2, step_deg: float, name: str = "") -> List[Vec2]:
    """Circular arc from ``p1`` through ``p2`` to ``p3``."""
    ax, ay = p1
    bx, by = p2
    cx, cy = p3
    d = 2 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < 1e-12:
        raise GeometryError(name, "arc points are collinear")
    ux = ((ax ** 2 + ay ** 2) * (by - cy) + (bx ** 2 + by ** 2) * (cy - ay) + (cx ** 2 + cy ** 2) * (ay - by)) / d
    uy = ((ax ** 2 + ay ** 2) * (cx - bx) + (bx ** 2 + by ** 2) * (ax - cx) + (cx ** 2 + cy ** 2) * (bx - ax)) / d
    radius = math.hypot(ax - ux, ay - uy)

    start = math.atan2(ay - uy, ax - ux)
    mid = math.atan2(by - uy, bx - ux)
    end = math.atan2(cy - uy, cx - ux)
    sweep = (end - start) % (2 * math.pi)
    # go the other way round if the middle point is not on the ccw sweep
    if (mid - start) % (2 * math.pi) > sweep:
        sweep -= 2 * math.pi

    steps = max(2, int(math.ceil(abs(math.degrees(sweep)) / step_deg)))
    angles = start + np.linspace(0.0, sweep, steps + 1)
    points = [(ux + radius * math.cos(t), uy + radius * math.sin(t)) for t in angles]
    points[0], points[-1] = tuple(p1), tuple(p3)
    return points


def s_curve(p0: Vec2, p1: Vec2, step_deg: float, name: str = "") -> List[Vec2]:
    """Two mirrored arcs joining ``p0`` to ``p1`` with horizontal/vertical tangents.

    The endpoints must differ on both axes, otherwise the curve's direction
    is undefined.
    """
    if p0[0] == p1[0]:
        raise GeometryError(name, "S-curve points cannot share the same x coordinate")
    if p0[1] == p1[1]:
        raise GeometryError(name, "S-curve points cannot share the same y coordinate")
    width = abs(p1[0] - p0[0])
    height = abs(p1[1] - p0[1])
    w2, h2 = width / 2, height / 2

    # first half: arc from (0, 0) to the curve's center (w2, h2)
    if width > height:
        radius = (w2 ** 2 + h2 ** 2) / (2 * h2)
        center = (0.0, radius)
    else:
        radius = (w2 ** 2 + h2 ** 2) / (2 * w2)
        center = (radius, 0.0)
    half = arc_through((0.0, 0.0), _arc_midpoint((0.0, 0.0), (w2, h2), center, radius), (w2, h2), step_deg, name)
    second = [(width - x, height - y) for x, y in reversed(half)]
    raw = half + second[1:]

    sx = -1.0 if p0[0] > p1[0] else 1.0
    sy = -1.0 if p0[1] > p1[1] else 1.0
    return [(p0[0] + sx * x, p0[1] + sy * y) for x, y in raw]


def bezier(points: Sequence[Vec2], order: str, step: float) -> List[Vec2]:
    """Chained bezier curves: on-curve points separated by control points."""
    stride = CONTROL_POINTS[order] + 1
    coords = np.asarray(points, dtype=float)
    result: List[Vec2] = [tuple(coords[0])]
    for start in range(0, len(coords) - 1, stride):
        ctrl = coords[start:start + stride + 1]
        length = float(np.sum(np.linalg.norm(np.diff(ctrl, axis=0), axis=1)))
        samples = max(8, int(math.ceil(length / step)))
        for t in np.linspace(0.0, 1.0, samples + 1)[1:]:
            result.append(tuple(_bernstein(ctrl, t)))
    return result


def close_chain(segments: List[PathSegment], tolerance: float, name: str = "") -> BaseGeometry:
    """Merge ``segments`` into one closed chain and return its polygon.

    Endpoints closer than ``tolerance`` count as connected. A chain that
    crosses itself is still one chain; its polygon is repaired into the
    areas it encloses.
    """
    lines = [LineString([_snap(p, tolerance) for p in seg.coords]) for seg in segments]
    merged = linemerge(lines)
    if merged.geom_type != "LineString" or not merged.is_closed:
        raise GeometryError(name, "the path configuration doesn't form a single closed shape")
    shape = Polygon(merged.coords)
    if not shape.is_valid:
        shape = polygonal(shapely.make_valid(shape))
    if shape.is_empty or shape.area <= 0:
        raise GeometryError(name, "the path encloses no area")
    return shape


# ─── Internal helpers ────────────────────────────────────────────────────────

def _bernstein(ctrl: np.ndarray, t: float) -> np.ndarray:
    n = len(ctrl) - 1
    weights = np.array([math.comb(n, i) * (1 - t) ** (n - i) * t ** i for i in range(n + 1)])
    return weights @ ctrl


def _arc_midpoint(p: Vec2, q: Vec2, center: Vec2, radius: float) -> Vec2:
    """Point on the minor arc between ``p`` and ``q`` around ``center``."""
    mx, my = (p[0] + q[0]) / 2 - center[0], (p[1] + q[1]) / 2 - center[1]
    norm = math.hypot(mx, my)
    return (center[0] + mx / norm * radius, center[1] + my / norm * radius)


def _snap(p: Vec2, tolerance: float) -> Vec2:
    if tolerance <= 0:
        return (float(p[0]), float(p[1]))
    return (round(p[0] / tolerance) * tolerance, round(p[1] / tolerance) * tolerance)
