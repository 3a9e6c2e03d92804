"""
Concavity-parameterised hull of a point cloud.

Starts from the Delaunay triangulation (the convex hull) and repeatedly
removes the border triangle with the longest outer edge while that edge is
longer than ``concavity``. A triangle is only removed when doing so keeps the
hull a single simple polygon, i.e. its inner vertex is not on the border yet.
"""
import heapq
import math
from typing import Dict, List, Set, Tuple

import numpy as np
from scipy.spatial import Delaunay
from shapely.geometry import MultiPoint, Polygon
from shapely.ops import unary_union

from plategen.errors import GeometryError

Edge = Tuple[int, int]


def concave_hull(points: List[Tuple[float, float]], concavity: float, name: str = "") -> Polygon:
    """Hull polygon of ``points``; ``concavity = inf`` gives the convex hull."""
    unique = sorted(set((round(x, 9), round(y, 9)) for x, y in points))
    convex = MultiPoint(unique).convex_hull
    if not isinstance(convex, Polygon) or convex.area <= 0:
        raise GeometryError(name, "hull needs at least three points that are not collinear")
    if math.isinf(concavity) or len(unique) == 3:
        return convex

    coords = np.asarray(unique, dtype=float)
    triangulation = Delaunay(coords)
    triangles = {i: tuple(int(v) for v in simplex) for i, simplex in enumerate(triangulation.simplices)}

    edge_owners: Dict[Edge, Set[int]] = {}
    for tri_id, tri in triangles.items():
        for edge in _edges(tri):
            edge_owners.setdefault(edge, set()).add(tri_id)

    border_vertices: Set[int] = set()
    heap: List[Tuple[float, Edge]] = []
    for edge, owners in edge_owners.items():
        if len(owners) == 1:
            border_vertices.update(edge)
            _push(heap, edge, coords)

    while heap:
        neg_length, edge = heapq.heappop(heap)
        if -neg_length <= concavity:
            break
        owners = edge_owners.get(edge)
        if not owners or len(owners) != 1:
            continue
        tri_id = next(iter(owners))
        inner = [v for v in triangles[tri_id] if v not in edge][0]
        if inner in border_vertices or len(triangles) <= 1:
            continue

        tri = triangles.pop(tri_id)
        for other in _edges(tri):
            edge_owners[other].discard(tri_id)
            if not edge_owners[other]:
                del edge_owners[other]
            elif other != edge:
                _push(heap, other, coords)
        border_vertices.add(inner)

    shapes = [Polygon(coords[list(tri)]) for tri in triangles.values()]
    merged = unary_union(shapes)
    if not isinstance(merged, Polygon):
        return convex
    return Polygon(merged.exterior)


# ─── Internal helpers ────────────────────────────────────────────────────────

def _edges(tri) -> List[Edge]:
    a, b, c = tri
    return [tuple(sorted(pair)) for pair in ((a, b), (b, c), (c, a))]


def _push(heap, edge: Edge, coords: np.ndarray) -> None:
    length = float(np.linalg.norm(coords[edge[0]] - coords[edge[1]]))
    heapq.heappush(heap, (-length, edge))
