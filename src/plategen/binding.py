"""
Binding: extend a shape towards its neighbours.

A point's ``bind`` metadata (top/right/bottom/left) stretches the shape placed
there beyond its bounding box so adjacent keys fuse into one plate. Each of
the four quadrants around the local origin is filled when either of its two
sides binds, so the extensions meet at the corners without gaps.
"""
from typing import List

from plategen import assertions as a
from plategen.anchor import Anchor
from plategen.contracts import BBox
from plategen.kernel import Model, rect
from plategen.units import Units


def resolve_bind(anchor: Anchor, units: Units) -> List[float]:
    """Top/right/bottom/left bind of ``anchor``, left/right swapped when mirrored."""
    name = anchor.meta.get("name", "point")
    bind = a.trbl(anchor.meta.get("bind", 0), f"{name}.bind", units)
    if anchor.mirrored:
        bind = [bind[0], bind[3], bind[2], bind[1]]
    return bind


def bind_shape(shape: Model, bbox: BBox, anchor: Anchor, units: Units) -> Model:
    """Union the quadrant extensions called for by ``anchor``'s bind into ``shape``.

    Inward (negative) binds never shrink the shape.
    """
    top, right, bottom, left = resolve_bind(anchor, units)

    reach_top = max(bbox.high[1], 0) + max(top, 0)
    reach_right = max(bbox.high[0], 0) + max(right, 0)
    reach_bottom = min(bbox.low[1], 0) - max(bottom, 0)
    reach_left = min(bbox.low[0], 0) - max(left, 0)

    if top or right:
        shape = shape.union(Model.of(rect(reach_right, reach_top)))
    if right or bottom:
        shape = shape.union(Model.of(rect(reach_right, -reach_bottom, (0, reach_bottom))))
    if bottom or left:
        shape = shape.union(Model.of(rect(-reach_left, -reach_bottom, (reach_left, reach_bottom))))
    if left or top:
        shape = shape.union(Model.of(rect(-reach_left, reach_top, (reach_left, 0))))
    return shape
