"""
SVG export for finished outlines.

One SVG per outline, in millimeters. The y axis is flipped so the drawing
reads the same way as the outline coordinates (y up).
"""
import logging
import os
from typing import Dict, List

import svgwrite
from shapely.geometry import MultiPolygon, Polygon

from plategen.kernel import Model

logger = logging.getLogger(__name__)


def model_to_svg(model: Model, filepath: str, margin: float = 5.0) -> str:
    """
    Export a single outline to SVG.

    Args:
        model: Finished outline
        filepath: Output SVG file path
        margin: Margin around the outline (mm)

    Returns:
        Path to created SVG file
    """
    bbox = model.bbox()
    if bbox is None:
        min_x = min_y = 0.0
        width = height = 0.0
    else:
        min_x, min_y = bbox.low
        width, height = bbox.width, bbox.height

    canvas_width = width + 2 * margin
    canvas_height = height + 2 * margin

    dwg = svgwrite.Drawing(
        filepath,
        size=(f"{canvas_width}mm", f"{canvas_height}mm"),
        viewBox=f"0 0 {canvas_width} {canvas_height}",
    )
    dwg.defs.add(dwg.style(".cut { stroke: #ff0000; stroke-width: 0.2; fill: none; }"))

    def to_svg(x: float, y: float):
        return (margin + x - min_x, margin + (min_y + height) - y)

    for name, geom in model.layers.items():
        group = dwg.g(id=name)
        for polygon in _polygons(geom):
            for ring in [polygon.exterior, *polygon.interiors]:
                group.add(dwg.polygon([to_svg(x, y) for x, y in ring.coords[:-1]], class_="cut"))
        dwg.add(group)

    os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
    dwg.save()
    logger.info("Exported SVG: %s", filepath)
    return filepath


def outlines_to_svg(outlines: Dict[str, Model], output_dir: str, margin: float = 5.0) -> List[str]:
    """Export each outline to ``<output_dir>/<name>.svg``."""
    os.makedirs(output_dir, exist_ok=True)

    paths = []
    for name, model in outlines.items():
        filepath = os.path.join(output_dir, f"{name}.svg")
        model_to_svg(model, filepath, margin=margin)
        paths.append(filepath)

    return paths


def _polygons(geom) -> List[Polygon]:
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    if isinstance(geom, Polygon) and not geom.is_empty:
        return [geom]
    return []
