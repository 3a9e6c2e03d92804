"""
DXF export for finished outlines.

Uses ezdxf to produce one DXF file per outline. Every ring (outer boundary
and holes) becomes a closed LWPOLYLINE on the CUT layer.

Units: millimeters. Format: R2010.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import ezdxf
from shapely.geometry import MultiPolygon, Polygon

from plategen.kernel import Model

logger = logging.getLogger(__name__)


@dataclass
class DXFExportConfig:
    """Configuration for DXF export."""
    cut_layer: str = "CUT"
    cut_color: int = 1       # ACI red


def model_to_dxf(
    model: Model,
    filepath: str,
    config: Optional[DXFExportConfig] = None,
) -> str:
    """Export a single outline to a DXF file.

    Args:
        model: The finished outline.
        filepath: Output DXF file path.
        config: DXF export settings.

    Returns:
        Path to created DXF file.
    """
    if config is None:
        config = DXFExportConfig()

    doc = ezdxf.new("R2010")
    doc.units = ezdxf.units.MM
    msp = doc.modelspace()
    doc.layers.add(config.cut_layer, color=config.cut_color)

    for geom in model.layers.values():
        _add_polygon_to_dxf(msp, geom, config.cut_layer)

    os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
    doc.saveas(filepath)
    logger.info("Exported DXF: %s", filepath)
    return filepath


def outlines_to_dxf(
    outlines: Dict[str, Model],
    output_dir: str,
    config: Optional[DXFExportConfig] = None,
) -> List[str]:
    """Export each outline to ``<output_dir>/<name>.dxf``."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []

    for name, model in outlines.items():
        filepath = os.path.join(output_dir, f"{name}.dxf")
        model_to_dxf(model, filepath, config=config)
        paths.append(filepath)

    return paths


# ─── Internal helpers ────────────────────────────────────────────────────────

def _add_polygon_to_dxf(msp, polygon, layer: str) -> None:
    """Add a Shapely polygon as closed LWPolylines."""
    if polygon.is_empty:
        return

    if isinstance(polygon, MultiPolygon):
        for geom in polygon.geoms:
            _add_polygon_to_dxf(msp, geom, layer)
        return

    if not isinstance(polygon, Polygon):
        return

    for ring in [polygon.exterior, *polygon.interiors]:
        coords = list(ring.coords)[:-1]
        if len(coords) >= 3:
            msp.add_lwpolyline(
                coords,
                close=True,
                dxfattribs={"layer": layer},
            )
