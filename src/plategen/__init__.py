"""Public API for declarative plate outline composition."""

from plategen.anchor import Anchor, points_from_mapping
from plategen.contracts import BBox, OutlineSettings
from plategen.errors import GeometryError, OutlineError, ValidationError
from plategen.kernel import Model
from plategen.outlines import parse_outlines
from plategen.units import Units

__all__ = [
    "Anchor",
    "BBox",
    "GeometryError",
    "Model",
    "OutlineError",
    "OutlineSettings",
    "Units",
    "ValidationError",
    "parse_outlines",
    "points_from_mapping",
]
