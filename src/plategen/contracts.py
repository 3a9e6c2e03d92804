"""Contracts shared by the outline composition pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from plategen.units import DEFAULT_UNITS

Vec2 = Tuple[float, float]

OPERATIONS = ("add", "subtract", "intersect", "stack")
WHATS = ("rectangle", "circle", "polygon", "outline", "path", "hull")
JOINT_NAMES = ("round", "pointy", "beveled")
EXPAND_SUFFIXES = (")", ">", "]")


@dataclass(frozen=True)
class OutlineSettings:
    """Tunables for shape generation and post-processing."""

    hull_spacing: float = 18.0  # max side length before hull gets extra points
    default_concavity: float = 50.0
    bezier_step: float = 0.5  # mm between bezier samples when accuracy is -1
    arc_step_deg: float = 5.0
    quad_segs: int = 16  # arc resolution for circles, round joins and fillets
    mitre_limit: float = 5.0
    point_tolerance: float = 1e-6
    default_units: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_UNITS))


@dataclass(frozen=True)
class BBox:
    """Axis-aligned bounding box, ``low <= high`` component-wise."""

    low: Vec2
    high: Vec2

    def __post_init__(self):
        if self.low[0] > self.high[0] or self.low[1] > self.high[1]:
            raise ValueError(f"Invalid bbox: low {self.low} exceeds high {self.high}")

    @classmethod
    def from_bounds(cls, bounds: Tuple[float, float, float, float]) -> "BBox":
        """From a Shapely ``(minx, miny, maxx, maxy)`` tuple."""
        return cls(low=(bounds[0], bounds[1]), high=(bounds[2], bounds[3]))

    @classmethod
    def from_points(cls, points: List[Vec2]) -> "BBox":
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return cls(low=(min(xs), min(ys)), high=(max(xs), max(ys)))

    @classmethod
    def symmetric(cls, half_w: float, half_h: float) -> "BBox":
        return cls(low=(-half_w, -half_h), high=(half_w, half_h))

    @property
    def width(self) -> float:
        return self.high[0] - self.low[0]

    @property
    def height(self) -> float:
        return self.high[1] - self.low[1]

    def union(self, other: "BBox") -> "BBox":
        return BBox(
            low=(min(self.low[0], other.low[0]), min(self.low[1], other.low[1])),
            high=(max(self.high[0], other.high[0]), max(self.high[1], other.high[1])),
        )


@dataclass(frozen=True)
class CommonFields:
    """Part fields shared by every shape kind, resolved against the units."""

    operation: str = "add"
    what: str = "outline"
    bound: bool = False
    asym: str = "source"
    where: Any = None  # raw selector, expanded once the shape units exist
    adjust: Any = None  # raw anchor, resolved per placement
    fillet: float = 0.0
    expand: float = 0.0
    joints: int = 0
    scale: float = 1.0


@dataclass(frozen=True)
class PathSegment:
    """One traced segment of a path shape."""

    kind: str  # "line", "arc", "s_curve", "bezier" or "closing_line"
    coords: Tuple[Vec2, ...]


@dataclass
class ParsedPart:
    """A part split into its common fields and its shape-specific remainder."""

    name: str
    common: CommonFields
    remaining: Dict[str, Any]
