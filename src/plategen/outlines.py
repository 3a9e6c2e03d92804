"""
Outline composition pipeline.

For every outline, in declaration order, every part is parsed, its shape is
built at each placement frame and folded into the outline with the part's
boolean operator. Scale, expand and fillet then apply to the whole outline
so far. After the last part the outline is normalized and becomes available
to later outlines by name.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Union

from plategen import assertions as a
from plategen.anchor import Anchor, parse_anchor
from plategen.binding import bind_shape
from plategen.contracts import (
    EXPAND_SUFFIXES,
    JOINT_NAMES,
    OPERATIONS,
    WHATS,
    CommonFields,
    OutlineSettings,
    ParsedPart,
)
from plategen.errors import ValidationError
from plategen.filters import parse_where
from plategen.kernel import Model
from plategen.shapes import plan_shape
from plategen.units import Units

logger = logging.getLogger(__name__)

COMMON_KEYS = ("operation", "what", "bound", "asym", "where", "adjust", "fillet", "expand", "joints", "scale")

SHORTHAND_PREFIXES = {"+": "add", "-": "subtract", "~": "intersect", "^": "stack"}

OPERATORS = {
    "add": Model.union,
    "subtract": Model.subtract,
    "intersect": Model.intersect,
    "stack": Model.stack,
}


class OutlineRegistry:
    """Append-only lookup of finalized outlines."""

    def __init__(self):
        self._outlines: Dict[str, Model] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._outlines

    def names(self):
        return list(self._outlines)

    def register(self, name: str, model: Model) -> None:
        if name in self._outlines:
            raise ValueError(f"Outline {name!r} is already finalized")
        self._outlines[name] = model

    def get(self, name: str, path: str) -> Model:
        """Finalized outline ``name``; fails for unknown or not yet finalized names."""
        if name not in self._outlines:
            raise ValidationError(path, f"{name!r} does not name an existing outline")
        return self._outlines[name]

    def as_dict(self) -> Dict[str, Model]:
        return dict(self._outlines)


def expand_part_shorthand(part: str) -> Dict[str, Any]:
    """``"name"`` / ``"-name"`` style part shorthand to a full part config."""
    result: Dict[str, Any] = {"what": "outline"}
    stripped = part
    if part and part[0] in SHORTHAND_PREFIXES:
        result["operation"] = SHORTHAND_PREFIXES[part[0]]
        stripped = part[1:]
    result["name"] = stripped
    return result


def split_part(part: Mapping[str, Any], name: str, units: Units) -> ParsedPart:
    """Resolve the common fields of ``part`` and hand back the rest untouched.

    ``part`` itself is never modified.
    """
    a.sane(part, name, "object")

    operation = a.in_set(part.get("operation", "add"), f"{name}.operation", OPERATIONS)
    what = a.in_set(part.get("what", "outline"), f"{name}.what", WHATS)
    bound = a.sane(part.get("bound", False), f"{name}.bound", "boolean")
    asym = a.asym(part.get("asym", "source"), f"{name}.asym")
    fillet = a.number(part.get("fillet", 0), f"{name}.fillet", units)
    expand, joints = _expand_and_joints(part, name, units)
    scale = a.number(part.get("scale", 1), f"{name}.scale", units)

    common = CommonFields(
        operation=operation,
        what=what,
        bound=bound,
        asym=asym,
        where=part.get("where"),
        adjust=part.get("adjust"),
        fillet=fillet,
        expand=expand,
        joints=joints,
        scale=scale,
    )
    remaining = {k: v for k, v in part.items() if k not in COMMON_KEYS}
    return ParsedPart(name=name, common=common, remaining=remaining)


def parse_outlines(
    config: Mapping[str, Any],
    points: Mapping[str, Anchor],
    units: Union[Units, Mapping[str, Any], None] = None,
    settings: Optional[OutlineSettings] = None,
) -> Dict[str, Model]:
    """Compose every outline in ``config``.

    Args:
        config: outline name -> parts (a list, or a mapping keyed by part name).
        points: named anchors from the layout.
        units: a Units context, or extra unit definitions on top of the defaults.
        settings: generation tunables.

    Returns:
        outline name -> finalized Model, in declaration order.
    """
    if settings is None:
        settings = OutlineSettings()
    if not isinstance(units, Units):
        units = Units(settings.default_units).extend(units or {})

    a.sane(config, "outlines", "object")
    registry = OutlineRegistry()

    for outline_name, parts in config.items():
        model = compose_outline(outline_name, parts, points, registry, units, settings)
        registry.register(outline_name, model)

    return registry.as_dict()


def compose_outline(
    outline_name: str,
    parts: Any,
    points: Mapping[str, Anchor],
    registry: OutlineRegistry,
    units: Units,
    settings: OutlineSettings,
) -> Model:
    """Fold all parts of one outline into a finalized model."""
    path = f"outlines.{outline_name}"
    if a.type_of(parts) == "array":
        parts = {str(index): part for index, part in enumerate(parts)}
    a.sane(parts, path, "object")

    model = Model.empty()
    for part_name, part in parts.items():
        name = f"{path}.{part_name}"
        if a.type_of(part) == "string":
            part = expand_part_shorthand(part)
        parsed = split_part(part, name, units)
        model = apply_part(model, parsed, str(part_name), points, registry, units, settings)

    model = model.normalized()
    logger.info("Outline %s: %d parts, %d layers", outline_name, len(parts), len(model.layers))
    return model


def apply_part(
    model: Model,
    parsed: ParsedPart,
    part_name: str,
    points: Mapping[str, Anchor],
    registry: OutlineRegistry,
    units: Units,
    settings: OutlineSettings,
) -> Model:
    """Place one part at all its frames, then run its post-processing passes."""
    common = parsed.common
    name = parsed.name
    plan = plan_shape(common.what, parsed.remaining, name, points, registry, units, settings)
    operator = OPERATORS[common.operation]

    frames = parse_where(common.where, f"{name}.where", points, plan.units, common.asym)
    logger.debug("%s: %s %s at %d frame(s)", name, common.operation, common.what, len(frames))
    for frame in frames:
        anchor = parse_anchor(common.adjust, f"{name}.adjust", points, frame)(plan.units)
        shape, bbox = plan.build(anchor)
        if common.bound:
            shape = bind_shape(shape, bbox, anchor, plan.units)
        shape = shape.map(anchor.position)
        model = operator(model, shape)

    if common.scale != 1:
        model = model.scaled(common.scale)
    if common.expand:
        model = model.expanded(common.expand, common.joints, settings)
    if common.fillet:
        model = model.filleted(common.fillet, part_name, settings)
    return model


# ─── Internal helpers ────────────────────────────────────────────────────────

def _expand_and_joints(part: Mapping[str, Any], name: str, units: Units):
    raw_expand = part.get("expand", 0)
    raw_joints = part.get("joints")
    expand_path = f"{name}.expand"

    if isinstance(raw_expand, str) and raw_expand[-1:] in EXPAND_SUFFIXES:
        suffix = raw_expand[-1]
        expand = a.number(raw_expand[:-1], expand_path, units)
        if raw_joints is None:
            raw_joints = EXPAND_SUFFIXES.index(suffix)
    elif isinstance(raw_expand, str) and not _is_expression(raw_expand, units):
        suffixes = ", ".join(repr(s) for s in EXPAND_SUFFIXES)
        raise ValidationError(expand_path, f"if a string, it should end with one of [{suffixes}]")
    else:
        expand = a.number(raw_expand, expand_path, units)

    if raw_joints is None:
        raw_joints = 0
    if isinstance(raw_joints, str) and raw_joints in JOINT_NAMES:
        raw_joints = JOINT_NAMES.index(raw_joints)
    joints = a.number(raw_joints, f"{name}.joints", units)
    a.in_set(joints, f"{name}.joints", [0, 1, 2])
    return expand, int(joints)


def _is_expression(value: str, units: Units) -> bool:
    try:
        units.evaluate(value, "")
    except ValidationError:
        return False
    return True
