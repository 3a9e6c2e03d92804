"""
Where-selectors: expand a point selector into the anchors a part is placed at.
"""
import re
from typing import Any, Callable, List, Mapping

from plategen import assertions as a
from plategen.anchor import Anchor, mirror_name, parse_anchor
from plategen.errors import ValidationError
from plategen.units import Units


def parse_where(
    config: Any,
    name: str,
    points: Mapping[str, Anchor],
    units: Units,
    asym: str = "source",
) -> List[Anchor]:
    """Ordered placement anchors for ``config``.

    ``None`` means a single anchor at the origin, ``True`` every point and
    ``False`` none. Strings, lists of strings (OR) and nested lists (AND)
    select points by name, ``/regex/`` or tag; a mapping is one anchor
    expression.
    """
    if config is None:
        return [Anchor()]
    if config is True:
        return _with_asym([p.clone() for p in points.values()], points, asym)
    if config is False:
        return []

    kind = a.type_of(config)
    if kind == "object":
        return [parse_anchor(config, name, points)(units)]

    if kind == "string":
        matcher = _term(config, name)
    elif kind == "array":
        matcher = _any_of(config, name)
    else:
        raise ValidationError(name, f"should be a boolean, string, array or object, got {kind}")

    selected = [p.clone() for key, p in points.items() if matcher(key, p)]
    return _with_asym(selected, points, asym)


# ─── Internal helpers ────────────────────────────────────────────────────────

Matcher = Callable[[str, Anchor], bool]


def _term(term: str, name: str) -> Matcher:
    if term.startswith("-"):
        inner = _term(term[1:], name)
        return lambda key, point: not inner(key, point)
    if len(term) > 1 and term.startswith("/") and term.endswith("/"):
        try:
            pattern = re.compile(term[1:-1])
        except re.error as exc:
            raise ValidationError(name, f"invalid regular expression {term!r}") from exc
        return lambda key, point: pattern.search(key) is not None

    def match(key: str, point: Anchor) -> bool:
        tags = point.meta.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        return key == term or term in tags

    return match


def _any_of(terms, name: str) -> Matcher:
    matchers = []
    for index, term in enumerate(terms):
        path = f"{name}[{index}]"
        if a.type_of(term) == "array":
            matchers.append(_all_of(term, path))
        else:
            matchers.append(_term(a.sane(term, path, "string"), path))
    return lambda key, point: any(m(key, point) for m in matchers)


def _all_of(terms, name: str) -> Matcher:
    matchers = [_term(a.sane(t, f"{name}[{i}]", "string"), f"{name}[{i}]") for i, t in enumerate(terms)]
    return lambda key, point: all(m(key, point) for m in matchers)


def _with_asym(selected: List[Anchor], points: Mapping[str, Anchor], asym: str) -> List[Anchor]:
    if asym == "source":
        return selected
    clones = []
    for point in selected:
        counterpart = mirror_name(point.meta.get("name", ""))
        if counterpart in points:
            clones.append(points[counterpart].clone())
    if asym == "clone":
        return clones
    seen = {p.meta.get("name") for p in selected}
    return selected + [c for c in clones if c.meta.get("name") not in seen]
