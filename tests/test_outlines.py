"""Tests for the outline composition pipeline."""
import copy
import logging
import math

import pytest

from plategen import parse_outlines, points_from_mapping
from plategen.errors import GeometryError, OutlineError, ValidationError
from plategen.outlines import (
    OutlineRegistry,
    _expand_and_joints,
    expand_part_shorthand,
    split_part,
)
from plategen.kernel import Model


def _rect(size, **extra):
    return {"what": "rectangle", "size": size, **extra}


class TestShorthand:
    """String parts and expand/joints shorthand."""

    @pytest.mark.parametrize("text,operation", [
        ("+plate", "add"),
        ("-keys", "subtract"),
        ("~mask", "intersect"),
        ("^extra", "stack"),
    ])
    def test_prefixes(self, text, operation):
        part = expand_part_shorthand(text)
        assert part == {"what": "outline", "operation": operation, "name": text[1:]}

    def test_plain_name(self):
        assert expand_part_shorthand("plate") == {"what": "outline", "name": "plate"}

    @pytest.mark.parametrize("expand,joints", [("2)", 0), ("2>", 1), ("2]", 2)])
    def test_expand_suffix_sets_joints(self, expand, joints, units):
        assert _expand_and_joints({"expand": expand}, "p", units) == (2.0, joints)

    def test_explicit_joints_win_over_suffix(self, units):
        assert _expand_and_joints({"expand": "2]", "joints": 0}, "p", units) == (2.0, 0)

    @pytest.mark.parametrize("name,joints", [("round", 0), ("pointy", 1), ("beveled", 2)])
    def test_named_joints(self, name, joints, units):
        assert _expand_and_joints({"expand": 1, "joints": name}, "p", units) == (1.0, joints)

    def test_expression_expand(self, units):
        assert _expand_and_joints({"expand": "u / 2"}, "p", units) == (9.5, 0)

    def test_expression_with_suffix(self, units):
        assert _expand_and_joints({"expand": "-u/19>"}, "p", units) == (-1.0, 1)

    def test_bad_expand_string(self, units):
        with pytest.raises(ValidationError) as info:
            _expand_and_joints({"expand": "wide"}, "p", units)
        assert info.value.path == "p.expand"

    def test_bad_joints(self, units):
        with pytest.raises(ValidationError):
            _expand_and_joints({"expand": 1, "joints": 3}, "p", units)
        with pytest.raises(ValidationError):
            _expand_and_joints({"expand": 1, "joints": "sharp"}, "p", units)


class TestSplitPart:

    def test_defaults(self, units):
        parsed = split_part({"name": "plate"}, "outlines.o.0", units)
        assert parsed.common.operation == "add"
        assert parsed.common.what == "outline"
        assert parsed.common.asym == "source"
        assert parsed.common.scale == 1
        assert parsed.remaining == {"name": "plate"}

    def test_remaining_holds_shape_fields(self, units):
        part = _rect([10, 5], where="key", fillet=1, corner=2)
        parsed = split_part(part, "outlines.o.0", units)
        assert parsed.remaining == {"size": [10, 5], "corner": 2}
        assert parsed.common.where == "key"
        assert parsed.common.fillet == 1.0

    def test_input_untouched(self, units):
        part = _rect([10, 5], asym="left", expand="1)")
        before = copy.deepcopy(part)
        split_part(part, "outlines.o.0", units)
        assert part == before

    def test_asym_aliases(self, units):
        assert split_part({"asym": "right"}, "x", units).common.asym == "clone"
        assert split_part({"asym": "full"}, "x", units).common.asym == "both"

    def test_bad_operation(self, units):
        with pytest.raises(ValidationError) as info:
            split_part({"operation": "xor"}, "outlines.o.0", units)
        assert info.value.path == "outlines.o.0.operation"


class TestRegistry:

    def test_register_and_get(self):
        registry = OutlineRegistry()
        model = Model.empty()
        registry.register("a", model)
        assert "a" in registry
        assert registry.get("a", "x") is model
        assert registry.names() == ["a"]

    def test_no_overwrite(self):
        registry = OutlineRegistry()
        registry.register("a", Model.empty())
        with pytest.raises(ValueError):
            registry.register("a", Model.empty())


class TestPipeline:

    def test_plate_with_holes(self, plate_config):
        outlines = parse_outlines(plate_config, {})
        assert list(outlines) == ["body", "holes", "plate"]
        plate = outlines["plate"].geometry
        assert plate.area == pytest.approx(2400 - 2 * math.pi * 4, rel=1e-3)
        assert len(plate.interiors) == 2

    def test_config_not_mutated(self, plate_config, key_points):
        before = copy.deepcopy(plate_config)
        parse_outlines(plate_config, key_points)
        assert plate_config == before

    def test_dict_parts_and_shorthand(self):
        config = {
            "a": [_rect(20)],
            "b": {"main": "a", "cut": {"what": "circle", "radius": 5, "operation": "subtract"}},
        }
        outlines = parse_outlines(config, {})
        assert outlines["b"].geometry.area < outlines["a"].geometry.area

    def test_forward_reference_fails(self):
        config = {"a": ["b"], "b": [_rect(5)]}
        with pytest.raises(ValidationError) as info:
            parse_outlines(config, {})
        assert info.value.path == "outlines.a.0.name"

    def test_self_reference_fails(self):
        with pytest.raises(ValidationError, match="does not name an existing outline"):
            parse_outlines({"a": [_rect(5), "a"]}, {})

    def test_fail_fast_returns_nothing(self):
        config = {"good": [_rect(5)], "bad": [_rect(5, bogus=1)]}
        with pytest.raises(ValidationError) as info:
            parse_outlines(config, {})
        assert info.value.path == "outlines.bad.0.bogus"

    def test_geometry_errors_are_outline_errors(self):
        with pytest.raises(OutlineError):
            parse_outlines({"a": [_rect(4, corner=3)]}, {})
        with pytest.raises(GeometryError):
            parse_outlines({"a": [_rect(4, corner=3)]}, {})

    def test_where_places_at_every_match(self, key_points):
        outlines = parse_outlines({"keys": [_rect([18, 17], where="key")]}, key_points)
        assert outlines["keys"].geometry.area == pytest.approx(8 * 18 * 17)

    def test_where_regex(self, key_points):
        outlines = parse_outlines({"col": [_rect(10, where="/^c0/")]}, key_points)
        assert outlines["col"].geometry.area == pytest.approx(200.0)

    def test_asym_both_adds_mirror(self, key_points):
        outlines = parse_outlines({"k": [_rect(10, where="c0r0", asym="both")]}, key_points)
        bbox = outlines["k"].bbox()
        assert bbox.low == pytest.approx((-45, -5))
        assert bbox.high == pytest.approx((5, 5))

    def test_adjust_shifts_each_frame(self, key_points):
        outlines = parse_outlines(
            {"k": [_rect(2, where="c1r1", adjust={"shift": [1, -1]})]}, key_points)
        assert outlines["k"].bbox().low == pytest.approx((19, 17))

    def test_where_false_places_nothing(self, key_points):
        outlines = parse_outlines({"k": [_rect(2, where=False)]}, key_points)
        assert outlines["k"].is_empty

    def test_subtract_from_nothing_is_empty(self):
        outlines = parse_outlines({"k": [_rect(5, operation="subtract")]}, {})
        assert outlines["k"].is_empty

    def test_intersect(self):
        config = {"k": [_rect(10), _rect(10, adjust={"shift": [5, 5]}, operation="intersect")]}
        assert parse_outlines(config, {})["k"].geometry.area == pytest.approx(25.0)

    def test_stack_vs_add(self):
        first = _rect(10)
        second = _rect(10, adjust={"shift": [5, 0]})
        added = parse_outlines({"k": [first, second]}, {})["k"]
        stacked = parse_outlines({"k": [first, dict(second, operation="stack")]}, {})["k"]
        assert len(added.layers) == 1
        assert len(stacked.layers) == 2
        assert stacked.geometry.area == pytest.approx(added.geometry.area)

    def test_scale(self):
        outlines = parse_outlines({"k": [_rect(10, scale=2)]}, {})
        assert outlines["k"].geometry.area == pytest.approx(400.0)

    def test_expand_pointy(self):
        config = {"a": [_rect(10)], "b": [{"name": "a", "expand": "1>"}]}
        outlines = parse_outlines(config, {})
        assert outlines["b"].geometry.area == pytest.approx(144.0)

    def test_fillet_layer_names(self, key_points):
        outlines = parse_outlines({"k": [_rect(10, where="/^c0/", fillet=1)]}, key_points)
        assert list(outlines["k"].layers) == ["fillet_0_0", "fillet_0_1"]

    def test_fillet_names_use_part_key(self):
        config = {"k": {"base": _rect(10, fillet=1)}}
        assert list(parse_outlines(config, {})["k"].layers) == ["fillet_base_0"]

    def test_fillet_keeps_thin_outline(self):
        outlines = parse_outlines({"k": [_rect([40, 5], fillet=3)]}, {})
        assert outlines["k"].geometry.area == pytest.approx(200.0)

    def test_fillet_keeps_bridged_outline_whole(self):
        config = {"k": [
            _rect(20, adjust={"shift": [-25, 0]}),
            _rect(20, adjust={"shift": [25, 0]}),
            _rect([30, 4], fillet=3),
        ]}
        assert parse_outlines(config, {})["k"].geometry.geom_type == "Polygon"

    def test_bad_math_reports_config_path(self):
        with pytest.raises(OutlineError) as info:
            parse_outlines({"k": [_rect("sqrt(-1)")]}, {})
        assert info.value.path == "outlines.k.0.size"

    def test_bound_keys_fuse(self):
        points = points_from_mapping({
            "left": {"x": 0, "y": 0, "meta": {"bind": [0, 1, 0, 0]}},
            "right": {"x": 19, "y": 0, "meta": {"bind": [0, 0, 0, 1]}},
        })
        config = {"plate": [_rect([18, 17], where=True, bound=True)]}
        plate = parse_outlines(config, points)["plate"].geometry
        assert plate.geom_type == "Polygon"
        assert plate.bounds == pytest.approx((-9, -8.5, 28, 8.5))

    def test_unbound_keys_stay_apart(self):
        points = points_from_mapping({
            "left": {"x": 0, "y": 0, "meta": {"bind": [0, 1, 0, 0]}},
            "right": {"x": 19, "y": 0, "meta": {"bind": [0, 0, 0, 1]}},
        })
        plate = parse_outlines({"plate": [_rect([18, 17], where=True)]}, points)["plate"].geometry
        assert plate.geom_type == "MultiPolygon"

    def test_custom_units(self):
        outlines = parse_outlines({"k": [_rect("pad * 2")]}, {}, units={"pad": 3})
        assert outlines["k"].geometry.area == pytest.approx(36.0)

    def test_shape_units_in_where(self, key_points):
        """A rectangle's own sx/sy are visible to its where selector."""
        config = {"k": [_rect([4, 2], where={"shift": ["sx", "sy"]})]}
        bbox = parse_outlines(config, key_points)["k"].bbox()
        assert bbox.low == pytest.approx((2, 1))

    def test_outline_reference_with_origin(self, key_points):
        config = {
            "key": [_rect(4, where="c1r1")],
            "moved": [{"name": "key", "origin": "c1r1"}],
        }
        bbox = parse_outlines(config, key_points)["moved"].bbox()
        assert bbox.low == pytest.approx((-2, -2))

    def test_logs_each_outline(self, caplog):
        with caplog.at_level(logging.INFO, logger="plategen.outlines"):
            parse_outlines({"a": [_rect(5)], "b": ["a"]}, {})
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("Outline a:") for m in messages)
        assert any(m.startswith("Outline b:") for m in messages)
