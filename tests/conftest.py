"""
Shared test fixtures for outline composition tests.
"""
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from plategen.anchor import Anchor, points_from_mapping
from plategen.contracts import OutlineSettings
from plategen.outlines import OutlineRegistry
from plategen.units import DEFAULT_UNITS, Units


@pytest.fixture
def units():
    """Default key-pitch units."""
    return Units(DEFAULT_UNITS)


@pytest.fixture
def settings():
    return OutlineSettings()


@pytest.fixture
def registry():
    return OutlineRegistry()


@pytest.fixture
def origin():
    return Anchor()


@pytest.fixture
def key_points():
    """A 2x2 block of 18x17 keys at 19mm pitch, plus a mirrored copy."""
    raw = {}
    for col, x in enumerate([0, 19]):
        for row, y in enumerate([0, 19]):
            name = f"c{col}r{row}"
            raw[name] = {"x": x, "y": y, "meta": {"width": 18, "height": 17, "tags": ["key"]}}
            raw[f"mirror_{name}"] = {
                "x": -x - 40, "y": y,
                "meta": {"width": 18, "height": 17, "mirrored": True, "tags": ["key"]},
            }
    return points_from_mapping(raw)


@pytest.fixture
def plate_config():
    """Config for a small plate with cutouts and a derived outline."""
    return {
        "body": [
            {"what": "rectangle", "size": [60, 40]},
        ],
        "holes": [
            {"what": "circle", "radius": 2, "where": {"shift": [-20, 0]}},
            {"what": "circle", "radius": 2, "where": {"shift": [20, 0]}},
        ],
        "plate": [
            "body",
            "-holes",
        ],
    }
