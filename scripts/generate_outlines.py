#!/usr/bin/env python3
"""
Generate plate outlines from a JSON config.

Usage:
    python scripts/generate_outlines.py --config plate.json --out output/

The config holds three sections:
    units     extra unit definitions (optional)
    points    name -> {x, y, r, meta}, as produced by a layout adapter
    outlines  outline name -> parts
"""
import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from plategen import OutlineError, parse_outlines, points_from_mapping
from plategen.dxf_exporter import outlines_to_dxf
from plategen.svg_exporter import outlines_to_svg


def main():
    parser = argparse.ArgumentParser(
        description="Compose plate outlines and export them as DXF/SVG"
    )
    parser.add_argument("--config", type=str, required=True, help="Path to JSON config")
    parser.add_argument("--out", type=str, default="output", help="Output directory (default: output)")
    parser.add_argument("--no-dxf", dest="dxf", action="store_false", help="Skip DXF export")
    parser.add_argument("--no-svg", dest="svg", action="store_false", help="Skip SVG export")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config_path = Path(args.config)
    if not config_path.is_file():
        print(f"Error: config file not found: {config_path}")
        sys.exit(1)

    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"Error: invalid JSON in {config_path}: {exc}")
        sys.exit(1)
    if not isinstance(config, dict):
        print("Error: config root should be a JSON object")
        sys.exit(1)

    try:
        points = points_from_mapping(config.get("points", {}))
        outlines = parse_outlines(config.get("outlines", {}), points, config.get("units"))
    except OutlineError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    out_dir = Path(args.out)
    written = []
    if args.dxf:
        written += outlines_to_dxf(outlines, str(out_dir / "dxf"))
    if args.svg:
        written += outlines_to_svg(outlines, str(out_dir / "svg"))

    print(f"Outlines: {', '.join(outlines) or '(none)'}")
    for path in written:
        print(f"  - {path}")


if __name__ == "__main__":
    main()
