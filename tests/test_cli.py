"""End-to-end runs of scripts/generate_outlines.py."""
import json
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
SCRIPT = REPO_ROOT / "scripts" / "generate_outlines.py"


def _run(*args):
    cmd = [sys.executable, str(SCRIPT), *args]
    return subprocess.run(cmd, capture_output=True, text=True)


def test_example_config_exports_every_outline(tmp_path: Path):
    proc = _run("--config", str(REPO_ROOT / "examples" / "plate.json"), "--out", str(tmp_path))
    assert proc.returncode == 0, proc.stderr
    assert "Outlines: keys, plate, switchplate, bumper" in proc.stdout

    for name in ("keys", "plate", "switchplate", "bumper"):
        assert (tmp_path / "dxf" / f"{name}.dxf").is_file()
        assert (tmp_path / "svg" / f"{name}.svg").is_file()


def test_skip_svg(tmp_path: Path):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"outlines": {"square": [{"what": "rectangle", "size": 10}]}}))

    proc = _run("--config", str(config), "--out", str(tmp_path / "out"), "--no-svg")
    assert proc.returncode == 0, proc.stderr
    assert (tmp_path / "out" / "dxf" / "square.dxf").is_file()
    assert not (tmp_path / "out" / "svg").exists()


def test_invalid_outline_exits_with_error(tmp_path: Path):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"outlines": {"bad": [{"what": "circle", "radius": -1}]}}))

    proc = _run("--config", str(config), "--out", str(tmp_path / "out"))
    assert proc.returncode == 1
    assert "Error: outlines.bad.0.radius: should be positive" in proc.stdout
    assert not (tmp_path / "out").exists()


def test_missing_config(tmp_path: Path):
    proc = _run("--config", str(tmp_path / "nope.json"))
    assert proc.returncode == 1
    assert "config file not found" in proc.stdout
