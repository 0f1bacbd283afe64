from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import yaml
from typer.testing import CliRunner

from semplace.cli.main import app

runner = CliRunner()


def _demo(tmp_path: Path, preset: str = "demo") -> Path:
    cfg_path = tmp_path / "scenario.yaml"
    result = runner.invoke(app, ["demo", "generate", str(cfg_path), "--preset", preset])
    assert result.exit_code == 0, result.output
    assert cfg_path.exists()
    return cfg_path


def test_cli_place_demo(tmp_path: Path) -> None:
    cfg_path = _demo(tmp_path)
    out_path = tmp_path / "commands.json"

    result = runner.invoke(app, ["place", str(cfg_path), "--output", str(out_path), "--log-level", "WARNING"])

    assert result.exit_code == 0, result.output
    assert "Placed 2 of 2" in result.output
    with open(out_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    commands = {c["id"]: c for c in data["commands"]}
    np.testing.assert_allclose(commands["mug_1"]["position"], [3.7, 0.341 * 2.383, 4.2], atol=1e-6)
    assert len(commands["lamp_1"]["rotation"]) == 4


def test_cli_place_no_pack(tmp_path: Path) -> None:
    cfg_path = _demo(tmp_path)
    out_path = tmp_path / "commands.json"

    result = runner.invoke(app, ["place", str(cfg_path), "-o", str(out_path), "--no-pack"])

    assert result.exit_code == 0, result.output
    with open(out_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    np.testing.assert_allclose(data["commands"][1]["position"], [3.5, 0.341 * 2.383, 4.2], atol=1e-6)


def test_cli_place_strict_fails_on_missing_point(tmp_path: Path) -> None:
    cfg_path = _demo(tmp_path, preset="single")
    with open(cfg_path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    cfg["requests"][0]["anchor"] = "nose"
    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f)

    lenient = runner.invoke(app, ["place", str(cfg_path)])
    assert lenient.exit_code == 0, lenient.output
    assert "missing_semantic_point" in lenient.output

    strict = runner.invoke(app, ["place", str(cfg_path), "--strict"])
    assert strict.exit_code == 1


def test_cli_place_rejects_invalid_config(tmp_path: Path) -> None:
    cfg_path = tmp_path / "bad.yaml"
    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump({"engine": {"packing": {"distances": [0.2, 0.1]}}}, f)
    result = runner.invoke(app, ["place", str(cfg_path)])
    assert result.exit_code != 0


def test_cli_frame(tmp_path: Path) -> None:
    cfg_path = _demo(tmp_path)
    result = runner.invoke(app, ["frame", str(cfg_path)])
    assert result.exit_code == 0, result.output
    assert "Lamp: [0.000000, 0.000000, 0.000000, 1.000000]" in result.output
    assert "degenerate" not in result.output


def test_cli_directions() -> None:
    result = runner.invoke(app, ["directions", "--center", "0", "1", "0", "--size", "2", "2", "2"])
    assert result.exit_code == 0, result.output
    assert "['top', 0.0, 2.0, 0.0, 0.0, 1.0, 0.0]" in result.output
    assert "['left', -1.0, 1.0, 0.0, -1.0, 0.0, 0.0]" in result.output


def test_cli_catalog_filters_by_tag(tmp_path: Path) -> None:
    cfg_path = _demo(tmp_path)

    result = runner.invoke(app, ["catalog", str(cfg_path), "--tag", "prop"])

    assert result.exit_code == 0, result.output
    assert "Lamp [prop, light]: front, back, left, right, top, bottom" in result.output
    assert "Mug [prop, kitchen]" in result.output
    assert "Table" not in result.output

    none = runner.invoke(app, ["catalog", str(cfg_path), "--tag", "vehicle"])
    assert none.exit_code == 0, none.output
    assert "No matching assets." in none.output
