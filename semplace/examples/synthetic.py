from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import yaml

from ..core.frame import directional_points

Vec3 = Tuple[float, float, float]

TABLE_PIVOT: Vec3 = (3.5, 0.0, 4.2)
TABLE_SCALE = 0.341


def _box_points(center: Vec3, size: Vec3) -> List[list]:
    return [p.as_tuple() for p in directional_points(center, size)]


def _asset(name: str, center: Vec3, size: Vec3, tags: List[str]) -> Dict[str, object]:
    return {
        "name": name,
        "defaultScale": [1.0, 1.0, 1.0],
        "semanticTags": tags,
        "size": list(size),
        "centerOffset": list(center),
        "semanticPoints": _box_points(center, size),
    }


def _catalog() -> List[Dict[str, object]]:
    table = _asset("Table", (0.0, 1.1915, 0.0), (4.0, 2.383, 2.4), ["furniture", "surface"])
    table["defaultScale"] = [TABLE_SCALE] * 3
    return [
        table,
        # Lamp pivot sits slightly off its base centre.
        _asset("Lamp", (0.005, 0.302, -0.008), (0.16, 0.6, 0.16), ["prop", "light"]),
        _asset("Mug", (0.0, 0.06, 0.0), (0.1, 0.12, 0.1), ["prop", "kitchen"]),
    ]


def _scene(catalog: List[Dict[str, object]]) -> List[Dict[str, object]]:
    table = next(a for a in catalog if a["name"] == "Table")
    return [{
        "id": "table_1",
        "asset": "Table",
        "pivotWorld": list(TABLE_PIVOT),
        "rotationSLSToWorld": [0.0, 0.0, 0.0, 1.0],
        "scale": [TABLE_SCALE] * 3,
        "semanticPoints": table["semanticPoints"],
    }]


def generate_scenario(preset: str = "demo") -> Dict[str, object]:
    """Table with props on its top; ``single`` places only the lamp."""
    preset = preset.lower()
    catalog = _catalog()
    requests = [
        {"id": "lamp_1", "asset": "Lamp", "anchor": "bottom", "target": "table_1", "targetPoint": "top"},
        {"id": "mug_1", "asset": "Mug", "anchor": "bottom", "target": "table_1", "targetPoint": "top"},
    ]
    if preset == "single":
        requests = requests[:1]
    elif preset != "demo":
        raise ValueError(f"Unknown demo preset '{preset}'.")
    return {
        "catalog": {"assets": catalog},
        "scene": {"instances": _scene(catalog)},
        "requests": requests,
        "output": {"path": "placements.json"},
    }


def write_scenario(path: Path, preset: str = "demo") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(generate_scenario(preset), f, sort_keys=False)
