from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

import matplotlib
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from semplace.core.types import Footprint
from semplace.examples.synthetic import generate_scenario
from semplace.config.schema import ScenarioConfig
from semplace.runtime.builders import build_placer, build_request

matplotlib.use("Agg")


@dataclass(frozen=True)
class ExampleSpec:
    name: str
    preset: str
    pack: bool = True


EXAMPLES: List[ExampleSpec] = [
    ExampleSpec(name="single_lamp", preset="single"),
    ExampleSpec(name="table_props_unpacked", preset="demo", pack=False),
    ExampleSpec(name="table_props_packed", preset="demo"),
]

IMAGE_DIR = Path("examples/images")


def _draw(ax, fp: Footprint, label: str, color: str, fill: bool = True) -> None:
    rect = Rectangle(
        (fp.min_x, fp.min_z),
        fp.max_x - fp.min_x,
        fp.max_z - fp.min_z,
        facecolor=color if fill else "none",
        edgecolor=color,
        alpha=0.45 if fill else 1.0,
        linewidth=1.5,
    )
    ax.add_patch(rect)
    cx, cz = fp.center
    ax.text(cx, cz, label, ha="center", va="center", fontsize=7)


def render_example(spec: ExampleSpec) -> Path:
    cfg = ScenarioConfig.model_validate(generate_scenario(spec.preset))
    placer = build_placer(cfg)
    outcomes = placer.place_many([build_request(r) for r in cfg.requests], pack=spec.pack)

    fig, ax = plt.subplots(figsize=(6, 5), dpi=150)
    colors = plt.rcParams["axes.prop_cycle"].by_key()["color"]
    for inst in placer.instances.values():
        _draw(ax, inst.footprint(), inst.instance_id, "0.3", fill=False)
    for idx, outcome in enumerate(outcomes):
        if not outcome.ok:
            logging.warning("'%s' not placed: %s", outcome.request_id, outcome.failure.message)
            continue
        fp = Footprint.from_points(placer.world_points(outcome.pose))
        _draw(ax, fp, outcome.request_id, colors[idx % len(colors)])

    ax.set_title(f"{spec.name.replace('_', ' ').title()} – XZ (top-down)")
    ax.set_xlabel("X [m]")
    ax.set_ylabel("Z [m]")
    ax.set_aspect("equal", adjustable="datalim")
    ax.autoscale_view()

    fig.tight_layout()
    out_path = IMAGE_DIR / f"{spec.name}.png"
    fig.savefig(out_path)
    plt.close(fig)
    return out_path


def generate_examples(names: List[str]) -> None:
    IMAGE_DIR.mkdir(parents=True, exist_ok=True)
    selected = EXAMPLES if not names else [spec for spec in EXAMPLES if spec.name in names]
    if not selected:
        raise ValueError("No matching examples selected.")
    for spec in selected:
        logging.info("Rendering '%s'", spec.name)
        image_path = render_example(spec)
        logging.info("Saved %s", image_path)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render top-down previews of the demo placements.")
    parser.add_argument("--example", "-e", action="append", help="Example name to render (default: all).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="[%(levelname)s] %(message)s")
    generate_examples(args.example or [])


if __name__ == "__main__":
    main()
