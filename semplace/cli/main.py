from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

import typer
from pydantic import ValidationError

from ..config import load_config
from ..core.frame import directional_points
from ..examples.synthetic import write_scenario
from ..runtime.builders import build_asset_definitions
from ..sdk import place_from_config

app = typer.Typer(help="Semantic placement utilities")
demo_app = typer.Typer(help="Synthetic scenario helpers")
app.add_typer(demo_app, name="demo")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("semplace").setLevel(numeric)


def _load(config: Path):
    try:
        return load_config(config)
    except (ValidationError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="CONFIG") from exc


@app.command("place")
def place(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML scenario file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override the JSON command file path."),
    no_pack: bool = typer.Option(False, "--no-pack", help="Skip surface packing of items sharing a target point."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero when any request fails."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Place every request of a scenario and write placement commands."""

    _configure_logging(log_level)
    if output is not None and output.suffix.lower() != ".json":
        raise typer.BadParameter("Output must end with .json", param_hint="--output")
    cfg = _load(config)
    result = place_from_config(cfg, output=output, pack=False if no_pack else None)

    for failure in result.failures:
        typer.echo(f"FAILED {failure.request_id}: {failure.kind.value}: {failure.message}")
    typer.echo(f"Placed {len(result.commands)} of {len(cfg.requests)} request(s) → {result.output_path}")
    if strict and result.failures:
        raise typer.Exit(code=1)


@app.command("frame")
def frame(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML scenario file."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Print the computed localToSLS rotation of every catalog asset."""

    _configure_logging(log_level)
    cfg = _load(config)
    for name, asset in build_asset_definitions(cfg).items():
        q = ", ".join(f"{v:.6f}" for v in asset.frame.local_to_sls.as_list())
        flag = "  (degenerate)" if asset.frame.degenerate else ""
        typer.echo(f"{name}: [{q}]{flag}")


@app.command("catalog")
def catalog(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML scenario file."),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only list assets carrying this semantic tag."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """List catalog assets with their semantic tags and point names."""

    _configure_logging(log_level)
    cfg = _load(config)
    assets = [a for a in build_asset_definitions(cfg).values() if tag is None or a.has_tag(tag)]
    if not assets:
        typer.echo("No matching assets.")
        return
    for asset in assets:
        tags = ", ".join(asset.tags) or "-"
        points = ", ".join(p.name for p in asset.points) or "-"
        typer.echo(f"{asset.name} [{tags}]: {points}")


@app.command("directions")
def directions(
    center: Tuple[float, float, float] = typer.Option((0.0, 0.0, 0.0), "--center", help="Local bounding box centre: x y z."),
    size: Tuple[float, float, float] = typer.Option(..., "--size", help="Local bounding box size: x y z."),
) -> None:
    """Print the six directional semantic points of a local bounding box."""

    try:
        points = directional_points(center, size)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--size") from exc
    for p in points:
        typer.echo(str(p.as_tuple()))


@demo_app.command("generate")
def demo_generate(
    output: Path = typer.Argument(..., help="Output scenario path (.yaml)."),
    preset: str = typer.Option("demo", "--preset", help="Scenario preset (demo, single)."),
) -> None:
    """Write a synthetic table-and-props scenario."""

    out = output.resolve()
    try:
        write_scenario(out, preset=preset)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--preset") from exc
    typer.echo(f"Wrote demo scenario to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
