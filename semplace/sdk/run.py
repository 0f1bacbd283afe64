from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..config import PlacementCommand, ScenarioConfig, load_config
from ..core.results import PlacementFailure
from ..core.utils import get_logger
from ..runtime.builders import build_placer, build_request

_log = get_logger()


@dataclass(frozen=True)
class PlacementRunResult:
    """Summary of a placement run driven by a configuration file."""

    commands: List[PlacementCommand]
    failures: List[PlacementFailure]
    output_path: Path
    config: ScenarioConfig

    @property
    def ok(self) -> bool:
        return not self.failures


def write_commands(path: Path, commands: List[PlacementCommand], failures: List[PlacementFailure], indent: int = 2) -> None:
    payload = {
        "commands": [c.model_dump(mode="json") for c in commands],
        "failures": [f.as_dict() for f in failures],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=indent)
        f.write("\n")


def place_from_config(
    config: Union[str, Path, ScenarioConfig],
    *,
    output: Optional[Path] = None,
    pack: Optional[bool] = None,
) -> PlacementRunResult:
    """Run a placement scenario described by a configuration file or object.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~semplace.config.schema.ScenarioConfig`.
    output:
        Optional override for the JSON command file written by the run.
    pack:
        Optional override for surface packing of items sharing a target point.

    Returns
    -------
    PlacementRunResult
        Includes the placement commands in request order, the failed requests,
        the resolved output path, and the configuration object used for the run.
    """

    cfg = load_config(config) if not isinstance(config, ScenarioConfig) else config.model_copy(deep=True)

    if output is not None:
        out_path = Path(output).resolve()
        if out_path.suffix.lower() != ".json":
            raise ValueError(f"Unsupported output extension '{out_path.suffix}'")
        cfg.output.path = out_path
    else:
        cfg.output.path = Path(cfg.output.path).resolve()
    if pack is not None:
        cfg.pack = pack

    placer = build_placer(cfg)
    outcomes = placer.place_many([build_request(r) for r in cfg.requests], pack=cfg.pack)

    commands: List[PlacementCommand] = []
    failures: List[PlacementFailure] = []
    for outcome in outcomes:
        if outcome.ok:
            commands.append(PlacementCommand.model_validate(outcome.pose.as_command()))
        else:
            failures.append(outcome.failure)

    write_commands(cfg.output.path, commands, failures, indent=cfg.output.indent)
    _log.info("Wrote %d command(s) to %s", len(commands), cfg.output.path)
    return PlacementRunResult(commands=commands, failures=failures, output_path=Path(cfg.output.path), config=cfg)
