from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Vec3 = tuple[float, float, float]
Quat = tuple[float, float, float, float]


class _Record(BaseModel):
    # Records use the camelCase keys of the exchange format; snake_case works too.
    model_config = ConfigDict(populate_by_name=True)


def _parse_point_tuples(values: Any) -> List[list]:
    if values is None:
        return []
    out = []
    for entry in values:
        entry = list(entry)
        if len(entry) == 4:
            entry = entry + [0.0, 0.0, 0.0]
        if len(entry) != 7:
            raise ValueError(f"Semantic point must be [name,x,y,z,nx,ny,nz] (or legacy [name,x,y,z]), got {entry!r}")
        name = str(entry[0])
        if not name:
            raise ValueError("Semantic point name must be non-empty")
        out.append([name, *(float(v) for v in entry[1:])])
    return out


def _unique_names(points: List[list], owner: str) -> None:
    seen = set()
    for p in points:
        if p[0] in seen:
            raise ValueError(f"{owner}: duplicate semantic point '{p[0]}'")
        seen.add(p[0])


class PackingConfig(BaseModel):
    clearance: float = Field(0.05, ge=0.0)
    distances: List[float] = Field(default_factory=lambda: [0.05, 0.10, 0.15, 0.20])
    rotation_retry: bool = True
    rotation_retry_deg: float = Field(15.0, gt=0.0, lt=180.0)

    @field_validator("distances")
    @classmethod
    def _check_distances(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError("distances must not be empty")
        if any(d <= 0 for d in v):
            raise ValueError("distances must be positive")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("distances must be strictly ascending")
        return v


class EngineConfig(BaseModel):
    epsilon: float = Field(1e-6, gt=0.0)
    verify_tolerance: float = Field(1e-4, gt=0.0)
    up_parallel_threshold: float = Field(0.9, gt=0.0, le=1.0)
    collision_tolerance: float = Field(0.05, ge=0.0)
    packing: PackingConfig = PackingConfig()


class AssetRecord(_Record):
    name: str
    default_scale: Vec3 = Field((1.0, 1.0, 1.0), alias="defaultScale")
    local_to_sls: Optional[Quat] = Field(None, alias="localToSLS")
    semantic_points: List[list] = Field(default_factory=list, alias="semanticPoints")
    semantic_tags: List[str] = Field(default_factory=list, alias="semanticTags")
    size: Optional[Vec3] = None
    center_offset: Optional[Vec3] = Field(None, alias="centerOffset")

    @field_validator("semantic_points", mode="before")
    @classmethod
    def _parse_points(cls, v: Any) -> List[list]:
        return _parse_point_tuples(v)

    @model_validator(mode="after")
    def _check(self) -> "AssetRecord":
        _unique_names(self.semantic_points, f"asset '{self.name}'")
        if self.size is not None and any(s < 0 for s in self.size):
            raise ValueError(f"asset '{self.name}': size components must be non-negative")
        return self


class SceneInstanceRecord(_Record):
    id: str
    asset: str
    pivot_world: Vec3 = Field(alias="pivotWorld")
    rotation_sls_to_world: Quat = Field((0.0, 0.0, 0.0, 1.0), alias="rotationSLSToWorld")
    scale: Vec3 = (1.0, 1.0, 1.0)
    semantic_points: List[list] = Field(default_factory=list, alias="semanticPoints")

    @field_validator("semantic_points", mode="before")
    @classmethod
    def _parse_points(cls, v: Any) -> List[list]:
        return _parse_point_tuples(v)

    @model_validator(mode="after")
    def _check(self) -> "SceneInstanceRecord":
        _unique_names(self.semantic_points, f"instance '{self.id}'")
        if sum(c * c for c in self.rotation_sls_to_world) < 1e-12:
            raise ValueError(f"instance '{self.id}': rotationSLSToWorld must be non-zero")
        return self


class PlacementRequestModel(_Record):
    id: str
    asset: str
    anchor: str = "bottom"
    target: str
    target_point: str = Field("top", alias="targetPoint")
    clearance: float = 0.0
    scale: Optional[Vec3] = None


class PlacementCommand(_Record):
    id: str
    asset: str
    position: Vec3
    rotation: Quat
    scale: Optional[Vec3] = None


class CatalogConfig(BaseModel):
    assets: List[AssetRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique(self) -> "CatalogConfig":
        names = [a.name for a in self.assets]
        if len(names) != len(set(names)):
            raise ValueError("catalog asset names must be unique")
        return self


class SceneConfig(BaseModel):
    instances: List[SceneInstanceRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique(self) -> "SceneConfig":
        ids = [i.id for i in self.instances]
        if len(ids) != len(set(ids)):
            raise ValueError("scene instance ids must be unique")
        return self


class OutputConfig(BaseModel):
    path: Path = Path("placements.json")
    indent: int = 2


class ScenarioConfig(BaseModel):
    catalog: CatalogConfig = CatalogConfig()
    scene: SceneConfig = SceneConfig()
    requests: List[PlacementRequestModel] = Field(default_factory=list)
    engine: EngineConfig = EngineConfig()
    output: OutputConfig = OutputConfig()
    pack: bool = True

    @model_validator(mode="after")
    def _check_refs(self) -> "ScenarioConfig":
        ids = [r.id for r in self.requests]
        if len(ids) != len(set(ids)):
            raise ValueError("request ids must be unique")
        # Unknown asset/target names are reported per request at placement time.
        return self


def load_config(path: str | Path) -> ScenarioConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = ScenarioConfig.model_validate(data)
    if not cfg.output.path.is_absolute():
        cfg.output.path = (path.parent / cfg.output.path).resolve()
    return cfg
