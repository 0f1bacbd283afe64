from __future__ import annotations

from typing import Dict, List, Optional

from ..config import AssetRecord, EngineConfig, PlacementRequestModel, ScenarioConfig, SceneInstanceRecord
from ..core.frame import FrameCalculator, directional_points
from ..core.indexer import index_scene, instance_from_record
from ..core.packing import SurfacePacker
from ..core.placer import PlacementRequest, SemanticPlacer
from ..core.quaternion import Quaternion
from ..core.types import AssetDefinition, AssetFrame, Instance, SemanticPoint
from ..core.utils import get_logger

_log = get_logger()


def build_asset_points(record: AssetRecord) -> List[SemanticPoint]:
    points = [SemanticPoint.from_tuple(p) for p in record.semantic_points]
    if not points and record.size is not None:
        # Assets annotated only with a bounding box get the six directional points.
        center = record.center_offset or (0.0, 0.0, 0.0)
        points = directional_points(center, record.size)
    return points


def build_asset_frame(record: AssetRecord, calculator: FrameCalculator) -> AssetFrame:
    if record.local_to_sls is not None:
        return AssetFrame(Quaternion.from_list(record.local_to_sls).normalized(), record.default_scale)
    return calculator.compute_asset_frame(build_asset_points(record), record.default_scale, asset=record.name)


def build_asset_definitions(cfg: ScenarioConfig) -> Dict[str, AssetDefinition]:
    calculator = FrameCalculator(cfg.engine.epsilon)
    out: Dict[str, AssetDefinition] = {}
    for record in cfg.catalog.assets:
        frame = build_asset_frame(record, calculator)
        out[record.name] = AssetDefinition(
            record.name, frame, tuple(build_asset_points(record)), tuple(record.semantic_tags)
        )
    return out


def build_instance(record: SceneInstanceRecord, assets: Dict[str, AssetDefinition]) -> Instance:
    asset = assets.get(record.asset)
    if asset is None:
        _log.warning("Instance '%s' uses uncatalogued asset '%s'; assuming identity frame.", record.id, record.asset)
        frame = AssetFrame()
    else:
        frame = asset.frame
    return instance_from_record(record, frame)


def build_instances(cfg: ScenarioConfig, assets: Dict[str, AssetDefinition]) -> Dict[str, Instance]:
    return index_scene(build_instance(r, assets) for r in cfg.scene.instances)


def build_packer(engine: EngineConfig) -> SurfacePacker:
    p = engine.packing
    return SurfacePacker(
        clearance=p.clearance,
        distances=p.distances,
        rotation_retry=p.rotation_retry,
        rotation_retry_deg=p.rotation_retry_deg,
    )


def build_placer(cfg: ScenarioConfig, assets: Optional[Dict[str, AssetDefinition]] = None) -> SemanticPlacer:
    assets = assets if assets is not None else build_asset_definitions(cfg)
    engine = cfg.engine
    return SemanticPlacer(
        assets,
        build_instances(cfg, assets),
        eps=engine.epsilon,
        verify_tolerance=engine.verify_tolerance,
        up_parallel_threshold=engine.up_parallel_threshold,
        collision_tolerance=engine.collision_tolerance,
        packer=build_packer(engine),
    )


def build_request(model: PlacementRequestModel) -> PlacementRequest:
    return PlacementRequest(
        id=model.id,
        asset=model.asset,
        anchor=model.anchor,
        target=model.target,
        target_point=model.target_point,
        clearance=model.clearance,
        scale=model.scale,
    )
