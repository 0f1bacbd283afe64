from __future__ import annotations
from typing import Dict, Iterable, Mapping, Optional, Sequence
import numpy as np

from .quaternion import Quaternion
from .spaces import local_to_sls, sls_to_world_rotation, world_to_sls
from .types import AssetFrame, Instance, Pose, SemanticPoint
from .utils import as_float_list


def index_instance(
    instance_id: str,
    pose: Pose,
    frame: AssetFrame,
    points_local: Iterable[SemanticPoint],
    asset: Optional[str] = None,
) -> Instance:
    """Instance from an asset's authored (Local, unscaled) points."""
    r_ls = frame.local_to_sls
    pts = [
        SemanticPoint(p.name, local_to_sls(p.offset, r_ls), local_to_sls(p.normal, r_ls))
        for p in points_local
    ]
    return Instance(pose=pose, asset_frame=frame, semantic_points_sls=pts, instance_id=instance_id, asset=asset)


def index_from_world(
    instance_id: str,
    pose: Pose,
    frame: AssetFrame,
    world_points: Mapping[str, Sequence[float] | np.ndarray],
    normals_local: Optional[Mapping[str, Sequence[float] | np.ndarray]] = None,
    asset: Optional[str] = None,
) -> Instance:
    """Instance from semantic point positions observed in world space.

    Offsets are taken back through the instance's rotation and scale into
    unscaled SLS; normals come from the asset's Local annotations and are
    only rotated.
    """
    normals_local = normals_local or {}
    r_ls = frame.local_to_sls
    pts = []
    for name, p_world in world_points.items():
        off_world = np.asarray(p_world, dtype=np.float64) - pose.position
        offset_sls = world_to_sls(off_world, pose.rotation, pose.scale, r_ls)
        normal = normals_local.get(name, (0.0, 0.0, 0.0))
        pts.append(SemanticPoint(name, offset_sls, local_to_sls(normal, r_ls)))
    return Instance(pose=pose, asset_frame=frame, semantic_points_sls=pts, instance_id=instance_id, asset=asset)


def instance_from_record(record, frame: AssetFrame) -> Instance:
    """Rebuild an :class:`Instance` from a scene instance record.

    ``record`` needs ``id``, ``asset``, ``pivot_world``, ``rotation_sls_to_world``,
    ``scale`` and ``semantic_points`` (unscaled SLS tuples). Records store
    ``R_ws``; the instance pose carries ``R_wl = R_ws * R_ls``.
    """
    r_ws = Quaternion.from_list(record.rotation_sls_to_world).normalized()
    r_wl = (r_ws * frame.local_to_sls).normalized()
    pose = Pose(position=record.pivot_world, rotation=r_wl, scale=record.scale)
    points = [p if isinstance(p, SemanticPoint) else SemanticPoint.from_tuple(p) for p in record.semantic_points]
    return Instance(pose=pose, asset_frame=frame, semantic_points_sls=points, instance_id=record.id, asset=record.asset)


def instance_to_record(instance: Instance, ndigits: int = 6) -> Dict[str, object]:
    r_ws = sls_to_world_rotation(instance.pose.rotation, instance.asset_frame.local_to_sls).normalized()
    return {
        "id": instance.instance_id,
        "asset": instance.asset,
        "pivotWorld": as_float_list(instance.pose.position, ndigits),
        "rotationSLSToWorld": as_float_list(r_ws.as_array(), ndigits),
        "scale": as_float_list(instance.pose.scale, ndigits),
        "semanticPoints": [p.as_tuple(ndigits) for p in instance.semantic_points_sls],
    }


def index_scene(instances: Iterable[Instance]) -> Dict[str, Instance]:
    table: Dict[str, Instance] = {}
    for inst in instances:
        if inst.instance_id in table:
            raise ValueError(f"Duplicate instance id '{inst.instance_id}'")
        table[inst.instance_id] = inst
    return table
