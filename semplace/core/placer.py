from __future__ import annotations
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import numpy as np

from .alignment import AlignmentSolver
from .packing import PackCandidate, SurfacePacker, find_collisions
from .placement import PlacementSolver
from .quaternion import Quaternion
from .results import AlignmentResult, FailureKind, PlacedPose, PlacementFailure, PlacementOutcome, VerificationReport
from .spaces import local_to_sls, normal_to_world, point_to_world
from .types import AssetDefinition, Bounds3, Footprint, Instance, Pose, SemanticPoint
from .utils import get_logger, vec3

_log = get_logger()

SLS_UP = np.array([0.0, 1.0, 0.0])
SLS_FRONT = np.array([0.0, 0.0, 1.0])
# |dot(n, +Y)| must be within this of 1 for a face to be packed.
FLAT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class PlacementRequest:
    """Put ``asset``'s ``anchor`` point against ``target_point`` of instance ``target``."""
    id: str
    asset: str
    anchor: str
    target: str
    target_point: str
    clearance: float = 0.0
    scale: Optional[Tuple[float, float, float]] = None


def up_reference(normal_sls: Union[Sequence[float], np.ndarray], threshold: float = 0.9) -> np.ndarray:
    """SLS +Y, or SLS +Z when the normal is itself (nearly) vertical."""
    n = vec3(normal_sls, "normal")
    if abs(float(np.dot(n, SLS_UP))) >= threshold:
        return SLS_FRONT.copy()
    return SLS_UP.copy()


class SemanticPlacer:
    """Turns placement requests into checked poses against an indexed scene.

    ``assets`` is the catalog (frames + Local points) and ``instances`` the
    scene snapshot, keyed by instance id. Neither is mutated; placed items are
    not added to the scene.
    """

    def __init__(
        self,
        assets: Mapping[str, AssetDefinition],
        instances: Union[Mapping[str, Instance], Iterable[Instance]],
        *,
        eps: float = 1e-6,
        verify_tolerance: float = 1e-4,
        up_parallel_threshold: float = 0.9,
        collision_tolerance: float = 0.05,
        packer: Optional[SurfacePacker] = None,
    ) -> None:
        self.assets = dict(assets)
        if isinstance(instances, Mapping):
            self.instances = dict(instances)
        else:
            self.instances = {inst.instance_id: inst for inst in instances}
        self.aligner = AlignmentSolver(eps)
        self.solver = PlacementSolver(verify_tolerance)
        self.up_parallel_threshold = float(up_parallel_threshold)
        self.collision_tolerance = float(collision_tolerance)
        self.packer = packer or SurfacePacker()

    # -- single request --
    def place(self, request: PlacementRequest) -> PlacementOutcome:
        asset = self.assets.get(request.asset)
        if asset is None:
            return self._fail(request, FailureKind.UNKNOWN_ASSET, f"Asset '{request.asset}' is not in the catalog.")
        target = self.instances.get(request.target)
        if target is None:
            return self._fail(request, FailureKind.UNKNOWN_TARGET, f"Instance '{request.target}' is not in the scene.")

        anchor = asset.point(request.anchor)
        if anchor is None or not anchor.has_normal:
            return self._missing(request, request.asset, request.anchor, anchor)
        target_point = target.point(request.target_point)
        if target_point is None or not target_point.has_normal:
            return self._missing(request, request.target, request.target_point, target_point)

        scale = vec3(request.scale, "scale") if request.scale is not None else asset.frame.default_scale
        clearance = float(request.clearance)

        alignment, rotation, pivot, report = self._solve(asset, anchor, target, target_point, scale, clearance)
        if not report.ok:
            _log.warning("'%s': placement self-check off by %.2e; retrying.", request.id, report.residual)
            alignment, rotation, pivot, report = self._solve(
                asset, anchor, target, target_point, scale, clearance, rebuild=True
            )
            if not report.ok:
                return self._fail(
                    request,
                    FailureKind.VERIFICATION_MISMATCH,
                    f"Anchor lands {report.residual:.2e} away from the contact point after retry.",
                )
        if not alignment.twist_constrained:
            _log.debug("'%s': twist about the contact normal is unconstrained.", request.id)

        pose = PlacedPose(
            request_id=request.id,
            asset=request.asset,
            position=pivot,
            rotation=rotation,
            scale=np.array(scale, dtype=np.float64),
            target=request.target,
            target_point=request.target_point,
            alignment=alignment,
            verification=report,
            anchor=request.anchor,
            clearance=clearance,
        )
        pose.collisions = self.collisions(pose)
        if pose.collisions:
            _log.warning("'%s' overlaps %s", request.id, ", ".join(pose.collisions))
        return PlacementOutcome(request.id, pose=pose)

    # -- batches --
    def place_many(self, requests: Iterable[PlacementRequest], pack: bool = True) -> List[PlacementOutcome]:
        """Place every request; items sharing a target point are packed together.

        Outcomes come back in request order. Packing failures only affect the
        items that could not be cleared.
        """
        reqs = list(requests)
        outcomes: "OrderedDict[str, PlacementOutcome]" = OrderedDict()
        for req in reqs:
            if req.id in outcomes:
                raise ValueError(f"Duplicate request id '{req.id}'")
            outcomes[req.id] = self.place(req)

        if pack:
            groups: "OrderedDict[Tuple[str, str], List[PlacedPose]]" = OrderedDict()
            for outcome in outcomes.values():
                if outcome.ok:
                    key = (outcome.pose.target, outcome.pose.target_point)
                    groups.setdefault(key, []).append(outcome.pose)
            for (target_id, point_name), poses in groups.items():
                if len(poses) < 2:
                    continue
                if not self._is_flat(target_id, point_name):
                    _log.info("Not packing %d item(s) on '%s.%s': face is not horizontal.", len(poses), target_id, point_name)
                    continue
                for outcome in self._pack_group(target_id, point_name, poses):
                    outcomes[outcome.request_id] = outcome

        results = list(outcomes.values())
        failed = sum(1 for o in results if not o.ok)
        _log.info("Placed %d of %d request(s); %d failed.", len(results) - failed, len(results), failed)
        return results

    def _pack_group(self, target_id: str, point_name: str, poses: Sequence[PlacedPose]) -> List[PlacementOutcome]:
        target = self.instances[target_id]
        surface_y = float(target.point_world(point_name)[1])
        surface = target.footprint(y=surface_y)

        candidates = []
        for pose in poses:
            pts = self.world_points(pose)
            candidates.append(PackCandidate(pose.request_id, pose.position, Footprint.from_points(pts, y=surface_y), pts))

        _log.info("Packing %d item(s) on '%s.%s'", len(candidates), target_id, point_name)
        result = self.packer.pack(surface, candidates)

        by_id = {p.request_id: p for p in poses}
        target_world = target.point_world(point_name)
        target_normal = target.normal_world(point_name)
        out: List[PlacementOutcome] = []
        for failure in result.unresolved:
            out.append(PlacementOutcome(failure.request_id, failure=failure))
        for rid, packed in result.placements.items():
            pose = by_id[rid]
            if not packed.moved:
                out.append(PlacementOutcome(rid, pose=pose))
                continue
            rotation = pose.rotation
            if packed.yaw_deg != 0.0:
                rotation = (Quaternion.from_yaw_deg(packed.yaw_deg) * rotation).normalized()
            anchor = self.assets[pose.asset].point(pose.anchor)
            report = self.solver.verify_on_plane(
                packed.pivot, target_world, target_normal, anchor.offset, rotation, pose.scale, pose.clearance
            )
            if not report.ok:
                msg = f"Packing moved '{rid}' {report.residual:.2e} off the '{target_id}.{point_name}' face."
                _log.warning("Request '%s' failed: %s", rid, msg)
                out.append(PlacementOutcome(rid, failure=PlacementFailure(rid, FailureKind.VERIFICATION_MISMATCH, msg)))
                continue
            moved = replace(pose, position=packed.pivot, rotation=rotation, verification=report)
            moved.collisions = self.collisions(moved)
            out.append(PlacementOutcome(rid, pose=moved))
        return out

    def _is_flat(self, target_id: str, point_name: str) -> bool:
        """Packing offsets are lateral, so only horizontal faces can be packed."""
        n = self.instances[target_id].normal_world(point_name)
        n = n / np.linalg.norm(n)
        return abs(float(np.dot(n, SLS_UP))) >= 1.0 - FLAT_TOLERANCE

    def _solve(
        self,
        asset: AssetDefinition,
        anchor: SemanticPoint,
        target: Instance,
        target_point: SemanticPoint,
        scale: np.ndarray,
        clearance: float,
        rebuild: bool = False,
    ) -> Tuple[AlignmentResult, Quaternion, np.ndarray, VerificationReport]:
        r_ls = asset.frame.local_to_sls
        r_ws_target = target.r_ws
        if rebuild:
            # Re-orthonormalize both frames through their matrices.
            r_ls = Quaternion.from_matrix(r_ls.to_matrix())
            r_ws_target = Quaternion.from_matrix(r_ws_target.to_matrix())

        source_normal = local_to_sls(anchor.normal, r_ls)
        source_up = up_reference(source_normal, self.up_parallel_threshold)
        target_normal = normal_to_world(target_point.normal, r_ws_target)
        target_up = normal_to_world(up_reference(target_point.normal, self.up_parallel_threshold), r_ws_target)
        target_world = point_to_world(target_point.offset, r_ws_target, target.pose.scale, target.pose.position)
        if rebuild:
            target_normal = target_normal / np.linalg.norm(target_normal)

        alignment = self.aligner.solve_detailed(source_normal, source_up, target_normal, target_up)
        rotation = AlignmentSolver.world_rotation(alignment.rotation, r_ls)
        if rebuild:
            rotation = Quaternion.from_matrix(rotation.to_matrix()).normalized()
        pivot = self.solver.solve_pivot(target_world, target_normal, anchor.offset, rotation, scale, clearance)
        report = self.solver.verify(pivot, target_world, target_normal, anchor.offset, rotation, scale, clearance)
        return alignment, rotation, pivot, report

    # -- helpers --
    def world_points(self, pose: PlacedPose) -> np.ndarray:
        asset = self.assets[pose.asset]
        return Pose(pose.position, pose.rotation, pose.scale).apply(asset.local_array())

    def collisions(self, pose: PlacedPose) -> List[str]:
        bounds = Bounds3.from_points(self.world_points(pose))
        return find_collisions(bounds, self.instances.values(), exclude=(pose.target,), tolerance=self.collision_tolerance)

    @staticmethod
    def _fail(request: PlacementRequest, kind: FailureKind, message: str) -> PlacementOutcome:
        _log.warning("Request '%s' failed: %s", request.id, message)
        return PlacementOutcome(request.id, failure=PlacementFailure(request.id, kind, message))

    def _missing(self, request: PlacementRequest, owner: str, name: str, point: Optional[SemanticPoint]) -> PlacementOutcome:
        if point is None:
            msg = f"'{owner}' has no semantic point '{name}'; face alignment aborted."
        else:
            msg = f"Semantic point '{owner}.{name}' has no normal; face alignment aborted."
        return self._fail(request, FailureKind.MISSING_SEMANTIC_POINT, msg)
