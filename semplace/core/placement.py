from __future__ import annotations
from typing import Sequence, Union
import numpy as np

from .quaternion import Quaternion
from .results import VerificationReport
from .spaces import offset_to_world
from .utils import vec3

Vec = Union[Sequence[float], np.ndarray]


class PlacementSolver:
    """Solves the world pivot that puts a moving object's anchor on a target point.

    The anchor is expressed in the moving asset's Local space, so the rotation
    passed in is its full world rotation (``R_sls_final * R_ls``) and scale
    is applied to the anchor offset exactly once.
    """

    def __init__(self, tolerance: float = 1e-4) -> None:
        self.tolerance = float(tolerance)

    @staticmethod
    def anchor_world(moving_anchor_local: Vec, r_world_moving: Quaternion, scale_moving: Vec) -> np.ndarray:
        return offset_to_world(moving_anchor_local, r_world_moving, scale_moving)

    @staticmethod
    def contact_point(target_point_world: Vec, target_normal_world: Vec, clearance: float = 0.0) -> np.ndarray:
        return vec3(target_point_world, "target point") - float(clearance) * vec3(target_normal_world, "target normal")

    def solve_pivot(
        self,
        target_point_world: Vec,
        target_normal_world: Vec,
        moving_anchor_local: Vec,
        r_world_moving: Quaternion,
        scale_moving: Vec,
        clearance: float = 0.0,
    ) -> np.ndarray:
        contact = self.contact_point(target_point_world, target_normal_world, clearance)
        return contact - self.anchor_world(moving_anchor_local, r_world_moving, scale_moving)

    def verify(
        self,
        pivot_world: Vec,
        target_point_world: Vec,
        target_normal_world: Vec,
        moving_anchor_local: Vec,
        r_world_moving: Quaternion,
        scale_moving: Vec,
        clearance: float = 0.0,
    ) -> VerificationReport:
        """Re-derive the anchor from ``pivot_world`` and compare to the contact point.

        Callers must not commit a placement whose report is not ``ok``.
        """
        expected = self.contact_point(target_point_world, target_normal_world, clearance)
        actual = vec3(pivot_world, "pivot") + self.anchor_world(moving_anchor_local, r_world_moving, scale_moving)
        residual = float(np.max(np.abs(actual - expected)))
        return VerificationReport(expected=expected, actual=actual, residual=residual, ok=residual <= self.tolerance)

    def verify_on_plane(
        self,
        pivot_world: Vec,
        target_point_world: Vec,
        target_normal_world: Vec,
        moving_anchor_local: Vec,
        r_world_moving: Quaternion,
        scale_moving: Vec,
        clearance: float = 0.0,
    ) -> VerificationReport:
        """Like :meth:`verify`, but the anchor may slide within the contact plane.

        Used after packing, which moves items sideways on the target face.
        Only the distance along the target normal counts.
        """
        n = vec3(target_normal_world, "target normal")
        n = n / np.linalg.norm(n)
        contact = self.contact_point(target_point_world, n, clearance)
        actual = vec3(pivot_world, "pivot") + self.anchor_world(moving_anchor_local, r_world_moving, scale_moving)
        distance = float(np.dot(actual - contact, n))
        expected = actual - distance * n
        residual = abs(distance)
        return VerificationReport(expected=expected, actual=actual, residual=residual, ok=residual <= self.tolerance)
