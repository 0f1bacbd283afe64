from __future__ import annotations
from typing import Sequence, Union
import math
import numpy as np

from .quaternion import Quaternion
from .results import AlignmentResult
from .utils import get_logger, vec3

_log = get_logger()

Vec = Union[Sequence[float], np.ndarray]


def from_to_rotation(from_v: Vec, to_v: Vec, eps: float = 1e-6) -> Quaternion:
    """Shortest rotation taking direction ``from_v`` onto ``to_v``.

    Antiparallel inputs have no unique axis. The tie-break is fixed: cross
    ``(1, 0, 0)`` with ``from_v`` when ``|from.x| < 0.9``, otherwise
    ``(0, 1, 0)``, and rotate 180° about the result. Changing it changes which
    of the valid half-turns is returned.
    """
    a = vec3(from_v, "from")
    b = vec3(to_v, "to")
    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))
    if na < 1e-12 or nb < 1e-12:
        raise ValueError("from_to_rotation needs non-zero directions.")
    a = a / na
    b = b / nb
    d = float(np.dot(a, b))

    if d > 1.0 - eps:
        return Quaternion.identity()

    if d < -1.0 + eps:
        other = np.array([1.0, 0.0, 0.0]) if abs(a[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
        axis = np.cross(other, a)
        return Quaternion.from_axis_angle(axis, math.pi)

    axis = np.cross(a, b)
    w = math.sqrt(float(np.dot(a, a)) * float(np.dot(b, b))) + d
    return Quaternion(float(axis[0]), float(axis[1]), float(axis[2]), w).normalized()


def _project_onto_plane(v: np.ndarray, normal: np.ndarray) -> np.ndarray:
    return v - float(np.dot(v, normal)) * normal


def align_two_vectors(
    source_normal: Vec,
    source_up: Vec,
    target_normal: Vec,
    target_up: Vec,
    eps: float = 1e-6,
) -> AlignmentResult:
    """Rotation putting ``source_normal`` against ``target_normal`` (opposed) and
    turning the source's up reference toward the target's.

    The primary rotation ``q1`` settles the contact normal, the secondary ``q2``
    spins about it. If the source up ends up parallel to the contact normal
    the twist is unconstrained and ``q1`` alone is returned with
    ``twist_constrained=False``. Any twist about the normal is a valid contact;
    keeping ``q1`` is the consistent choice.
    """
    desired = -vec3(target_normal, "target normal")
    nd = float(np.linalg.norm(desired))
    if nd < 1e-12:
        raise ValueError("Target normal must be non-zero.")
    desired = desired / nd

    q1 = from_to_rotation(source_normal, desired, eps)
    rotated_up = q1.rotate(vec3(source_up, "source up"))

    proj = _project_onto_plane(rotated_up, desired)
    if float(np.linalg.norm(proj)) < eps:
        _log.debug("Source up is parallel to the contact normal; twist left unconstrained.")
        return AlignmentResult(q1, twist_constrained=False)
    proj = proj / float(np.linalg.norm(proj))

    # An up reference with a component along the normal would tilt the contact.
    up = _project_onto_plane(vec3(target_up, "target up"), desired)
    if float(np.linalg.norm(up)) < eps:
        _log.debug("Target up is parallel to the contact normal; twist left unconstrained.")
        return AlignmentResult(q1, twist_constrained=False)
    up = up / float(np.linalg.norm(up))

    if float(np.dot(proj, up)) < -1.0 + eps:
        # Half-turn about the contact normal itself keeps the normal in place.
        q2 = Quaternion.from_axis_angle(desired, math.pi)
    else:
        q2 = from_to_rotation(proj, up, eps)
    return AlignmentResult((q2 * q1).normalized(), twist_constrained=True)


class AlignmentSolver:
    """Two-vector alignment in SLS.

    The world rotation of the moving object B is ``R_sls_final * R_ls_B``;
    composing with the target's ``R_ws`` instead is wrong.
    """

    def __init__(self, eps: float = 1e-6) -> None:
        self.eps = float(eps)

    def solve(
        self,
        source_normal_sls: Vec,
        source_up_sls: Vec,
        target_normal_sls: Vec,
        target_up_sls: Vec,
    ) -> Quaternion:
        return self.solve_detailed(source_normal_sls, source_up_sls, target_normal_sls, target_up_sls).rotation

    def solve_detailed(
        self,
        source_normal_sls: Vec,
        source_up_sls: Vec,
        target_normal_sls: Vec,
        target_up_sls: Vec,
    ) -> AlignmentResult:
        return align_two_vectors(source_normal_sls, source_up_sls, target_normal_sls, target_up_sls, self.eps)

    @staticmethod
    def world_rotation(r_sls_final: Quaternion, r_ls_moving: Quaternion) -> Quaternion:
        return (r_sls_final * r_ls_moving).normalized()
