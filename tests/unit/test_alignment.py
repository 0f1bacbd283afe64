import math

import numpy as np
import pytest

from semplace.core.alignment import AlignmentSolver, align_two_vectors, from_to_rotation
from semplace.core.quaternion import Quaternion


def _unit(rng: np.random.Generator) -> np.ndarray:
    v = rng.normal(size=3)
    return v / np.linalg.norm(v)


def test_from_to_same_direction_is_identity() -> None:
    assert from_to_rotation((0.0, 2.0, 0.0), (0.0, 1.0, 0.0)).is_close(Quaternion.identity())


@pytest.mark.parametrize("v", [(0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.3, -0.4, 0.866)])
def test_from_to_antiparallel_is_half_turn(v) -> None:
    a = np.asarray(v) / np.linalg.norm(v)
    q = from_to_rotation(a, -a)
    np.testing.assert_allclose(q.rotate(a), -a, atol=1e-9)
    assert abs(q.w) < 1e-9
    axis = np.array([q.x, q.y, q.z])
    assert abs(float(np.dot(axis, a))) < 1e-9


def test_from_to_antiparallel_tie_break() -> None:
    # |x| < 0.9 crosses with +X; otherwise with +Y.
    assert from_to_rotation((0.0, 1.0, 0.0), (0.0, -1.0, 0.0)).is_close(Quaternion(0.0, 0.0, 1.0, 0.0))
    assert from_to_rotation((1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)).is_close(Quaternion(0.0, 0.0, -1.0, 0.0))


def test_from_to_random() -> None:
    rng = np.random.default_rng(11)
    for _ in range(200):
        a, b = _unit(rng), _unit(rng)
        np.testing.assert_allclose(from_to_rotation(a, b).rotate(a), b, atol=1e-9)


def test_from_to_rejects_zero() -> None:
    with pytest.raises(ValueError):
        from_to_rotation((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))


def test_lamp_on_table_is_identity() -> None:
    solver = AlignmentSolver()
    q = solver.solve((0.0, -1.0, 0.0), (0.0, 0.0, 1.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
    assert q.is_close(Quaternion.identity())


def test_normals_end_up_opposed_random() -> None:
    rng = np.random.default_rng(5)
    for _ in range(500):
        sn, su, tn, tu = (_unit(rng) for _ in range(4))
        result = align_two_vectors(sn, su, tn, tu)
        q = result.rotation
        assert float(np.dot(q.rotate(sn), tn)) == pytest.approx(-1.0, abs=1e-6)
        if result.twist_constrained:
            desired = -tn
            up = q.rotate(su)
            up_proj = up - np.dot(up, desired) * desired
            tu_proj = tu - np.dot(tu, desired) * desired
            cos = np.dot(up_proj, tu_proj) / (np.linalg.norm(up_proj) * np.linalg.norm(tu_proj))
            assert cos == pytest.approx(1.0, abs=1e-6)


def test_antiparallel_twist_keeps_contact_normal() -> None:
    result = align_two_vectors((0.0, -1.0, 0.0), (0.0, 0.0, 1.0), (0.0, 1.0, 0.0), (0.0, 0.0, -1.0))
    q = result.rotation
    assert result.twist_constrained
    np.testing.assert_allclose(q.rotate([0.0, -1.0, 0.0]), [0.0, -1.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(q.rotate([0.0, 0.0, 1.0]), [0.0, 0.0, -1.0], atol=1e-9)
    assert q.angle_to(Quaternion.identity()) == pytest.approx(math.pi)


def test_up_parallel_to_normal_leaves_twist_unconstrained() -> None:
    result = align_two_vectors((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
    assert not result.twist_constrained
    assert result.rotation.is_close(Quaternion.identity())


def test_world_rotation_composes_sls_then_frame() -> None:
    r_final = Quaternion.from_yaw_deg(90.0)
    r_ls = Quaternion.from_axis_angle((1.0, 0.0, 0.0), math.pi / 2)
    r_world = AlignmentSolver.world_rotation(r_final, r_ls)
    v = np.array([0.0, 1.0, 0.0])
    np.testing.assert_allclose(r_world.rotate(v), r_final.rotate(r_ls.rotate(v)), atol=1e-12)
