import numpy as np
import pytest

from semplace.core.frame import FrameCalculator, directional_points
from semplace.core.indexer import index_instance
from semplace.core.placement import PlacementSolver
from semplace.core.placer import PlacementRequest, SemanticPlacer, up_reference
from semplace.core.quaternion import Quaternion
from semplace.core.results import FailureKind
from semplace.core.types import AssetDefinition, Footprint, Pose, SemanticPoint

TABLE_TOP_Y = 0.341 * 2.383


def _asset(name: str, center, size, extra=()) -> AssetDefinition:
    points = tuple(directional_points(center, size)) + tuple(extra)
    return AssetDefinition(name, FrameCalculator().compute_asset_frame(points, asset=name), points)


def _catalog():
    return {
        "Table": _asset("Table", (0.0, 1.1915, 0.0), (4.0, 2.383, 2.4)),
        "Lamp": _asset("Lamp", (0.005, 0.302, -0.008), (0.16, 0.6, 0.16)),
        "Mug": _asset("Mug", (0.0, 0.06, 0.0), (0.1, 0.12, 0.1), extra=[SemanticPoint("pivot", (0.0, 0.0, 0.0))]),
        "Frame": _asset("Frame", (0.0, 0.3, 0.01), (0.4, 0.6, 0.02)),
        "Plank": _asset("Plank", (0.0, 0.01, 0.0), (1.37, 0.02, 0.05)),
    }


def _table(catalog, rotation: Quaternion = Quaternion.identity(), instance_id: str = "table_1"):
    table = catalog["Table"]
    pose = Pose((3.5, 0.0, 4.2), rotation, (0.341, 0.341, 0.341))
    return index_instance(instance_id, pose, table.frame, table.points, asset="Table")


def _request(rid: str, asset: str, anchor: str = "bottom", target: str = "table_1", point: str = "top") -> PlacementRequest:
    return PlacementRequest(id=rid, asset=asset, anchor=anchor, target=target, target_point=point)


def test_up_reference_switches_for_vertical_normals() -> None:
    np.testing.assert_allclose(up_reference((0.0, -1.0, 0.0)), [0.0, 0.0, 1.0])
    np.testing.assert_allclose(up_reference((0.0, 0.0, 1.0)), [0.0, 1.0, 0.0])


def test_lamp_on_table() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    outcome = placer.place(_request("lamp_1", "Lamp"))
    assert outcome.ok
    pose = outcome.pose
    assert pose.rotation.is_close(Quaternion.identity())
    np.testing.assert_allclose(pose.position, [3.495, TABLE_TOP_Y - 0.002, 4.208], atol=1e-9)
    np.testing.assert_allclose(pose.position, [3.495, 0.811, 4.208], atol=1e-3)
    assert pose.verification.ok
    assert pose.collisions == []
    lamp_bottom_world = pose.rotation.rotate([0.0, -1.0, 0.0])
    assert float(np.dot(lamp_bottom_world, [0.0, 1.0, 0.0])) == pytest.approx(-1.0)


def test_rotated_table_turns_the_lamp_with_it() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog, Quaternion.from_yaw_deg(90.0))])
    outcome = placer.place(_request("lamp_1", "Lamp"))
    assert outcome.ok
    assert outcome.pose.rotation.is_close(Quaternion.from_yaw_deg(90.0), atol=1e-9)
    anchor_world = outcome.pose.position + outcome.pose.rotation.rotate([0.005, 0.002, -0.008])
    np.testing.assert_allclose(anchor_world, [3.5, TABLE_TOP_Y, 4.2], atol=1e-9)


def test_frame_hangs_on_turned_table_front() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog, Quaternion.from_yaw_deg(90.0))])
    outcome = placer.place(_request("frame_1", "Frame", anchor="back", point="front"))
    assert outcome.ok
    back_world = outcome.pose.rotation.rotate([0.0, 0.0, -1.0])
    front_world = placer.instances["table_1"].normal_world("front")
    np.testing.assert_allclose(front_world, [1.0, 0.0, 0.0], atol=1e-9)
    assert float(np.dot(back_world, front_world)) == pytest.approx(-1.0)
    np.testing.assert_allclose(outcome.pose.rotation.rotate([0.0, 1.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-9)


@pytest.mark.parametrize(
    "request_, kind",
    [
        (_request("r", "Lamp", anchor="nose"), FailureKind.MISSING_SEMANTIC_POINT),
        (_request("r", "Mug", anchor="pivot"), FailureKind.MISSING_SEMANTIC_POINT),
        (_request("r", "Lamp", point="shelf_surface_1"), FailureKind.MISSING_SEMANTIC_POINT),
        (_request("r", "Sofa"), FailureKind.UNKNOWN_ASSET),
        (_request("r", "Lamp", target="desk_9"), FailureKind.UNKNOWN_TARGET),
    ],
)
def test_failures_are_values(request_, kind) -> None:
    catalog = _catalog()
    outcome = SemanticPlacer(catalog, [_table(catalog)]).place(request_)
    assert not outcome.ok
    assert outcome.failure.kind is kind
    assert outcome.failure.request_id == "r"


def test_place_many_packs_shared_surface() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    outcomes = placer.place_many([_request("lamp_1", "Lamp"), _request("mug_1", "Mug")])
    assert [o.request_id for o in outcomes] == ["lamp_1", "mug_1"]
    assert all(o.ok for o in outcomes)
    lamp, mug = (o.pose for o in outcomes)
    np.testing.assert_allclose(lamp.position, [3.495, TABLE_TOP_Y - 0.002, 4.208], atol=1e-9)
    np.testing.assert_allclose(mug.position, [3.7, TABLE_TOP_Y, 4.2], atol=1e-9)


def test_place_many_without_packing_keeps_ideal() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    outcomes = placer.place_many([_request("lamp_1", "Lamp"), _request("mug_1", "Mug")], pack=False)
    np.testing.assert_allclose(outcomes[1].pose.position, [3.5, TABLE_TOP_Y, 4.2], atol=1e-9)


def test_place_many_rejects_duplicate_ids() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    with pytest.raises(ValueError):
        placer.place_many([_request("a", "Lamp"), _request("a", "Mug")])


def test_collisions_exclude_the_target() -> None:
    catalog = _catalog()
    chair_points = [SemanticPoint("a", (0.0, 1.0, 0.0)), SemanticPoint("b", (0.1, 1.2, 0.1))]
    chair = index_instance("chair_1", Pose((3.5, 0.0, 4.2)), catalog["Table"].frame, chair_points)
    placer = SemanticPlacer(catalog, [_table(catalog), chair])
    outcome = placer.place(_request("lamp_1", "Lamp"))
    assert outcome.ok
    assert outcome.pose.collisions == ["chair_1"]


def test_items_on_a_vertical_face_are_not_packed() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    single = placer.place(_request("f0", "Frame", anchor="back", point="front"))

    outcomes = placer.place_many([
        _request("f0", "Frame", anchor="back", point="front"),
        _request("f1", "Frame", anchor="back", point="front"),
    ])

    assert all(o.ok for o in outcomes)
    front_z = 4.2 + 0.341 * 1.2
    for outcome in outcomes:
        pose = outcome.pose
        assert pose.verification.ok
        np.testing.assert_allclose(pose.position, single.pose.position, atol=1e-12)
        back_world = pose.position + pose.rotation.rotate([0.0, 0.3, 0.0])
        assert back_world[2] == pytest.approx(front_z)


def test_packing_that_leaves_the_face_is_a_mismatch() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    poses = [placer.place(_request(rid, "Frame", anchor="back", point="front")).pose for rid in ("f0", "f1")]

    outcomes = placer._pack_group("table_1", "front", poses)

    assert sorted(o.request_id for o in outcomes) == ["f0", "f1"]
    assert all(o.failure.kind is FailureKind.VERIFICATION_MISMATCH for o in outcomes)


class _OffsetSolver(PlacementSolver):
    """Lands the pivot 1 cm high for the first ``bad_calls`` solves."""

    def __init__(self, bad_calls: int) -> None:
        super().__init__()
        self.bad_calls = bad_calls
        self.calls = 0

    def solve_pivot(self, *args, **kwargs):
        self.calls += 1
        pivot = super().solve_pivot(*args, **kwargs)
        if self.calls <= self.bad_calls:
            pivot = pivot + np.array([0.0, 0.01, 0.0])
        return pivot


def test_self_check_retry_recovers() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    placer.solver = _OffsetSolver(bad_calls=1)

    outcome = placer.place(_request("lamp_1", "Lamp"))

    assert outcome.ok
    assert placer.solver.calls == 2
    assert outcome.pose.verification.ok
    np.testing.assert_allclose(outcome.pose.position, [3.495, TABLE_TOP_Y - 0.002, 4.208], atol=1e-9)


def test_self_check_failing_twice_is_a_mismatch() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])
    placer.solver = _OffsetSolver(bad_calls=2)

    outcome = placer.place(_request("lamp_1", "Lamp"))

    assert not outcome.ok
    assert outcome.failure.kind is FailureKind.VERIFICATION_MISMATCH
    assert placer.solver.calls == 2


def test_packed_yaw_is_folded_into_the_pose() -> None:
    catalog = _catalog()
    placer = SemanticPlacer(catalog, [_table(catalog)])

    plank, mug = placer.place_many([_request("plank_1", "Plank"), _request("mug_1", "Mug")])

    assert plank.ok
    pose = plank.pose
    assert pose.rotation.is_close(Quaternion.from_yaw_deg(15.0), atol=1e-9)
    np.testing.assert_allclose(pose.position, [3.5, TABLE_TOP_Y, 4.2], atol=1e-9)
    assert pose.verification.ok

    footprint = Footprint.from_points(placer.world_points(pose), y=TABLE_TOP_Y)
    cos15, sin15 = np.cos(np.radians(15.0)), np.sin(np.radians(15.0))
    assert footprint.max_x - footprint.min_x == pytest.approx(2 * 0.685 * cos15)
    assert footprint.max_z - footprint.min_z == pytest.approx(2 * 0.685 * sin15)
    assert footprint.center == pytest.approx((3.5, 4.2))
    assert placer.instances["table_1"].footprint(y=TABLE_TOP_Y).contains(footprint)

    # Nothing within 20 cm clears the turned plank.
    assert mug.failure.kind is FailureKind.UNRESOLVABLE_OVERLAP
