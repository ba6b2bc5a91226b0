from __future__ import annotations

import math

import pytest

from avatar_bridge.avatar.bone import Bone
from avatar_bridge.avatar.builder import build_skeleton
from avatar_bridge.avatar.errors import BindingError
from avatar_bridge.avatar.skeleton import Skeleton
from avatar_bridge.avatar.types import IDENTITY, ErrorKind, Orientation, compose, inverse
from avatar_bridge.models import BoneDescriptor

TOLERANCE = 1e-12


@pytest.fixture
def skeleton(complex_descriptors) -> Skeleton:
    return build_skeleton(complex_descriptors).unwrap()


@pytest.fixture
def arm() -> Skeleton:
    return build_skeleton([
        BoneDescriptor(id="arm", sensor_id="1"),
        BoneDescriptor(id="forearm", sensor_id="2", parent_id="arm"),
        BoneDescriptor(id="hand", sensor_id="3", parent_id="forearm"),
    ]).unwrap()


def about_x(angle: float) -> Orientation:
    return Orientation.from_axis_angle((1.0, 0.0, 0.0), angle)


def test_rebind_returns_previous_and_updates_index(skeleton):
    previous = skeleton.rebind_sensor("ab0", "imu-7")

    bone = skeleton.lookup_by_id("ab0")
    assert previous == "ab0-sensor"
    assert bone.sensor_id == "imu-7"
    assert skeleton.lookup_by_sensor_id("imu-7") is bone


def test_rebind_keeps_old_key_as_alias(skeleton):
    skeleton.rebind_sensor("ab0", "imu-7")

    assert skeleton.lookup_by_sensor_id("ab0-sensor") is skeleton.lookup_by_id("ab0")


def test_release_sensor_id_drops_only_stale_entries(skeleton):
    skeleton.rebind_sensor("ab0", "imu-7")

    assert skeleton.release_sensor_id("imu-7") is False
    assert skeleton.release_sensor_id("ab0-sensor") is True
    assert skeleton.lookup_by_sensor_id("ab0-sensor") is None
    assert skeleton.release_sensor_id("ab0-sensor") is False


def test_rebind_to_own_sensor_id_is_idempotent(skeleton):
    before = sorted(skeleton.sensor_ids())

    previous = skeleton.rebind_sensor("ab0", "ab0-sensor")

    assert previous == "ab0-sensor"
    assert skeleton.lookup_by_id("ab0").sensor_id == "ab0-sensor"
    assert sorted(skeleton.sensor_ids()) == before


def test_rebind_rejects_sensor_id_of_other_bone(skeleton):
    with pytest.raises(BindingError, match="already in use by bone 'ab0'") as exc_info:
        skeleton.rebind_sensor("a", "ab0-sensor")

    assert exc_info.value.kind == ErrorKind.SENSOR_ID_IN_USE
    assert exc_info.value.subject == "ab0"
    assert skeleton.lookup_by_id("a").sensor_id == "a-sensor"


@pytest.mark.parametrize(
    ("bone_id", "sensor_id", "kind"),
    [
        (None, "sensor", ErrorKind.NULL_ARGUMENT),
        ("a", None, ErrorKind.NULL_ARGUMENT),
        ("a", "", ErrorKind.INVALID_ARGUMENT),
        ("unknown", "sensor", ErrorKind.UNKNOWN_BONE),
    ],
)
def test_rebind_argument_errors(skeleton, bone_id, sensor_id, kind):
    with pytest.raises(BindingError) as exc_info:
        skeleton.rebind_sensor(bone_id, sensor_id)

    assert exc_info.value.kind == kind


def test_rotation_on_root_is_stored_as_is():
    skeleton = build_skeleton([BoneDescriptor(id="root")]).unwrap()
    quarter_turn = about_x(math.pi / 2)

    bone = skeleton.apply_rotation("root", quarter_turn)

    assert bone is skeleton.root
    assert skeleton.root.orientation.is_close(quarter_turn, TOLERANCE)


def test_child_rotation_is_relative_to_parent(arm):
    arm.apply_rotation("1", about_x(math.pi / 4))
    arm.apply_rotation("2", about_x(math.pi / 2))

    assert arm.lookup_by_id("arm").orientation.is_close(about_x(math.pi / 4), TOLERANCE)
    assert arm.lookup_by_id("forearm").orientation.is_close(about_x(math.pi / 4), TOLERANCE)


def test_rotation_composition_rule(arm):
    parent_absolute = Orientation.from_axis_angle((0.0, 1.0, 0.0), 0.9)
    absolute = Orientation.from_axis_angle((1.0, 2.0, 3.0), -1.3)
    arm.apply_rotation("1", parent_absolute)

    arm.apply_rotation("2", absolute)

    expected = compose(absolute, inverse(parent_absolute))
    assert arm.lookup_by_id("forearm").orientation.is_close(expected, TOLERANCE)


def test_grandchild_rotation_is_relative_to_parents_stored_orientation(arm):
    arm.apply_rotation("1", about_x(0.5))
    arm.apply_rotation("2", about_x(0.9))
    arm.apply_rotation("3", about_x(1.0))

    assert arm.lookup_by_id("arm").orientation.is_close(about_x(0.5), TOLERANCE)
    assert arm.lookup_by_id("forearm").orientation.is_close(about_x(0.4), TOLERANCE)
    assert arm.lookup_by_id("hand").orientation.is_close(about_x(0.6), TOLERANCE)


def test_parent_update_does_not_touch_stored_child(arm):
    arm.apply_rotation("3", about_x(0.7))
    arm.apply_rotation("2", about_x(0.2))

    assert arm.lookup_by_id("hand").orientation.is_close(about_x(0.7), TOLERANCE)


def test_identity_everywhere_stays_identity(skeleton):
    for sensor_id in skeleton.sensor_ids():
        skeleton.apply_rotation(sensor_id, IDENTITY)

    for bone in skeleton.bones():
        assert bone.orientation.is_close(IDENTITY, TOLERANCE)


def test_unknown_sensor_is_ignored(skeleton):
    assert skeleton.apply_rotation("nobody", about_x(1.0)) is None
    assert all(bone.orientation == IDENTITY for bone in skeleton.bones())


def test_attaching_moves_bone_between_parents(skeleton):
    a = skeleton.root
    ab0 = a.children["ab0"]

    b = Bone("b", "b-sensor", [ab0])

    assert b.children["ab0"] is ab0
    assert ab0.parent is b
    assert "ab0" not in a.children


def test_children_view_is_read_only(skeleton):
    with pytest.raises(TypeError):
        skeleton.root.children["x"] = Bone("x", "x")  # type: ignore[index]
