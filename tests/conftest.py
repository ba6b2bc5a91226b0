from __future__ import annotations

import pytest

from avatar_bridge.models import BoneDescriptor


@pytest.fixture
def complex_descriptors() -> list[BoneDescriptor]:
    return [
        BoneDescriptor(id="a", sensor_id="a-sensor"),
        BoneDescriptor(id="ab0", sensor_id="ab0-sensor", parent_id="a"),
        BoneDescriptor(id="ab1", sensor_id="ab1-sensor", parent_id="a"),
        BoneDescriptor(id="ab1c0", sensor_id="ab1c0-sensor", parent_id="ab1"),
        BoneDescriptor(id="ab2", sensor_id="ab2-sensor", parent_id="a"),
        BoneDescriptor(id="ab2c0", sensor_id="ab2c0-sensor", parent_id="ab2"),
        BoneDescriptor(id="ab2c1", sensor_id="ab2c1-sensor", parent_id="ab2"),
        BoneDescriptor(id="ab3", sensor_id="ab3-sensor", parent_id="a"),
        BoneDescriptor(id="ab3c0", sensor_id="ab3c0-sensor", parent_id="ab3"),
        BoneDescriptor(id="ab3c1", sensor_id="ab3c1-sensor", parent_id="ab3"),
        BoneDescriptor(id="ab3c2", sensor_id="ab3c2-sensor", parent_id="ab3"),
        BoneDescriptor(id="ab3c2d0", sensor_id="ab3c2d0-sensor", parent_id="ab3c2"),
        BoneDescriptor(id="ab3c2d0e0", sensor_id="ab3c2d0e0-sensor", parent_id="ab3c2d0"),
    ]
