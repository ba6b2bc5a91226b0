"""
Skeleton Module

The assembled bone tree plus its two lookup indexes (bone id and sensor id).
Skeletons are produced by SkeletonBuilder; afterwards only sensor rebinding
and rotation updates mutate them.
"""

from typing import Dict, Iterator, List, Optional

from avatar_bridge.avatar.bone import Bone
from avatar_bridge.avatar.errors import BindingError
from avatar_bridge.avatar.types import ErrorKind, Orientation
from avatar_bridge.models import BoneDescriptor


class Skeleton:
    """
    Hierarchy of bones rooted at a single bone.

    Each bone's orientation is relative to its parent; the root's is absolute.
    Ids and sensor ids are lower-cased when the skeleton is built, lookups are
    exact.
    """

    def __init__(self, root: Bone, bones: Dict[str, Bone], sensors: Dict[str, Bone]):
        self._root = root
        self._bones = bones
        self._sensors = sensors

    @property
    def root(self) -> Bone:
        return self._root

    def lookup_by_id(self, bone_id: str) -> Optional[Bone]:
        return self._bones.get(bone_id)

    def lookup_by_sensor_id(self, sensor_id: str) -> Optional[Bone]:
        return self._sensors.get(sensor_id)

    def sensor_ids(self) -> List[str]:
        """Every key currently in the sensor id index, aliases included."""
        return list(self._sensors)

    def bones(self) -> Iterator[Bone]:
        """Pre-order traversal starting at the root."""
        return self._root.walk()

    def rebind_sensor(self, bone_id: str, sensor_id: str) -> str:
        """
        Associate a bone, given its id, with the given sensor id.

        The previous sensor id stays in the sensor index; removing it is up to
        the caller, which must do so together with its subscription teardown
        (see :meth:`release_sensor_id`).

        Args:
            bone_id: Id of the bone to rebind
            sensor_id: New sensor id

        Returns:
            The sensor id previously associated with the bone

        Raises:
            BindingError: If an argument is missing or empty, the bone is
                unknown, or the sensor id belongs to a different bone
        """
        if bone_id is None:
            raise BindingError(ErrorKind.NULL_ARGUMENT, "bone id must not be None")
        if sensor_id is None:
            raise BindingError(ErrorKind.NULL_ARGUMENT, "sensor id must not be None")
        if not sensor_id:
            raise BindingError(ErrorKind.INVALID_ARGUMENT, "invalid sensor id")

        bone = self.lookup_by_id(bone_id)
        if bone is None:
            raise BindingError(ErrorKind.UNKNOWN_BONE, f"Unknown bone id '{bone_id}'.", bone_id)

        owner = self.lookup_by_sensor_id(sensor_id)
        if owner is not None and owner is not bone:
            raise BindingError(
                ErrorKind.SENSOR_ID_IN_USE,
                f"Sensor id already in use by bone '{owner.id}'.",
                owner.id,
            )

        previous = bone.sensor_id
        bone.sensor_id = sensor_id
        if owner is None:
            self._sensors[sensor_id] = bone
        return previous

    def release_sensor_id(self, sensor_id: str) -> bool:
        """
        Drop a stale sensor index entry.

        An entry is stale when the bone it points at no longer carries that
        sensor id. Live entries are left alone.

        Returns:
            True if an entry was removed
        """
        bone = self._sensors.get(sensor_id)
        if bone is None or bone.sensor_id == sensor_id:
            return False
        del self._sensors[sensor_id]
        return True

    def apply_rotation(self, sensor_id: str, absolute: Orientation) -> Optional[Bone]:
        """
        Update the bone driven by ``sensor_id`` from an absolute orientation.

        Sensors not bound to any bone are ignored.

        Returns:
            The updated bone, or None if the sensor id is not bound
        """
        bone = self.lookup_by_sensor_id(sensor_id)
        if bone is None:
            return None
        bone.set_rotation(absolute)
        return bone

    def to_descriptors(self) -> List[BoneDescriptor]:
        """Canonical descriptor dump, root first, in pre-order."""
        return [
            BoneDescriptor(
                id=bone.id,
                sensor_id=bone.sensor_id,
                parent_id=bone.parent.id if bone.parent is not None else None,
            )
            for bone in self.bones()
        ]

    def __len__(self) -> int:
        return len(self._bones)

    def __contains__(self, bone_id: object) -> bool:
        return bone_id in self._bones

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if not isinstance(other, Skeleton):
            return NotImplemented
        return self._root == other._root

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return str(self._root)
