"""
Skeleton Builder Module

Turns an unordered, flat list of bone descriptors into a validated skeleton.

The workflow is:
1. Extract the unique root (the only descriptor without a parent id)
2. Assemble the root's subtree depth first, consuming each child
   descriptor from the pool as it is attached
3. Require the pool to be empty afterwards

Children are only ever consumed from their parent, so the result is
necessarily a tree. Cycles and islands are never reached from the root and
stay behind in the pool, where step 3 reports them.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple, Union

from avatar_bridge.avatar.bone import Bone
from avatar_bridge.avatar.errors import SkeletonValidationError
from avatar_bridge.avatar.skeleton import Skeleton
from avatar_bridge.avatar.types import BuildFailure, ErrorKind
from avatar_bridge.models import BoneDescriptor


@dataclass(frozen=True)
class BuildResult:
    """Either a fully built skeleton or the reason the build failed."""

    skeleton: Optional[Skeleton] = None
    failure: Optional[BuildFailure] = None

    @property
    def success(self) -> bool:
        return self.skeleton is not None

    def unwrap(self) -> Skeleton:
        """Return the skeleton, raising SkeletonValidationError on failure."""
        if self.skeleton is None:
            raise SkeletonValidationError(self.failure)
        return self.skeleton


class _Assembly:
    """State of a single build: the remaining pool and what has been seen."""

    def __init__(self, pool: List[BoneDescriptor]):
        self.pool = pool
        self.seen_ids: Set[str] = set()
        self.seen_sensor_ids: Set[str] = set()
        self.bones: Dict[str, Bone] = {}
        self.sensors: Dict[str, Bone] = {}


class _Frame:
    """A bone whose children are still being assembled."""

    def __init__(self, bone_id: str, sensor_id: str, pending: Deque[BoneDescriptor]):
        self.bone_id = bone_id
        self.sensor_id = sensor_id
        self.pending = pending
        self.children: List[Bone] = []


class SkeletonBuilder:
    """
    Builds skeletons from bone descriptors.

    Every validation step returns either a value or a BuildFailure; the first
    failure aborts the build and no partial skeleton is ever returned.
    """

    def build(self, descriptors: Sequence[BoneDescriptor]) -> BuildResult:
        """
        Build a skeleton from a descriptor list.

        Args:
            descriptors: Bone descriptors in any order

        Returns:
            BuildResult holding the skeleton or the failure
        """
        pool = list(descriptors)

        root_or_failure = self._extract_root(pool)
        if isinstance(root_or_failure, BuildFailure):
            return BuildResult(failure=root_or_failure)

        assembly = _Assembly(pool)
        root = self._assemble(root_or_failure, assembly)
        if isinstance(root, BuildFailure):
            return BuildResult(failure=root)

        if assembly.pool:
            return BuildResult(failure=BuildFailure(
                kind=ErrorKind.UNREACHABLE_NODES,
                nodes=tuple(str(d.id) for d in assembly.pool),
            ))

        return BuildResult(skeleton=Skeleton(root, assembly.bones, assembly.sensors))

    def _extract_root(self, pool: List[BoneDescriptor]) -> Union[BoneDescriptor, BuildFailure]:
        roots = [d for d in pool if not d.parent_id]
        if len(roots) > 1:
            return BuildFailure(kind=ErrorKind.MULTIPLE_ROOTS_FOUND)
        if not roots:
            return BuildFailure(kind=ErrorKind.NO_ROOT_FOUND)

        root = roots[0]
        pool[:] = [d for d in pool if d is not root]
        return root

    def _assemble(self, descriptor: BoneDescriptor, assembly: _Assembly) -> Union[Bone, BuildFailure]:
        """Depth-first assembly with an explicit stack; bones are created once their children are."""
        frame_or_failure = self._open_frame(descriptor, assembly)
        if isinstance(frame_or_failure, BuildFailure):
            return frame_or_failure
        frames = [frame_or_failure]

        while True:
            frame = frames[-1]
            if frame.pending:
                child_frame = self._open_frame(frame.pending.popleft(), assembly)
                if isinstance(child_frame, BuildFailure):
                    return child_frame
                frames.append(child_frame)
                continue

            frames.pop()
            bone = Bone(frame.bone_id, frame.sensor_id, frame.children)
            assembly.bones[frame.bone_id] = bone
            assembly.sensors[frame.sensor_id] = bone
            if not frames:
                return bone
            frames[-1].children.append(bone)

    def _open_frame(self, descriptor: BoneDescriptor, assembly: _Assembly) -> Union[_Frame, BuildFailure]:
        ids_or_failure = self._claim_ids(descriptor, assembly)
        if isinstance(ids_or_failure, BuildFailure):
            return ids_or_failure
        bone_id, sensor_id = ids_or_failure
        return _Frame(bone_id, sensor_id, deque(self._take_children(bone_id, assembly)))

    def _claim_ids(
        self,
        descriptor: BoneDescriptor,
        assembly: _Assembly,
    ) -> Union[Tuple[str, str], BuildFailure]:
        """Normalise the bone and sensor ids and reserve them for this build."""
        if not descriptor.id:
            return BuildFailure(kind=ErrorKind.INVALID_ID)

        bone_id = descriptor.id.lower()
        if bone_id in assembly.seen_ids:
            return BuildFailure(kind=ErrorKind.DUPLICATE_ID, subject=bone_id)
        assembly.seen_ids.add(bone_id)

        sensor_id = (descriptor.sensor_id or bone_id).lower()
        if sensor_id in assembly.seen_sensor_ids:
            return BuildFailure(kind=ErrorKind.DUPLICATE_SENSOR_ID, subject=sensor_id)
        assembly.seen_sensor_ids.add(sensor_id)

        return bone_id, sensor_id

    def _take_children(self, bone_id: str, assembly: _Assembly) -> List[BoneDescriptor]:
        """Remove and return, in pool order, the descriptors parented to ``bone_id``."""
        children: List[BoneDescriptor] = []
        remaining: List[BoneDescriptor] = []
        for d in assembly.pool:
            if d.parent_id and d.parent_id.lower() == bone_id:
                children.append(d)
            else:
                remaining.append(d)
        assembly.pool = remaining
        return children


def build_skeleton(descriptors: Sequence[BoneDescriptor]) -> BuildResult:
    """Build a skeleton with a fresh SkeletonBuilder."""
    return SkeletonBuilder().build(descriptors)
