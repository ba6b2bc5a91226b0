"""
Bone Module

A bone is one rigid segment of the avatar hierarchy. It owns its children
and keeps a weak reference to its parent, so a skeleton never holds an
ownership cycle.
"""

import weakref
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from avatar_bridge.avatar.types import IDENTITY, Orientation, relative_to


class Bone:
    """
    One node of the avatar hierarchy, optionally driven by a rotation sensor.

    ``orientation`` is stored relative to the parent bone; for the root it is
    absolute.
    """

    def __init__(
        self,
        id: str,
        sensor_id: str,
        children: Optional[Iterable["Bone"]] = None,
    ):
        """
        Create a bone and adopt the given children.

        Args:
            id: Unique bone id
            sensor_id: Id of the sensor driving this bone
            children: Bones to attach below this one; each is detached from
                its previous parent first
        """
        if id is None:
            raise TypeError("id must not be None")
        if sensor_id is None:
            raise TypeError("sensor_id must not be None")

        self._id = id
        self._sensor_id = sensor_id
        self._orientation = IDENTITY
        self._parent: Optional["weakref.ReferenceType[Bone]"] = None
        self._children: Dict[str, Bone] = {}

        for child in children or ():
            self.attach(child)

    @property
    def id(self) -> str:
        return self._id

    @property
    def sensor_id(self) -> str:
        return self._sensor_id

    @sensor_id.setter
    def sensor_id(self, value: str) -> None:
        if value is None:
            raise TypeError("sensor_id must not be None")
        self._sensor_id = value

    @property
    def orientation(self) -> Orientation:
        return self._orientation

    @property
    def parent(self) -> Optional["Bone"]:
        return self._parent() if self._parent is not None else None

    @property
    def children(self) -> Mapping[str, "Bone"]:
        """Read-only view of the children keyed by id."""
        return MappingProxyType(self._children)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def attach(self, child: "Bone") -> None:
        """Make ``child`` a child of this bone, detaching it from its old parent."""
        previous = child.parent
        if previous is not None:
            previous._children.pop(child.id, None)
        self._children[child.id] = child
        child._parent = weakref.ref(self)

    def set_rotation(self, absolute: Orientation) -> None:
        """
        Store a newly reported absolute orientation relative to the parent.

        The parent's stored orientation is used; identity for the root.
        """
        if absolute is None:
            raise TypeError("rotation must not be None")
        parent = self.parent
        parent_orientation = parent._orientation if parent is not None else IDENTITY
        self._orientation = relative_to(absolute, parent_orientation)

    def walk(self) -> Iterator["Bone"]:
        """Pre-order traversal of this bone's subtree."""
        stack = [self]
        while stack:
            bone = stack.pop()
            yield bone
            stack.extend(reversed(list(bone._children.values())))

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if not isinstance(other, Bone):
            return NotImplemented
        pairs = [(self, other)]
        while pairs:
            left, right = pairs.pop()
            if left is right:
                continue
            if left._id != right._id or left._sensor_id != right._sensor_id:
                return False
            if left._children.keys() != right._children.keys():
                return False
            pairs.extend((child, right._children[key]) for key, child in left._children.items())
        return True

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Bone(id={self._id!r}, sensor_id={self._sensor_id!r})"

    def __str__(self) -> str:
        # A None entry closes the brace opened for its bone.
        lines: List[str] = []
        stack: List[Tuple[Optional["Bone"], str, str]] = [(self, "", "")]
        while stack:
            bone, prefix, suffix = stack.pop()
            if bone is None:
                lines.append(prefix + "}" + suffix)
                continue
            head = f"{prefix}{bone._id}:{bone._sensor_id}"
            if not bone._children:
                lines.append(head + suffix)
                continue
            lines.append(head + " {")
            stack.append((None, prefix, suffix))
            children = list(bone._children.values())
            for index in range(len(children) - 1, -1, -1):
                separator = "," if index < len(children) - 1 else ""
                stack.append((children[index], prefix + "  ", separator))
        return "\n".join(lines)
