"""
Data models and types for the avatar driver.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np


class ErrorKind(str, Enum):
    """Every way a skeleton build or a sensor binding can fail."""

    NO_ROOT_FOUND = "no_root_found"
    MULTIPLE_ROOTS_FOUND = "multiple_roots_found"
    INVALID_ID = "invalid_id"
    DUPLICATE_ID = "duplicate_id"
    DUPLICATE_SENSOR_ID = "duplicate_sensor_id"
    UNREACHABLE_NODES = "unreachable_nodes"
    NULL_ARGUMENT = "null_argument"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN_BONE = "unknown_bone"
    SENSOR_ID_IN_USE = "sensor_id_in_use"
    WRONG_DRIVER_KIND = "wrong_driver_kind"
    QUERY_FAILED = "query_failed"
    UNKNOWN_SENSOR_ID = "unknown_sensor_id"
    SUBSCRIBE_FAILED = "subscribe_failed"


def quat_mul(q1, q2) -> np.ndarray:
    """Hamilton product of two (w, x, y, z) quaternions."""
    w1, x1, y1, z1 = q1[0], q1[1], q1[2], q1[3]
    w2, x2, y2, z2 = q2[0], q2[1], q2[2], q2[3]
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ])


def quat_inv(q) -> np.ndarray:
    """Inverse of a (w, x, y, z) quaternion: conjugate over squared norm."""
    q = np.asarray(q, dtype=np.float64)
    squared_norm = float(np.dot(q, q))
    return np.array([q[0], -q[1], -q[2], -q[3]]) / squared_norm


@dataclass(frozen=True)
class Orientation:
    """
    Immutable unit quaternion in (w, x, y, z) order.

    Composition is the Hamilton product, so ``a.compose(b)`` is ``a * b``.
    Values are never renormalised; callers supply unit quaternions and the
    operations keep them unit within floating point error.
    """

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __post_init__(self) -> None:
        components = (self.w, self.x, self.y, self.z)
        if not all(math.isfinite(c) for c in components):
            raise ValueError(f"Orientation components must be finite: {components}")
        if not any(components):
            raise ValueError("Orientation must not be the zero quaternion")

    @classmethod
    def identity(cls) -> "Orientation":
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, values: Sequence[float]) -> "Orientation":
        w, x, y, z = (float(v) for v in values)
        return cls(w, x, y, z)

    @classmethod
    def from_axis_angle(cls, axis: Sequence[float], angle: float) -> "Orientation":
        """
        Rotation of ``angle`` radians about ``axis``.

        Args:
            axis: 3D rotation axis, need not be normalised
            angle: Rotation angle in radians

        Returns:
            Unit quaternion for the rotation
        """
        axis_arr = np.asarray(axis, dtype=np.float64)
        length = float(np.linalg.norm(axis_arr))
        if length == 0.0:
            raise ValueError("Rotation axis must not be the zero vector")
        half = angle / 2.0
        xyz = axis_arr / length * math.sin(half)
        return cls(math.cos(half), float(xyz[0]), float(xyz[1]), float(xyz[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.w, self.x, self.y, self.z], dtype=np.float64)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.w, self.x, self.y, self.z)

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def compose(self, other: "Orientation") -> "Orientation":
        """This orientation followed by ``other``."""
        return Orientation.from_array(quat_mul(self.as_array(), other.as_array()))

    def inverse(self) -> "Orientation":
        return Orientation.from_array(quat_inv(self.as_array()))

    def relative_to(self, parent_absolute: "Orientation") -> "Orientation":
        """Express this absolute orientation relative to a parent's absolute one."""
        return self.compose(parent_absolute.inverse())

    def is_close(self, other: "Orientation", tolerance: float = 1e-12) -> bool:
        return bool(np.allclose(self.as_array(), other.as_array(), rtol=0.0, atol=tolerance))

    def __mul__(self, other: "Orientation") -> "Orientation":
        return self.compose(other)


IDENTITY = Orientation.identity()


def compose(a: Orientation, b: Orientation) -> Orientation:
    return a.compose(b)


def inverse(a: Orientation) -> Orientation:
    return a.inverse()


def relative_to(absolute: Orientation, parent_absolute: Orientation) -> Orientation:
    """The single rule turning a reported absolute orientation into a stored one."""
    return compose(absolute, inverse(parent_absolute))


_FAILURE_MESSAGES = {
    ErrorKind.NO_ROOT_FOUND: "No root node found!",
    ErrorKind.MULTIPLE_ROOTS_FOUND: "More than one root node found!",
    ErrorKind.INVALID_ID: "Bone id empty or null.",
    ErrorKind.DUPLICATE_ID: "Duplicate id '{subject}'.",
    ErrorKind.DUPLICATE_SENSOR_ID: "Duplicate sensorId '{subject}'.",
    ErrorKind.UNREACHABLE_NODES: "There are nodes outside the root hierarchy: {nodes}.",
}


@dataclass(frozen=True)
class BuildFailure:
    """Why a descriptor list could not be turned into a skeleton."""

    kind: ErrorKind
    subject: Optional[str] = None
    nodes: Tuple[str, ...] = ()

    @property
    def message(self) -> str:
        template = _FAILURE_MESSAGES.get(self.kind, self.kind.value)
        return template.format(subject=self.subject, nodes=", ".join(self.nodes))


@dataclass(frozen=True)
class SensorUpdate:
    """An absolute orientation reported by an upstream sensor."""

    sensor_id: str
    orientation: Orientation
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class BoneChange:
    """Published to listeners after a bone's stored orientation changed."""

    bone_id: str
    sensor_id: str
    orientation: Orientation
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "bone_id": self.bone_id,
            "sensor_id": self.sensor_id,
            "orientation": list(self.orientation.as_tuple()),
            "timestamp": self.timestamp,
        }
