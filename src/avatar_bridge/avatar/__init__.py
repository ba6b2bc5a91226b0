"""
Avatar

Hierarchy of bones driven by upstream rotation sensors: skeleton building
and validation, parent-relative orientations, and reference-counted sensor
driver subscriptions.
"""

from avatar_bridge.avatar.bone import Bone
from avatar_bridge.avatar.builder import BuildResult, SkeletonBuilder, build_skeleton
from avatar_bridge.avatar.driver import AvatarDriver
from avatar_bridge.avatar.errors import AvatarError, BindingError, SkeletonValidationError
from avatar_bridge.avatar.gateway import DriverHandle, SensorGateway, StaticSensorGateway
from avatar_bridge.avatar.skeleton import Skeleton
from avatar_bridge.avatar.subscriptions import SubscriptionManager
from avatar_bridge.avatar.types import BoneChange, BuildFailure, ErrorKind, Orientation, SensorUpdate

__all__ = [
    "AvatarDriver",
    "AvatarError",
    "BindingError",
    "Bone",
    "BoneChange",
    "BuildFailure",
    "BuildResult",
    "DriverHandle",
    "ErrorKind",
    "Orientation",
    "SensorGateway",
    "SensorUpdate",
    "Skeleton",
    "SkeletonBuilder",
    "SkeletonValidationError",
    "StaticSensorGateway",
    "SubscriptionManager",
    "build_skeleton",
]
