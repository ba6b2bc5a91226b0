"""
Avatar Driver

Main entry point for the avatar. Owns the skeleton and the sensor
subscriptions, and is the only place where the two are changed together.

Workflow:
1. Build the skeleton from the configured bone descriptors
2. Bind bones to sensor ids, subscribing to upstream sensor drivers
3. Apply sensor updates to the bones they drive
4. Publish the resulting bone changes to listeners
"""

import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from loguru import logger

from avatar_bridge.avatar.builder import build_skeleton
from avatar_bridge.avatar.codec import parse_descriptors
from avatar_bridge.avatar.gateway import DriverHandle, SensorGateway, StaticSensorGateway
from avatar_bridge.avatar.skeleton import Skeleton
from avatar_bridge.avatar.subscriptions import SubscriptionManager
from avatar_bridge.avatar.types import BoneChange, SensorUpdate

if TYPE_CHECKING:
    from avatar_bridge.config import AppSettings

DRIVER_NAME = "org.unbiquitous.ubihealth.AvatarDriver"
CHANGE_EVENT_NAME = "change"
CHANGE_NEW_DATA_PARAM_NAME = "newData"

Listener = Callable[[BoneChange], None]


class AvatarDriver:
    """
    Hierarchy of bones that rotate relative to their parents, driven by
    upstream rotation sensors.

    A single re-entrant lock guards the skeleton and the subscription state:
    binding transactions and rotation updates never interleave.
    """

    def __init__(
        self,
        skeleton: Skeleton,
        gateway: SensorGateway,
        sensor_driver_name: str,
        instance_id: Optional[str] = None,
    ):
        """
        Args:
            skeleton: Skeleton to drive
            gateway: Upstream sensor driver collaborator
            sensor_driver_name: Driver kind sensor ids may be bound to
            instance_id: Optional id of this driver instance, used in logs
        """
        self.skeleton = skeleton
        self.instance_id = instance_id
        self.subscriptions = SubscriptionManager(gateway, sensor_driver_name)
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        logger.info("{}: init instance [{}].", DRIVER_NAME, instance_id)

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        gateway: Optional[SensorGateway] = None,
        instance_id: Optional[str] = None,
    ) -> "AvatarDriver":
        """
        Build a driver from application settings.

        Raises:
            pydantic.ValidationError: If the skeleton description is not valid JSON
            SkeletonValidationError: If the descriptors do not form a valid skeleton
        """
        descriptors = parse_descriptors(settings.skeleton_json())
        result = build_skeleton(descriptors)
        if not result.success:
            logger.error("{}: failed to build skeleton: {}", DRIVER_NAME, result.failure.message)
        skeleton = result.unwrap()

        if gateway is None:
            gateway = StaticSensorGateway(settings.sensor_devices)
        return cls(skeleton, gateway, settings.sensor_driver_name, instance_id=instance_id)

    def set_sensor(self, bone_id: str, sensor_id: str, handle: Optional[DriverHandle] = None) -> str:
        """
        Associate a bone, given its id, with the given sensor id.

        If a driver handle is given, the sensor id is bound to it, subscribing
        to the upstream driver when needed. Any failure while binding restores
        the bone's previous sensor id before the error propagates. Once the
        new binding is in place, the previous sensor id is unbound and dropped
        from the skeleton's sensor index.

        Args:
            bone_id: Id of the bone to associate
            sensor_id: New sensor id
            handle: Upstream driver to listen to, or None

        Returns:
            The sensor id previously associated with the bone

        Raises:
            BindingError: If the skeleton or the subscription manager rejects
                the request
        """
        with self._lock:
            previous = self.skeleton.rebind_sensor(bone_id, sensor_id)

            if handle is not None:
                try:
                    self.subscriptions.bind(sensor_id, handle)
                except Exception:
                    self._rollback(bone_id, sensor_id, previous)
                    raise

            if previous != sensor_id:
                self.subscriptions.unbind(previous)
                self.skeleton.release_sensor_id(previous)

            logger.debug("Bone '{}' now driven by sensor '{}' (was '{}')", bone_id, sensor_id, previous)
            return previous

    def _rollback(self, bone_id: str, sensor_id: str, previous: str) -> None:
        self.skeleton.rebind_sensor(bone_id, previous)
        self.skeleton.release_sensor_id(sensor_id)
        logger.debug("Rolled bone '{}' back to sensor '{}'", bone_id, previous)

    def handle_event(self, update: SensorUpdate) -> Optional[BoneChange]:
        """
        Apply a sensor update and notify listeners.

        Returns:
            The published change, or None if no bone is driven by the sensor
        """
        with self._lock:
            bone = self.skeleton.apply_rotation(update.sensor_id, update.orientation)
            if bone is None:
                logger.debug("Ignoring update for unbound sensor '{}'", update.sensor_id)
                return None
            change = BoneChange(
                bone_id=bone.id,
                sensor_id=bone.sensor_id,
                orientation=bone.orientation,
                timestamp=update.timestamp,
            )

        self._notify(change)
        return change

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, change: BoneChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.opt(exception=True).warning(
                    "{}: failed to notify listener {!r}", DRIVER_NAME, listener
                )

    @staticmethod
    def change_event(change: BoneChange) -> Dict[str, Any]:
        """Wrap a change as the "change" event published by this driver."""
        return {
            "driver": DRIVER_NAME,
            "event": CHANGE_EVENT_NAME,
            CHANGE_NEW_DATA_PARAM_NAME: change.to_dict(),
        }

    def destroy(self) -> None:
        with self._lock:
            self._listeners.clear()
        logger.info("{}: destroy instance [{}]. Bye!", DRIVER_NAME, self.instance_id)


__all__ = [
    "AvatarDriver",
    "CHANGE_EVENT_NAME",
    "CHANGE_NEW_DATA_PARAM_NAME",
    "DRIVER_NAME",
]
