"""
Subscription Manager Module

Tracks which upstream sensor driver instances are subscribed to on behalf of
which sensor ids. A driver instance is subscribed when its first sensor id is
bound and unsubscribed when its last one goes away.

Not thread-safe on its own: AvatarDriver serialises every call under its lock.
"""

from typing import Dict, FrozenSet, List, Optional, Set

from loguru import logger

from avatar_bridge.avatar.codec import parse_sensor_ids
from avatar_bridge.avatar.errors import BindingError
from avatar_bridge.avatar.gateway import DriverHandle, SensorGateway
from avatar_bridge.avatar.types import ErrorKind


class SubscriptionManager:
    """Reference-counted subscriptions from sensor ids to driver handles."""

    def __init__(self, gateway: SensorGateway, driver_name: str):
        """
        Args:
            gateway: Upstream sensor driver collaborator
            driver_name: The only driver kind sensor ids may be bound to
        """
        self.gateway = gateway
        self.driver_name = driver_name
        self._sensor_to_handle: Dict[str, DriverHandle] = {}
        self._handle_to_sensors: Dict[DriverHandle, Set[str]] = {}

    def handle_for(self, sensor_id: str) -> Optional[DriverHandle]:
        return self._sensor_to_handle.get(sensor_id)

    def sensor_ids_for(self, handle: DriverHandle) -> FrozenSet[str]:
        return frozenset(self._handle_to_sensors.get(handle, ()))

    def handles(self) -> List[DriverHandle]:
        return list(self._handle_to_sensors)

    def bind(self, sensor_id: str, handle: DriverHandle) -> bool:
        """
        Bind a sensor id to an upstream driver handle.

        Args:
            sensor_id: Sensor id to receive events for
            handle: Driver instance expected to serve the sensor id

        Returns:
            False if the sensor id was already bound to this handle, True otherwise

        Raises:
            BindingError: On the wrong driver kind, a failed sensor id query,
                a sensor id the driver does not serve, or a failed subscribe
        """
        if handle.driver != self.driver_name:
            raise BindingError(
                ErrorKind.WRONG_DRIVER_KIND,
                f"Driver is not {self.driver_name}.",
                handle.driver,
            )

        valid_ids = self._query_sensor_ids(handle)
        if sensor_id not in valid_ids:
            raise BindingError(
                ErrorKind.UNKNOWN_SENSOR_ID,
                f"Unknown sensor id '{sensor_id}' for target device.",
                sensor_id,
            )

        current = self._sensor_to_handle.get(sensor_id)
        if current is not None:
            if current == handle:
                return False
            self.unbind(sensor_id)

        sensors = self._handle_to_sensors.get(handle)
        if sensors is None:
            try:
                self.gateway.subscribe(handle)
            except Exception as exc:
                raise BindingError(
                    ErrorKind.SUBSCRIBE_FAILED,
                    f"Failed to subscribe to {handle.driver}: {exc}",
                ) from exc
            sensors = set()
            self._handle_to_sensors[handle] = sensors
            logger.debug("Subscribed to {}", handle)

        sensors.add(sensor_id)
        self._sensor_to_handle[sensor_id] = handle
        return True

    def unbind(self, sensor_id: str) -> Optional[DriverHandle]:
        """
        Forget the handle a sensor id is bound to.

        The handle is unsubscribed once no sensor id refers to it. Unsubscribe
        failures are logged and the bookkeeping is removed regardless.

        Returns:
            The handle the sensor id was bound to, or None if it was not bound
        """
        handle = self._sensor_to_handle.pop(sensor_id, None)
        if handle is None:
            return None

        sensors = self._handle_to_sensors[handle]
        sensors.discard(sensor_id)
        if not sensors:
            try:
                self.gateway.unsubscribe(handle)
            except Exception:
                logger.opt(exception=True).warning("Failed to unsubscribe from {}", handle)
            del self._handle_to_sensors[handle]
            logger.debug("Unsubscribed from {}", handle)
        return handle

    def _query_sensor_ids(self, handle: DriverHandle) -> List[str]:
        try:
            payload = self.gateway.list_sensor_ids(handle)
        except Exception as exc:
            raise BindingError(
                ErrorKind.QUERY_FAILED,
                f"Failed to retrieve sensor id list from device: {exc}",
            ) from exc

        sensor_ids = parse_sensor_ids(payload)
        if sensor_ids is None:
            raise BindingError(ErrorKind.QUERY_FAILED, "Failed to retrieve sensor id list from device.")
        return sensor_ids


__all__ = ["SubscriptionManager"]
