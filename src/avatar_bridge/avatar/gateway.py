"""
Upstream sensor driver collaborator.

The avatar driver talks to sensor drivers through a SensorGateway: it asks a
driver instance which sensor ids it serves, and subscribes to or unsubscribes
from its change events.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Set

from loguru import logger


@dataclass(frozen=True)
class DriverHandle:
    """Identifies one upstream sensor driver instance."""

    driver: str
    device: Optional[str] = None
    instance_id: Optional[str] = None


class SensorGateway(Protocol):
    def list_sensor_ids(self, handle: DriverHandle) -> object:
        """Return the sensor ids served by ``handle`` (a list or a JSON string)."""

    def subscribe(self, handle: DriverHandle) -> None:
        ...

    def unsubscribe(self, handle: DriverHandle) -> None:
        ...


class StaticSensorGateway:
    """
    Gateway backed by a fixed table of driver instances and their sensor ids.

    Subscriptions are only recorded; events are pushed to the avatar driver
    by whoever hosts it.
    """

    def __init__(self, devices: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self._devices: Dict[str, List[str]] = {
            instance_id: list(sensor_ids) for instance_id, sensor_ids in (devices or {}).items()
        }
        self._subscribed: Set[DriverHandle] = set()

    def list_sensor_ids(self, handle: DriverHandle) -> Optional[List[str]]:
        sensor_ids = self._devices.get(handle.instance_id or "")
        return list(sensor_ids) if sensor_ids is not None else None

    def subscribe(self, handle: DriverHandle) -> None:
        logger.debug("Subscribing to sensor driver {}", handle)
        self._subscribed.add(handle)

    def unsubscribe(self, handle: DriverHandle) -> None:
        logger.debug("Unsubscribing from sensor driver {}", handle)
        self._subscribed.discard(handle)

    @property
    def subscriptions(self) -> Set[DriverHandle]:
        return set(self._subscribed)


__all__ = [
    "DriverHandle",
    "SensorGateway",
    "StaticSensorGateway",
]
