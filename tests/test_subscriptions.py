from __future__ import annotations

from unittest.mock import Mock

import pytest
from loguru import logger

from avatar_bridge.avatar.errors import BindingError
from avatar_bridge.avatar.gateway import DriverHandle, StaticSensorGateway
from avatar_bridge.avatar.subscriptions import SubscriptionManager
from avatar_bridge.avatar.types import ErrorKind

IMU = "org.unbiquitous.unbihealth.IMUDriver"
DRIVER1 = DriverHandle(IMU, instance_id="driver1")
DRIVER2 = DriverHandle(IMU, instance_id="driver2")


@pytest.fixture
def gateway() -> Mock:
    gateway = Mock()
    sensors = {"driver1": ["sensor1"], "driver2": ["sensor2", "sensor3"]}
    gateway.list_sensor_ids.side_effect = lambda handle: sensors.get(handle.instance_id)
    return gateway


@pytest.fixture
def manager(gateway: Mock) -> SubscriptionManager:
    return SubscriptionManager(gateway, IMU)


def test_first_bind_subscribes(manager, gateway):
    assert manager.bind("sensor2", DRIVER2) is True

    gateway.subscribe.assert_called_once_with(DRIVER2)
    assert manager.handle_for("sensor2") == DRIVER2
    assert manager.sensor_ids_for(DRIVER2) == {"sensor2"}


def test_second_sensor_on_same_handle_does_not_resubscribe(manager, gateway):
    manager.bind("sensor2", DRIVER2)
    manager.bind("sensor3", DRIVER2)

    gateway.subscribe.assert_called_once_with(DRIVER2)
    assert manager.sensor_ids_for(DRIVER2) == {"sensor2", "sensor3"}


def test_rebinding_same_pair_has_no_side_effects(manager, gateway):
    manager.bind("sensor1", DRIVER1)

    assert manager.bind("sensor1", DRIVER1) is False
    assert gateway.subscribe.call_count == 1
    gateway.unsubscribe.assert_not_called()


def test_moving_sensor_to_other_handle_unsubscribes_old(manager, gateway):
    other = DriverHandle(IMU, instance_id="driver1-mirror")
    gateway.list_sensor_ids.side_effect = lambda handle: ["sensor1"]
    manager.bind("sensor1", DRIVER1)

    manager.bind("sensor1", other)

    gateway.unsubscribe.assert_called_once_with(DRIVER1)
    assert manager.handle_for("sensor1") == other
    assert manager.handles() == [other]


def test_unbind_is_reference_counted(manager, gateway):
    manager.bind("sensor2", DRIVER2)
    manager.bind("sensor3", DRIVER2)

    assert manager.unbind("sensor2") == DRIVER2
    gateway.unsubscribe.assert_not_called()

    assert manager.unbind("sensor3") == DRIVER2
    gateway.unsubscribe.assert_called_once_with(DRIVER2)
    assert manager.handles() == []
    assert manager.sensor_ids_for(DRIVER2) == frozenset()


def test_unbind_unknown_sensor_is_noop(manager, gateway):
    assert manager.unbind("nothing") is None
    gateway.unsubscribe.assert_not_called()


def test_unsubscribe_failure_is_logged_not_raised(manager, gateway):
    gateway.unsubscribe.side_effect = RuntimeError("connection reset")
    messages: list[str] = []
    sink = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    try:
        manager.bind("sensor1", DRIVER1)
        manager.unbind("sensor1")
    finally:
        logger.remove(sink)

    assert manager.handle_for("sensor1") is None
    assert manager.handles() == []
    assert any("Failed to unsubscribe" in m for m in messages)


def test_wrong_driver_kind(manager, gateway):
    with pytest.raises(BindingError, match="not") as exc_info:
        manager.bind("sensor1", DriverHandle("some.other.Driver", instance_id="driver1"))

    assert exc_info.value.kind == ErrorKind.WRONG_DRIVER_KIND
    gateway.list_sensor_ids.assert_not_called()


@pytest.mark.parametrize("payload", [None, 42, '{"not": "a list"}', "not json", [1, 2], {"sensor1": "imu", "sensor2": "imu"}])
def test_unusable_sensor_list(manager, gateway, payload):
    gateway.list_sensor_ids.side_effect = None
    gateway.list_sensor_ids.return_value = payload

    with pytest.raises(BindingError, match="sensor id list") as exc_info:
        manager.bind("sensor1", DRIVER1)

    assert exc_info.value.kind == ErrorKind.QUERY_FAILED
    gateway.subscribe.assert_not_called()


def test_query_exception_becomes_query_failed(manager, gateway):
    gateway.list_sensor_ids.side_effect = TimeoutError("device did not answer")

    with pytest.raises(BindingError) as exc_info:
        manager.bind("sensor1", DRIVER1)

    assert exc_info.value.kind == ErrorKind.QUERY_FAILED
    assert isinstance(exc_info.value.__cause__, TimeoutError)


def test_json_encoded_sensor_list_is_accepted(manager, gateway):
    gateway.list_sensor_ids.side_effect = None
    gateway.list_sensor_ids.return_value = '["sensor1", "sensor9"]'

    assert manager.bind("sensor9", DRIVER1) is True


def test_unknown_sensor_id(manager, gateway):
    with pytest.raises(BindingError, match="Unknown sensor") as exc_info:
        manager.bind("unknown", DRIVER1)

    assert exc_info.value.kind == ErrorKind.UNKNOWN_SENSOR_ID
    assert manager.handles() == []


def test_subscribe_failure(manager, gateway):
    gateway.subscribe.side_effect = ConnectionError("refused")

    with pytest.raises(BindingError) as exc_info:
        manager.bind("sensor1", DRIVER1)

    assert exc_info.value.kind == ErrorKind.SUBSCRIBE_FAILED
    assert manager.handle_for("sensor1") is None
    assert manager.handles() == []


def test_static_gateway_tracks_subscriptions():
    gateway = StaticSensorGateway({"driver2": ["sensor2", "sensor3"]})
    manager = SubscriptionManager(gateway, IMU)

    manager.bind("sensor2", DRIVER2)
    assert gateway.subscriptions == {DRIVER2}
    assert gateway.list_sensor_ids(DRIVER1) is None

    manager.unbind("sensor2")
    assert gateway.subscriptions == set()
