"""
JSON codec for skeleton descriptions.

A skeleton is described as a JSON array of ``{"id", "sensorId", "parentId"}``
records. ``sensorId`` and ``parentId`` are optional.
"""

from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from avatar_bridge.models import BoneDescriptor

DEFAULT_SKELETON = '[{"id":"root","sensorId":"root"}]'

_descriptor_list = TypeAdapter(List[BoneDescriptor])
_sensor_id_list = TypeAdapter(List[str])


def parse_descriptors(text: str) -> List[BoneDescriptor]:
    """
    Parse a JSON skeleton description.

    Raises:
        pydantic.ValidationError: If the text is not a JSON array of records
    """
    return _descriptor_list.validate_json(text)


def dump_descriptors(descriptors: Sequence[BoneDescriptor]) -> str:
    return _descriptor_list.dump_json(list(descriptors), by_alias=True).decode("utf-8")


def parse_sensor_ids(payload: object) -> Optional[List[str]]:
    """
    Interpret a sensor id list returned by an upstream driver.

    The payload may be a list of strings or a JSON string encoding one.

    Returns:
        The ids, or None if the payload is missing or not a list of strings
    """
    if payload is None:
        return None
    try:
        if isinstance(payload, (str, bytes)):
            return _sensor_id_list.validate_json(payload)
        return _sensor_id_list.validate_python(payload)
    except ValidationError:
        return None
