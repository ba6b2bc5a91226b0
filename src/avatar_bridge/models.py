import math
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

UNIT_NORM_TOLERANCE = 1e-6


class BoneDescriptor(BaseModel):
    """One record of a skeleton description: a bone, its sensor and its parent."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    sensor_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sensorId", "sensor_id"),
        serialization_alias="sensorId",
    )
    parent_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("parentId", "parendId", "parent_id"),
        serialization_alias="parentId",
        description="Id of the parent bone; empty or missing marks the root",
    )


class DriverHandleModel(BaseModel):
    driver: str = Field(description="Name of the upstream sensor driver")
    device: Optional[str] = None
    instance_id: Optional[str] = None


class SetSensorRequest(BaseModel):
    sensor_id: Optional[str] = Field(description="Sensor id the bone should be driven by")
    driver: Optional[DriverHandleModel] = Field(
        default=None,
        description="Upstream driver to subscribe to for this sensor, if any",
    )


class SetSensorResponse(BaseModel):
    bone_id: str
    sensor_id: str
    previous_sensor_id: str


class RotationEvent(BaseModel):
    sensor_id: str
    quaternion: tuple[float, float, float, float] = Field(description="Absolute orientation as (w, x, y, z)")
    timestamp: Optional[float] = None

    @field_validator("sensor_id")
    @classmethod
    def validate_sensor_id(cls, value: str) -> str:
        if not value:
            msg = "sensor_id must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("quaternion")
    @classmethod
    def validate_quaternion(cls, value: tuple[float, float, float, float]) -> tuple[float, float, float, float]:
        if not all(math.isfinite(v) for v in value):
            msg = "quaternion must contain finite values"
            raise ValueError(msg)
        norm = math.sqrt(sum(v * v for v in value))
        if norm < 1e-8:
            msg = "quaternion must not be zero"
            raise ValueError(msg)
        if abs(norm - 1.0) > UNIT_NORM_TOLERANCE:
            msg = f"quaternion must have unit norm, got {norm}"
            raise ValueError(msg)
        return value


class RotationEventResponse(BaseModel):
    applied: bool
    bone_id: Optional[str] = None
    event: Optional[dict] = Field(default=None, description="Change event published to listeners")


class BoneState(BaseModel):
    id: str
    sensor_id: str
    parent_id: Optional[str] = None
    children: list[str]
    orientation: tuple[float, float, float, float]


class SkeletonState(BaseModel):
    root: str
    bones: list[BoneState]
