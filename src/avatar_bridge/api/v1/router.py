from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from avatar_bridge.api.dependencies import get_driver
from avatar_bridge.avatar.bone import Bone
from avatar_bridge.avatar.driver import AvatarDriver
from avatar_bridge.avatar.errors import BindingError
from avatar_bridge.avatar.gateway import DriverHandle
from avatar_bridge.avatar.types import ErrorKind, Orientation, SensorUpdate
from avatar_bridge.models import (
    BoneState,
    RotationEvent,
    RotationEventResponse,
    SetSensorRequest,
    SetSensorResponse,
    SkeletonState,
)

router = APIRouter()

_ERROR_STATUS = {
    ErrorKind.NULL_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.WRONG_DRIVER_KIND: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNKNOWN_SENSOR_ID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNKNOWN_BONE: status.HTTP_404_NOT_FOUND,
    ErrorKind.SENSOR_ID_IN_USE: status.HTTP_409_CONFLICT,
    ErrorKind.QUERY_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.SUBSCRIBE_FAILED: status.HTTP_502_BAD_GATEWAY,
}


def _bone_state(bone: Bone) -> BoneState:
    parent = bone.parent
    return BoneState(
        id=bone.id,
        sensor_id=bone.sensor_id,
        parent_id=parent.id if parent is not None else None,
        children=list(bone.children),
        orientation=bone.orientation.as_tuple(),
    )


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Simple liveness probe."""
    return {"status": "ok"}


@router.get("/skeleton", response_model=SkeletonState)
async def get_skeleton(driver: AvatarDriver = Depends(get_driver)) -> SkeletonState:
    skeleton = driver.skeleton
    return SkeletonState(root=skeleton.root.id, bones=[_bone_state(b) for b in skeleton.bones()])


@router.get("/bones/{bone_id}", response_model=BoneState)
async def get_bone(bone_id: str, driver: AvatarDriver = Depends(get_driver)) -> BoneState:
    bone = driver.skeleton.lookup_by_id(bone_id)
    if bone is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown bone id '{bone_id}'.")
    return _bone_state(bone)


@router.put("/bones/{bone_id}/sensor", response_model=SetSensorResponse)
async def set_sensor(
    bone_id: str,
    request: SetSensorRequest,
    driver: AvatarDriver = Depends(get_driver),
) -> SetSensorResponse:
    """Bind a bone to a sensor id, subscribing to the given upstream driver."""
    handle = None
    if request.driver is not None:
        handle = DriverHandle(
            driver=request.driver.driver,
            device=request.driver.device,
            instance_id=request.driver.instance_id,
        )
    try:
        previous = await run_in_threadpool(driver.set_sensor, bone_id, request.sensor_id, handle)
    except BindingError as exc:
        code = _ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=code, detail={"kind": exc.kind.value, "message": str(exc)}) from exc
    return SetSensorResponse(bone_id=bone_id, sensor_id=request.sensor_id, previous_sensor_id=previous)


@router.post("/events/rotation", response_model=RotationEventResponse)
async def rotation_event(
    event: RotationEvent,
    driver: AvatarDriver = Depends(get_driver),
) -> RotationEventResponse:
    """Apply an absolute orientation reported by a sensor."""
    update = SensorUpdate(
        sensor_id=event.sensor_id,
        orientation=Orientation.from_array(event.quaternion),
        timestamp=event.timestamp,
    )
    change = driver.handle_event(update)
    if change is None:
        return RotationEventResponse(applied=False)
    return RotationEventResponse(applied=True, bone_id=change.bone_id, event=driver.change_event(change))
