"""Device registry REST API routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from playback.models import DEFAULT_DEVICE_PORT, DeviceDescriptor
from remote.devices import (
    check_activity,
    delete_device,
    get_device,
    list_devices,
    rename_device,
    save_device,
)

router = APIRouter(prefix="/devices", tags=["devices"])


class AddDeviceRequest(BaseModel):
    id: str
    friendly_name: str = ""
    host: str
    port: int = DEFAULT_DEVICE_PORT
    token: str = ""
    platform: str = ""
    os: Optional[str] = None
    version: str = ""


class RenameRequest(BaseModel):
    friendly_name: str


@router.get("")
async def devices():
    """List paired devices."""
    return JSONResponse({"devices": [d.model_dump() for d in await list_devices()]})


@router.post("")
async def add_device(body: AddDeviceRequest):
    """Store a descriptor produced by pairing."""
    if await get_device(body.id) is not None:
        raise HTTPException(status_code=409, detail="Device already paired")
    device = await save_device(DeviceDescriptor(**body.model_dump()))
    return JSONResponse(device.model_dump(), status_code=201)


@router.patch("/{device_id}")
async def rename(device_id: str, body: RenameRequest):
    device = await rename_device(device_id, body.friendly_name)
    if device is None:
        raise HTTPException(status_code=404, detail="Unknown device")
    return JSONResponse(device.model_dump())


@router.delete("/{device_id}")
async def remove(device_id: str):
    if not await delete_device(device_id):
        raise HTTPException(status_code=404, detail="Unknown device")
    return JSONResponse({"deleted": device_id})


@router.post("/check")
async def check():
    """Probe every device and update its online flag."""
    return JSONResponse({"devices": [d.model_dump() for d in await check_activity()]})
