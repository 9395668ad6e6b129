"""Player REST API routes.

Thin bridge from a UI to the per-device sync controller: attach/detach a
session, read its state, and issue commands.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from remote.controller import (
    PlaybackSyncController,
    attach_session,
    detach_session,
    get_session,
)
from remote.devices import get_device

router = APIRouter(prefix="/player", tags=["player"])


class SeekRequest(BaseModel):
    position: float


class VolumeRequest(BaseModel):
    volume: float


def _require_session(device_id: str) -> PlaybackSyncController:
    session = get_session(device_id)
    if session is None or session.closed:
        raise HTTPException(status_code=404, detail="No active session")
    return session


def _status(session: PlaybackSyncController, ok: bool = True) -> JSONResponse:
    payload = session.to_status_dict()
    payload["ok"] = ok
    return JSONResponse(payload)


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@router.post("/{device_id}/attach")
async def attach(device_id: str):
    """Open (or reuse) a sync session for a paired device."""
    device = await get_device(device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="Unknown device")
    session = await attach_session(device)
    return _status(session)


@router.delete("/{device_id}")
async def detach(device_id: str):
    if not await detach_session(device_id):
        raise HTTPException(status_code=404, detail="No active session")
    return JSONResponse({"detached": device_id})


@router.get("/{device_id}/state")
async def state(device_id: str):
    return _status(_require_session(device_id))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@router.post("/{device_id}/play-pause")
async def play_pause(device_id: str):
    session = _require_session(device_id)
    return _status(session, await session.toggle_play_pause())


@router.post("/{device_id}/next")
async def next_track(device_id: str):
    session = _require_session(device_id)
    return _status(session, await session.next_track())


@router.post("/{device_id}/previous")
async def previous_track(device_id: str):
    session = _require_session(device_id)
    return _status(session, await session.previous_track())


@router.post("/{device_id}/seek")
async def seek(device_id: str, body: SeekRequest):
    session = _require_session(device_id)
    session.seek(body.position)
    return _status(session)


@router.post("/{device_id}/volume")
async def volume(device_id: str, body: VolumeRequest):
    session = _require_session(device_id)
    session.set_volume(body.volume)
    return _status(session)


@router.post("/{device_id}/like")
async def like(device_id: str):
    session = _require_session(device_id)
    return _status(session, await session.toggle_like())


@router.post("/{device_id}/library")
async def add_to_library(device_id: str):
    session = _require_session(device_id)
    return _status(session, await session.toggle_add_to_library())


@router.post("/{device_id}/refresh")
async def refresh(device_id: str):
    """Foreground hook: resync state and repair the event channel."""
    session = _require_session(device_id)
    return _status(session, await session.refresh())


@router.delete("/{device_id}/error")
async def dismiss_error(device_id: str):
    """Clear the last recorded command error once the UI has shown it."""
    session = _require_session(device_id)
    session.clear_error()
    return _status(session)
