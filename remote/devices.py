"""Paired-device registry and liveness checks.

Devices are stored one JSON document per id. The registry only reads and
writes descriptors; pairing (QR scanning) happens elsewhere and hands us a
finished ``DeviceDescriptor``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from playback.models import DeviceDescriptor
from remote.api_client import ControlAPIClient
from remote.db import get_db

logger = logging.getLogger(__name__)


async def list_devices() -> list[DeviceDescriptor]:
    db = get_db()
    cursor = await db.execute("SELECT payload FROM devices ORDER BY updated_at, id")
    rows = await cursor.fetchall()
    devices: list[DeviceDescriptor] = []
    for row in rows:
        try:
            devices.append(DeviceDescriptor.model_validate_json(row[0]))
        except ValueError:
            logger.warning("Skipping unreadable device record: %.80s", row[0])
    return devices


async def get_device(device_id: str) -> DeviceDescriptor | None:
    db = get_db()
    cursor = await db.execute("SELECT payload FROM devices WHERE id = ?", (device_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    return DeviceDescriptor.model_validate_json(row[0])


async def save_device(device: DeviceDescriptor) -> DeviceDescriptor:
    """Insert or replace *device*."""
    db = get_db()
    await db.execute(
        """
        INSERT INTO devices (id, payload)
        VALUES (?, ?)
        ON CONFLICT(id)
        DO UPDATE SET payload    = excluded.payload,
                      updated_at = datetime('now')
        """,
        (device.id, device.model_dump_json()),
    )
    await db.commit()
    return device


async def rename_device(device_id: str, friendly_name: str) -> DeviceDescriptor | None:
    device = await get_device(device_id)
    if device is None:
        return None
    device.friendly_name = friendly_name
    return await save_device(device)


async def delete_device(device_id: str) -> bool:
    db = get_db()
    cursor = await db.execute("DELETE FROM devices WHERE id = ?", (device_id,))
    await db.commit()
    return cursor.rowcount > 0


async def check_activity(
    client_factory: Callable[[DeviceDescriptor], ControlAPIClient] = ControlAPIClient,
) -> list[DeviceDescriptor]:
    """Probe every stored device concurrently and persist its ``is_active`` flag."""
    devices = await list_devices()
    if not devices:
        return devices
    results = await asyncio.gather(*(client_factory(d).ping() for d in devices))
    for device, alive in zip(devices, results):
        if device.is_active != alive:
            logger.info("Device %s is now %s", device.id, "online" if alive else "offline")
        device.is_active = alive
        await save_device(device)
    return devices
