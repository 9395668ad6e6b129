"""Tests for the device registry and liveness checks (remote/devices.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from playback.models import DeviceDescriptor
from remote.db import close_db, init_db
from remote.devices import (
    check_activity,
    delete_device,
    get_device,
    list_devices,
    rename_device,
    save_device,
)


@pytest.fixture
async def db_session(tmp_path, monkeypatch):
    """Init DB, yield, then close."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from remote.config import get_settings
    get_settings.cache_clear()

    db = await init_db()
    yield db
    await close_db()


def _device(device_id: str, host: str = "192.168.1.20") -> DeviceDescriptor:
    return DeviceDescriptor(
        id=device_id,
        friendly_name=f"PC {device_id}",
        host=host,
        token="tok",
        platform="win32",
        version="2.5.0",
    )


@pytest.mark.asyncio
async def test_save_and_list_round_trip(db_session):
    await save_device(_device("a"))
    await save_device(_device("b", host="10.0.0.5"))

    devices = await list_devices()
    assert [d.id for d in devices] == ["a", "b"]
    assert devices[1].host == "10.0.0.5"
    assert devices[0].port == 10767


@pytest.mark.asyncio
async def test_get_unknown_device_is_none(db_session):
    assert await get_device("missing") is None


@pytest.mark.asyncio
async def test_rename_keeps_identity(db_session):
    await save_device(_device("a"))
    renamed = await rename_device("a", "Living Room PC")

    assert renamed.friendly_name == "Living Room PC"
    stored = await get_device("a")
    assert stored.friendly_name == "Living Room PC"
    assert stored.host == "192.168.1.20"
    assert await rename_device("missing", "x") is None


@pytest.mark.asyncio
async def test_delete_device(db_session):
    await save_device(_device("a"))
    assert await delete_device("a") is True
    assert await delete_device("a") is False
    assert await list_devices() == []


@pytest.mark.asyncio
async def test_unreadable_rows_are_skipped(db_session):
    await save_device(_device("a"))
    await db_session.execute("INSERT INTO devices (id, payload) VALUES ('bad', '{not json')")
    await db_session.commit()

    assert [d.id for d in await list_devices()] == ["a"]


@pytest.mark.asyncio
async def test_check_activity_marks_devices(db_session):
    await save_device(_device("up", host="10.0.0.1"))
    await save_device(_device("down", host="10.0.0.2"))

    def factory(device):
        client = AsyncMock()
        client.ping.return_value = device.host == "10.0.0.1"
        return client

    devices = await check_activity(client_factory=factory)

    status = {d.id: d.is_active for d in devices}
    assert status == {"up": True, "down": False}
    assert (await get_device("up")).is_active is True
    assert (await get_device("down")).is_active is False
