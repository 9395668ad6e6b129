"""Event channel: a persistent Socket.IO connection to a Cider device.

The device pushes ``API:Playback`` events on ``http://<host>:10767``. Parsed
events are put on the controller's inbox queue in arrival order; nothing here
touches playback state directly.

States::

    disconnected --start()--> connecting --handshake--> connected
         ^                        |                         |
         +---- attempts used up --+---- stop() / drop ------+

Reconnection is ours, not socketio's: after an unexpected drop the channel
retries ``reconnect_attempts`` times with exponential backoff, then stays
disconnected until ``ensure_connected()`` is called again.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

import socketio

from playback.events import PLAYBACK_SOCKET_EVENT, MalformedMessage, parse_playback_message
from playback.models import DeviceDescriptor
from remote.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ChannelDisconnected(Exception):
    """A connect attempt failed or the connection dropped."""


class ChannelConnected:
    """Inbox marker: the channel (re)connected and state may be stale."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ChannelConnected()"


def _default_client() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class EventChannel:
    """Auto-reconnecting push channel for one device."""

    def __init__(
        self,
        device: DeviceDescriptor,
        inbox: asyncio.Queue,
        *,
        settings: Settings | None = None,
        client_factory: Callable[[], Any] | None = None,
    ):
        self.device = device
        self.state = ChannelState.DISCONNECTED
        self.failed_attempts = 0
        self._inbox = inbox
        self._settings = settings or get_settings()
        self._stopped = True
        self._connect_task: asyncio.Task | None = None

        self._sio = (client_factory or _default_client)()
        self._sio.on(PLAYBACK_SOCKET_EVENT, self._on_playback)
        self._sio.on("disconnect", self._on_disconnect)

    @property
    def url(self) -> str:
        return self.device.base_url

    @property
    def stopped(self) -> bool:
        return self._stopped

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> bool:
        """Open the channel. Returns True once connected, False if attempts ran out."""
        self._stopped = False
        return await self.ensure_connected()

    async def ensure_connected(self) -> bool:
        """Reconnect if needed; joins an attempt loop that is already running."""
        if self._stopped:
            logger.debug("ensure_connected on a stopped channel, restarting it")
            self._stopped = False
        if self.state is ChannelState.CONNECTED:
            return True
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._connect_with_retry())
        return await asyncio.shield(self._connect_task)

    async def stop(self) -> None:
        """Close the channel. No message is delivered after this is called."""
        self._stopped = True
        self.state = ChannelState.DISCONNECTED
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        self._connect_task = None
        if getattr(self._sio, "connected", False):
            try:
                await self._sio.disconnect()
            except Exception as exc:
                logger.warning("Error closing channel to %s: %s", self.url, exc)
        logger.info("Event channel to %s stopped", self.url)

    # ── Connecting ──────────────────────────────────────────────

    async def _connect_once(self) -> None:
        try:
            await self._sio.connect(
                self.url,
                headers={self._settings.token_header: self.device.token},
                wait_timeout=self._settings.connect_timeout,
            )
        except Exception as exc:
            # engineio raises ValueError when a reconnect races its reset
            raise ChannelDisconnected(str(exc) or type(exc).__name__) from exc

    async def _connect_with_retry(self) -> bool:
        attempts = max(1, self._settings.reconnect_attempts)
        for attempt in range(1, attempts + 1):
            if self._stopped:
                return False
            self.state = ChannelState.CONNECTING
            logger.info("Connecting to %s (attempt %d/%d)", self.url, attempt, attempts)
            try:
                await self._connect_once()
            except ChannelDisconnected as exc:
                self.state = ChannelState.DISCONNECTED
                self.failed_attempts += 1
                logger.warning("Connect to %s failed (attempt %d): %s", self.url, attempt, exc)
                if attempt < attempts:
                    await asyncio.sleep(self._settings.reconnect_delay * (2 ** (attempt - 1)))
                continue

            if self._stopped:
                # stop() raced the handshake
                await self._sio.disconnect()
                return False
            self.state = ChannelState.CONNECTED
            self.failed_attempts = 0
            logger.info("Event channel connected to %s", self.url)
            self._inbox.put_nowait(ChannelConnected())
            return True

        logger.warning(
            "Giving up on %s after %d attempts; waiting for refresh", self.url, attempts
        )
        return False

    # ── Socket handlers ─────────────────────────────────────────

    async def _on_playback(self, data: Any) -> None:
        if self._stopped:
            return
        try:
            event = parse_playback_message(data)
        except MalformedMessage as exc:
            logger.debug("Dropping malformed playback message: %s", exc)
            return
        if event is None:
            return
        logger.debug("Playback event: %s", type(event).__name__)
        self._inbox.put_nowait(event)

    async def _on_disconnect(self, reason: Any = None) -> None:
        if self._stopped:
            return
        logger.warning("Event channel to %s dropped (%s)", self.url, reason)
        self.state = ChannelState.DISCONNECTED
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._connect_with_retry())
