"""Playback sync controller: one per attached device.

Owns the session's ``PlaybackState`` and is the only writer to it. Two inputs
mutate that state:

  - command results from the control API (optimistic update, revert on failure)
  - events from the event channel, drained one at a time from an inbox queue

Everything runs on one event loop, so writes never interleave; the merge rule
is last-writer-wins per field. Once ``stop()`` is called every later write is
discarded, including results of requests that were still in flight.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable

from playback.events import (
    NowPlayingItemChanged,
    NowPlayingStatusChanged,
    PlaybackStateChanged,
    PlaybackTimeChanged,
)
from playback.models import DeviceDescriptor, NowPlayingInfo, PlaybackSnapshot
from playback.state import PlaybackState
from remote.api_client import ControlAPIClient, ControlAPIError
from remote.artwork import ArtworkLoader
from remote.channel import ChannelConnected, EventChannel
from remote.config import Settings, get_settings
from remote.debounce import Debouncer

logger = logging.getLogger(__name__)

Subscriber = Callable[[PlaybackSnapshot], Any]

# Fields whose value constrains another are written first.
_APPLY_ORDER = ("current_track", "duration", "current_time", "is_playing")


def _apply_rank(name: str) -> int:
    return _APPLY_ORDER.index(name) if name in _APPLY_ORDER else len(_APPLY_ORDER)


class PlaybackSyncController:
    """Keeps a local ``PlaybackState`` in step with one Cider device."""

    def __init__(
        self,
        device: DeviceDescriptor,
        *,
        api: ControlAPIClient | None = None,
        channel: EventChannel | None = None,
        artwork: ArtworkLoader | None = None,
        settings: Settings | None = None,
    ):
        self.device = device
        self._settings = settings or get_settings()
        self.state = PlaybackState()
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.api = api or ControlAPIClient(device, settings=self._settings)
        self.channel = channel or EventChannel(device, self.inbox, settings=self._settings)
        self.artwork = artwork or ArtworkLoader()

        self._volume_debouncer = Debouncer(self._settings.debounce_seconds, name="volume")
        self._seek_debouncer = Debouncer(self._settings.debounce_seconds, name="seek")
        self._subscribers: list[Subscriber] = []
        self._pulse_tasks: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._consumer_task: asyncio.Task | None = None
        self._channel_task: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> PlaybackSnapshot:
        return self.state.snapshot()

    def to_status_dict(self) -> dict[str, Any]:
        """Serialize for the player API."""
        status = self.state.to_status_dict()
        status["device_id"] = self.device.id
        status["channel"] = self.channel.state.value
        return status

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call *callback* with a snapshot after every change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.state.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Playback subscriber %r failed", callback)

    def _apply(self, **changes: Any) -> bool:
        """Write *changes* to the state and notify, unless the session is closed."""
        if self._closed:
            logger.debug("Session %s closed, discarding %s", self.device.id, sorted(changes))
            return False
        for name in sorted(changes, key=_apply_rank):
            setattr(self.state, name, changes[name])
        self._notify()
        return True

    def _record_error(self, exc: Exception) -> None:
        logger.warning("Device %s: %s", self.device.id, exc)
        self._apply(error_message=str(exc))

    def clear_error(self) -> None:
        self._apply(error_message=None)

    def acknowledge_artwork_refresh(self) -> None:
        """Downstream theming has caught up with the current track."""
        self._apply(needs_artwork_refresh=False)

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> dict[str, bool]:
        """Start draining channel events, open the channel, and load initial state."""
        logger.info("Attaching to %s (%s)", self.device.friendly_name or self.device.id, self.device.host)
        self._consumer_task = asyncio.create_task(self._consume_events())
        self._channel_task = asyncio.create_task(self.channel.start())
        return await self.initialize()

    async def stop(self) -> None:
        """Tear down the session. Nothing mutates the state after this returns."""
        if self._closed:
            return
        self._closed = True
        self._volume_debouncer.cancel()
        self._seek_debouncer.cancel()
        for task in self._pulse_tasks.values():
            task.cancel()
        self._pulse_tasks.clear()

        await self.channel.stop()

        for task in (self._consumer_task, self._channel_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._consumer_task = None
        self._channel_task = None
        logger.info("Detached from %s", self.device.id)

    async def initialize(self) -> dict[str, bool]:
        """Fetch now-playing, volume and queue concurrently.

        Returns which of the three succeeded; a failure in one never stops
        the others.
        """
        names = ("now_playing", "volume", "queue")
        results = await asyncio.gather(
            self._fetch_now_playing(),
            self._fetch_volume(),
            self._fetch_queue(),
            return_exceptions=True,
        )
        report: dict[str, bool] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error("Initial %s fetch crashed: %r", name, result)
                report[name] = False
            else:
                report[name] = bool(result)
        return report

    async def refresh(self) -> bool:
        """Re-pull now-playing and volume, then repair the event channel.

        Call whenever the UI comes back to the foreground. Returns whether
        the channel is connected afterwards.
        """
        if self._closed:
            return False
        await asyncio.gather(self._fetch_now_playing(), self._fetch_volume())
        if self._closed:
            return False
        return await self.channel.ensure_connected()

    # ------------------------------------------------------------------
    # Fetches
    # ------------------------------------------------------------------

    async def _fetch_now_playing(self) -> bool:
        try:
            info = await self.api.now_playing()
        except ControlAPIError as exc:
            self._record_error(exc)
            return False
        self._apply_now_playing(info, flags_are_fresh=True)
        return True

    async def _fetch_volume(self) -> bool:
        try:
            volume = await self.api.get_volume()
        except ControlAPIError as exc:
            self._record_error(exc)
            return False
        self._apply(volume=volume)
        return True

    async def _fetch_queue(self) -> bool:
        try:
            items = await self.api.queue()
        except ControlAPIError as exc:
            self._record_error(exc)
            return False
        size = self._settings.artwork_size
        self._apply(queue=[item.to_track(size) for item in items])
        return True

    def _apply_now_playing(self, info: NowPlayingInfo, *, flags_are_fresh: bool) -> bool:
        """Merge a now-playing payload. Returns True if the track changed."""
        track = None if info.is_empty else info.to_track(self._settings.artwork_size)
        changes: dict[str, Any] = {"duration": info.duration_seconds}
        if info.current_playback_time is not None:
            changes["current_time"] = info.current_playback_time

        track_changed = track != self.state.current_track
        if track_changed:
            changes["current_track"] = track
            changes["needs_artwork_refresh"] = True

        reported = info.reported_playing
        if reported is not None:
            changes["is_playing"] = reported

        has_flags = info.in_favorites is not None and info.in_library is not None
        if flags_are_fresh or has_flags:
            changes["is_liked"] = bool(info.in_favorites)
            changes["is_in_library"] = bool(info.in_library)
        elif track_changed:
            changes["is_liked"] = False
            changes["is_in_library"] = False

        if not self._apply(**changes):
            return False
        if track_changed and track is None:
            logger.info("Nothing playing on %s", self.device.id)
        elif track_changed:
            logger.info("Now playing: %s - %s", track.artist, track.title)
            if not (flags_are_fresh or has_flags):
                # item events omit like/library state; pull it for the new track
                self._spawn(self._fetch_now_playing())
        return track_changed

    # ------------------------------------------------------------------
    # Channel events
    # ------------------------------------------------------------------

    async def _consume_events(self) -> None:
        """Drain the inbox in order until the session stops."""
        while True:
            event = await self.inbox.get()
            try:
                await self.handle_event(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Error handling channel event %r", event)

    async def handle_event(self, event: Any) -> None:
        if self._closed:
            return
        if isinstance(event, ChannelConnected):
            # backstop for anything pushed while we were disconnected
            self._spawn(self._fetch_now_playing())
        elif isinstance(event, NowPlayingStatusChanged):
            changes: dict[str, Any] = {
                "is_liked": event.in_favorites,
                "is_in_library": event.in_library,
            }
            if event.duration_in_millis is not None:
                changes["duration"] = event.duration_in_millis / 1000
            if event.current_playback_time is not None:
                changes["current_time"] = event.current_playback_time
            self._apply(**changes)
        elif isinstance(event, NowPlayingItemChanged):
            self._apply_now_playing(event.info, flags_are_fresh=False)
        elif isinstance(event, PlaybackStateChanged):
            self._apply(is_playing=event.is_playing)
        elif isinstance(event, PlaybackTimeChanged):
            self._apply(is_playing=event.is_playing, current_time=event.current_playback_time)
        else:
            logger.debug("Ignoring unknown inbox item %r", event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def toggle_play_pause(self) -> bool:
        previous = self.state.is_playing
        self._apply(is_playing=not previous)
        try:
            await self.api.play_pause()
        except ControlAPIError as exc:
            self._apply(is_playing=previous)
            self._record_error(exc)
            return False
        return True

    async def _transport(self, command: Callable[[], Awaitable[None]]) -> bool:
        ok = True
        try:
            await command()
        except ControlAPIError as exc:
            self._record_error(exc)
            ok = False
        # the new track can't be guessed locally
        await self._fetch_now_playing()
        return ok

    async def next_track(self) -> bool:
        return await self._transport(self.api.next_track)

    async def previous_track(self) -> bool:
        return await self._transport(self.api.previous_track)

    def seek(self, seconds: float) -> float:
        """Move the playhead now; the device gets the last position once input settles."""
        if not self._apply(current_time=seconds):
            return self.state.current_time
        position = self.state.current_time
        self._seek_debouncer.schedule(partial(self._commit_seek, position))
        return position

    async def _commit_seek(self, position: float) -> None:
        try:
            await self.api.seek(position)
        except ControlAPIError as exc:
            self._record_error(exc)

    def set_volume(self, value: float) -> float:
        """Set the volume locally now; the device gets the last value once input settles."""
        if not self._apply(volume=value):
            return self.state.volume
        volume = self.state.volume
        self._volume_debouncer.schedule(partial(self._commit_volume, volume))
        return volume

    async def _commit_volume(self, volume: float) -> None:
        try:
            confirmed = await self.api.set_volume(volume)
        except ControlAPIError as exc:
            self._record_error(exc)
            return
        self._apply(volume=confirmed)

    async def toggle_like(self) -> bool:
        previous = self.state.is_liked
        self._apply(is_liked=not previous)
        try:
            await self.api.set_rating(0 if previous else 1)
        except ControlAPIError as exc:
            self._apply(is_liked=previous)
            self._record_error(exc)
            return False
        self._pulse("show_favorite_pulse")
        return True

    async def toggle_add_to_library(self) -> bool:
        """Add the current track to the library. There is no remove."""
        if self.state.is_in_library:
            logger.debug("Already in library, nothing to do")
            return True
        self._apply(is_in_library=True)
        try:
            await self.api.add_to_library()
        except ControlAPIError as exc:
            self._apply(is_in_library=False)
            self._record_error(exc)
            return False
        self._pulse("show_library_pulse")
        return True

    def _pulse(self, flag: str) -> None:
        """Raise *flag* and lower it again after ``pulse_seconds``."""
        if self._closed:
            return
        existing = self._pulse_tasks.pop(flag, None)
        if existing is not None:
            existing.cancel()
        self._apply(**{flag: True})
        self._pulse_tasks[flag] = asyncio.create_task(self._lower_flag(flag))

    async def _lower_flag(self, flag: str) -> None:
        await asyncio.sleep(self._settings.pulse_seconds)
        self._pulse_tasks.pop(flag, None)
        self._apply(**{flag: False})

    async def load_artwork(self, url: str | None = None) -> bytes | None:
        """Artwork bytes for *url* (default: the current track) via the shared cache."""
        if url is None:
            track = self.state.current_track
            url = track.artwork_url if track else ""
        return await self.artwork.load(url)

    async def wait_for_commits(self) -> None:
        """Wait for fired debounced commits to finish."""
        await self._volume_debouncer.wait()
        await self._seek_debouncer.wait()


# ---------------------------------------------------------------------------
# Session registry (one controller per attached device)
# ---------------------------------------------------------------------------

_sessions: dict[str, PlaybackSyncController] = {}


def get_session(device_id: str) -> PlaybackSyncController | None:
    return _sessions.get(device_id)


async def attach_session(device: DeviceDescriptor) -> PlaybackSyncController:
    """Return the live session for *device*, starting one if needed."""
    existing = _sessions.get(device.id)
    if existing is not None and not existing.closed:
        await existing.refresh()
        return existing
    controller = PlaybackSyncController(device)
    _sessions[device.id] = controller
    await controller.start()
    return controller


async def detach_session(device_id: str) -> bool:
    controller = _sessions.pop(device_id, None)
    if controller is None:
        return False
    await controller.stop()
    return True


async def detach_all() -> None:
    for device_id in list(_sessions):
        await detach_session(device_id)
