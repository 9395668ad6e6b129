"""Playback events pushed by the device over the event channel.

Every message arrives on the ``API:Playback`` socket event as
``{"type": "playbackStatus.<subtype>", "data": {...}}``.
``parse_playback_message`` turns one into a typed event, returns ``None`` for
subtypes we do not handle, and raises ``MalformedMessage`` when a payload is
missing what its subtype requires.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from playback.models import NowPlayingInfo

logger = logging.getLogger(__name__)

PLAYBACK_SOCKET_EVENT = "API:Playback"


class MalformedMessage(ValueError):
    """A channel message that cannot be interpreted. Never surfaced to users."""


class EventType(str, Enum):
    NOW_PLAYING_STATUS = "playbackStatus.nowPlayingStatusDidChange"
    NOW_PLAYING_ITEM = "playbackStatus.nowPlayingItemDidChange"
    PLAYBACK_STATE = "playbackStatus.playbackStateDidChange"
    PLAYBACK_TIME = "playbackStatus.playbackTimeDidChange"


# ---------------------------------------------------------------------------
# Typed events
# ---------------------------------------------------------------------------

class NowPlayingStatusChanged(BaseModel):
    in_favorites: bool = Field(default=False, alias="inFavorites")
    in_library: bool = Field(default=False, alias="inLibrary")
    current_playback_time: Optional[float] = Field(default=None, alias="currentPlaybackTime")
    duration_in_millis: Optional[float] = Field(default=None, alias="durationInMillis")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class NowPlayingItemChanged(BaseModel):
    info: NowPlayingInfo


class PlaybackStateChanged(BaseModel):
    state: str

    model_config = {"extra": "ignore"}

    @property
    def is_playing(self) -> bool:
        return self.state == "playing"


class PlaybackTimeChanged(BaseModel):
    is_playing: bool = Field(alias="isPlaying")
    current_playback_time: float = Field(alias="currentPlaybackTime")

    model_config = {"populate_by_name": True, "extra": "ignore"}


PlaybackEvent = Union[
    NowPlayingStatusChanged,
    NowPlayingItemChanged,
    PlaybackStateChanged,
    PlaybackTimeChanged,
]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_playback_message(message: Any) -> PlaybackEvent | None:
    """Convert one raw ``API:Playback`` payload into a typed event."""
    if not isinstance(message, dict):
        raise MalformedMessage(f"expected an object, got {type(message).__name__}")
    event_type = message.get("type")
    if not isinstance(event_type, str):
        raise MalformedMessage("missing event type")

    try:
        kind = EventType(event_type)
    except ValueError:
        logger.info("Unhandled playback event type: %s", event_type)
        return None

    data = message.get("data")
    if not isinstance(data, dict):
        raise MalformedMessage(f"{event_type}: missing data object")

    try:
        if kind is EventType.NOW_PLAYING_STATUS:
            return NowPlayingStatusChanged.model_validate(data)
        if kind is EventType.NOW_PLAYING_ITEM:
            return NowPlayingItemChanged(info=NowPlayingInfo.model_validate(data))
        if kind is EventType.PLAYBACK_STATE:
            return PlaybackStateChanged.model_validate(data)
        return PlaybackTimeChanged.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessage(f"{event_type}: {exc.error_count()} invalid field(s)") from exc
