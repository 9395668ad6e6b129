"""Pydantic models shared across the application."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_DEVICE_PORT = 10767


class DeviceDescriptor(BaseModel):
    """A paired Cider instance.

    Identity fields are frozen; only ``friendly_name`` (user-editable) and
    ``is_active`` (set by the liveness prober) may change after creation.
    """

    id: str = Field(frozen=True)
    friendly_name: str = ""
    host: str = Field(frozen=True)
    port: int = Field(default=DEFAULT_DEVICE_PORT, frozen=True)
    token: str = Field(default="", frozen=True)
    platform: str = Field(default="", frozen=True)
    os: Optional[str] = Field(default=None, frozen=True)
    version: str = Field(default="", frozen=True)
    is_active: bool = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class Track(BaseModel):
    """Now-playing or queued item. Compared field by field."""

    id: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork_url: str = ""
    duration_seconds: float = 0.0

    model_config = {"frozen": True}


class NowPlayingInfo(BaseModel):
    """The device's ``info`` object as returned by ``now-playing``.

    Also used for ``nowPlayingItemDidChange`` payloads and queue items.
    Every field is optional on the wire.
    """

    id: str = ""
    name: str = ""
    artist_name: str = Field(default="", alias="artistName")
    album_name: str = Field(default="", alias="albumName")
    duration_in_millis: float = Field(default=0.0, alias="durationInMillis")
    current_playback_time: Optional[float] = Field(default=None, alias="currentPlaybackTime")
    in_favorites: Optional[bool] = Field(default=None, alias="inFavorites")
    in_library: Optional[bool] = Field(default=None, alias="inLibrary")
    is_playing: Optional[bool] = Field(default=None, alias="isPlaying")
    state: Optional[str] = None
    artwork: Optional[dict[str, Any]] = None
    play_params: Optional[dict[str, Any]] = Field(default=None, alias="playParams")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("name", "artist_name", "album_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def from_queue_item(cls, item: dict[str, Any]) -> "NowPlayingInfo":
        """Queue entries nest their metadata under ``attributes``."""
        attributes = item.get("attributes")
        if isinstance(attributes, dict):
            merged = dict(attributes)
            merged.setdefault("id", item.get("id"))
            return cls.model_validate(merged)
        return cls.model_validate(item)

    @property
    def duration_seconds(self) -> float:
        return self.duration_in_millis / 1000

    @property
    def track_id(self) -> str:
        if self.id:
            return self.id
        if self.play_params and self.play_params.get("id") is not None:
            return str(self.play_params["id"])
        return ""

    @property
    def is_empty(self) -> bool:
        """Neither an id nor a title: the device has nothing loaded."""
        return not self.track_id and not self.name

    @property
    def reported_playing(self) -> Optional[bool]:
        """Playback state the device reported, or None when it said nothing."""
        if self.is_playing is not None:
            return self.is_playing
        if self.state is not None:
            return self.state == "playing"
        return None

    def artwork_url(self, size: int = 1024) -> str:
        url = (self.artwork or {}).get("url") or ""
        return url.replace("{w}", str(size)).replace("{h}", str(size))

    def to_track(self, artwork_size: int = 1024) -> Track:
        return Track(
            id=self.track_id,
            title=self.name,
            artist=self.artist_name,
            album=self.album_name,
            artwork_url=self.artwork_url(artwork_size),
            duration_seconds=self.duration_seconds,
        )


class PlaybackSnapshot(BaseModel):
    """Read-only copy of a session's playback state, handed to observers."""

    current_track: Optional[Track] = None
    is_playing: bool = False
    current_time: float = 0.0
    duration: float = 0.0
    volume: float = 0.0
    is_liked: bool = False
    is_in_library: bool = False
    queue: List[Track] = Field(default_factory=list)
    needs_artwork_refresh: bool = False
    show_favorite_pulse: bool = False
    show_library_pulse: bool = False
    error_message: Optional[str] = None

    model_config = {"frozen": True}
