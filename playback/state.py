"""Mutable playback state for one device session.

Setters enforce the invariants:

- ``current_time`` stays within ``[0, duration]``
- ``volume`` stays within ``[0, 1]``
- no current track means not playing
"""

from __future__ import annotations

import math
from typing import Any

from playback.models import PlaybackSnapshot, Track


def clamp(value: float, low: float, high: float) -> float:
    """Clamp *value* into ``[low, high]``; NaN collapses to *low*."""
    value = float(value)
    if math.isnan(value):
        return low
    return max(low, min(high, value))


class PlaybackState:
    """Runtime state owned by a single sync controller."""

    __slots__ = (
        "_current_track",
        "_is_playing",
        "_current_time",
        "_duration",
        "_volume",
        "is_liked",
        "is_in_library",
        "queue",
        "needs_artwork_refresh",
        "show_favorite_pulse",
        "show_library_pulse",
        "error_message",
    )

    def __init__(self) -> None:
        self._current_track: Track | None = None
        self._is_playing = False
        self._current_time = 0.0
        self._duration = 0.0
        self._volume = 0.5
        self.is_liked = False
        self.is_in_library = False
        self.queue: list[Track] = []
        self.needs_artwork_refresh = False
        self.show_favorite_pulse = False
        self.show_library_pulse = False
        self.error_message: str | None = None

    @property
    def current_track(self) -> Track | None:
        return self._current_track

    @current_track.setter
    def current_track(self, track: Track | None) -> None:
        self._current_track = track
        if track is None:
            self._is_playing = False

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @is_playing.setter
    def is_playing(self, value: bool) -> None:
        self._is_playing = bool(value) and self._current_track is not None

    @property
    def duration(self) -> float:
        return self._duration

    @duration.setter
    def duration(self, seconds: float) -> None:
        self._duration = clamp(seconds, 0.0, math.inf)
        self._current_time = clamp(self._current_time, 0.0, self._duration)

    @property
    def current_time(self) -> float:
        return self._current_time

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        self._current_time = clamp(seconds, 0.0, self._duration)

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = clamp(value, 0.0, 1.0)

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            current_track=self._current_track,
            is_playing=self._is_playing,
            current_time=self._current_time,
            duration=self._duration,
            volume=self._volume,
            is_liked=self.is_liked,
            is_in_library=self.is_in_library,
            queue=list(self.queue),
            needs_artwork_refresh=self.needs_artwork_refresh,
            show_favorite_pulse=self.show_favorite_pulse,
            show_library_pulse=self.show_library_pulse,
            error_message=self.error_message,
        )

    def to_status_dict(self) -> dict[str, Any]:
        """Serialize for the player API."""
        return self.snapshot().model_dump()
