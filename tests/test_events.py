"""Tests for event-channel message parsing (playback/events.py)."""

from __future__ import annotations

import pytest

from playback.events import (
    MalformedMessage,
    NowPlayingItemChanged,
    NowPlayingStatusChanged,
    PlaybackStateChanged,
    PlaybackTimeChanged,
    parse_playback_message,
)


def test_status_changed():
    event = parse_playback_message(
        {
            "type": "playbackStatus.nowPlayingStatusDidChange",
            "data": {"inFavorites": True, "inLibrary": False, "currentPlaybackTime": 12.5, "durationInMillis": 180000},
        }
    )
    assert isinstance(event, NowPlayingStatusChanged)
    assert event.in_favorites is True
    assert event.in_library is False
    assert event.current_playback_time == 12.5
    assert event.duration_in_millis == 180000


def test_status_changed_defaults_missing_flags_to_false():
    event = parse_playback_message({"type": "playbackStatus.nowPlayingStatusDidChange", "data": {}})
    assert event.in_favorites is False
    assert event.in_library is False
    assert event.current_playback_time is None


def test_item_changed_carries_full_info():
    event = parse_playback_message(
        {
            "type": "playbackStatus.nowPlayingItemDidChange",
            "data": {"id": "t2", "name": "Song B", "artistName": "B", "durationInMillis": 90000},
        }
    )
    assert isinstance(event, NowPlayingItemChanged)
    assert event.info.to_track().title == "Song B"


def test_state_changed():
    event = parse_playback_message(
        {"type": "playbackStatus.playbackStateDidChange", "data": {"state": "playing"}}
    )
    assert isinstance(event, PlaybackStateChanged)
    assert event.is_playing is True

    paused = parse_playback_message(
        {"type": "playbackStatus.playbackStateDidChange", "data": {"state": "paused"}}
    )
    assert paused.is_playing is False


def test_time_changed_reads_zero_one_flag():
    event = parse_playback_message(
        {"type": "playbackStatus.playbackTimeDidChange", "data": {"isPlaying": 1, "currentPlaybackTime": 42.0}}
    )
    assert isinstance(event, PlaybackTimeChanged)
    assert event.is_playing is True
    assert event.current_playback_time == 42.0


def test_unknown_type_is_ignored():
    assert parse_playback_message({"type": "playbackStatus.somethingNew", "data": {}}) is None


@pytest.mark.parametrize(
    "message",
    [
        None,
        ["not", "a", "dict"],
        {"data": {}},
        {"type": "playbackStatus.playbackStateDidChange"},
        {"type": "playbackStatus.playbackStateDidChange", "data": {}},
        {"type": "playbackStatus.playbackTimeDidChange", "data": {"isPlaying": 1}},
        {"type": "playbackStatus.playbackTimeDidChange", "data": {"currentPlaybackTime": "soon", "isPlaying": 0}},
    ],
)
def test_malformed_messages_raise(message):
    with pytest.raises(MalformedMessage):
        parse_playback_message(message)
