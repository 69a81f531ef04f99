"""
Broadcast Core module for Stationcast.

This package contains the segment model, fade controller, segment player
and the playback scheduler that sequences a station's broadcast.
"""

from stationcast.broadcast_core.segment import (
    Segment,
    SegmentKind,
    TrackConfig,
    AnnouncementConfig,
    VolumeDipConfig,
    StationInfo,
    Broadcast,
)
from stationcast.broadcast_core.fade_controller import FadeController
from stationcast.broadcast_core.playback_session import PlaybackSession
from stationcast.broadcast_core.segment_player import SegmentPlayer, SegmentOutcome
from stationcast.broadcast_core.playback_scheduler import (
    PlaybackScheduler,
    SessionEndReason,
    NowPlayingSink,
)

__all__ = [
    "Segment",
    "SegmentKind",
    "TrackConfig",
    "AnnouncementConfig",
    "VolumeDipConfig",
    "StationInfo",
    "Broadcast",
    "FadeController",
    "PlaybackSession",
    "SegmentPlayer",
    "SegmentOutcome",
    "PlaybackScheduler",
    "SessionEndReason",
    "NowPlayingSink",
]
