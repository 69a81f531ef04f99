"""
Outputs module for Stationcast.

Publishers that push playback state to external displays.
"""

from .now_playing_client import NowPlayingClient

__all__ = ["NowPlayingClient"]
