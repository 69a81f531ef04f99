"""
Playback drivers for Stationcast.

The playback core depends only on the MusicDriver / SpeechDriver interfaces;
concrete engines (pygame, Piper) are imported from their own modules so the
core stays importable without an audio device.
"""

from .base import MusicDriver, SpeechDriver
from .null_drivers import NullMusicDriver, NullSpeechDriver

__all__ = [
    "MusicDriver",
    "SpeechDriver",
    "NullMusicDriver",
    "NullSpeechDriver",
]
