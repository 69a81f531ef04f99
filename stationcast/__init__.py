"""
Stationcast - geolocated station broadcast player.

Plays a station's looping broadcast of tracks, spoken announcements and
volume dips through pluggable music and speech drivers.
"""

__version__ = "0.3.0"
