"""Exception types raised by the playback core."""


class PlaybackError(Exception):
    """Base class for playback scheduler errors."""


class NothingToPlayError(PlaybackError):
    """Raised when start() is handed an empty segment list."""


class SessionActiveError(PlaybackError):
    """Raised when start() is called while a session is still active."""


class SegmentError(ValueError):
    """Raised when a segment payload cannot be parsed."""
